"""z/OS mainframe FTP client.

Speaks the mainframe FTP dialect directly over sockets: dataset and
member transfers with EBCDIC conversion, dataset listings and JES job
submission.
"""

__version__ = "0.1.0"
