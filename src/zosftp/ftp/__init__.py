"""FTP protocol engine for the z/OS FTP client.

This module implements the mainframe FTP wire protocol over raw sockets:
- ControlSession: Control connection, login and command/reply exchange
- ResponseFramer: Multi-line reply framing
- PassiveChannelNegotiator: PASV negotiation and data channels
- EbcdicCodec: EBCDIC (cp037) <-> ASCII transcoding
- Listing parsers: Dataset and PDS member listings
- TransferEngine: Dataset and member downloads, uploads and allocation
- DatasetCatalog: Dataset listing, delete and rename
- JobTracker: JES job submission, status and output
- Exceptions: FTP-specific error types
"""
