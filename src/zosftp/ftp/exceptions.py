"""FTP-specific exceptions for the z/OS FTP client.

Custom exception hierarchy for the protocol engine. These are raised
inside the engine and converted into boolean, None or result values at
the public boundaries; only caller errors escape.
"""


class FTPError(Exception):
    """Base exception for all FTP-related errors."""

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class FTPConnectionError(FTPError):
    """Failed to establish FTP connection."""

    def __init__(self, host: str, port: int, original_error: Exception = None):
        self.host = host
        self.port = port
        message = f"Failed to connect to {host}:{port}"
        super().__init__(message, original_error)


class FTPAuthenticationError(FTPError):
    """FTP authentication (login) failed."""

    def __init__(self, user_id: str, reply: str = ""):
        self.user_id = user_id
        self.reply = reply
        message = f"Authentication failed for user '{user_id}'"
        if reply:
            message = f"{message}: {reply}"
        super().__init__(message)


class FTPNotConnectedError(FTPError):
    """Operation attempted without active FTP connection."""

    def __init__(self, operation: str = "Operation"):
        message = f"{operation} requires an active FTP connection"
        super().__init__(message)


class FTPTimeoutError(FTPError):
    """FTP operation timed out."""

    def __init__(self, operation: str = "Operation", timeout: int = 30):
        self.timeout = timeout
        message = f"{operation} timed out after {timeout} seconds"
        super().__init__(message)


class FTPProtocolError(FTPError):
    """Server answered a command with an unexpected reply code."""

    def __init__(self, command: str, reply: str):
        self.command = command
        self.reply = reply
        super().__init__(reply or f"No reply to {command}")


class FTPConnectionClosedError(FTPError):
    """Control connection closed before a complete reply was read."""

    def __init__(self):
        super().__init__("Connection closed by server")


class FTPDataChannelBusyError(FTPError):
    """
    A control command was issued while a data transfer is still open.

    This is a caller error: the previous transfer's data channel must be
    drained and closed before the next command is sent.
    """

    def __init__(self, command: str):
        self.command = command
        verb = command.split(" ", 1)[0]
        message = f"Cannot send {verb} while a data transfer is open"
        super().__init__(message)


class FTPTransferCancelledError(FTPError):
    """Transfer was cancelled by the caller."""

    def __init__(self, path: str):
        self.path = path
        super().__init__("Transfer cancelled")
