"""Control connection management for the z/OS FTP client.

Provides SessionState enum, MainframeConnection dataclass and the
ControlSession class that owns the control socket, performs login and
exchanges commands and replies.
"""

import logging
import socket
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import BinaryIO, List, Optional, Tuple, Union

from zosftp.ftp.exceptions import (
    FTPAuthenticationError,
    FTPConnectionClosedError,
    FTPConnectionError,
    FTPDataChannelBusyError,
    FTPError,
    FTPNotConnectedError,
    FTPProtocolError,
    FTPTimeoutError,
)
from zosftp.ftp.passive import DataChannel
from zosftp.ftp.response import ResponseFrame, read_response
from zosftp.utils.logging import COMMAND_LOGGER_NAME, redact
from zosftp.utils.validators import validate_host, validate_port, validate_timeout

logger = logging.getLogger(COMMAND_LOGGER_NAME)

# Login reply codes
USER_LOGGED_IN = 230
COMMAND_SUPERFLUOUS = 202
NEED_PASSWORD = 331
NEED_ACCOUNT = 332

# SITE success codes
SITE_OK = (200, 250)


class SessionState(Enum):
    """Control session state."""
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


@dataclass
class MainframeConnection:
    """Mainframe FTP connection parameters."""
    host: str
    user_id: str
    password: str = field(default="", repr=False)
    port: int = 21
    account: Optional[str] = None
    site_commands: List[str] = field(default_factory=list)
    timeout: int = 30

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.host:
            raise ValueError("Host is required")
        is_valid, error = validate_host(self.host)
        if not is_valid:
            raise ValueError(error)
        is_valid, error = validate_port(self.port)
        if not is_valid:
            raise ValueError(error)
        is_valid, error = validate_timeout(self.timeout)
        if not is_valid:
            raise ValueError(error)


@dataclass
class _Disconnected:
    """No control connection."""


@dataclass
class _Connected:
    """Live control connection and the transfer currently using it."""
    sock: socket.socket
    reader: BinaryIO
    connection: MainframeConnection
    connected_at: datetime
    data_channel: Optional[DataChannel] = None


_Link = Union[_Disconnected, _Connected]


class ControlSession:
    """Owns the control socket of one mainframe FTP session."""

    def __init__(self):
        """Initialize a disconnected session."""
        self._link: _Link = _Disconnected()
        self._last_activity: Optional[datetime] = None
        self._error_message: Optional[str] = None

    @property
    def state(self) -> SessionState:
        """Current session state."""
        if isinstance(self._link, _Connected):
            return SessionState.CONNECTED
        return SessionState.DISCONNECTED

    @property
    def is_connected(self) -> bool:
        """True if currently connected."""
        return isinstance(self._link, _Connected)

    @property
    def connection(self) -> Optional[MainframeConnection]:
        """Parameters of the current connection."""
        if isinstance(self._link, _Connected):
            return self._link.connection
        return None

    @property
    def timeout(self) -> int:
        """Socket timeout of the current connection in seconds."""
        if isinstance(self._link, _Connected):
            return self._link.connection.timeout
        return 30

    @property
    def connected_at(self) -> Optional[datetime]:
        """Timestamp when connection was established."""
        if isinstance(self._link, _Connected):
            return self._link.connected_at
        return None

    @property
    def last_activity(self) -> Optional[datetime]:
        """Timestamp of last command sent."""
        return self._last_activity

    @property
    def error_message(self) -> Optional[str]:
        """Reason the last connect attempt failed."""
        return self._error_message

    @property
    def has_open_transfer(self) -> bool:
        """True while a data channel is registered with the session."""
        return isinstance(self._link, _Connected) and self._link.data_channel is not None

    def connect(self, connection: MainframeConnection) -> bool:
        """
        Open the control connection and log in.

        Never raises for network or protocol failures; the reason is
        available from ``error_message`` afterwards.

        Args:
            connection: Connection parameters

        Returns:
            True if logged in, False otherwise
        """
        if self.is_connected:
            self.disconnect()

        self._error_message = None
        logger.info(f"Connecting to {connection.host}:{connection.port}")

        try:
            self._open(connection)
            self._login(connection)

            for parameters in connection.site_commands:
                success, reply = self.execute_site(parameters)
                if not self.is_connected:
                    raise FTPConnectionClosedError()
                if not success:
                    logger.warning(f"SITE {parameters} rejected: {reply}")
        except (FTPError, OSError) as e:
            self._error_message = str(e)
            logger.warning(f"Connection to {connection.host} failed: {e}")
            self._teardown()
            return False

        logger.info(f"Logged in to {connection.host} as {connection.user_id}")
        return True

    def _open(self, connection: MainframeConnection) -> None:
        """Open the socket and read the greeting."""
        try:
            sock = socket.create_connection(
                (connection.host, connection.port),
                timeout=connection.timeout
            )
        except socket.timeout:
            raise FTPTimeoutError("Connection", connection.timeout)
        except OSError as e:
            raise FTPConnectionError(connection.host, connection.port, e)

        self._link = _Connected(
            sock=sock,
            reader=sock.makefile("rb"),
            connection=connection,
            connected_at=datetime.now(),
        )

        greeting = self.read_response()
        if not greeting.is_success:
            raise FTPProtocolError("connect", greeting.text)

    def _login(self, connection: MainframeConnection) -> None:
        """Run the USER / PASS / ACCT sequence."""
        reply = self.send_command(f"USER {connection.user_id}")

        if reply.has_code(NEED_PASSWORD):
            reply = self.send_command(f"PASS {connection.password}")

        if reply.has_code(NEED_ACCOUNT) and connection.account:
            reply = self.send_command(f"ACCT {connection.account}")

        if not reply.has_code(USER_LOGGED_IN, COMMAND_SUPERFLUOUS):
            raise FTPAuthenticationError(connection.user_id, reply.text)

    def disconnect(self) -> None:
        """Close the control connection gracefully. Safe to call repeatedly."""
        link = self._link
        if isinstance(link, _Connected) and link.data_channel is None:
            try:
                self.send_command("QUIT")
            except (FTPError, OSError):
                # Best effort close
                pass

        self._teardown()

    def abandon(self) -> None:
        """Drop the connection without QUIT, e.g. after a broken transfer."""
        if self.is_connected:
            logger.warning("Abandoning control connection")
        self._teardown()

    def _teardown(self) -> None:
        """Close data channel, reader and socket unconditionally."""
        link = self._link
        self._link = _Disconnected()

        if not isinstance(link, _Connected):
            return

        if link.data_channel is not None:
            link.data_channel.close()
        for resource in (link.reader, link.sock):
            try:
                resource.close()
            except OSError:
                pass

    def _require_link(self, operation: str) -> _Connected:
        """Return the live link or raise."""
        if not isinstance(self._link, _Connected):
            raise FTPNotConnectedError(operation)
        return self._link

    def send_command(self, command: str) -> ResponseFrame:
        """
        Send one command line and read its reply.

        Args:
            command: Command text without line terminator

        Returns:
            The framed reply

        Raises:
            FTPNotConnectedError: If not connected
            FTPDataChannelBusyError: If a data transfer is still open
            FTPConnectionClosedError: If the server closes the connection
            OSError: If the socket fails; the session is torn down first
        """
        link = self._require_link(command.split(" ", 1)[0])
        if link.data_channel is not None:
            raise FTPDataChannelBusyError(command)

        logger.debug(f"> {redact(command)}")
        try:
            link.sock.sendall(f"{command}\r\n".encode("utf-8"))
        except OSError as e:
            logger.warning(f"Control connection lost sending {command.split(' ', 1)[0]}: {e}")
            self._teardown()
            raise
        self._last_activity = datetime.now()
        return self.read_response()

    def read_response(self) -> ResponseFrame:
        """
        Read one reply from the control channel.

        A closed stream or socket error leaves the session disconnected,
        since a partly read reply would desynchronize every later exchange.

        Raises:
            FTPNotConnectedError: If not connected
            FTPConnectionClosedError: If the server closes the connection
            OSError: If the socket fails or times out
        """
        link = self._require_link("Reading a reply")
        try:
            reply = read_response(link.reader)
        except (FTPConnectionClosedError, OSError) as e:
            logger.warning(f"Control connection lost: {e}")
            self._teardown()
            raise
        logger.debug(f"< {reply.text}")
        return reply

    def execute_site(self, parameters: str) -> Tuple[bool, str]:
        """
        Run a SITE command.

        Failures never raise, except for a transfer still holding the
        control channel.

        Args:
            parameters: Text after ``SITE``, e.g. ``FILETYPE=JES``

        Returns:
            Tuple of (success, raw reply text or error message)
        """
        if not self.is_connected:
            return False, "Not connected"

        try:
            reply = self.send_command(f"SITE {parameters}")
        except FTPDataChannelBusyError:
            raise
        except (FTPError, OSError) as e:
            logger.warning(f"SITE {parameters} failed: {e}")
            return False, str(e)
        return reply.has_code(*SITE_OK), reply.text

    def begin_transfer(self, command: str, channel: DataChannel) -> ResponseFrame:
        """
        Send a data-bearing command over an open passive channel.

        On a 1xx reply the channel is registered with the session and no
        further command may be sent until ``end_transfer``.

        Args:
            command: RETR, STOR or LIST command line
            channel: Connected passive data channel

        Returns:
            The preliminary reply
        """
        reply = self.send_command(command)
        if reply.is_preliminary:
            self._require_link(command).data_channel = channel
        return reply

    def end_transfer(self) -> ResponseFrame:
        """
        Close the registered data channel and read the closing reply.

        Returns:
            The transfer's closing reply
        """
        link = self._require_link("Ending a transfer")
        if link.data_channel is not None:
            link.data_channel.close()
            link.data_channel = None
        return self.read_response()
