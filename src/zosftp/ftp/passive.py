"""Passive-mode data channel negotiation.

Issues PASV on the control connection, decodes the
``(h1,h2,h3,h4,p1,p2)`` address tuple and opens the data socket.
"""

import logging
import socket
from typing import Iterator, Optional, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from zosftp.ftp.connection import ControlSession

logger = logging.getLogger("zosftp.passive")

# Reply code for "Entering Passive Mode"
PASV_OK = 227


def parse_pasv_reply(reply: str) -> Optional[Tuple[str, int]]:
    """
    Decode the address tuple of a 227 reply.

    Args:
        reply: Reply text, e.g. "227 Entering Passive Mode (10,0,0,5,19,136)."

    Returns:
        (host, port) tuple, or None if the tuple is missing or malformed
    """
    start = reply.find("(")
    end = reply.find(")")
    if start < 0 or end < 0 or end <= start:
        return None

    fields = [field.strip() for field in reply[start + 1:end].split(",")]
    if len(fields) != 6:
        return None

    if not all(field.isascii() and field.isdigit() for field in fields):
        return None

    numbers = [int(field) for field in fields]
    if any(number > 255 for number in numbers):
        return None

    host = ".".join(str(number) for number in numbers[:4])
    port = numbers[4] * 256 + numbers[5]
    return host, port


class DataChannel:
    """One ephemeral passive data connection."""

    def __init__(self, sock: socket.socket, address: Tuple[str, int]):
        """
        Initialize the channel.

        Args:
            sock: Connected data socket
            address: (host, port) the socket is connected to
        """
        self._sock = sock
        self._address = address
        self._closed = False

    @property
    def address(self) -> Tuple[str, int]:
        """Server address of the data connection."""
        return self._address

    @property
    def is_closed(self) -> bool:
        """True once the channel has been closed."""
        return self._closed

    def recv(self, size: int) -> bytes:
        """Read up to ``size`` bytes; empty bytes at end of stream."""
        return self._sock.recv(size)

    def iter_chunks(self, size: int) -> Iterator[bytes]:
        """Yield chunks of at most ``size`` bytes until end of stream."""
        while True:
            chunk = self._sock.recv(size)
            if not chunk:
                return
            yield chunk

    def sendall(self, data: bytes) -> None:
        """Write all of ``data`` to the channel."""
        self._sock.sendall(data)

    def close(self) -> None:
        """Close the data socket. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        try:
            self._sock.close()
        except OSError as e:
            logger.debug(f"Error closing data channel {self._address}: {e}")

    def __enter__(self) -> "DataChannel":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class PassiveChannelNegotiator:
    """Negotiates passive data connections for a control session."""

    def negotiate(self, session: "ControlSession") -> Optional[Tuple[str, int]]:
        """
        Send PASV and decode the server's data address.

        Args:
            session: Connected control session

        Returns:
            (host, port) tuple, or None if the server refused or the reply
            could not be decoded
        """
        reply = session.send_command("PASV")
        if not reply.has_code(PASV_OK):
            logger.warning(f"PASV refused: {reply.text}")
            return None

        address = parse_pasv_reply(reply.text)
        if address is None:
            logger.warning(f"Unparseable PASV reply: {reply.text}")
        return address

    def open_channel(self, session: "ControlSession") -> Optional[DataChannel]:
        """
        Negotiate a passive address and connect to it.

        The caller owns the returned channel and must close it before the
        next control command is sent.

        Args:
            session: Connected control session

        Returns:
            Connected DataChannel, or None if no address was negotiated

        Raises:
            OSError: If the data connection cannot be opened
        """
        address = self.negotiate(session)
        if address is None:
            return None

        logger.debug(f"Opening data channel to {address[0]}:{address[1]}")
        sock = socket.create_connection(address, timeout=session.timeout)
        return DataChannel(sock, address)
