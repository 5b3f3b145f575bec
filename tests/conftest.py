"""Pytest configuration and shared fixtures for z/OS FTP client tests."""

import io
from typing import List
from unittest.mock import patch

import pytest

from zosftp.ftp.connection import ControlSession, MainframeConnection
from zosftp.ftp.transfer import TransferEngine


# Test constants
TEST_HOST = "127.0.0.1"
TEST_PORT = 2121
TEST_USER = "IBMUSER"
TEST_PASS = "SYS1"

# Replies of a plain USER/PASS login
LOGIN_REPLIES = [
    "220-FTPD1 IBM FTP CS V2R4 at MVS1",
    "220 Connection will close if idle for more than 5 minutes.",
    "331 Send password please.",
    "230 IBMUSER is logged on.  Working directory is \"IBMUSER.\".",
]


class FakeControlSocket:
    """Control socket that replays scripted server replies."""

    def __init__(self, replies: List[str]):
        payload = "".join(f"{line}\r\n" for line in replies)
        self._reader = io.BytesIO(payload.encode("utf-8"))
        self.commands: List[str] = []
        self.closed = False

    def makefile(self, mode: str = "rb") -> io.BytesIO:
        return self._reader

    def sendall(self, data: bytes) -> None:
        self.commands.append(data.decode("utf-8").rstrip("\r\n"))

    def close(self) -> None:
        self.closed = True


class FakeDataSocket:
    """Passive data socket serving a fixed payload and recording writes."""

    def __init__(self, payload: bytes = b""):
        self._payload = io.BytesIO(payload)
        self.received = bytearray()
        self.closed = False

    def recv(self, size: int) -> bytes:
        return self._payload.read(size)

    def sendall(self, data: bytes) -> None:
        self.received.extend(data)

    def close(self) -> None:
        self.closed = True


def pasv_reply(port: int = 5000) -> str:
    """227 reply pointing at 127.0.0.1:port."""
    return f"227 Entering Passive Mode (127,0,0,1,{port // 256},{port % 256})"


@pytest.fixture
def connection() -> MainframeConnection:
    """Provide connection parameters for the scripted server."""
    return MainframeConnection(host=TEST_HOST, port=TEST_PORT, user_id=TEST_USER, password=TEST_PASS)


@pytest.fixture
def scripted_session(connection):
    """
    Build a logged-in ControlSession over scripted sockets.

    Usage:
        session, control = scripted_session(["200 ok"], [FakeDataSocket(b"x")])
    """
    patchers = []

    def build(replies: List[str], data_sockets: List[FakeDataSocket] = ()):
        control = FakeControlSocket(LOGIN_REPLIES + list(replies))
        patcher = patch(
            "zosftp.ftp.connection.socket.create_connection",
            side_effect=[control] + list(data_sockets),
        )
        patcher.start()
        patchers.append(patcher)

        session = ControlSession()
        assert session.connect(connection) is True
        control.commands.clear()
        return session, control

    yield build

    for patcher in patchers:
        patcher.stop()


@pytest.fixture
def scripted_engine(scripted_session):
    """Like scripted_session but returns a TransferEngine on the session."""

    def build(replies: List[str], data_sockets: List[FakeDataSocket] = ()):
        session, control = scripted_session(replies, data_sockets)
        return TransferEngine(session), control

    return build
