"""Unit tests for ControlSession.

Tests connection lifecycle, login sequences, command exchange and the
data channel guard.
"""

import socket
from unittest.mock import Mock, patch

import pytest

from zosftp.ftp.connection import ControlSession, MainframeConnection, SessionState
from zosftp.ftp.exceptions import (
    FTPConnectionClosedError,
    FTPDataChannelBusyError,
    FTPNotConnectedError,
)
from zosftp.ftp.passive import DataChannel

from ..conftest import LOGIN_REPLIES, FakeControlSocket


class _StallingReader:
    """Reader that times out once the scripted replies run out."""

    def __init__(self, reader):
        self._reader = reader

    def readline(self) -> bytes:
        line = self._reader.readline()
        if not line:
            raise socket.timeout("timed out")
        return line

    def close(self) -> None:
        self._reader.close()


class _StallingControlSocket(FakeControlSocket):
    """Control socket whose reader stalls after the last reply."""

    def makefile(self, mode: str = "rb") -> _StallingReader:
        return _StallingReader(super().makefile(mode))


class TestMainframeConnection:
    """Tests for MainframeConnection dataclass."""

    def test_default_values(self):
        """Test default connection values."""
        conn = MainframeConnection(host="mvs.example.com", user_id="IBMUSER")
        assert conn.port == 21
        assert conn.timeout == 30
        assert conn.account is None
        assert conn.site_commands == []

    def test_password_not_in_repr(self):
        """Test that the password is hidden from repr."""
        conn = MainframeConnection(host="mvs.example.com", user_id="IBMUSER", password="SECRET")
        assert "SECRET" not in repr(conn)

    def test_empty_host_raises_error(self):
        """Test that empty host raises ValueError."""
        with pytest.raises(ValueError, match="Host is required"):
            MainframeConnection(host="", user_id="IBMUSER")

    def test_invalid_port_raises_error(self):
        """Test that invalid port raises ValueError."""
        with pytest.raises(ValueError, match="Port must be between"):
            MainframeConnection(host="10.0.0.1", user_id="IBMUSER", port=0)

    def test_invalid_timeout_raises_error(self):
        """Test that invalid timeout raises ValueError."""
        with pytest.raises(ValueError, match="Timeout must be between"):
            MainframeConnection(host="10.0.0.1", user_id="IBMUSER", timeout=500)


class TestControlSessionConnect:
    """Tests for ControlSession.connect."""

    def test_initial_state_is_disconnected(self):
        """Test that a new session is disconnected."""
        session = ControlSession()
        assert session.state == SessionState.DISCONNECTED
        assert session.is_connected is False
        assert session.connection is None
        assert session.connected_at is None

    @patch("zosftp.ftp.connection.socket.create_connection")
    def test_connect_success(self, mock_create, connection):
        """Test USER/PASS login."""
        control = FakeControlSocket(LOGIN_REPLIES)
        mock_create.return_value = control

        session = ControlSession()
        assert session.connect(connection) is True

        assert session.state == SessionState.CONNECTED
        assert session.connection == connection
        assert session.connected_at is not None
        assert control.commands == ["USER IBMUSER", "PASS SYS1"]
        mock_create.assert_called_once_with(("127.0.0.1", 2121), timeout=30)

    @patch("zosftp.ftp.connection.socket.create_connection")
    def test_connect_without_password_prompt(self, mock_create, connection):
        """Test a server that logs in on USER alone."""
        control = FakeControlSocket(["220 Ready", "230 Logged on"])
        mock_create.return_value = control

        session = ControlSession()
        assert session.connect(connection) is True
        assert control.commands == ["USER IBMUSER"]

    @patch("zosftp.ftp.connection.socket.create_connection")
    def test_connect_sends_account(self, mock_create):
        """Test ACCT after a 332 reply."""
        control = FakeControlSocket(["220 Ready", "331 Password", "332 Need account", "230 Logged on"])
        mock_create.return_value = control
        conn = MainframeConnection(host="10.0.0.1", user_id="IBMUSER", password="SYS1", account="ACCT01")

        session = ControlSession()
        assert session.connect(conn) is True
        assert control.commands == ["USER IBMUSER", "PASS SYS1", "ACCT ACCT01"]

    @patch("zosftp.ftp.connection.socket.create_connection")
    def test_connect_auth_failure(self, mock_create, connection):
        """Test that a 530 reply fails the login."""
        control = FakeControlSocket(["220 Ready", "331 Password", "530 PASS command failed"])
        mock_create.return_value = control

        session = ControlSession()
        assert session.connect(connection) is False

        assert session.is_connected is False
        assert "Authentication failed" in session.error_message
        assert control.closed is True

    @patch("zosftp.ftp.connection.socket.create_connection")
    def test_connect_bad_greeting(self, mock_create, connection):
        """Test that a non-2xx greeting fails the connect."""
        mock_create.return_value = FakeControlSocket(["421 Service not available"])

        session = ControlSession()
        assert session.connect(connection) is False
        assert "421" in session.error_message

    @patch("zosftp.ftp.connection.socket.create_connection")
    def test_connect_refused(self, mock_create, connection):
        """Test that a socket error fails the connect without raising."""
        mock_create.side_effect = ConnectionRefusedError("Connection refused")

        session = ControlSession()
        assert session.connect(connection) is False
        assert "Failed to connect to 127.0.0.1:2121" in session.error_message

    @patch("zosftp.ftp.connection.socket.create_connection")
    def test_connect_timeout(self, mock_create, connection):
        """Test that a timeout fails the connect without raising."""
        mock_create.side_effect = socket.timeout("timed out")

        session = ControlSession()
        assert session.connect(connection) is False
        assert "timed out after 30 seconds" in session.error_message

    @patch("zosftp.ftp.connection.socket.create_connection")
    def test_connection_closed_during_login(self, mock_create, connection):
        """Test that a dropped connection fails the connect."""
        mock_create.return_value = FakeControlSocket(["220 Ready"])

        session = ControlSession()
        assert session.connect(connection) is False
        assert session.error_message == "Connection closed by server"

    @patch("zosftp.ftp.connection.socket.create_connection")
    def test_site_commands_after_login(self, mock_create):
        """Test that configured SITE commands run after login."""
        control = FakeControlSocket(LOGIN_REPLIES + ["200 SITE command was accepted", "501 Invalid"])
        mock_create.return_value = control
        conn = MainframeConnection(
            host="10.0.0.1",
            user_id="IBMUSER",
            password="SYS1",
            site_commands=["TRAILING", "BOGUS"],
        )

        session = ControlSession()
        assert session.connect(conn) is True
        assert control.commands[2:] == ["SITE TRAILING", "SITE BOGUS"]

    @patch("zosftp.ftp.connection.socket.create_connection")
    def test_connection_lost_during_site_commands(self, mock_create):
        """Test that a drop while running SITE commands fails the connect."""
        mock_create.return_value = FakeControlSocket(LOGIN_REPLIES)
        conn = MainframeConnection(host="10.0.0.1", user_id="IBMUSER", site_commands=["TRAILING"])

        session = ControlSession()
        assert session.connect(conn) is False
        assert session.is_connected is False


class TestControlSessionCommands:
    """Tests for command exchange on a connected session."""

    def test_send_command_when_not_connected(self):
        """Test that commands require a connection."""
        with pytest.raises(FTPNotConnectedError):
            ControlSession().send_command("NOOP")

    def test_send_command_returns_reply(self, scripted_session):
        """Test a simple command and its multi-line reply."""
        session, control = scripted_session(["211-Features", "211 End"])

        reply = session.send_command("FEAT")

        assert control.commands == ["FEAT"]
        assert reply.code == 211
        assert session.last_activity is not None

    def test_execute_site(self, scripted_session):
        """Test SITE success and failure."""
        session, control = scripted_session(["200 SITE command was accepted", "501 Unknown parameter"])

        assert session.execute_site("FILETYPE=JES") == (True, "200 SITE command was accepted")
        assert session.execute_site("NONSENSE") == (False, "501 Unknown parameter")
        assert control.commands == ["SITE FILETYPE=JES", "SITE NONSENSE"]

    def test_execute_site_when_not_connected(self):
        """Test SITE without a connection."""
        assert ControlSession().execute_site("FILETYPE=SEQ") == (False, "Not connected")

    def test_command_refused_while_transfer_open(self, scripted_session):
        """Test that the session refuses commands while a data channel is open."""
        session, control = scripted_session(["125 Storing data set", "250 Transfer completed"])
        channel = DataChannel(Mock(), ("127.0.0.1", 5000))

        reply = session.begin_transfer("STOR 'HLQ.DATA'", channel)
        assert reply.is_preliminary
        assert session.has_open_transfer is True

        with pytest.raises(FTPDataChannelBusyError, match="Cannot send NOOP"):
            session.send_command("NOOP")

        final = session.end_transfer()
        assert final.code == 250
        assert channel.is_closed is True
        assert session.has_open_transfer is False

    def test_failed_transfer_command_does_not_register_channel(self, scripted_session):
        """Test that a non-1xx reply leaves the session usable."""
        session, _ = scripted_session(["550 Data set not found"])
        channel = DataChannel(Mock(), ("127.0.0.1", 5000))

        reply = session.begin_transfer("RETR 'HLQ.MISSING'", channel)

        assert reply.code == 550
        assert session.has_open_transfer is False

    def test_closed_stream_disconnects(self, scripted_session):
        """Test that end of stream tears the session down."""
        session, control = scripted_session([])

        with pytest.raises(FTPConnectionClosedError):
            session.send_command("NOOP")

        assert session.is_connected is False
        assert control.closed is True

    def test_send_failure_disconnects(self, scripted_session):
        """Test that a socket error while sending tears the session down."""
        session, control = scripted_session([])
        control.sendall = Mock(side_effect=ConnectionResetError("reset by peer"))

        with pytest.raises(ConnectionResetError):
            session.send_command("NOOP")

        assert session.is_connected is False

    @patch("zosftp.ftp.connection.socket.create_connection")
    def test_timeout_mid_reply_disconnects(self, mock_create, connection):
        """Test that a half-read reply leaves the session disconnected."""
        mock_create.return_value = _StallingControlSocket(LOGIN_REPLIES + ["211-Features"])
        session = ControlSession()
        assert session.connect(connection) is True

        with pytest.raises(socket.timeout):
            session.send_command("FEAT")

        assert session.is_connected is False

    def test_execute_site_after_connection_lost(self, scripted_session):
        """Test that SITE reports a dropped connection instead of raising."""
        session, _ = scripted_session([])

        assert session.execute_site("FILETYPE=JES") == (False, "Connection closed by server")
        assert session.is_connected is False
        assert session.execute_site("FILETYPE=SEQ") == (False, "Not connected")


class TestControlSessionDisconnect:
    """Tests for disconnect and abandon."""

    def test_disconnect_sends_quit(self, scripted_session):
        """Test graceful disconnect."""
        session, control = scripted_session(["221 Quit command received. Goodbye."])

        session.disconnect()

        assert control.commands == ["QUIT"]
        assert control.closed is True
        assert session.state == SessionState.DISCONNECTED

    def test_disconnect_twice_is_safe(self, scripted_session):
        """Test that a second disconnect does nothing."""
        session, control = scripted_session(["221 Goodbye"])

        session.disconnect()
        session.disconnect()

        assert control.commands == ["QUIT"]
        assert session.is_connected is False

    def test_disconnect_tolerates_dropped_connection(self, scripted_session):
        """Test disconnect when the server already closed the socket."""
        session, _ = scripted_session([])

        session.disconnect()  # Should not raise

        assert session.is_connected is False

    def test_disconnect_during_transfer_skips_quit(self, scripted_session):
        """Test that disconnect with an open channel closes without QUIT."""
        session, control = scripted_session(["125 Sending data set"])
        channel = DataChannel(Mock(), ("127.0.0.1", 5000))
        session.begin_transfer("RETR 'HLQ.DATA'", channel)
        control.commands.clear()

        session.disconnect()

        assert control.commands == []
        assert channel.is_closed is True
        assert session.is_connected is False

    def test_abandon(self, scripted_session):
        """Test dropping the connection without QUIT."""
        session, control = scripted_session([])

        session.abandon()

        assert control.commands == []
        assert control.closed is True
        assert session.is_connected is False
