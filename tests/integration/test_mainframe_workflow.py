"""Integration tests for mainframe FTP workflows.

Tests login, dataset listing, transfers, dataset management and JES job
handling against a local mock z/OS FTP server.
"""

import pytest

from zosftp.client import MainframeClient
from zosftp.ftp.connection import MainframeConnection, SessionState
from zosftp.ftp.ebcdic import to_ebcdic
from zosftp.ftp.jobs import JobStatus
from zosftp.ftp.listing import DataSetType
from zosftp.ftp.transfer import AllocationParams, TransferMode, TransferOptions

from .mock_ftp_server import MockMainframeFTPServer


@pytest.fixture
def ftp_server():
    """Provide a running mock mainframe FTP server."""
    server = MockMainframeFTPServer(port=21212)
    server.start()
    yield server
    server.stop()


@pytest.fixture
def connection(ftp_server) -> MainframeConnection:
    """Connection parameters for the mock server."""
    return MainframeConnection(
        host=ftp_server.host,
        port=ftp_server.port,
        user_id=ftp_server.username,
        password=ftp_server.password,
    )


@pytest.fixture
def client(connection):
    """Provide a logged-in client."""
    with MainframeClient() as client:
        assert client.connect(connection) is True
        yield client


class TestConnectionWorkflow:
    """Integration tests for login and logout."""

    def test_connect_and_disconnect(self, connection):
        """Test basic connect and disconnect cycle."""
        client = MainframeClient()

        assert client.connect(connection) is True
        assert client.session.state == SessionState.CONNECTED

        client.disconnect()
        client.disconnect()

        assert client.session.state == SessionState.DISCONNECTED

    def test_wrong_password(self, ftp_server):
        """Test that a rejected password fails the connect."""
        conn = MainframeConnection(
            host=ftp_server.host,
            port=ftp_server.port,
            user_id=ftp_server.username,
            password="WRONG",
        )
        client = MainframeClient()

        assert client.connect(conn) is False
        assert "Authentication failed" in client.session.error_message

    def test_site_commands_run_after_login(self, ftp_server):
        """Test configured SITE commands."""
        conn = MainframeConnection(
            host=ftp_server.host,
            port=ftp_server.port,
            user_id=ftp_server.username,
            password=ftp_server.password,
            site_commands=["TRAILING", "SBD=(IBM-1047,ISO8859-1)"],
        )

        with MainframeClient() as client:
            assert client.connect(conn) is True

        assert ftp_server.site_commands == ["TRAILING", "SBD=(IBM-1047,ISO8859-1)"]

    def test_connection_refused(self):
        """Test connecting to a port nobody listens on."""
        conn = MainframeConnection(host="127.0.0.1", port=21299, user_id="IBMUSER", password="SYS1")
        client = MainframeClient()

        assert client.connect(conn) is False
        assert client.is_connected is False


class TestListingWorkflow:
    """Integration tests for dataset and member listing."""

    def test_list_datasets(self, ftp_server, client):
        """Test listing datasets by pattern."""
        ftp_server.add_listing("IBMUSER.*", [
            "Volume Referred Ext Used Recfm Lrecl BlkSz Dsorg Dsname",
            "WRK001 2024/03/15  1   15  FB      80 27920  PO  IBMUSER.SOURCE",
            "WRK002 2024/03/14  2   40  VB     255 27998  PS  IBMUSER.LOG",
        ])

        datasets = client.list_datasets("IBMUSER.*")

        assert [d.name for d in datasets] == ["IBMUSER.SOURCE", "IBMUSER.LOG"]
        assert datasets[0].type == DataSetType.PARTITIONED
        assert ftp_server.site_commands == ["FILETYPE=SEQ"]

    def test_list_members(self, ftp_server, client):
        """Test listing PDS members."""
        ftp_server.add_listing("IBMUSER.SOURCE", [
            " Name     VV.MM   Created       Changed      Size  Init   Mod   Id",
            "ALPHA     01.00 2024/01/10 2024/03/15 09:12    10    10     0 IBMUSER",
            "BETA      01.01 2024/01/11 2024/03/15 09:13    20    18     0 IBMUSER",
        ])

        members = client.list_members("IBMUSER.SOURCE")

        assert [m.full_name for m in members] == ["IBMUSER.SOURCE(ALPHA)", "IBMUSER.SOURCE(BETA)"]

    def test_no_matching_datasets(self, client):
        """Test an empty listing result."""
        assert client.list_datasets("NOBODY.*") == []
        assert client.is_connected is True


class TestTransferWorkflow:
    """Integration tests for downloads and uploads."""

    def test_binary_round_trip(self, ftp_server, client, tmp_path):
        """Test uploading and downloading binary data unchanged."""
        source = tmp_path / "load.bin"
        source.write_bytes(bytes(range(256)) * 512)

        upload = client.upload_dataset(source, "IBMUSER.LOAD")
        assert upload.success is True
        assert upload.bytes_transferred == source.stat().st_size
        assert (ftp_server.root_dir / "IBMUSER.LOAD").read_bytes() == source.read_bytes()

        target = tmp_path / "copy.bin"
        download = client.download_dataset("IBMUSER.LOAD", target)
        assert download.success is True
        assert target.read_bytes() == source.read_bytes()

    def test_ebcdic_download(self, ftp_server, client, tmp_path):
        """Test converting EBCDIC contents on download."""
        ftp_server.add_dataset("IBMUSER.TEXT", to_ebcdic(b"HELLO FROM MVS"))
        target = tmp_path / "text.txt"

        result = client.download_dataset(
            "IBMUSER.TEXT",
            target,
            TransferOptions(mode=TransferMode.ASCII, convert_ebcdic=True),
        )

        assert result.success is True
        assert target.read_bytes() == b"HELLO FROM MVS"

    def test_member_upload_with_allocation(self, ftp_server, client, tmp_path):
        """Test member upload preceded by the allocation SITE command."""
        source = tmp_path / "prog.cbl"
        source.write_bytes(b"       IDENTIFICATION DIVISION.")
        options = TransferOptions(allocation=AllocationParams(directory_blocks=10))

        result = client.upload_member(source, "IBMUSER.COBOL", "PROG", options)

        assert result.success is True
        assert (ftp_server.root_dir / "IBMUSER.COBOL(PROG)").exists()
        assert ftp_server.site_commands[-1].endswith("TRACKS DIRECTORY=10")

    def test_download_missing_dataset(self, client, tmp_path):
        """Test that a missing dataset fails without dropping the session."""
        result = client.download_dataset("IBMUSER.MISSING", tmp_path / "x")

        assert result.success is False
        assert result.error_message.startswith("550")
        assert client.is_connected is True

    def test_progress_callback(self, ftp_server, client, tmp_path):
        """Test progress reporting during upload."""
        source = tmp_path / "big.bin"
        source.write_bytes(b"\x00" * 200000)
        progress = []

        client.upload_dataset(source, "IBMUSER.BIG", on_progress=progress.append)

        assert len(progress) == 4
        assert progress[-1].bytes_transferred == 200000
        assert progress[-1].percent == 100.0


class TestDatasetManagementWorkflow:
    """Integration tests for delete and rename."""

    def test_rename_and_delete(self, ftp_server, client):
        """Test renaming and deleting a dataset."""
        ftp_server.add_dataset("IBMUSER.OLD", b"data")

        assert client.rename_dataset("IBMUSER.OLD", "IBMUSER.NEW") is True
        assert (ftp_server.root_dir / "IBMUSER.NEW").exists()

        assert client.delete_dataset("IBMUSER.NEW") is True
        assert not (ftp_server.root_dir / "IBMUSER.NEW").exists()

    def test_delete_missing(self, client):
        """Test deleting a dataset that does not exist."""
        assert client.delete_dataset("IBMUSER.NONE") is False


class TestJobWorkflow:
    """Integration tests for JES job handling."""

    def test_submit_poll_fetch_purge(self, ftp_server, client, tmp_path):
        """Test the full job lifecycle."""
        jcl = tmp_path / "job.jcl"
        jcl.write_text("//TESTJOB JOB (ACCT),'TEST'\n//STEP1 EXEC PGM=IEFBR14\n")

        handle = client.submit_job(jcl)

        assert handle is not None
        assert handle.job_id == "JOB00042"
        assert ftp_server.site_commands[-1] == "FILETYPE=SEQ"

        assert client.get_job_status(handle) == (JobStatus.COMPLETED, 0)
        assert handle.status == JobStatus.COMPLETED

        output = client.get_job_output(handle)
        assert "COND CODE 0000" in output

        assert client.purge_job(handle) is True
        assert "JOB00042" not in ftp_server.jobs
        assert client.get_job_status("JOB00042") == (JobStatus.UNKNOWN, None)
