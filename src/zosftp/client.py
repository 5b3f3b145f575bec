"""High-level mainframe FTP client.

Wires the control session, transfer engine, dataset catalog and job
tracker together, and builds connections from application settings and
keyring credentials.
"""

from pathlib import Path
from typing import List, Optional, Tuple, Union

from zosftp.config.credentials import CredentialManager
from zosftp.config.settings import ClientSettings
from zosftp.ftp.catalog import DatasetCatalog
from zosftp.ftp.connection import ControlSession, MainframeConnection
from zosftp.ftp.ebcdic import EbcdicCodec
from zosftp.ftp.jobs import JobHandle, JobRef, JobStatus, JobTracker
from zosftp.ftp.listing import DataSetInfo
from zosftp.ftp.transfer import (
    AllocationParams,
    ProgressCallback,
    TransferEngine,
    TransferOptions,
    TransferResult,
)
from zosftp.utils.logging import get_logger

logger = get_logger("zosftp.client")


class MainframeClient:
    """
    One mainframe FTP session and the operations that run on it.

    Usage:
        with MainframeClient() as client:
            if client.connect(MainframeConnection("mvs.example.com", "IBMUSER", "secret")):
                client.download_dataset("IBMUSER.JCL.CNTL", "cntl.txt")
    """

    def __init__(
        self,
        default_options: Optional[TransferOptions] = None,
        codec: Optional[EbcdicCodec] = None
    ):
        """
        Initialize a disconnected client.

        Args:
            default_options: Options used when a transfer passes none
            codec: EBCDIC codec for converting transfers
        """
        self._session = ControlSession()
        self._codec = codec or EbcdicCodec()
        self._engine = TransferEngine(self._session, codec=self._codec)
        self._catalog = DatasetCatalog(self._engine)
        self._jobs = JobTracker(self._engine)
        self._default_options = default_options or TransferOptions()

    @classmethod
    def from_settings(
        cls,
        settings: ClientSettings,
        credentials: Optional[CredentialManager] = None
    ) -> Tuple["MainframeClient", MainframeConnection]:
        """
        Create a client and connection parameters from saved settings.

        The password comes from the keyring; it is empty if none is saved.
        Logging is configured when the settings name a log file or console.

        Args:
            settings: Saved client settings
            credentials: Keyring access, defaults to a new CredentialManager

        Returns:
            Tuple of (client, connection parameters)

        Raises:
            ValueError: If the saved connection settings are invalid
        """
        settings.apply_logging()
        credentials = credentials or CredentialManager()
        password = credentials.get_password(settings.last_host, settings.last_user_id) or ""
        connection = settings.build_connection(password)
        client = cls(default_options=settings.default_transfer_options())
        return client, connection

    @property
    def session(self) -> ControlSession:
        """Underlying control session."""
        return self._session

    @property
    def engine(self) -> TransferEngine:
        """Underlying transfer engine."""
        return self._engine

    @property
    def catalog(self) -> DatasetCatalog:
        """Dataset catalog operations."""
        return self._catalog

    @property
    def jobs(self) -> JobTracker:
        """JES job operations."""
        return self._jobs

    @property
    def is_connected(self) -> bool:
        """True if currently connected."""
        return self._session.is_connected

    @property
    def current_connection(self) -> Optional[MainframeConnection]:
        """Parameters of the current connection."""
        return self._session.connection

    def connect(self, connection: MainframeConnection) -> bool:
        """Log in; see ControlSession.connect."""
        self._engine.reset_cancel()
        return self._session.connect(connection)

    def disconnect(self) -> None:
        """Log out and close the connection."""
        self._session.disconnect()

    def cancel(self) -> None:
        """Cancel the running transfer; the session must be reconnected afterwards."""
        self._engine.cancel()

    def list_datasets(self, pattern: str) -> List[DataSetInfo]:
        return self._catalog.list_datasets(pattern)

    def list_members(self, pds_name: str) -> List[DataSetInfo]:
        return self._catalog.list_members(pds_name)

    def download_dataset(
        self,
        dataset_name: str,
        local_path: Union[str, Path],
        options: Optional[TransferOptions] = None,
        on_progress: Optional[ProgressCallback] = None
    ) -> TransferResult:
        return self._engine.download_dataset(
            dataset_name, local_path, options or self._default_options, on_progress
        )

    def download_member(
        self,
        pds_name: str,
        member_name: str,
        local_path: Union[str, Path],
        options: Optional[TransferOptions] = None,
        on_progress: Optional[ProgressCallback] = None
    ) -> TransferResult:
        return self._engine.download_member(
            pds_name, member_name, local_path, options or self._default_options, on_progress
        )

    def upload_dataset(
        self,
        local_path: Union[str, Path],
        dataset_name: str,
        options: Optional[TransferOptions] = None,
        on_progress: Optional[ProgressCallback] = None
    ) -> TransferResult:
        return self._engine.upload_dataset(
            local_path, dataset_name, options or self._default_options, on_progress
        )

    def upload_member(
        self,
        local_path: Union[str, Path],
        pds_name: str,
        member_name: str,
        options: Optional[TransferOptions] = None,
        on_progress: Optional[ProgressCallback] = None
    ) -> TransferResult:
        return self._engine.upload_member(
            local_path, pds_name, member_name, options or self._default_options, on_progress
        )

    def allocate_dataset(self, dataset_name: str, params: AllocationParams) -> bool:
        return self._engine.allocate(dataset_name, params)

    def delete_dataset(self, dataset_name: str) -> bool:
        return self._catalog.delete_dataset(dataset_name)

    def delete_member(self, pds_name: str, member_name: str) -> bool:
        return self._catalog.delete_member(pds_name, member_name)

    def rename_dataset(self, old_name: str, new_name: str) -> bool:
        return self._catalog.rename_dataset(old_name, new_name)

    def execute_site(self, parameters: str) -> Tuple[bool, str]:
        return self._session.execute_site(parameters)

    def submit_job(self, jcl_path: Union[str, Path]) -> Optional[JobHandle]:
        return self._jobs.submit(jcl_path)

    def get_job_status(self, job: JobRef) -> Tuple[JobStatus, Optional[int]]:
        return self._jobs.poll(job)

    def get_job_output(self, job: JobRef) -> Optional[str]:
        return self._jobs.fetch_output(job)

    def purge_job(self, job: JobRef) -> bool:
        return self._jobs.purge(job)

    def convert_ebcdic_to_ascii(self, data: bytes) -> bytes:
        return self._codec.to_ascii(data)

    def convert_ascii_to_ebcdic(self, data: bytes) -> bytes:
        return self._codec.to_ebcdic(data)

    def __enter__(self) -> "MainframeClient":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        if self.is_connected:
            logger.debug("Closing mainframe session")
        self.disconnect()
