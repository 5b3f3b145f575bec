"""Dataset transfer engine for the z/OS FTP client.

Streams datasets and PDS members between the mainframe and local files
over passive data channels. Each transfer runs
TYPE -> PASV -> RETR/STOR -> stream -> closing reply, with optional
EBCDIC conversion applied chunk by chunk.
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Callable, List, Optional, Tuple, Union

from zosftp.ftp.connection import ControlSession
from zosftp.ftp.ebcdic import EbcdicCodec
from zosftp.ftp.exceptions import (
    FTPDataChannelBusyError,
    FTPProtocolError,
    FTPTransferCancelledError,
)
from zosftp.ftp.listing import RecordFormat, member_dataset_name
from zosftp.ftp.passive import DataChannel, PassiveChannelNegotiator
from zosftp.ftp.response import ResponseFrame, parse_transfer_size
from zosftp.utils.validators import validate_dataset_reference

logger = logging.getLogger("zosftp.transfer")


class TransferMode(Enum):
    """FTP representation type, valued by its TYPE code."""
    BINARY = "I"
    ASCII = "A"


class SpaceUnit(Enum):
    """Allocation space unit, valued by its SITE keyword."""
    TRACKS = "TRACKS"
    CYLINDERS = "CYLINDERS"
    BLOCKS = "BLOCKS"


@dataclass(frozen=True)
class AllocationParams:
    """Attributes for allocating a new dataset."""
    record_format: RecordFormat = RecordFormat.FIXED_BLOCKED
    record_length: int = 80
    block_size: int = 27920
    primary_space: int = 5
    secondary_space: int = 5
    space_unit: SpaceUnit = SpaceUnit.TRACKS
    directory_blocks: Optional[int] = None

    def __post_init__(self):
        """Validate allocation attributes."""
        if self.record_length <= 0:
            raise ValueError(f"Record length must be positive, got {self.record_length}")
        if self.block_size < 0:
            raise ValueError(f"Block size cannot be negative, got {self.block_size}")
        if self.primary_space <= 0:
            raise ValueError(f"Primary space must be positive, got {self.primary_space}")
        if self.secondary_space < 0:
            raise ValueError(f"Secondary space cannot be negative, got {self.secondary_space}")
        if self.directory_blocks is not None and self.directory_blocks <= 0:
            raise ValueError(
                f"Directory blocks must be positive, got {self.directory_blocks}"
            )

    def to_site_parameters(self) -> str:
        """
        Render the attributes as SITE parameters.

        DIRECTORY is only emitted when directory blocks are set, since it
        turns the allocation into a partitioned dataset.
        """
        parameters = [
            f"RECFM={self.record_format.value}",
            f"LRECL={self.record_length}",
            f"BLKSIZE={self.block_size}",
            f"PRIMARY={self.primary_space}",
            f"SECONDARY={self.secondary_space}",
            self.space_unit.value,
        ]
        if self.directory_blocks is not None:
            parameters.append(f"DIRECTORY={self.directory_blocks}")
        return " ".join(parameters)


@dataclass(frozen=True)
class TransferOptions:
    """Options for a single transfer."""
    mode: TransferMode = TransferMode.BINARY
    convert_ebcdic: bool = True
    allocation: Optional[AllocationParams] = None

    @property
    def applies_ebcdic(self) -> bool:
        """EBCDIC conversion never applies to binary transfers."""
        return self.convert_ebcdic and self.mode != TransferMode.BINARY


@dataclass
class TransferProgress:
    """Progress information for a transfer."""
    path: str
    bytes_transferred: int
    bytes_total: Optional[int] = None

    @property
    def percent(self) -> float:
        """Transfer progress as percentage (0-100), 0 when the total is unknown."""
        if not self.bytes_total:
            return 0.0
        return (self.bytes_transferred / self.bytes_total) * 100.0


@dataclass(frozen=True)
class TransferResult:
    """Result of one transfer."""
    success: bool
    source_path: str
    destination_path: str
    bytes_transferred: int = 0
    error_message: Optional[str] = None
    reply: Optional[str] = None
    duration_seconds: float = 0.0


# Type alias for progress callback
ProgressCallback = Callable[[TransferProgress], None]


class TransferEngine:
    """Runs RETR/STOR transfers over passive data channels."""

    # Block size for data channel I/O (64KB)
    CHUNK_SIZE = 65536

    def __init__(
        self,
        session: ControlSession,
        negotiator: Optional[PassiveChannelNegotiator] = None,
        codec: Optional[EbcdicCodec] = None
    ):
        """
        Initialize the engine.

        Args:
            session: Control session the transfers run on
            negotiator: Passive channel negotiator
            codec: EBCDIC codec used when conversion applies
        """
        self._session = session
        self._negotiator = negotiator or PassiveChannelNegotiator()
        self._codec = codec or EbcdicCodec()
        self._cancelled = threading.Event()

    @property
    def session(self) -> ControlSession:
        """Control session used by this engine."""
        return self._session

    @property
    def is_cancelled(self) -> bool:
        """True if current operation was cancelled."""
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Cancel the current transfer at the next chunk boundary."""
        self._cancelled.set()

    def reset_cancel(self) -> None:
        """Reset cancellation flag for new operation."""
        self._cancelled.clear()

    def download_dataset(
        self,
        dataset_name: str,
        local_path: Union[str, Path],
        options: Optional[TransferOptions] = None,
        on_progress: Optional[ProgressCallback] = None
    ) -> TransferResult:
        """
        Download a dataset to a local file.

        A failed result may leave a partially written local file behind.

        Args:
            dataset_name: Fully qualified dataset name, without quotes
            local_path: Destination file
            options: Transfer options (binary by default; conversion never applies to binary)
            on_progress: Optional callback invoked after every chunk

        Returns:
            TransferResult with success/failure status
        """
        options = options or TransferOptions()
        local_path = Path(local_path)
        start_time = time.time()

        def result(success: bool, **kwargs) -> TransferResult:
            return TransferResult(
                success=success,
                source_path=dataset_name,
                destination_path=str(local_path),
                duration_seconds=time.time() - start_time,
                **kwargs
            )

        if not self._session.is_connected:
            return result(False, error_message="Not connected")

        is_valid, error = validate_dataset_reference(dataset_name)
        if not is_valid:
            return result(False, error_message=error)

        def receive(channel: DataChannel, reply: ResponseFrame) -> int:
            total = parse_transfer_size(reply.text)
            local_path.parent.mkdir(parents=True, exist_ok=True)
            with open(local_path, "wb") as f:
                return self._receive_to_file(channel, f, dataset_name, options, total, on_progress)

        try:
            self._set_mode(options.mode)
            channel = self._open_channel()
            received, final = self._run_transfer(f"RETR '{dataset_name}'", channel, receive)
        except FTPDataChannelBusyError:
            raise
        except Exception as e:
            logger.warning(f"Download of {dataset_name} failed: {e}")
            return result(False, error_message=str(e))

        logger.info(f"Downloaded {dataset_name} ({received} bytes)")
        return result(True, bytes_transferred=received, reply=final.text)

    def download_member(
        self,
        pds_name: str,
        member_name: str,
        local_path: Union[str, Path],
        options: Optional[TransferOptions] = None,
        on_progress: Optional[ProgressCallback] = None
    ) -> TransferResult:
        """
        Download a PDS member to a local file.

        Raises:
            ValueError: If the PDS or member name is invalid
        """
        name = member_dataset_name(pds_name, member_name)
        return self.download_dataset(name, local_path, options, on_progress)

    def upload_dataset(
        self,
        local_path: Union[str, Path],
        dataset_name: str,
        options: Optional[TransferOptions] = None,
        on_progress: Optional[ProgressCallback] = None
    ) -> TransferResult:
        """
        Upload a local file to a dataset.

        When allocation parameters are given they are sent as a SITE
        command before the transfer so that STOR allocates the dataset
        with them.

        Args:
            local_path: Source file
            dataset_name: Fully qualified dataset name, without quotes
            options: Transfer options (binary by default; conversion never applies to binary)
            on_progress: Optional callback invoked after every chunk

        Returns:
            TransferResult with success/failure status
        """
        options = options or TransferOptions()
        local_path = Path(local_path)
        start_time = time.time()

        def result(success: bool, **kwargs) -> TransferResult:
            return TransferResult(
                success=success,
                source_path=str(local_path),
                destination_path=dataset_name,
                duration_seconds=time.time() - start_time,
                **kwargs
            )

        if not self._session.is_connected:
            return result(False, error_message="Not connected")

        if not local_path.is_file():
            return result(False, error_message="Local file not found")

        is_valid, error = validate_dataset_reference(dataset_name)
        if not is_valid:
            return result(False, error_message=error)

        def send(channel: DataChannel, reply: ResponseFrame) -> int:
            total = local_path.stat().st_size
            with open(local_path, "rb") as f:
                return self._send_from_file(channel, f, str(local_path), options, total, on_progress)

        try:
            if options.allocation is not None:
                self._apply_allocation(options.allocation)
            self._set_mode(options.mode)
            channel = self._open_channel()
            sent, final = self._run_transfer(f"STOR '{dataset_name}'", channel, send)
        except FTPDataChannelBusyError:
            raise
        except Exception as e:
            logger.warning(f"Upload to {dataset_name} failed: {e}")
            return result(False, error_message=str(e))

        logger.info(f"Uploaded {local_path.name} to {dataset_name} ({sent} bytes)")
        return result(True, bytes_transferred=sent, reply=final.text)

    def upload_member(
        self,
        local_path: Union[str, Path],
        pds_name: str,
        member_name: str,
        options: Optional[TransferOptions] = None,
        on_progress: Optional[ProgressCallback] = None
    ) -> TransferResult:
        """
        Upload a local file to a PDS member.

        Raises:
            ValueError: If the PDS or member name is invalid
        """
        name = member_dataset_name(pds_name, member_name)
        return self.upload_dataset(local_path, name, options, on_progress)

    def upload_members(
        self,
        local_paths: List[Path],
        pds_name: str,
        options: Optional[TransferOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_file_complete: Optional[Callable[[TransferResult], None]] = None
    ) -> List[TransferResult]:
        """
        Upload several files as members of one PDS.

        Each member is named after the file's stem in upper case.
        Continues on individual failures, collects all results.

        Args:
            local_paths: Files to upload
            pds_name: Target PDS
            options: Transfer options applied to every file
            on_progress: Optional callback for progress updates
            on_file_complete: Optional callback when each file completes

        Returns:
            List of TransferResult for each file
        """
        self.reset_cancel()
        results: List[TransferResult] = []

        for local_path in local_paths:
            member_name = Path(local_path).stem.upper()
            destination = f"{pds_name}({member_name})"

            if self._cancelled.is_set():
                results.append(TransferResult(
                    success=False,
                    source_path=str(local_path),
                    destination_path=destination,
                    error_message="Transfer cancelled"
                ))
                continue

            result = self.upload_dataset(local_path, destination, options, on_progress)
            results.append(result)

            if on_file_complete:
                on_file_complete(result)

        return results

    def allocate(self, dataset_name: str, params: AllocationParams) -> bool:
        """
        Allocate an empty dataset with the given attributes.

        Sends the allocation SITE command, then STOR with no data.

        Args:
            dataset_name: Fully qualified dataset name, without quotes
            params: Allocation attributes

        Returns:
            True if the dataset was created
        """
        if not self._session.is_connected:
            return False

        try:
            self._apply_allocation(params)
            channel = self._open_channel()
            self._run_transfer(f"STOR '{dataset_name}'", channel, lambda channel, reply: 0)
        except FTPDataChannelBusyError:
            raise
        except Exception as e:
            logger.warning(f"Allocation of {dataset_name} failed: {e}")
            return False

        logger.info(f"Allocated {dataset_name} ({params.to_site_parameters()})")
        return True

    def fetch_text(self, command: str) -> Optional[str]:
        """
        Run a data-bearing command in ASCII mode and return its payload.

        Used for LIST output and JES spool retrieval.

        Args:
            command: Full command line, e.g. ``LIST 'HLQ.*'``

        Returns:
            Payload decoded as text, or None on failure
        """
        if not self._session.is_connected:
            return None

        buffer = bytearray()

        def collect(channel: DataChannel, reply: ResponseFrame) -> int:
            for chunk in channel.iter_chunks(self.CHUNK_SIZE):
                self._check_cancelled(command)
                buffer.extend(chunk)
            return len(buffer)

        try:
            self._set_mode(TransferMode.ASCII)
            channel = self._open_channel()
            self._run_transfer(command, channel, collect)
        except FTPDataChannelBusyError:
            raise
        except Exception as e:
            logger.warning(f"{command.split(' ', 1)[0]} failed: {e}")
            return None

        return buffer.decode("utf-8", errors="replace")

    def fetch_lines(self, command: str) -> Optional[List[str]]:
        """Like ``fetch_text`` but split into lines."""
        text = self.fetch_text(command)
        if text is None:
            return None
        return text.splitlines()

    def _set_mode(self, mode: TransferMode) -> None:
        reply = self._session.send_command(f"TYPE {mode.value}")
        if not reply.is_success:
            raise FTPProtocolError("TYPE", reply.text)

    def _apply_allocation(self, params: AllocationParams) -> None:
        success, reply = self._session.execute_site(params.to_site_parameters())
        if not success:
            raise FTPProtocolError("SITE", reply)

    def _open_channel(self) -> DataChannel:
        channel = self._negotiator.open_channel(self._session)
        if channel is None:
            raise FTPProtocolError("PASV", "PASV negotiation failed")
        return channel

    def _run_transfer(
        self,
        command: str,
        channel: DataChannel,
        pump: Callable[[DataChannel, ResponseFrame], int]
    ) -> Tuple[int, ResponseFrame]:
        """
        Issue ``command`` over ``channel`` and move the data with ``pump``.

        Returns:
            Tuple of (byte count returned by pump, closing reply)

        Raises:
            FTPProtocolError: If the command or the closing reply fails
        """
        try:
            reply = self._session.begin_transfer(command, channel)
        except BaseException:
            channel.close()
            raise

        if not reply.is_preliminary:
            channel.close()
            raise FTPProtocolError(command, reply.text)

        try:
            count = pump(channel, reply)
        except BaseException:
            # Closing reply is still pending; the control channel is unusable
            self._session.abandon()
            raise

        final = self._session.end_transfer()
        if not final.is_success:
            raise FTPProtocolError(command, final.text)
        return count, final

    def _check_cancelled(self, path: str) -> None:
        if self._cancelled.is_set():
            raise FTPTransferCancelledError(path)

    def _receive_to_file(
        self,
        channel: DataChannel,
        f: BinaryIO,
        path: str,
        options: TransferOptions,
        total: Optional[int],
        on_progress: Optional[ProgressCallback]
    ) -> int:
        received = 0
        for chunk in channel.iter_chunks(self.CHUNK_SIZE):
            self._check_cancelled(path)
            f.write(self._codec.to_ascii(chunk) if options.applies_ebcdic else chunk)
            received += len(chunk)
            if on_progress:
                on_progress(TransferProgress(path, received, total))
        return received

    def _send_from_file(
        self,
        channel: DataChannel,
        f: BinaryIO,
        path: str,
        options: TransferOptions,
        total: int,
        on_progress: Optional[ProgressCallback]
    ) -> int:
        sent = 0
        while True:
            self._check_cancelled(path)
            chunk = f.read(self.CHUNK_SIZE)
            if not chunk:
                break
            channel.sendall(self._codec.to_ebcdic(chunk) if options.applies_ebcdic else chunk)
            sent += len(chunk)
            if on_progress:
                on_progress(TransferProgress(path, sent, total))
        return sent
