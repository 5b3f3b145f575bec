"""Client settings for the z/OS FTP client.

Provides the ClientSettings dataclass. Storing settings is left to the
application; the client only reads them.
"""

from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import List, Optional

from zosftp.ftp.connection import MainframeConnection
from zosftp.ftp.transfer import TransferMode, TransferOptions
from zosftp.utils.logging import resolve_level, setup_logging


@dataclass
class ClientSettings:
    """Settings an application keeps between sessions."""

    # Connection defaults
    last_host: str = ""
    last_port: int = 21
    last_user_id: str = ""
    account: str = ""
    timeout: int = 30

    # SITE commands run after every login
    site_commands: List[str] = field(default_factory=list)

    # Transfer defaults
    transfer_mode: str = TransferMode.BINARY.name
    convert_ebcdic: bool = True

    # Logging; nothing is configured unless a file or the console is enabled
    log_level: str = "INFO"
    log_file: str = ""
    log_to_console: bool = False
    trace_commands: bool = False

    def to_dict(self) -> dict:
        """Convert settings to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ClientSettings":
        """Create settings from dictionary, ignoring unknown keys."""
        valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {k: v for k, v in data.items() if k in valid_fields}
        return cls(**filtered)

    def default_transfer_options(self) -> TransferOptions:
        """Transfer options from the saved defaults (binary if unrecognized)."""
        try:
            mode = TransferMode[self.transfer_mode.upper()]
        except KeyError:
            mode = TransferMode.BINARY
        return TransferOptions(mode=mode, convert_ebcdic=self.convert_ebcdic)

    def build_connection(self, password: str = "") -> MainframeConnection:
        """
        Build connection parameters from the saved settings.

        Args:
            password: Password for the saved user id

        Raises:
            ValueError: If the saved host, port or timeout is invalid
        """
        return MainframeConnection(
            host=self.last_host,
            port=self.last_port,
            user_id=self.last_user_id,
            password=password,
            account=self.account or None,
            site_commands=list(self.site_commands),
            timeout=self.timeout,
        )

    def apply_logging(self) -> bool:
        """
        Configure the ``zosftp`` loggers from these settings.

        Returns:
            True if handlers were installed, False if logging is left
            to the application
        """
        log_file: Optional[Path] = Path(self.log_file) if self.log_file else None
        if log_file is None and not self.log_to_console:
            return False

        setup_logging(
            level=resolve_level(self.log_level),
            log_file=log_file,
            console=self.log_to_console,
            trace_commands=self.trace_commands,
        )
        return True
