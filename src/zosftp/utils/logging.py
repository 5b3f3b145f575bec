"""Logging configuration for the z/OS FTP client.

Every logger lives under ``zosftp``. Control channel traffic is logged by
``zosftp.connection`` at DEBUG, one line per command (``> USER IBMUSER``)
and per reply (``< 230 IBMUSER is logged on``). Passwords are redacted both
when a command is traced and again by the handler formatter.
"""

import logging
import re
import sys
from pathlib import Path
from typing import Optional


LOGGER_NAME = "zosftp"

# Control channel trace logger
COMMAND_LOGGER_NAME = "zosftp.connection"

# PII patterns to redact from logs
PII_PATTERNS = [
    # FTP PASS and ACCT commands
    (re.compile(r'\b(PASS|ACCT)\s+\S+'), r'\1 [REDACTED]'),
    # Password in various formats
    (re.compile(r'(password["\s:=]+)[^\s,}\]]+', re.IGNORECASE), r'\1[REDACTED]'),
    (re.compile(r'(passwd["\s:=]+)[^\s,}\]]+', re.IGNORECASE), r'\1[REDACTED]'),
    # FTP URLs with credentials
    (re.compile(r'ftp://[^:]+:[^@]+@'), 'ftp://[REDACTED]@'),
    # IP addresses (partial redaction for privacy)
    (re.compile(r'(\d+\.\d+\.)\d+\.\d+'), r'\1*.*'),
]


def redact(message: str) -> str:
    """Apply every PII pattern to a message."""
    for pattern, replacement in PII_PATTERNS:
        message = pattern.sub(replacement, message)
    return message


class PIIRedactingFormatter(logging.Formatter):
    """Formatter that redacts PII from formatted records."""

    def format(self, record: logging.LogRecord) -> str:
        return redact(super().format(record))


def resolve_level(level_name: str, default: int = logging.INFO) -> int:
    """
    Map a level name such as ``"debug"`` to its logging constant.

    Unknown names give ``default``.
    """
    level = logging.getLevelName(level_name.upper()) if level_name else default
    return level if isinstance(level, int) else default


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    console: bool = True,
    trace_commands: bool = False
) -> logging.Logger:
    """
    Configure client logging with PII redaction.

    Args:
        level: Logging level for the client (default INFO)
        log_file: Optional file path for log output
        console: Whether to output to stderr (default True)
        trace_commands: Log every control channel command and reply,
            regardless of ``level``

    Returns:
        The configured ``zosftp`` logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()

    command_logger = logging.getLogger(COMMAND_LOGGER_NAME)
    command_logger.setLevel(logging.DEBUG if trace_commands else logging.NOTSET)

    handler_level = min(level, logging.DEBUG) if trace_commands else level
    formatter = PIIRedactingFormatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    handlers = []
    if console:
        handlers.append(logging.StreamHandler(sys.stderr))
    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(handler_level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    """Get a logger, defaulting to the client's root logger."""
    return logging.getLogger(name)
