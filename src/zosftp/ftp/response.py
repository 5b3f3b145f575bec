"""Control channel reply framing.

An FTP reply may span several lines. The reply ends at the first line
that starts with three digits followed by a space; every line before it
belongs to the same reply.
"""

import re
from dataclasses import dataclass
from typing import BinaryIO, List, Optional, Tuple

from zosftp.ftp.exceptions import FTPConnectionClosedError


# Last line of a reply: "NNN text"
TERMINATOR_PATTERN = re.compile(r"^(\d{3}) ", re.ASCII)

# Size announced in a 150 reply, e.g. "150 Opening data connection (1234 bytes)"
TRANSFER_SIZE_PATTERN = re.compile(r"\((\d+) bytes\)", re.IGNORECASE)


@dataclass(frozen=True)
class ResponseFrame:
    """A complete (possibly multi-line) reply from the control channel."""
    code: int
    lines: Tuple[str, ...]

    @property
    def text(self) -> str:
        """All reply lines joined with newlines."""
        return "\n".join(self.lines)

    @property
    def message(self) -> str:
        """Text of the terminating line after the status code."""
        return self.lines[-1][4:] if self.lines else ""

    @property
    def is_preliminary(self) -> bool:
        """True for 1xx replies (data transfer about to start)."""
        return 100 <= self.code < 200

    @property
    def is_success(self) -> bool:
        """True for 2xx replies."""
        return 200 <= self.code < 300

    @property
    def is_intermediate(self) -> bool:
        """True for 3xx replies (more information needed)."""
        return 300 <= self.code < 400

    def has_code(self, *codes: int) -> bool:
        """True if the reply code is one of ``codes``."""
        return self.code in codes

    def __str__(self) -> str:
        return self.text


def is_terminating_line(line: str) -> bool:
    """True if ``line`` is a single-line reply or the last line of a multi-line one."""
    return TERMINATOR_PATTERN.match(line) is not None


class ResponseFramer:
    """Accumulates reply lines until the terminating line is seen."""

    def __init__(self):
        self._lines: List[str] = []

    @property
    def pending_lines(self) -> List[str]:
        """Lines received so far for the reply in progress."""
        return self._lines.copy()

    def feed(self, line: str) -> Optional[ResponseFrame]:
        """
        Add one line to the reply in progress.

        Args:
            line: Reply line without its line terminator

        Returns:
            The complete ResponseFrame once the terminating line arrives,
            None while the reply is still incomplete
        """
        self._lines.append(line)
        match = TERMINATOR_PATTERN.match(line)
        if match is None:
            return None

        frame = ResponseFrame(code=int(match.group(1)), lines=tuple(self._lines))
        self._lines = []
        return frame


def decode_line(raw: bytes) -> str:
    """Decode a control channel line and strip its CRLF or LF terminator."""
    return raw.decode("utf-8", errors="replace").rstrip("\r\n")


def read_response(reader: BinaryIO) -> ResponseFrame:
    """
    Read one complete reply from the control channel.

    Args:
        reader: Binary file-like object over the control socket

    Returns:
        The framed reply

    Raises:
        FTPConnectionClosedError: If the stream ends before the reply does
    """
    framer = ResponseFramer()
    while True:
        raw = reader.readline()
        if not raw:
            raise FTPConnectionClosedError()
        frame = framer.feed(decode_line(raw))
        if frame is not None:
            return frame


def parse_transfer_size(reply: str) -> Optional[int]:
    """
    Extract the byte count a server announces in its 150 reply.

    Returns:
        Size in bytes, or None if the reply does not carry one
    """
    match = TRANSFER_SIZE_PATTERN.search(reply)
    if match is None:
        return None
    return int(match.group(1))
