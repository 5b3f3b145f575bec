"""EBCDIC transcoding for mainframe transfers.

Converts between IBM code page 037 (US/Canada EBCDIC) and ASCII using
Python's built-in ``cp037`` codec. Conversion is applied per chunk by the
transfer engine, never on a whole payload at once.
"""

# IBM EBCDIC US-Canada code page 037
EBCDIC_CODEPAGE = "cp037"


class EbcdicCodec:
    """Bidirectional byte transcoding between EBCDIC (cp037) and ASCII."""

    def __init__(self, codepage: str = EBCDIC_CODEPAGE):
        self._codepage = codepage

    @property
    def codepage(self) -> str:
        """Name of the EBCDIC code page."""
        return self._codepage

    def to_ascii(self, data: bytes) -> bytes:
        """
        Convert EBCDIC bytes to ASCII.

        Characters with no ASCII equivalent become ``?``.
        """
        return data.decode(self._codepage).encode("ascii", errors="replace")

    def to_ebcdic(self, data: bytes) -> bytes:
        """
        Convert ASCII bytes to EBCDIC.

        Bytes outside the 7-bit ASCII range become the EBCDIC ``?``.
        """
        text = data.decode("ascii", errors="replace")
        return text.encode(self._codepage, errors="replace")


_default_codec = EbcdicCodec()


def to_ascii(data: bytes) -> bytes:
    """Convert EBCDIC (cp037) bytes to ASCII."""
    return _default_codec.to_ascii(data)


def to_ebcdic(data: bytes) -> bytes:
    """Convert ASCII bytes to EBCDIC (cp037)."""
    return _default_codec.to_ebcdic(data)
