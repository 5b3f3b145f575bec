"""Mainframe LIST output parsing.

Parses fixed-column z/OS dataset listings and PDS member listings into
DataSetInfo records. Parsing is line-local: malformed lines yield None
and are skipped, they never fail the whole listing.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Iterable, List, Optional

from zosftp.utils.validators import validate_dataset_name, validate_member_name


# Columns of a dataset listing:
# Volume Referred Ext Used Recfm Lrecl BlkSz Dsorg Dsname
DATASET_FIELD_COUNT = 9

# First column title of the listing header
HEADER_FIRST_FIELD = "VOLUME"

REFERRED_DATE_FORMAT = "%Y/%m/%d"


class DataSetType(Enum):
    """Dataset organization."""
    SEQUENTIAL = "PS"
    PARTITIONED = "PO"
    VSAM = "VS"
    UNKNOWN = "unknown"

    @classmethod
    def from_dsorg(cls, dsorg: str) -> "DataSetType":
        """Map a DSORG column value to a DataSetType."""
        for member in (cls.SEQUENTIAL, cls.PARTITIONED, cls.VSAM):
            if member.value == dsorg:
                return member
        return cls.UNKNOWN


class RecordFormat(Enum):
    """Dataset record format, valued by its RECFM keyword."""
    FIXED = "F"
    VARIABLE = "V"
    FIXED_BLOCKED = "FB"
    VARIABLE_BLOCKED = "VB"
    UNDEFINED = "U"

    @classmethod
    def from_recfm(cls, recfm: str) -> "RecordFormat":
        """Map a RECFM column value to a RecordFormat."""
        for member in (cls.FIXED, cls.VARIABLE, cls.FIXED_BLOCKED, cls.VARIABLE_BLOCKED):
            if member.value == recfm:
                return member
        return cls.UNDEFINED


@dataclass(frozen=True)
class DataSetInfo:
    """One dataset or PDS member from a mainframe listing."""
    name: str
    type: DataSetType = DataSetType.UNKNOWN
    volume: str = ""
    record_format: RecordFormat = RecordFormat.UNDEFINED
    record_length: int = 0
    block_size: int = 0
    space_used: int = 0
    last_referenced: Optional[date] = None
    is_member: bool = False
    parent_pds: Optional[str] = None

    @property
    def full_name(self) -> str:
        """Name usable in RETR/STOR: ``PDS(MEMBER)`` for members."""
        if self.is_member and self.parent_pds:
            return f"{self.parent_pds}({self.name})"
        return self.name

    @property
    def is_partitioned(self) -> bool:
        """True for a PDS (not for its members)."""
        return self.type == DataSetType.PARTITIONED and not self.is_member


def _parse_int(value: str, default: int = 0) -> int:
    try:
        return int(value)
    except ValueError:
        return default


def _parse_referred(value: str) -> Optional[date]:
    try:
        return datetime.strptime(value, REFERRED_DATE_FORMAT).date()
    except ValueError:
        return None


def parse_dataset_line(line: str) -> Optional[DataSetInfo]:
    """
    Parse one line of a z/OS dataset listing.

    Args:
        line: Listing line, e.g.
            ``WRK001 2024/03/15 1 15 FB 80 27920 PO HLQ.SOURCE``

    Returns:
        DataSetInfo, or None for header, migrated or short lines
    """
    parts = line.split()
    if len(parts) < DATASET_FIELD_COUNT or parts[0].upper() == HEADER_FIRST_FIELD:
        return None

    volume, referred, _extents, used, recfm, lrecl, blksize, dsorg, dsname = (
        parts[:DATASET_FIELD_COUNT]
    )

    return DataSetInfo(
        name=dsname,
        type=DataSetType.from_dsorg(dsorg),
        volume=volume,
        record_format=RecordFormat.from_recfm(recfm),
        record_length=_parse_int(lrecl),
        block_size=_parse_int(blksize),
        space_used=_parse_int(used),
        last_referenced=_parse_referred(referred),
    )


def parse_member_line(line: str, parent_pds: str) -> Optional[DataSetInfo]:
    """
    Parse one line of a PDS member listing.

    Args:
        line: Listing line; the first token is the member name
        parent_pds: Name of the PDS being listed

    Returns:
        DataSetInfo for the member, or None for header and blank lines
    """
    parts = line.split()
    if not parts:
        return None

    member = parts[0]
    if member.startswith("-") or member.upper() == "NAME":
        return None

    return DataSetInfo(
        name=member,
        type=DataSetType.PARTITIONED,
        is_member=True,
        parent_pds=parent_pds,
    )


def parse_dataset_listing(lines: Iterable[str]) -> List[DataSetInfo]:
    """Parse a dataset listing, skipping lines that are not datasets."""
    datasets = []
    for line in lines:
        info = parse_dataset_line(line)
        if info is not None:
            datasets.append(info)
    return datasets


def parse_member_listing(lines: Iterable[str], parent_pds: str) -> List[DataSetInfo]:
    """Parse a member listing, skipping header lines."""
    members = []
    for line in lines:
        info = parse_member_line(line, parent_pds)
        if info is not None:
            members.append(info)
    return members


def member_dataset_name(pds_name: str, member_name: str) -> str:
    """
    Build the ``PDS(MEMBER)`` name used to address a member.

    Raises:
        ValueError: If either name is not a valid z/OS name
    """
    is_valid, error = validate_dataset_name(pds_name)
    if not is_valid:
        raise ValueError(error)
    is_valid, error = validate_member_name(member_name)
    if not is_valid:
        raise ValueError(error)
    return f"{pds_name}({member_name})"
