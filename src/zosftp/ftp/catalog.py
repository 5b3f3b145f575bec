"""Dataset catalog operations for the z/OS FTP client.

Lists datasets and PDS members and manages datasets (delete, rename)
over an existing control session.
"""

import logging
from datetime import datetime
from typing import List, Optional

from zosftp.ftp.exceptions import FTPDataChannelBusyError, FTPError
from zosftp.ftp.listing import (
    DataSetInfo,
    DataSetType,
    member_dataset_name,
    parse_dataset_listing,
    parse_member_listing,
)
from zosftp.ftp.transfer import TransferEngine
from zosftp.utils.validators import (
    validate_dataset_name,
    validate_dataset_pattern,
    validate_dataset_reference,
)

logger = logging.getLogger("zosftp.catalog")

# Reply codes
FILE_ACTION_OK = 250
PENDING_FURTHER_INFO = 350


class DatasetCatalog:
    """Lists and manages mainframe datasets."""

    def __init__(self, engine: TransferEngine):
        """
        Initialize the catalog.

        Args:
            engine: Transfer engine used to fetch listings
        """
        self._engine = engine
        self._session = engine.session
        self._last_listed: Optional[datetime] = None
        self._datasets: List[DataSetInfo] = []

    @property
    def last_listed(self) -> Optional[datetime]:
        """Timestamp of last dataset listing."""
        return self._last_listed

    @property
    def datasets(self) -> List[DataSetInfo]:
        """Datasets from the last listing."""
        return self._datasets.copy()

    def list_datasets(self, pattern: str) -> List[DataSetInfo]:
        """
        List datasets matching a pattern.

        Args:
            pattern: Dataset name pattern, e.g. ``HLQ.*``

        Returns:
            Parsed datasets; empty if not connected or the listing failed
        """
        if not self._session.is_connected:
            return []

        is_valid, error = validate_dataset_pattern(pattern)
        if not is_valid:
            logger.warning(error)
            return []

        success, reply = self._session.execute_site("FILETYPE=SEQ")
        if not success:
            logger.warning(f"SITE FILETYPE=SEQ rejected: {reply}")
            return []

        lines = self._engine.fetch_lines(f"LIST '{pattern}'")
        if lines is None:
            return []

        self._datasets = parse_dataset_listing(lines)
        self._last_listed = datetime.now()
        logger.info(f"Listing {pattern}: found {len(self._datasets)} datasets")
        return self._datasets.copy()

    def list_members(self, pds_name: str) -> List[DataSetInfo]:
        """
        List the members of a PDS.

        Args:
            pds_name: Fully qualified PDS name

        Returns:
            Parsed members; empty if not connected or the listing failed
        """
        is_valid, error = validate_dataset_name(pds_name)
        if not is_valid:
            logger.warning(error)
            return []

        lines = self._engine.fetch_lines(f"LIST '{pds_name}'")
        if lines is None:
            return []

        members = parse_member_listing(lines, pds_name)
        logger.debug(f"Found {len(members)} members in {pds_name}")
        return members

    def delete_dataset(self, dataset_name: str) -> bool:
        """
        Delete a dataset.

        Args:
            dataset_name: Dataset (or ``PDS(MEMBER)``) name

        Returns:
            True if the server confirmed the deletion
        """
        if not self._session.is_connected:
            return False

        is_valid, error = validate_dataset_reference(dataset_name)
        if not is_valid:
            logger.warning(f"Delete of {dataset_name!r} refused: {error}")
            return False

        try:
            reply = self._session.send_command(f"DELE '{dataset_name}'")
        except FTPDataChannelBusyError:
            raise
        except (FTPError, OSError) as e:
            logger.warning(f"Delete of {dataset_name} failed: {e}")
            return False

        if not reply.has_code(FILE_ACTION_OK):
            logger.warning(f"Delete of {dataset_name} refused: {reply.text}")
            return False

        self._datasets = [d for d in self._datasets if d.name != dataset_name]
        return True

    def delete_member(self, pds_name: str, member_name: str) -> bool:
        """
        Delete a PDS member.

        Raises:
            ValueError: If the PDS or member name is invalid
        """
        return self.delete_dataset(member_dataset_name(pds_name, member_name))

    def rename_dataset(self, old_name: str, new_name: str) -> bool:
        """
        Rename a dataset with RNFR/RNTO.

        Args:
            old_name: Current dataset name
            new_name: New dataset name

        Returns:
            True if the server confirmed the rename
        """
        if not self._session.is_connected:
            return False

        for name in (old_name, new_name):
            is_valid, error = validate_dataset_reference(name)
            if not is_valid:
                logger.warning(f"Rename of {old_name!r} refused: {error}")
                return False

        try:
            reply = self._session.send_command(f"RNFR '{old_name}'")
            if not reply.has_code(PENDING_FURTHER_INFO):
                logger.warning(f"Rename of {old_name} refused: {reply.text}")
                return False

            reply = self._session.send_command(f"RNTO '{new_name}'")
        except FTPDataChannelBusyError:
            raise
        except (FTPError, OSError) as e:
            logger.warning(f"Rename of {old_name} failed: {e}")
            return False

        if not reply.has_code(FILE_ACTION_OK):
            logger.warning(f"Rename of {old_name} to {new_name} refused: {reply.text}")
            return False
        return True

    def get_by_name(self, name: str) -> Optional[DataSetInfo]:
        """
        Find a dataset from the last listing by name.

        Args:
            name: Dataset name to search for

        Returns:
            DataSetInfo if found, None otherwise
        """
        for dataset in self._datasets:
            if dataset.name == name:
                return dataset
        return None

    def get_by_type(self, dataset_type: DataSetType) -> List[DataSetInfo]:
        """
        Get all datasets of one organization from the last listing.

        Args:
            dataset_type: DataSetType to filter by

        Returns:
            List of matching DataSetInfo objects
        """
        return [d for d in self._datasets if d.type == dataset_type]
