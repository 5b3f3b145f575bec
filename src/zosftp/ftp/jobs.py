"""JES job submission and tracking for the z/OS FTP client.

Jobs are submitted by uploading JCL while the server is in
``FILETYPE=JES`` mode, and tracked by listing and retrieving the JES
spool in the same mode.

A JobHandle keeps two identities apart: the name the JCL was uploaded
under, and the job id JES assigned (only known when the submit reply
states it). Polling uses the JES id when known and falls back to the
uploaded name otherwise; the fallback only finds the job if the server
happens to list it under that name.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple, Union

from zosftp.ftp.exceptions import FTPDataChannelBusyError, FTPError
from zosftp.ftp.transfer import TransferEngine, TransferMode, TransferOptions
from zosftp.utils.validators import validate_job_id

logger = logging.getLogger("zosftp.jobs")

# Remote name the JCL is uploaded under
SUBMIT_NAME = "JCL"

# "250-It is known to JES as JOB00042"
JES_JOB_ID_PATTERN = re.compile(r"known to JES as\s+(\S+)", re.IGNORECASE)

RETURN_CODE_MARKER = "RC="

FILE_ACTION_OK = 250


class JobStatus(Enum):
    """Status of a JES job as seen in the spool listing."""
    UNKNOWN = "unknown"
    QUEUED = "queued"
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass
class JobHandle:
    """A submitted job."""
    submitted_name: str
    resolved_job_id: Optional[str] = None
    status: JobStatus = JobStatus.UNKNOWN
    return_code: Optional[int] = None

    @property
    def job_id(self) -> str:
        """Identifier used to look the job up: the JES id when known."""
        return self.resolved_job_id or self.submitted_name

    @property
    def is_resolved(self) -> bool:
        """True if JES reported the job id at submission."""
        return self.resolved_job_id is not None


JobRef = Union[JobHandle, str]


def parse_jes_job_id(reply: str) -> Optional[str]:
    """
    Extract the job id from the reply to a JES submission.

    Returns:
        Job id such as ``JOB00042``, or None if the reply does not name one
    """
    match = JES_JOB_ID_PATTERN.search(reply)
    if match is None:
        return None
    return match.group(1).rstrip(".")


def extract_return_code(line: str) -> Optional[int]:
    """
    Extract the numeric return code from an ``RC=<n>`` token.

    Returns:
        Return code, or None if absent or not numeric (e.g. ``RC=ABEND``)
    """
    index = line.upper().find(RETURN_CODE_MARKER)
    if index < 0:
        return None

    token = line[index + len(RETURN_CODE_MARKER):].split(" ", 1)[0]
    try:
        return int(token)
    except ValueError:
        return None


def parse_job_line(line: str, job_id: str) -> Optional[Tuple[Optional[JobStatus], Optional[int]]]:
    """
    Read status and return code from one JES listing line.

    Args:
        line: Listing line
        job_id: Job id (or name) the line must contain

    Returns:
        None if the line is about another job, otherwise a tuple of
        (status or None if the line names no status, return code or None)
    """
    if job_id not in line:
        return None

    status = None
    if "OUTPUT" in line:
        status = JobStatus.COMPLETED
    elif "ACTIVE" in line:
        status = JobStatus.ACTIVE
    elif "INPUT" in line:
        status = JobStatus.QUEUED

    return status, extract_return_code(line)


def summarize_job_listing(lines: List[str], job_id: str) -> Tuple[JobStatus, Optional[int]]:
    """
    Derive a job's status and return code from a JES listing.

    Later lines override earlier ones; no matching line means UNKNOWN.
    """
    status = JobStatus.UNKNOWN
    return_code = None

    for line in lines:
        parsed = parse_job_line(line, job_id)
        if parsed is None:
            continue
        line_status, line_rc = parsed
        if line_status is not None:
            status = line_status
        if line_rc is not None:
            return_code = line_rc

    return status, return_code


class JobTracker:
    """Submits JCL and follows the resulting job through JES."""

    def __init__(self, engine: TransferEngine):
        """
        Initialize the tracker.

        Args:
            engine: Transfer engine used for uploads and spool retrieval
        """
        self._engine = engine
        self._session = engine.session

    def submit(self, jcl_path: Union[str, Path]) -> Optional[JobHandle]:
        """
        Submit a local JCL file.

        Args:
            jcl_path: Local JCL file

        Returns:
            JobHandle, or None if the submission failed
        """
        if not self._session.is_connected:
            return None

        try:
            if not self._enter_jes_mode():
                return None

            result = self._engine.upload_dataset(
                jcl_path,
                SUBMIT_NAME,
                TransferOptions(mode=TransferMode.ASCII, convert_ebcdic=True)
            )
        finally:
            self._leave_jes_mode()

        if not result.success:
            logger.warning(f"Job submission failed: {result.error_message}")
            return None

        handle = JobHandle(
            submitted_name=result.destination_path,
            resolved_job_id=parse_jes_job_id(result.reply or ""),
        )
        if handle.is_resolved:
            logger.info(f"Submitted {jcl_path} as {handle.resolved_job_id}")
        else:
            logger.info(f"Submitted {jcl_path}; JES did not report a job id")
        return handle

    def poll(self, job: JobRef) -> Tuple[JobStatus, Optional[int]]:
        """
        Look the job up in the JES listing.

        Updates ``status`` and ``return_code`` when given a JobHandle.

        Args:
            job: JobHandle or job id

        Returns:
            Tuple of (status, return code or None)
        """
        job_id = self._job_id(job)
        status, return_code = JobStatus.UNKNOWN, None

        if self._session.is_connected and self._is_valid_job_id(job_id):
            try:
                lines = None
                if self._select_job(job_id):
                    lines = self._engine.fetch_lines("LIST")
                if lines is not None:
                    status, return_code = summarize_job_listing(lines, job_id)
            finally:
                self._leave_jes_mode()

        if isinstance(job, JobHandle):
            job.status = status
            job.return_code = return_code

        logger.debug(f"Job {job_id}: {status.value} rc={return_code}")
        return status, return_code

    def fetch_output(self, job: JobRef) -> Optional[str]:
        """
        Retrieve the job's spool output as text.

        Args:
            job: JobHandle or job id

        Returns:
            Job output, or None if it could not be retrieved
        """
        if not self._session.is_connected:
            return None

        job_id = self._job_id(job)
        if not self._is_valid_job_id(job_id):
            return None

        try:
            if not self._select_job(job_id):
                return None
            return self._engine.fetch_text(f"RETR {job_id}")
        finally:
            self._leave_jes_mode()

    def purge(self, job: JobRef) -> bool:
        """
        Delete the job and its output from the JES spool.

        Args:
            job: JobHandle or job id

        Returns:
            True if JES confirmed the purge
        """
        if not self._session.is_connected:
            return False

        job_id = self._job_id(job)
        if not self._is_valid_job_id(job_id):
            return False

        try:
            if not self._enter_jes_mode():
                return False
            reply = self._session.send_command(f"DELE {job_id}")
        except FTPDataChannelBusyError:
            raise
        except (FTPError, OSError) as e:
            logger.warning(f"Purge of {job_id} failed: {e}")
            return False
        finally:
            self._leave_jes_mode()

        return reply.has_code(FILE_ACTION_OK)

    @staticmethod
    def _job_id(job: JobRef) -> str:
        if isinstance(job, JobHandle):
            return job.job_id
        return job

    @staticmethod
    def _is_valid_job_id(job_id: str) -> bool:
        is_valid, error = validate_job_id(job_id)
        if not is_valid:
            logger.warning(error)
        return is_valid

    def _enter_jes_mode(self) -> bool:
        success, reply = self._session.execute_site("FILETYPE=JES")
        if not success:
            logger.warning(f"SITE FILETYPE=JES rejected: {reply}")
        return success

    def _select_job(self, job_id: str) -> bool:
        if not self._enter_jes_mode():
            return False
        success, reply = self._session.execute_site(f"JESJOBNAME={job_id}")
        if not success:
            logger.warning(f"SITE JESJOBNAME={job_id} rejected: {reply}")
        return success

    def _leave_jes_mode(self) -> None:
        """Put the session back into dataset mode for later transfers."""
        if not self._session.is_connected or self._session.has_open_transfer:
            return
        success, reply = self._session.execute_site("FILETYPE=SEQ")
        if not success:
            logger.warning(f"Switching back to dataset mode failed: {reply}")
