"""Input validators for the z/OS FTP client.

Provides validation functions for connection parameters and
mainframe dataset and member names.
"""

import re
from typing import Optional, Tuple


# IPv4 address pattern
IPV4_PATTERN = re.compile(
    r'^(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}'
    r'(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)$'
)

# Hostname pattern (simplified)
HOSTNAME_PATTERN = re.compile(
    r'^(?=.{1,253}$)(?!-)[A-Za-z0-9-]{1,63}(?<!-)(\.[A-Za-z0-9-]{1,63})*$'
)

# One dataset name qualifier: 1-8 chars, national characters allowed
QUALIFIER_PATTERN = re.compile(r'^[A-Z#@$][A-Z0-9#@$-]{0,7}$')

# PDS member name: 1-8 chars
MEMBER_PATTERN = re.compile(r'^[A-Z#@$][A-Z0-9#@$]{0,7}$')

# Listing pattern qualifier: wildcards * and % allowed
PATTERN_QUALIFIER = re.compile(r'^[A-Z0-9#@$*%-]{1,8}$')

# JES job id or job name: 1-8 chars
JOB_ID_PATTERN = re.compile(r'^[A-Z0-9#@$]{1,8}$')

# Maximum length of a fully qualified dataset name
MAX_DATASET_NAME_LENGTH = 44


def validate_ip_address(ip: str) -> Tuple[bool, Optional[str]]:
    """
    Validate an IPv4 address.

    Args:
        ip: IP address string to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not ip or not ip.strip():
        return False, "IP address is required"

    ip = ip.strip()

    if IPV4_PATTERN.match(ip):
        return True, None

    return False, f"Invalid IP address format: {ip}"


def validate_hostname(hostname: str) -> Tuple[bool, Optional[str]]:
    """
    Validate a hostname.

    Args:
        hostname: Hostname string to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not hostname or not hostname.strip():
        return False, "Hostname is required"

    hostname = hostname.strip()

    if HOSTNAME_PATTERN.match(hostname):
        return True, None

    return False, f"Invalid hostname format: {hostname}"


def validate_host(host: str) -> Tuple[bool, Optional[str]]:
    """
    Validate a host (IP address or hostname).

    Args:
        host: Host string to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not host or not host.strip():
        return False, "Host is required"

    host = host.strip()

    is_valid_ip, _ = validate_ip_address(host)
    if is_valid_ip:
        return True, None

    is_valid_hostname, _ = validate_hostname(host)
    if is_valid_hostname:
        return True, None

    return False, f"Invalid host: {host}. Must be a valid IP address or hostname."


def validate_port(port: int) -> Tuple[bool, Optional[str]]:
    """
    Validate a port number.

    Args:
        port: Port number to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(port, int):
        try:
            port = int(port)
        except (ValueError, TypeError):
            return False, "Port must be a number"

    if port < 1 or port > 65535:
        return False, f"Port must be between 1 and 65535, got {port}"

    return True, None


def validate_timeout(timeout: int) -> Tuple[bool, Optional[str]]:
    """
    Validate a timeout value in seconds.

    Args:
        timeout: Timeout in seconds

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(timeout, int):
        try:
            timeout = int(timeout)
        except (ValueError, TypeError):
            return False, "Timeout must be a number"

    if timeout < 5 or timeout > 300:
        return False, f"Timeout must be between 5 and 300 seconds, got {timeout}"

    return True, None


def validate_dataset_name(name: str) -> Tuple[bool, Optional[str]]:
    """
    Validate a fully qualified z/OS dataset name.

    Quotes are not part of the name; a member suffix is not allowed here.

    Args:
        name: Dataset name such as ``HLQ.SOURCE.COBOL``

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not name or not name.strip():
        return False, "Dataset name is required"

    name = name.strip().upper()

    if len(name) > MAX_DATASET_NAME_LENGTH:
        return False, (
            f"Dataset name must be at most {MAX_DATASET_NAME_LENGTH} "
            f"characters, got {len(name)}"
        )

    for qualifier in name.split("."):
        if not QUALIFIER_PATTERN.match(qualifier):
            return False, f"Invalid dataset name qualifier '{qualifier}' in {name}"

    return True, None


def validate_member_name(member: str) -> Tuple[bool, Optional[str]]:
    """
    Validate a PDS member name.

    Args:
        member: Member name such as ``PAYROLL``

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not member or not member.strip():
        return False, "Member name is required"

    member = member.strip().upper()

    if MEMBER_PATTERN.match(member):
        return True, None

    return False, f"Invalid member name: {member}"


def validate_dataset_reference(reference: str) -> Tuple[bool, Optional[str]]:
    """
    Validate a dataset name optionally qualified with a member, ``PDS(MEMBER)``.

    Args:
        reference: Dataset or member reference

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not reference or not reference.strip():
        return False, "Dataset name is required"

    if any(char in reference for char in "\r\n\0"):
        return False, "Dataset name must not contain line breaks"

    reference = reference.strip()

    if not reference.endswith(")"):
        return validate_dataset_name(reference)

    dataset, _, member = reference[:-1].partition("(")
    is_valid, error = validate_dataset_name(dataset)
    if not is_valid:
        return False, error

    return validate_member_name(member)


def validate_dataset_pattern(pattern: str) -> Tuple[bool, Optional[str]]:
    """
    Validate a dataset listing pattern such as ``HLQ.*`` or ``HLQ.**.CNTL``.

    Args:
        pattern: Dataset name pattern, ``*`` and ``%`` wildcards allowed

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not pattern or not pattern.strip():
        return False, "Dataset pattern is required"

    if any(char in pattern for char in "\r\n\0"):
        return False, "Dataset pattern must not contain line breaks"

    for qualifier in pattern.strip().upper().split("."):
        if not PATTERN_QUALIFIER.match(qualifier):
            return False, f"Invalid qualifier '{qualifier}' in pattern {pattern}"

    return True, None


def validate_job_id(job_id: str) -> Tuple[bool, Optional[str]]:
    """
    Validate a JES job id such as ``JOB00042`` or a job name.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not job_id or not job_id.strip():
        return False, "Job id is required"

    if JOB_ID_PATTERN.match(job_id.upper()) and job_id == job_id.strip():
        return True, None

    return False, f"Invalid job id: {job_id!r}"
