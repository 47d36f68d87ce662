"""Input validators for ftpclient.

Checks command line and settings values before anything touches the
network. Each validator returns (is_valid, error_message), with
error_message None when the value is valid.
"""

import ipaddress
import re
from pathlib import Path
from typing import Optional, Tuple, Union

ValidationResult = Tuple[bool, Optional[str]]

# One DNS label: letters, digits, inner hyphens
_LABEL_PATTERN = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")

MAX_HOSTNAME_LENGTH = 253

MIN_TIMEOUT = 5
MAX_TIMEOUT = 300

OK: ValidationResult = (True, None)


def validate_ip_address(value: str) -> ValidationResult:
    """Validate an IPv4 or IPv6 address."""
    try:
        ipaddress.ip_address(value.strip())
    except ValueError:
        return False, f"Invalid IP address: {value}"
    return OK


def validate_hostname(value: str) -> ValidationResult:
    """Validate a DNS hostname (labels separated by dots)."""
    hostname = value.strip().rstrip(".")
    if not hostname or len(hostname) > MAX_HOSTNAME_LENGTH:
        return False, f"Invalid hostname: {value}"
    if not all(_LABEL_PATTERN.match(label) for label in hostname.split(".")):
        return False, f"Invalid hostname: {value}"
    return OK


def validate_host(host: str) -> ValidationResult:
    """
    Validate a server host given as IP address or hostname.

    Args:
        host: Host string to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not host or not host.strip():
        return False, "Host is required (use --host or save one with --save)"

    if validate_ip_address(host)[0] or validate_hostname(host)[0]:
        return OK
    return False, f"Invalid host: {host}. Must be a valid IP address or hostname."


def validate_port(port: int) -> ValidationResult:
    """Validate a TCP port number (1-65535)."""
    try:
        number = int(port)
    except (ValueError, TypeError):
        return False, "Port must be a number"

    if not 1 <= number <= 65535:
        return False, f"Port must be between 1 and 65535, got {number}"
    return OK


def validate_timeout(timeout: float) -> ValidationResult:
    """Validate a timeout in seconds."""
    try:
        seconds = float(timeout)
    except (ValueError, TypeError):
        return False, "Timeout must be a number"

    if not MIN_TIMEOUT <= seconds <= MAX_TIMEOUT:
        return False, f"Timeout must be between {MIN_TIMEOUT} and {MAX_TIMEOUT} seconds, got {timeout}"
    return OK


def validate_offset(offset: int) -> ValidationResult:
    """Validate a resume/start offset."""
    if isinstance(offset, bool) or not isinstance(offset, int):
        return False, "Offset must be an integer"
    if offset < 0:
        return False, f"Offset cannot be negative, got {offset}"
    return OK


def validate_file_path(path: Union[Path, str], must_exist: bool = True) -> ValidationResult:
    """
    Validate a local file path.

    Args:
        path: Path to validate
        must_exist: True for files to read (uploads), False for files
            to create (downloads)

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not path:
        return False, "File path is required"

    path = Path(path)
    if path.is_dir():
        return False, f"Path is a directory: {path}"
    if must_exist and not path.is_file():
        return False, f"File does not exist: {path}"
    return OK


def validate_remote_path(path: str) -> ValidationResult:
    """
    Validate a remote FTP path.

    Relative paths are allowed, they resolve against the working
    directory. CR and LF would end the command line early.
    """
    if not path or not path.strip():
        return False, "Remote path is required"

    if "\r" in path or "\n" in path:
        return False, "Remote path cannot contain line breaks"
    return OK
