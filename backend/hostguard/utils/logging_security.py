"""
Security Logging Utilities for hostguard
Prevents log injection attacks (CWE-117) when logging text that comes
from known_hosts files, databases or remote peers.

SECURITY FEATURES:
- Control character and CRLF stripping
- Length limits on untrusted values
- Consistent audit entry formatting for host key decisions
"""

import re
from typing import Any, Optional
from urllib.parse import quote

# Patterns for detecting potentially malicious content
LOG_INJECTION_PATTERNS = [
    r"[\r\n]",  # CRLF injection
    r"%0[ad]",  # URL-encoded CRLF
    r"\\[rn]",  # Escaped newlines
    r"\x00",  # Null bytes
    r"[\x01-\x08\x0b\x0c\x0e-\x1f\x7f]",  # Control characters
]

# Pattern for safe characters in logs
SAFE_LOG_PATTERN = re.compile(r"^[a-zA-Z0-9._@\-\s]+$")

# Host names, bracketed host:port literals and hashed host fields
SAFE_HOST_PATTERN = re.compile(r"^[a-zA-Z0-9._\-:\[\]|+/=%]+$")


def sanitize_for_log(value: Optional[Any], max_length: int = 100, allow_special: bool = False) -> str:
    """
    Sanitize any value for safe logging.

    Args:
        value: Value to sanitize
        max_length: Maximum length of output
        allow_special: Whether to allow some special characters

    Returns:
        str: Sanitized string safe for logging
    """
    if value is None:
        return "null"

    str_value = str(value)

    if len(str_value) > max_length:
        str_value = str_value[:max_length] + "..."

    for pattern in LOG_INJECTION_PATTERNS:
        str_value = re.sub(pattern, "", str_value)

    if not allow_special and not SAFE_LOG_PATTERN.match(str_value):
        # Keep only alphanumeric, dots, underscores, @, hyphens, spaces
        str_value = re.sub(r"[^a-zA-Z0-9._@\-\s]", "", str_value)

    if not str_value.strip():
        return "[sanitized]"

    return str_value.strip()


def sanitize_host_for_log(host: Optional[str]) -> str:
    """
    Sanitize a host name, host:port literal or hashed host field.

    Args:
        host: Host text to sanitize

    Returns:
        str: Sanitized host text
    """
    if not host:
        return "[no_host]"

    if SAFE_HOST_PATTERN.match(host) and len(host) <= 255:
        return host

    return sanitize_for_log(host, max_length=255, allow_special=True)


def sanitize_path_for_log(path: Optional[str]) -> str:
    """
    Sanitize file paths for logging.

    Args:
        path: Path to sanitize

    Returns:
        str: Sanitized path
    """
    if not path:
        return "[no_path]"

    sanitized = quote(str(path), safe="/.:-_~<>")
    return sanitize_for_log(sanitized, max_length=200, allow_special=True)


def create_audit_log_entry(
    action: str,
    host: Optional[str] = None,
    port: Optional[int] = None,
    key_type: Optional[str] = None,
    fingerprint: Optional[str] = None,
    success: bool = True,
    additional_context: Optional[dict] = None,
) -> str:
    """
    Create a standardized audit log entry for a host key decision.

    Args:
        action: Decision being recorded (e.g. SSH_HOST_KEY_CHANGED)
        host: Remote host
        port: Remote SSH port
        key_type: Presented key algorithm name
        fingerprint: Presented key fingerprint
        success: Whether the connection was allowed to proceed
        additional_context: Additional context data

    Returns:
        str: Formatted audit log entry
    """
    parts = [
        f"action={sanitize_for_log(action)}",
        f"host={sanitize_host_for_log(host)}",
        f"port={sanitize_for_log(port, max_length=5)}",
        f"key_type={sanitize_for_log(key_type, max_length=40)}",
        f"fingerprint={sanitize_for_log(fingerprint, max_length=60, allow_special=True)}",
        f"success={success}",
    ]

    if additional_context:
        for key, value in additional_context.items():
            safe_key = sanitize_for_log(key, max_length=20)
            safe_value = sanitize_for_log(value, max_length=100, allow_special=True)
            parts.append(f"{safe_key}={safe_value}")

    return " | ".join(parts)
