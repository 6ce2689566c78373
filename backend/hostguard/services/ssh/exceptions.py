"""
SSH Host Key Exceptions

Custom exception classes for host key verification with structured
context for logging and error handling.

This module defines:
- SSHConfigurationError: Misconfigured trust settings
- KnownHostsReadError: A known_hosts source could not be read at all
- UnparseableLineError: A single known_hosts line was rejected by the parser
- HostKeyRejectedError: Base class for a rejected host key
- HostKeyNotTrustedError: No known_hosts entry exists for the host
- HostKeyChangedError: The host is known but presented a different key

Propagation:
    KnownHostsReadError is a configuration failure and is raised while
    building the trust store, before any host key is examined.
    UnparseableLineError never leaves the loader; the line is logged and
    skipped. The two HostKeyRejectedError subclasses are terminal for a
    connection attempt and abort the SSH handshake.

Usage:
    from hostguard.services.ssh.exceptions import HostKeyChangedError

    try:
        verifier.check(host, port, key_type, key_bytes)
    except HostKeyChangedError as e:
        alert_security_team(e.outcome)
        raise
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .models import VerificationOutcome


class SSHConfigurationError(Exception):
    """
    Custom exception for SSH trust configuration errors.

    Raised when the configured trust settings cannot be turned into a
    usable trust store, including invalid policy values and unreadable
    known_hosts sources.

    Attributes:
        message: Human-readable error description
        setting_key: The configuration setting involved
        setting_value: The offending value
    """

    def __init__(
        self,
        message: str,
        setting_key: Optional[str] = None,
        setting_value: Optional[str] = None,
    ) -> None:
        self.message = message
        self.setting_key = setting_key
        self.setting_value = setting_value
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.setting_key:
            return f"{self.message} (setting: {self.setting_key})"
        return self.message

    def __repr__(self) -> str:
        return f"SSHConfigurationError(message={self.message!r}, " f"setting_key={self.setting_key!r})"


class KnownHostsReadError(SSHConfigurationError):
    """
    A known_hosts source could not be read.

    Fatal to trust store construction: no partial store is produced.

    Attributes:
        source: Name of the source (file path or description)
        details: Underlying error text
    """

    def __init__(self, source: str, details: Optional[str] = None) -> None:
        self.source = source
        self.details = details
        message = f"Cannot read known_hosts source {source}"
        if details:
            message = f"{message}: {details}"
        super().__init__(message, setting_key="known_hosts", setting_value=source)

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"KnownHostsReadError(source={self.source!r}, details={self.details!r})"


class UnparseableLineError(Exception):
    """
    A known_hosts line could not be parsed.

    Attributes:
        message: Why the line was rejected
        source: Name of the source containing the line
        line_number: 1-based line number within the source
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        line_number: Optional[int] = None,
    ) -> None:
        self.message = message
        self.source = source
        self.line_number = line_number
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.source:
            return f"{self.message} ({self.source}:{self.line_number})"
        return self.message

    def __repr__(self) -> str:
        return (
            f"UnparseableLineError(message={self.message!r}, "
            f"source={self.source!r}, line_number={self.line_number!r})"
        )


class HostKeyRejectedError(Exception):
    """
    Host key verification rejected the key presented by a remote host.

    Attributes:
        outcome: The VerificationOutcome describing the rejection
        hostname: Remote host
        port: Remote SSH port
    """

    def __init__(self, outcome: "VerificationOutcome") -> None:
        self.outcome = outcome
        self.hostname = outcome.host
        self.port = outcome.port
        super().__init__(outcome.message)

    def __str__(self) -> str:
        return self.outcome.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(hostname={self.hostname!r}, port={self.port!r}, reason={self.outcome.reason})"


class HostKeyNotTrustedError(HostKeyRejectedError):
    """No known_hosts entry exists for the host; there is no prior trust."""


class HostKeyChangedError(HostKeyRejectedError):
    """The host is known but presented a key that matches none of its entries."""


__all__ = [
    "SSHConfigurationError",
    "KnownHostsReadError",
    "UnparseableLineError",
    "HostKeyRejectedError",
    "HostKeyNotTrustedError",
    "HostKeyChangedError",
]
