"""
SSH Host Key Data Models and Enums

Provides the immutable value types used by host key verification: the
registry of supported host key algorithms, known_hosts host patterns,
parsed known_hosts entries, the resolved trust policy and the result of
a single verification call.

This module contains:
- SSHKeyType: Enum of supported host key algorithms (the key type registry)
- LiteralHostPattern / HashedHostPattern: Host matching predicates
- KnownHostsEntry: One parsed known_hosts record
- TrustMode / TrustPolicy: Resolved host key checking policy
- RejectionReason / VerificationOutcome: Result of a verification call
- SSHConnectionResult: Container for connection attempt outcomes

Usage:
    from hostguard.services.ssh.models import SSHKeyType, LiteralHostPattern

    key_type = SSHKeyType.from_name("ecdsa-sha2-nistp256")
    pattern = LiteralHostPattern("[server.example.com]:2222")
    pattern.matches("server.example.com", 2222)  # True

Matching Rules:
    Host names are compared as exact, case-sensitive strings. An entry
    without brackets only applies to the default SSH port (22); entries
    for any other port must use the "[host]:port" form, which is the
    OpenSSH known_hosts convention.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple, Union

from .host_hash import HostHashCodec

# Port that known_hosts entries may omit
DEFAULT_SSH_PORT = 22


class SSHKeyType(Enum):
    """
    Supported SSH host key algorithms.

    Each member's value is the canonical wire-format name, which is the
    same string used in the key type field of a known_hosts line and in
    the key type field of the transport handshake.

    Adding an algorithm is a new member here; nothing else in the
    verification path needs to change.

    Security Notes:
        - ssh-dss is kept for interoperability with legacy hosts only
        - Matching is by exact name; ECDSA curves are distinct types
    """

    DSA = "ssh-dss"
    RSA = "ssh-rsa"
    ECDSA_NISTP256 = "ecdsa-sha2-nistp256"
    ECDSA_NISTP384 = "ecdsa-sha2-nistp384"
    ECDSA_NISTP521 = "ecdsa-sha2-nistp521"
    ED25519 = "ssh-ed25519"

    @property
    def wire_name(self) -> str:
        """Canonical algorithm name as used on the wire and in known_hosts."""
        return self.value

    @property
    def family(self) -> str:
        """Algorithm family (dsa, rsa, ecdsa, ed25519)."""
        return KEY_TYPE_FAMILIES[self]

    @property
    def host_key_algorithms(self) -> Tuple[str, ...]:
        """Handshake algorithm names that present a key of this type."""
        return HOST_KEY_ALGORITHMS.get(self, (self.value,))

    @classmethod
    def from_name(cls, name: str) -> Optional["SSHKeyType"]:
        """
        Look up a key type by its canonical name.

        Args:
            name: Algorithm name such as "ssh-rsa"

        Returns:
            The matching SSHKeyType, or None if the name is not registered.
        """
        return KEY_TYPE_REGISTRY.get(name)


KEY_TYPE_FAMILIES: dict = {
    SSHKeyType.DSA: "dsa",
    SSHKeyType.RSA: "rsa",
    SSHKeyType.ECDSA_NISTP256: "ecdsa",
    SSHKeyType.ECDSA_NISTP384: "ecdsa",
    SSHKeyType.ECDSA_NISTP521: "ecdsa",
    SSHKeyType.ED25519: "ed25519",
}

# RSA keys are negotiated under their SHA-2 signature names as well
HOST_KEY_ALGORITHMS: dict = {
    SSHKeyType.RSA: ("rsa-sha2-512", "rsa-sha2-256", "ssh-rsa"),
}

# Canonical name -> key type
KEY_TYPE_REGISTRY: dict = {key_type.value: key_type for key_type in SSHKeyType}


def literal_host_forms(host: str, port: int) -> Tuple[str, ...]:
    """
    Return the known_hosts literals that identify (host, port).

    The bracketed "[host]:port" form always applies. The bare host form
    applies only on the default port, because known_hosts files omit the
    port for default-port entries.

    Args:
        host: Remote host name or address
        port: Remote SSH port

    Returns:
        Tuple of one or two literal strings, bracketed form first.
    """
    bracketed = f"[{host}]:{port}"
    if port == DEFAULT_SSH_PORT:
        return (bracketed, host)
    return (bracketed,)


@dataclass(frozen=True)
class LiteralHostPattern:
    """
    Host pattern stored in clear text in a known_hosts line.

    Attributes:
        text: The exact host field, e.g. "server.example.com" or
            "[server.example.com]:2222"
    """

    text: str

    def matches(self, host: str, port: int) -> bool:
        """Return True if this pattern identifies (host, port)."""
        return self.text in literal_host_forms(host, port)

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class HashedHostPattern:
    """
    Host pattern stored as a salted HMAC-SHA1 of the host literal.

    Attributes:
        salt: 20 random bytes chosen when the entry was authored
        digest: HMAC-SHA1 of the host literal keyed with salt
    """

    salt: bytes
    digest: bytes

    def matches(self, host: str, port: int) -> bool:
        """Return True if the digest equals the hash of either literal form of (host, port)."""
        return any(
            HostHashCodec.matches_literal(literal, self.salt, self.digest) for literal in literal_host_forms(host, port)
        )

    def __str__(self) -> str:
        return HostHashCodec.format_hashed(self.salt, self.digest)


HostPattern = Union[LiteralHostPattern, HashedHostPattern]


@dataclass(frozen=True)
class KnownHostsEntry:
    """
    One trusted (host pattern, key type, key bytes) record.

    Attributes:
        pattern: Host matching predicate
        key_type: Host key algorithm
        key_bytes: Raw public key blob as sent on the wire
        source: Name of the source the entry was loaded from
        line_number: 1-based line (or row) number within the source
    """

    pattern: HostPattern
    key_type: SSHKeyType
    key_bytes: bytes
    source: str = field(default="<memory>", compare=False)
    line_number: int = field(default=0, compare=False)

    def matches_host(self, host: str, port: int) -> bool:
        """Return True if this entry's pattern identifies (host, port)."""
        return self.pattern.matches(host, port)

    def matches_key(self, key_type: Optional[SSHKeyType], key_bytes: bytes) -> bool:
        """Return True if key type and key bytes are both exactly equal."""
        return self.key_type is key_type and self.key_bytes == bytes(key_bytes)

    def __repr__(self) -> str:
        return (
            f"KnownHostsEntry(pattern={str(self.pattern)!r}, "
            f"key_type={self.key_type.value!r}, source={self.source!r}, "
            f"line_number={self.line_number})"
        )


class TrustMode(Enum):
    """
    Host key checking modes.

    Attributes:
        VERIFY: Strict checking against known_hosts sources (default)
        ALLOW_ANY: Accept any host key without checking (testing only)
    """

    VERIFY = "verify"
    ALLOW_ANY = "allow_any"


@dataclass(frozen=True)
class TrustPolicy:
    """
    Resolved host key checking policy for one connection attempt.

    The policy is built once from configuration and passed explicitly to
    the verifier; nothing in the verification path reads global settings.

    Attributes:
        mode: VERIFY or ALLOW_ANY
        sources: Known hosts sources consulted in VERIFY mode. Each item is
            a filesystem path or a source object (see known_hosts.py).

    Example:
        >>> policy = TrustPolicy.verify("~/.ssh/known_hosts")
        >>> policy.is_strict
        True
        >>> TrustPolicy.allow_any().is_strict
        False
    """

    mode: TrustMode = TrustMode.VERIFY
    sources: Tuple[Any, ...] = ()

    @classmethod
    def verify(cls, *sources: Any) -> "TrustPolicy":
        """Build a strict policy checking against the given sources."""
        return cls(mode=TrustMode.VERIFY, sources=tuple(sources))

    @classmethod
    def allow_any(cls) -> "TrustPolicy":
        """Build the policy that disables host key checking entirely."""
        return cls(mode=TrustMode.ALLOW_ANY)

    @property
    def is_strict(self) -> bool:
        return self.mode is TrustMode.VERIFY


class RejectionReason(Enum):
    """
    Reasons a presented host key is rejected.

    Attributes:
        NO_TRUSTED_ENTRY: No known_hosts entry exists for the host/port
        KEY_MISMATCH: Entries exist for the host but none carries the
            presented key; the host key has changed
    """

    NO_TRUSTED_ENTRY = "no_trusted_entry"
    KEY_MISMATCH = "key_mismatch"


@dataclass(frozen=True)
class VerificationOutcome:
    """
    Result of verifying one presented host key.

    Attributes:
        accepted: Whether the connection may proceed
        host: Remote host that presented the key
        port: Remote SSH port
        key_type: Presented key type name as received from the transport
        fingerprint: SHA256 fingerprint of the presented key bytes
        reason: Rejection reason (None when accepted)
        bypassed: True when acceptance came from the ALLOW_ANY policy
            rather than from a matching known_hosts entry
        matched_entry: The entry that verified the key (strict acceptance only)
    """

    accepted: bool
    host: str
    port: int
    key_type: str
    fingerprint: str
    reason: Optional[RejectionReason] = None
    bypassed: bool = False
    matched_entry: Optional[KnownHostsEntry] = None

    @property
    def verified(self) -> bool:
        """True only when a known_hosts entry matched; a bypass is not verification."""
        return self.accepted and not self.bypassed

    @property
    def message(self) -> str:
        """Human-readable description of the decision."""
        target = f"[{self.host}]:{self.port}"
        if self.bypassed:
            return f"Host key checking disabled; accepted {self.key_type} key for {target} without verification"
        if self.accepted:
            return f"HostKey verified: {target} presented a trusted {self.key_type} key ({self.fingerprint})"
        if self.reason is RejectionReason.KEY_MISMATCH:
            return (
                f"HostKey has been changed: {target} presented {self.key_type} key {self.fingerprint} "
                f"which does not match any known_hosts entry for this host. "
                f"Someone could be eavesdropping on you right now (man-in-the-middle attack), "
                f"or the host key has just been rotated."
            )
        return f"reject HostKey: {target} has no entry in known_hosts ({self.key_type} {self.fingerprint})"

    def __repr__(self) -> str:
        return (
            f"VerificationOutcome(accepted={self.accepted}, host={self.host!r}, "
            f"port={self.port}, reason={self.reason}, bypassed={self.bypassed})"
        )


@dataclass
class SSHConnectionResult:
    """
    Result of an SSH connection attempt.

    Attributes:
        success: Whether the connection was established successfully
        connection: The paramiko SSHClient object (if successful)
        error_message: Human-readable error description (if failed)
        error_type: Categorized error type for programmatic handling
        host_key_outcome: Host key verification outcome, when the
            handshake reached host key checking

    Error Types:
        - host_key_unknown: Host has no known_hosts entry
        - host_key_changed: Host presented a key that differs from known_hosts
        - configuration_error: A known_hosts source could not be read
        - auth_failed: Authentication credentials rejected
        - ssh_error: SSH protocol error (banner, negotiation)
        - timeout: Connection timed out
        - connection_error: Network-level connection failure
    """

    success: bool
    connection: Optional[Any] = None  # paramiko.SSHClient, using Any to avoid import
    error_message: Optional[str] = None
    error_type: Optional[str] = None
    host_key_outcome: Optional[VerificationOutcome] = None

    def __repr__(self) -> str:
        if self.success:
            return f"SSHConnectionResult(success=True, host_key_outcome={self.host_key_outcome!r})"
        return (
            f"SSHConnectionResult(success=False, "
            f"error_type={self.error_type}, "
            f"error_message={self.error_message})"
        )


__all__ = [
    "DEFAULT_SSH_PORT",
    "SSHKeyType",
    "KEY_TYPE_REGISTRY",
    "KEY_TYPE_FAMILIES",
    "HOST_KEY_ALGORITHMS",
    "literal_host_forms",
    "LiteralHostPattern",
    "HashedHostPattern",
    "HostPattern",
    "KnownHostsEntry",
    "TrustMode",
    "TrustPolicy",
    "RejectionReason",
    "VerificationOutcome",
    "SSHConnectionResult",
]
