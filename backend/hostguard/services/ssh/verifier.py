"""
SSH Host Key Verifier

Decides whether the host key presented during an SSH handshake is
trusted. This is the only defense against a man-in-the-middle
impersonating a remote host, so every decision is logged.

Decision Order:
    1. ALLOW_ANY policy: accept immediately without reading any source.
       This disables host key checking; it is recorded as a bypass and is
       never reported as a successful verification.
    2. Collect every known_hosts entry whose host pattern matches the
       host/port.
    3. No entries: reject as NO_TRUSTED_ENTRY (first contact, no trust).
    4. An entry with the same key type and byte-identical key: accept.
    5. Otherwise: reject as KEY_MISMATCH (the host key has changed).

A host may have several entries of different key types; presenting any
one of them correctly is enough.

Usage:
    from hostguard.services.ssh.models import TrustPolicy
    from hostguard.services.ssh.verifier import HostKeyVerifier

    verifier = HostKeyVerifier(TrustPolicy.verify("~/.ssh/known_hosts"))
    outcome = verifier.verify("server.example.com", 22, "ssh-ed25519", key_bytes)
    if not outcome.accepted:
        abort_handshake(outcome.message)

References:
    - NIST SP 800-53 SC-23: Session Authenticity
"""

import logging
from typing import Optional, Union

from ...utils.logging_security import create_audit_log_entry
from .exceptions import HostKeyChangedError, HostKeyNotTrustedError
from .key_parser import get_key_fingerprint_sha256
from .known_hosts import KnownHostsStore
from .models import RejectionReason, SSHKeyType, TrustPolicy, VerificationOutcome

logger = logging.getLogger(__name__)


class HostKeyVerifier:
    """
    Verifies presented host keys against a resolved trust policy.

    The known_hosts store is loaded from the policy's sources the first
    time a strict verification needs it, unless a store is supplied. An
    ALLOW_ANY policy never touches its sources, so an unreadable source
    cannot fail a bypassed connection.

    Attributes:
        policy: Resolved TrustPolicy for this connection attempt

    Example:
        >>> verifier = HostKeyVerifier(TrustPolicy.allow_any())
        >>> outcome = verifier.verify("10.0.0.5", 22, "ssh-rsa", b"...")
        >>> outcome.accepted, outcome.bypassed
        (True, True)
    """

    def __init__(self, policy: TrustPolicy, store: Optional[KnownHostsStore] = None) -> None:
        self.policy = policy
        self._store = store

    @property
    def store(self) -> KnownHostsStore:
        """
        The trust store consulted in strict mode.

        Raises:
            KnownHostsReadError: If a configured source cannot be read
        """
        if self._store is None:
            self._store = KnownHostsStore.load(self.policy.sources)
        return self._store

    def verify(
        self,
        host: str,
        port: int,
        key_type: Union[str, SSHKeyType],
        key_bytes: bytes,
    ) -> VerificationOutcome:
        """
        Decide whether a presented host key is trusted.

        Args:
            host: Remote host being connected to
            port: Remote SSH port
            key_type: Presented key algorithm name (e.g. "ecdsa-sha2-nistp256")
            key_bytes: Presented public key blob

        Returns:
            VerificationOutcome; rejections carry a RejectionReason

        Raises:
            KnownHostsReadError: If the store has to be loaded and a source
                cannot be read
        """
        key_type_name = key_type.value if isinstance(key_type, SSHKeyType) else key_type
        key_bytes = bytes(key_bytes)
        fingerprint = get_key_fingerprint_sha256(key_bytes)

        if not self.policy.is_strict:
            logger.warning(
                "SSH_POLICY_BYPASS: %s",
                create_audit_log_entry(
                    "SSH_POLICY_BYPASS",
                    host,
                    port,
                    key_type_name,
                    fingerprint,
                    success=True,
                    additional_context={"note": "host key checking disabled"},
                ),
            )
            return VerificationOutcome(
                accepted=True,
                host=host,
                port=port,
                key_type=key_type_name,
                fingerprint=fingerprint,
                bypassed=True,
            )

        candidates = self.store.find(host, port)

        if not candidates:
            logger.warning(
                "SSH_HOST_KEY_REJECTED: %s",
                create_audit_log_entry("SSH_HOST_KEY_REJECTED", host, port, key_type_name, fingerprint, success=False),
            )
            return VerificationOutcome(
                accepted=False,
                host=host,
                port=port,
                key_type=key_type_name,
                fingerprint=fingerprint,
                reason=RejectionReason.NO_TRUSTED_ENTRY,
            )

        # An unregistered presented type can match no entry
        presented_type = SSHKeyType.from_name(key_type_name)
        for entry in candidates:
            if entry.matches_key(presented_type, key_bytes):
                logger.info(
                    "SSH_HOST_KEY_VERIFIED: %s",
                    create_audit_log_entry(
                        "SSH_HOST_KEY_VERIFIED",
                        host,
                        port,
                        key_type_name,
                        fingerprint,
                        success=True,
                        additional_context={"source": entry.source, "line": entry.line_number},
                    ),
                )
                return VerificationOutcome(
                    accepted=True,
                    host=host,
                    port=port,
                    key_type=key_type_name,
                    fingerprint=fingerprint,
                    matched_entry=entry,
                )

        logger.error(
            "SSH_HOST_KEY_CHANGED: %s",
            create_audit_log_entry(
                "SSH_HOST_KEY_CHANGED",
                host,
                port,
                key_type_name,
                fingerprint,
                success=False,
                additional_context={"known_entries": len(candidates)},
            ),
        )
        return VerificationOutcome(
            accepted=False,
            host=host,
            port=port,
            key_type=key_type_name,
            fingerprint=fingerprint,
            reason=RejectionReason.KEY_MISMATCH,
        )

    def check(
        self,
        host: str,
        port: int,
        key_type: Union[str, SSHKeyType],
        key_bytes: bytes,
    ) -> VerificationOutcome:
        """
        Verify a presented host key and raise on rejection.

        Returns:
            The accepting VerificationOutcome

        Raises:
            HostKeyNotTrustedError: No known_hosts entry exists for the host
            HostKeyChangedError: The host presented a key matching none of
                its entries
            KnownHostsReadError: If a source cannot be read
        """
        return raise_for_outcome(self.verify(host, port, key_type, key_bytes))


def raise_for_outcome(outcome: VerificationOutcome) -> VerificationOutcome:
    """
    Return an accepting outcome; raise the typed error for a rejection.

    Raises:
        HostKeyChangedError: For KEY_MISMATCH
        HostKeyNotTrustedError: For NO_TRUSTED_ENTRY
    """
    if outcome.reason is RejectionReason.KEY_MISMATCH:
        raise HostKeyChangedError(outcome)
    if not outcome.accepted:
        raise HostKeyNotTrustedError(outcome)
    return outcome


def verify_host_key(
    policy: TrustPolicy,
    host: str,
    port: int,
    key_type: Union[str, SSHKeyType],
    key_bytes: bytes,
    store: Optional[KnownHostsStore] = None,
) -> VerificationOutcome:
    """
    One-shot verification of a presented host key.

    Args:
        policy: Resolved trust policy
        host: Remote host
        port: Remote SSH port
        key_type: Presented key algorithm name
        key_bytes: Presented public key blob
        store: Pre-loaded store to use instead of the policy's sources

    Returns:
        VerificationOutcome
    """
    return HostKeyVerifier(policy, store).verify(host, port, key_type, key_bytes)


__all__ = [
    "HostKeyVerifier",
    "raise_for_outcome",
    "verify_host_key",
]
