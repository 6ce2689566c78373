"""
SSH Host Key Policies

Connects host key verification to paramiko's handshake. paramiko calls a
MissingHostKeyPolicy whenever the client has no stored key for the
server; clients configured by SSHConfigManager never pre-load host keys,
so every handshake reaches KnownHostsVerificationPolicy and is decided by
HostKeyVerifier.

Available Policies:
- KnownHostsVerificationPolicy: Verify against known_hosts, reject otherwise
- disabled_host_key_algorithms: Limit negotiation to trusted key types

Usage:
    from hostguard.services.ssh.policies import create_host_key_policy

    client = paramiko.SSHClient()
    client.set_missing_host_key_policy(create_host_key_policy(TrustPolicy.verify(path)))
    client.connect(hostname, port=port, username=user, password=passwd)

Security Considerations:
- A rejection raises from inside the handshake, before authentication,
  so no credentials are sent to an unverified host
- Every decision is logged by the verifier for audit

References:
- NIST SP 800-53 SC-23: Session Authenticity
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import paramiko
from paramiko import SSHClient

from .key_parser import host_key_from_pkey
from .known_hosts import KnownHostsStore
from .models import DEFAULT_SSH_PORT, SSHKeyType, TrustPolicy, VerificationOutcome
from .verifier import HostKeyVerifier, raise_for_outcome

logger = logging.getLogger(__name__)

CERTIFICATE_SUFFIX = "-cert-v01@openssh.com"


def split_host_port(server_hostkey_name: str, default_port: int = DEFAULT_SSH_PORT) -> Tuple[str, int]:
    """
    Split the host name paramiko passes to a host key policy.

    paramiko reports "host" on the default port and "[host]:port" otherwise.

    Args:
        server_hostkey_name: Name passed to missing_host_key
        default_port: Port implied by the bare form

    Returns:
        (host, port)
    """
    if server_hostkey_name.startswith("["):
        host, sep, port = server_hostkey_name[1:].rpartition("]:")
        if sep and port.isdigit():
            return host, int(port)
    return server_hostkey_name, default_port


def disabled_host_key_algorithms(trusted_types: Iterable[SSHKeyType]) -> List[str]:
    """
    Host key algorithms to disable so only trusted key types are negotiated.

    paramiko picks the first host key algorithm both sides support and
    never falls back to another one, so a host trusted only by its RSA key
    must not be allowed to negotiate ECDSA. Certificate variants are always
    disabled; known_hosts entries here carry plain keys only.

    Args:
        trusted_types: Key types present in the host's known_hosts entries

    Returns:
        Algorithm names for paramiko's disabled_algorithms["keys"]
    """
    trusted = set(trusted_types)
    disabled = []
    for key_type in SSHKeyType:
        for algorithm in key_type.host_key_algorithms:
            if key_type not in trusted:
                disabled.append(algorithm)
            disabled.append(algorithm + CERTIFICATE_SUFFIX)
    return disabled


class KnownHostsVerificationPolicy(paramiko.MissingHostKeyPolicy):
    """
    paramiko host key policy backed by HostKeyVerifier.

    Accepted keys are stored in the client's session host keys so the key
    cannot silently change within the session. Rejected keys raise
    HostKeyNotTrustedError or HostKeyChangedError, which paramiko
    propagates out of SSHClient.connect().

    Attributes:
        verifier: HostKeyVerifier deciding each presented key
        audit_callback: Optional function called with every outcome
        last_outcome: Outcome of the most recent decision

    Example:
        >>> policy = KnownHostsVerificationPolicy(HostKeyVerifier(TrustPolicy.verify(path)))
        >>> client.set_missing_host_key_policy(policy)
    """

    def __init__(
        self,
        verifier: HostKeyVerifier,
        audit_callback: Optional[Callable[[VerificationOutcome], None]] = None,
    ) -> None:
        self.verifier = verifier
        self.audit_callback = audit_callback
        self.last_outcome: Optional[VerificationOutcome] = None

    def missing_host_key(self, client: SSHClient, hostname: str, key: paramiko.PKey) -> None:
        """
        Verify the key presented by the server.

        Args:
            client: The paramiko SSHClient instance
            hostname: "host" or "[host]:port" as reported by paramiko
            key: The SSH host key presented by the remote server

        Raises:
            HostKeyNotTrustedError: No known_hosts entry for the host
            HostKeyChangedError: Host known but presented a different key
            KnownHostsReadError: A known_hosts source cannot be read
        """
        host, port = split_host_port(hostname)
        key_type, key_bytes = host_key_from_pkey(key)

        outcome = self.verifier.verify(host, port, key_type, key_bytes)
        self.last_outcome = outcome

        if self.audit_callback:
            try:
                self.audit_callback(outcome)
            except Exception:
                # The verifier has already logged the decision
                logger.exception("Host key audit callback failed for %s", hostname)

        raise_for_outcome(outcome)

        client.get_host_keys().add(hostname, key_type, key)

    def disabled_algorithms(self, host: str, port: int) -> Optional[Dict[str, List[str]]]:
        """
        Restrict the handshake to the key types known_hosts trusts for a host.

        Loads the trust store if it has not been loaded yet.

        Args:
            host: Host name or address being connected to
            port: Port being connected to

        Returns:
            A disabled_algorithms mapping for SSHClient.connect, or None when
            checking is bypassed or the host has no known_hosts entry

        Raises:
            KnownHostsReadError: A known_hosts source cannot be read
        """
        if not self.verifier.policy.is_strict:
            return None

        trusted = {entry.key_type for entry in self.verifier.store.find(host, port)}
        if not trusted:
            return None

        return {"keys": disabled_host_key_algorithms(trusted)}


def create_host_key_policy(
    policy: TrustPolicy,
    store: Optional[KnownHostsStore] = None,
    audit_callback: Optional[Callable[[VerificationOutcome], None]] = None,
) -> KnownHostsVerificationPolicy:
    """
    Factory function to create a paramiko policy for a resolved trust policy.

    Args:
        policy: Resolved TrustPolicy
        store: Pre-loaded store shared across connections (optional)
        audit_callback: Optional function called with every outcome

    Returns:
        KnownHostsVerificationPolicy instance
    """
    return KnownHostsVerificationPolicy(HostKeyVerifier(policy, store), audit_callback=audit_callback)


__all__ = [
    "split_host_port",
    "disabled_host_key_algorithms",
    "KnownHostsVerificationPolicy",
    "create_host_key_policy",
]
