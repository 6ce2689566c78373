"""
SSH Host Key Verification Module

Decides whether the host key presented by a remote SSH server is trusted
before any command is executed on it, using read-only known_hosts trust
stores and an explicit trust policy.

Module Architecture:
    ssh/
    ├── __init__.py           # This file - public API and factory functions
    ├── models.py             # Key type registry, host patterns, entries, outcomes
    ├── exceptions.py         # Custom exception classes
    ├── host_hash.py          # Salted-hash (|1|salt|digest) host names
    ├── key_parser.py         # Key data decoding and fingerprints
    ├── known_hosts.py        # known_hosts sources, parser and trust store
    ├── verifier.py           # Host key decision logic
    ├── policies.py           # paramiko host key policy
    ├── config_manager.py     # Trust policy resolution from settings
    └── connection_manager.py # Verified SSH connection establishment

Usage:
    # Verify a presented key directly
    from hostguard.services.ssh import HostKeyVerifier, TrustPolicy
    verifier = HostKeyVerifier(TrustPolicy.verify("~/.ssh/known_hosts"))
    outcome = verifier.verify("server.example.com", 22, "ssh-ed25519", key_bytes)

    # Connect with verification
    from hostguard.services.ssh import get_connection_manager
    result = get_connection_manager().connect(remote, password=password)

Security Notes:
    - Strict checking is the default; disabling it is logged as a bypass
    - A changed host key is reported distinctly from an unknown host
    - Trust stores are immutable once loaded
"""

from typing import TYPE_CHECKING, Optional

from ...config import Settings
from .config_manager import SSHConfigManager
from .connection_manager import SSHConnectionManager
from .exceptions import (
    HostKeyChangedError,
    HostKeyNotTrustedError,
    HostKeyRejectedError,
    KnownHostsReadError,
    SSHConfigurationError,
    UnparseableLineError,
)
from .host_hash import HostHashCodec
from .key_parser import get_key_fingerprint_sha256, parse_public_key_line
from .known_hosts import (
    DatabaseKnownHostsSource,
    KnownHostsFileSource,
    KnownHostsStore,
    KnownHostsTextSource,
    format_known_hosts_line,
    parse_known_hosts_line,
)
from .models import (
    DEFAULT_SSH_PORT,
    KEY_TYPE_REGISTRY,
    HashedHostPattern,
    KnownHostsEntry,
    LiteralHostPattern,
    RejectionReason,
    SSHConnectionResult,
    SSHKeyType,
    TrustMode,
    TrustPolicy,
    VerificationOutcome,
)
from .policies import KnownHostsVerificationPolicy, create_host_key_policy
from .verifier import HostKeyVerifier, verify_host_key

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


def get_config_manager(settings: Optional[Settings] = None, db: Optional["Session"] = None) -> SSHConfigManager:
    """
    Factory function to create SSH configuration manager.

    Args:
        settings: Settings to use instead of the cached global settings
        db: Optional SQLAlchemy session for the database trust source

    Returns:
        Configured SSHConfigManager instance
    """
    return SSHConfigManager(settings, db)


def get_connection_manager(
    settings: Optional[Settings] = None,
    db: Optional["Session"] = None,
    store: Optional[KnownHostsStore] = None,
) -> SSHConnectionManager:
    """
    Factory function to create SSH connection manager.

    Args:
        settings: Settings to use instead of the cached global settings
        db: Optional SQLAlchemy session for the database trust source
        store: Pre-loaded trust store shared by all connections

    Returns:
        Configured SSHConnectionManager instance
    """
    return SSHConnectionManager(get_config_manager(settings, db), store=store)


# This defines what is available via "from hostguard.services.ssh import *"
__all__ = [
    # Factory functions
    "get_config_manager",
    "get_connection_manager",
    # Service classes
    "SSHConfigManager",
    "SSHConnectionManager",
    "HostKeyVerifier",
    "KnownHostsStore",
    "KnownHostsFileSource",
    "KnownHostsTextSource",
    "DatabaseKnownHostsSource",
    "HostHashCodec",
    # Models and enums (from models.py)
    "DEFAULT_SSH_PORT",
    "KEY_TYPE_REGISTRY",
    "SSHKeyType",
    "LiteralHostPattern",
    "HashedHostPattern",
    "KnownHostsEntry",
    "TrustMode",
    "TrustPolicy",
    "RejectionReason",
    "VerificationOutcome",
    "SSHConnectionResult",
    # Exceptions (from exceptions.py)
    "SSHConfigurationError",
    "KnownHostsReadError",
    "UnparseableLineError",
    "HostKeyRejectedError",
    "HostKeyNotTrustedError",
    "HostKeyChangedError",
    # Policies (from policies.py)
    "KnownHostsVerificationPolicy",
    "create_host_key_policy",
    # Functions
    "verify_host_key",
    "parse_known_hosts_line",
    "format_known_hosts_line",
    "parse_public_key_line",
    "get_key_fingerprint_sha256",
]
