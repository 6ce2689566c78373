"""
SSH Configuration Manager Module

Turns host key checking settings into the immutable TrustPolicy used for
one connection attempt, and configures paramiko clients with it.

This module handles:
- Merging the global setting with a per-remote override
- Selecting known_hosts sources (files and, optionally, the database)
- Installing the verification policy on a paramiko SSHClient

Configuration Options:
    strict_host_key_checking: Global switch. False disables host key
        checking for every remote that does not override it.

    known_hosts_files: Global list of known_hosts files.

    known_hosts_database: Also trust rows of the ssh_known_hosts table
        when the manager has a database session.

    RemoteTarget.known_hosts: Per-remote override. "allow_any" disables
        checking for that remote; a list of paths replaces the global
        files. The override wins whenever it is set.

Usage:
    from hostguard.services.ssh.config_manager import SSHConfigManager

    config_manager = SSHConfigManager()
    policy = config_manager.resolve_trust_policy(remote)

    ssh_client = paramiko.SSHClient()
    config_manager.configure_ssh_client(ssh_client, remote)

Security Notes:
    - Default is strict checking against ~/.ssh/known_hosts
    - Every resolution that disables checking is logged at WARNING
    - Clients are never given pre-loaded host keys, so paramiko's own
      known_hosts handling cannot bypass the verifier
"""

import logging
from typing import TYPE_CHECKING, Any, List, Optional

import paramiko

from ...config import ALLOW_ANY_HOSTS, RemoteTarget, Settings, get_settings
from .known_hosts import DatabaseKnownHostsSource, KnownHostsStore
from .models import TrustPolicy
from .policies import KnownHostsVerificationPolicy, create_host_key_policy

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class SSHConfigManager:
    """
    Resolves host key checking configuration into trust policies.

    The manager is the only place global settings are read; everything
    downstream receives an explicit TrustPolicy.

    Attributes:
        settings: Global settings
        db: Optional SQLAlchemy session for the database trust source

    Example:
        >>> config = SSHConfigManager()
        >>> remote = RemoteTarget(name="web", host="10.0.0.5", known_hosts="allow_any")
        >>> config.resolve_trust_policy(remote).is_strict
        False
    """

    def __init__(self, settings: Optional[Settings] = None, db: Optional["Session"] = None) -> None:
        self.settings = settings or get_settings()
        self.db = db

    def get_known_hosts_sources(self, files: Optional[List[str]] = None) -> List[Any]:
        """
        Build the list of known_hosts sources.

        Args:
            files: Files to use instead of the global known_hosts_files

        Returns:
            Paths, followed by the database source when enabled
        """
        sources: List[Any] = list(self.settings.known_hosts_files if files is None else files)

        if self.settings.known_hosts_database:
            if self.db is not None:
                sources.append(DatabaseKnownHostsSource(self.db))
            else:
                logger.warning("known_hosts_database is enabled but no database session is available")

        return sources

    def resolve_trust_policy(self, remote: Optional[RemoteTarget] = None) -> TrustPolicy:
        """
        Resolve the trust policy for a connection attempt.

        Args:
            remote: Remote target whose override, if any, takes precedence

        Returns:
            TrustPolicy for this connection
        """
        override = remote.known_hosts if remote is not None else None
        target = remote.name if remote is not None else "<global>"

        if override == ALLOW_ANY_HOSTS:
            logger.warning("Host key checking disabled for remote %s by per-remote setting", target)
            return TrustPolicy.allow_any()

        if override is not None:
            return TrustPolicy.verify(*self.get_known_hosts_sources(override))

        if not self.settings.strict_host_key_checking:
            logger.warning("Host key checking disabled for remote %s by global setting", target)
            return TrustPolicy.allow_any()

        return TrustPolicy.verify(*self.get_known_hosts_sources())

    def load_store(self, remote: Optional[RemoteTarget] = None) -> Optional[KnownHostsStore]:
        """
        Load the trust store for a remote ahead of connecting.

        Returns:
            The loaded store, or None when checking is disabled

        Raises:
            KnownHostsReadError: If a source cannot be read
        """
        policy = self.resolve_trust_policy(remote)
        if not policy.is_strict:
            return None
        return KnownHostsStore.load(policy.sources)

    def configure_ssh_client(
        self,
        ssh: paramiko.SSHClient,
        remote: Optional[RemoteTarget] = None,
        store: Optional[KnownHostsStore] = None,
    ) -> KnownHostsVerificationPolicy:
        """
        Install host key verification on a paramiko client.

        Args:
            ssh: paramiko.SSHClient instance to configure
            remote: Remote target about to be connected
            store: Pre-loaded store shared across connections (optional); a
                remote with its own known_hosts files is checked against those
                files instead

        Returns:
            The installed policy; its last_outcome holds the decision after
            connect()
        """
        if store is not None and remote is not None and isinstance(remote.known_hosts, list):
            logger.info("Remote %s uses its own known_hosts files instead of the shared store", remote.name)
            store = None

        policy = create_host_key_policy(self.resolve_trust_policy(remote), store=store)
        ssh.set_missing_host_key_policy(policy)
        return policy


__all__ = [
    "SSHConfigManager",
]
