"""
SSH Connection Manager Module

Establishes SSH connections whose host key is checked by HostKeyVerifier
before authentication takes place.

This module handles:
- Creating paramiko clients with the resolved host key policy
- Offering the server only the host key types known_hosts trusts
- Password and private key authentication
- Categorizing failures, keeping host key rejections distinct from
  configuration, authentication and network errors

Error Types:
    - host_key_unknown: Host has no known_hosts entry
    - host_key_changed: Host presented a key that differs from known_hosts
    - configuration_error: A known_hosts source could not be read
    - auth_failed: Authentication credentials rejected
    - ssh_error: SSH protocol error
    - timeout: Connection timed out
    - connection_error: Network-level connection failure

Usage:
    from hostguard.services.ssh.connection_manager import SSHConnectionManager

    manager = SSHConnectionManager()
    result = manager.connect(remote, password=password)
    if result.success:
        stdin, stdout, stderr = result.connection.exec_command("uname -a")
    elif result.error_type == "host_key_changed":
        alert(result.error_message)

Security Notes:
    - A host key rejection aborts the handshake; no authentication,
      fallback or command execution follows
    - Credentials are never logged
"""

import logging
import socket
from typing import Dict, List, Optional

import paramiko
from paramiko import SSHClient
from paramiko.ssh_exception import IncompatiblePeer

from ...config import RemoteTarget
from .config_manager import SSHConfigManager
from .exceptions import HostKeyChangedError, HostKeyNotTrustedError, SSHConfigurationError
from .known_hosts import KnownHostsStore
from .models import SSHConnectionResult

logger = logging.getLogger(__name__)


class SSHConnectionManager:
    """
    Opens SSH connections gated by host key verification.

    Attributes:
        config_manager: Resolves trust policies for remotes
        store: Optional pre-loaded trust store shared by all connections

    Example:
        >>> manager = SSHConnectionManager()
        >>> result = manager.connect(
        ...     RemoteTarget(name="web", host="server.example.com", user="deploy"),
        ...     password="secret",  # pragma: allowlist secret
        ... )
        >>> result.success
        True
    """

    def __init__(
        self,
        config_manager: Optional[SSHConfigManager] = None,
        store: Optional[KnownHostsStore] = None,
    ) -> None:
        self.config_manager = config_manager or SSHConfigManager()
        self.store = store

    def connect(
        self,
        remote: RemoteTarget,
        password: Optional[str] = None,
        pkey: Optional[paramiko.PKey] = None,
        timeout: Optional[int] = None,
    ) -> SSHConnectionResult:
        """
        Connect to a remote host after verifying its host key.

        Args:
            remote: Remote target (host, port, user, known_hosts override)
            password: Password for password authentication
            pkey: Private key for public key authentication
            timeout: Connection timeout in seconds (default: settings value)

        Returns:
            SSHConnectionResult; on success connection holds the open client
        """
        connect_timeout = timeout or self.config_manager.settings.connect_timeout
        client = SSHClient()
        policy = None

        try:
            policy = self.config_manager.configure_ssh_client(client, remote, store=self.store)
            disabled_algorithms = policy.disabled_algorithms(remote.host, remote.port)

            try:
                self._open(client, remote, password, pkey, connect_timeout, disabled_algorithms)
            except IncompatiblePeer:
                if disabled_algorithms is None:
                    raise
                # No trusted key type offered; the presented key is then reported as changed
                logger.warning(
                    "%s:%d offers none of its trusted host key types, renegotiating", remote.host, remote.port
                )
                client.close()
                self._open(client, remote, password, pkey, connect_timeout, None)

            logger.info("SSH connection established to %s:%d", remote.host, remote.port)
            return SSHConnectionResult(
                success=True,
                connection=client,
                host_key_outcome=policy.last_outcome,
            )

        except HostKeyChangedError as e:
            client.close()
            return SSHConnectionResult(
                success=False,
                error_message=str(e),
                error_type="host_key_changed",
                host_key_outcome=e.outcome,
            )

        except HostKeyNotTrustedError as e:
            client.close()
            return SSHConnectionResult(
                success=False,
                error_message=str(e),
                error_type="host_key_unknown",
                host_key_outcome=e.outcome,
            )

        except SSHConfigurationError as e:
            client.close()
            logger.error("SSH trust configuration error for %s: %s", remote.name, e)
            return SSHConnectionResult(
                success=False,
                error_message=str(e),
                error_type="configuration_error",
            )

        except paramiko.AuthenticationException as e:
            client.close()
            logger.warning("SSH authentication failed for %s@%s:%d: %s", remote.user, remote.host, remote.port, e)
            return SSHConnectionResult(
                success=False,
                error_message=f"Authentication failed for {remote.user}@{remote.host}",
                error_type="auth_failed",
                host_key_outcome=policy.last_outcome if policy else None,
            )

        except paramiko.SSHException as e:
            client.close()
            logger.error("SSH connection error to %s:%d: %s", remote.host, remote.port, e)
            return SSHConnectionResult(
                success=False,
                error_message=f"SSH protocol error: {e}",
                error_type="ssh_error",
            )

        except socket.timeout:
            client.close()
            logger.error("SSH connection to %s:%d timed out after %ds", remote.host, remote.port, connect_timeout)
            return SSHConnectionResult(
                success=False,
                error_message=f"Connection timed out after {connect_timeout}s",
                error_type="timeout",
            )

        except OSError as e:
            client.close()
            logger.error("Socket error connecting to %s:%d: %s", remote.host, remote.port, e)
            return SSHConnectionResult(
                success=False,
                error_message=f"Network error: {e}",
                error_type="connection_error",
            )

    def _open(
        self,
        client: SSHClient,
        remote: RemoteTarget,
        password: Optional[str],
        pkey: Optional[paramiko.PKey],
        timeout: int,
        disabled_algorithms: Optional[Dict[str, List[str]]],
    ) -> None:
        client.connect(
            hostname=remote.host,
            port=remote.port,
            username=remote.user,
            password=password,
            pkey=pkey,
            timeout=timeout,
            allow_agent=False,
            look_for_keys=False,
            disabled_algorithms=disabled_algorithms,
        )


__all__ = [
    "SSHConnectionManager",
]
