"""
Unit Tests for SSH Host Key Policies

Tests the paramiko MissingHostKeyPolicy adapter including:
- Host/port extraction from the names paramiko reports
- Accepted keys stored in the client's session host keys
- Typed rejections raised out of the handshake
- Audit callback invocation
- Host key algorithm restriction before the handshake
"""

import logging
from typing import Callable
from unittest.mock import MagicMock

import paramiko
import pytest

from hostguard.services.ssh.exceptions import HostKeyChangedError, HostKeyNotTrustedError
from hostguard.services.ssh.known_hosts import KnownHostsStore
from hostguard.services.ssh.models import SSHKeyType, TrustPolicy
from hostguard.services.ssh.policies import (
    KnownHostsVerificationPolicy,
    create_host_key_policy,
    disabled_host_key_algorithms,
    split_host_port,
)


def mock_pkey(key_type: str, key_bytes: bytes) -> MagicMock:
    key = MagicMock(spec=paramiko.PKey)
    key.get_name.return_value = key_type
    key.asbytes.return_value = key_bytes
    return key


@pytest.fixture
def store(known_hosts_line: Callable, rsa_key: bytes) -> KnownHostsStore:
    lines = [
        known_hosts_line("server", 2222, "ssh-rsa", rsa_key),
        known_hosts_line("server", 22, "ssh-rsa", rsa_key).replace("[server]:22", "server"),
    ]
    return KnownHostsStore.from_text("\n".join(lines))


class TestSplitHostPort:
    """Tests for split_host_port."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("server", ("server", 22)),
            ("[server]:2222", ("server", 2222)),
            ("[::1]:2222", ("::1", 2222)),
            ("10.0.0.5", ("10.0.0.5", 22)),
            ("[server]", ("[server]", 22)),
            ("[server]:abc", ("[server]:abc", 22)),
        ],
    )
    def test_split(self, name: str, expected: tuple) -> None:
        """Verify bracketed names carry their port and others use 22."""
        assert split_host_port(name) == expected


class TestKnownHostsVerificationPolicy:
    """Tests for KnownHostsVerificationPolicy.missing_host_key."""

    def test_trusted_key_added_to_session(self, store: KnownHostsStore, rsa_key: bytes) -> None:
        """Verify an accepted key is stored in the client's host keys."""
        policy = create_host_key_policy(TrustPolicy.verify(), store=store)
        client = MagicMock()
        key = mock_pkey("ssh-rsa", rsa_key)

        policy.missing_host_key(client, "[server]:2222", key)

        client.get_host_keys.return_value.add.assert_called_once_with("[server]:2222", "ssh-rsa", key)
        assert policy.last_outcome.verified is True

    def test_default_port_name(self, store: KnownHostsStore, rsa_key: bytes) -> None:
        """Verify the bare name paramiko uses for port 22 is verified on port 22."""
        policy = create_host_key_policy(TrustPolicy.verify(), store=store)

        policy.missing_host_key(MagicMock(), "server", mock_pkey("ssh-rsa", rsa_key))

        assert policy.last_outcome.port == 22
        assert policy.last_outcome.accepted is True

    def test_unknown_host_raises(self, store: KnownHostsStore, rsa_key: bytes) -> None:
        """Verify an unknown host aborts the handshake without storing the key."""
        policy = create_host_key_policy(TrustPolicy.verify(), store=store)
        client = MagicMock()

        with pytest.raises(HostKeyNotTrustedError):
            policy.missing_host_key(client, "[other]:2222", mock_pkey("ssh-rsa", rsa_key))

        client.get_host_keys.return_value.add.assert_not_called()

    def test_changed_key_raises(self, store: KnownHostsStore, ecdsa_key: bytes) -> None:
        """Verify a different key for a known host aborts the handshake."""
        policy = create_host_key_policy(TrustPolicy.verify(), store=store)
        client = MagicMock()

        with pytest.raises(HostKeyChangedError):
            policy.missing_host_key(client, "[server]:2222", mock_pkey("ecdsa-sha2-nistp256", ecdsa_key))

        client.get_host_keys.return_value.add.assert_not_called()

    def test_rejection_carries_outcome(self, store: KnownHostsStore, ecdsa_key: bytes) -> None:
        """Verify the raised error carries the outcome for callers."""
        policy = create_host_key_policy(TrustPolicy.verify(), store=store)

        with pytest.raises(HostKeyChangedError) as exc_info:
            policy.missing_host_key(MagicMock(), "[server]:2222", mock_pkey("ecdsa-sha2-nistp256", ecdsa_key))

        assert exc_info.value.outcome is policy.last_outcome

    def test_allow_any_accepts(self, ecdsa_key: bytes) -> None:
        """Verify an ALLOW_ANY policy stores any key."""
        policy = create_host_key_policy(TrustPolicy.allow_any())
        client = MagicMock()

        policy.missing_host_key(client, "[anything]:2222", mock_pkey("ecdsa-sha2-nistp256", ecdsa_key))

        client.get_host_keys.return_value.add.assert_called_once()
        assert policy.last_outcome.bypassed is True

    def test_is_paramiko_policy(self) -> None:
        """Verify the policy can be installed on an SSHClient."""
        policy = create_host_key_policy(TrustPolicy.allow_any())

        assert isinstance(policy, paramiko.MissingHostKeyPolicy)
        assert isinstance(policy, KnownHostsVerificationPolicy)


class TestAuditCallback:
    """Tests for the optional audit callback."""

    def test_callback_receives_every_outcome(self, store: KnownHostsStore, rsa_key: bytes) -> None:
        """Verify accepted and rejected outcomes both reach the callback."""
        outcomes = []
        policy = create_host_key_policy(TrustPolicy.verify(), store=store, audit_callback=outcomes.append)

        policy.missing_host_key(MagicMock(), "[server]:2222", mock_pkey("ssh-rsa", rsa_key))
        with pytest.raises(HostKeyNotTrustedError):
            policy.missing_host_key(MagicMock(), "[other]:2222", mock_pkey("ssh-rsa", rsa_key))

        assert [o.accepted for o in outcomes] == [True, False]

    def test_failing_callback_does_not_change_decision(
        self, store: KnownHostsStore, rsa_key: bytes, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Verify a callback error is logged and the rejection still raises."""
        callback = MagicMock(side_effect=RuntimeError("audit sink down"))
        policy = create_host_key_policy(TrustPolicy.verify(), store=store, audit_callback=callback)

        with caplog.at_level(logging.ERROR, logger="hostguard.services.ssh.policies"):
            with pytest.raises(HostKeyNotTrustedError):
                policy.missing_host_key(MagicMock(), "[other]:2222", mock_pkey("ssh-rsa", rsa_key))

        assert "audit callback failed" in caplog.text


class TestDisabledHostKeyAlgorithms:
    """Tests for restricting negotiation to trusted key types."""

    def test_rsa_keeps_sha2_names(self) -> None:
        """Verify trusting ssh-rsa keeps every RSA signature algorithm."""
        disabled = disabled_host_key_algorithms([SSHKeyType.RSA])

        assert not {"ssh-rsa", "rsa-sha2-256", "rsa-sha2-512"} & set(disabled)
        assert {"ssh-ed25519", "ssh-dss", "ecdsa-sha2-nistp256", "ecdsa-sha2-nistp521"} <= set(disabled)

    def test_curves_are_distinct(self) -> None:
        """Verify trusting one ECDSA curve does not enable the others."""
        disabled = disabled_host_key_algorithms([SSHKeyType.ECDSA_NISTP384])

        assert "ecdsa-sha2-nistp384" not in disabled
        assert "ecdsa-sha2-nistp256" in disabled
        assert "ecdsa-sha2-nistp521" in disabled

    def test_certificates_always_disabled(self) -> None:
        """Verify certificate variants are disabled even for trusted types."""
        disabled = disabled_host_key_algorithms(list(SSHKeyType))

        assert all(name.endswith("-cert-v01@openssh.com") for name in disabled)
        assert "rsa-sha2-512-cert-v01@openssh.com" in disabled

    def test_policy_restricts_known_host(self, store: KnownHostsStore) -> None:
        """Verify the policy derives the restriction from the host's entries."""
        policy = create_host_key_policy(TrustPolicy.verify(), store=store)

        disabled = policy.disabled_algorithms("server", 2222)

        assert "ssh-rsa" not in disabled["keys"]
        assert "ssh-ed25519" in disabled["keys"]

    def test_policy_leaves_unknown_host_alone(self, store: KnownHostsStore) -> None:
        """Verify a host without entries is not restricted."""
        policy = create_host_key_policy(TrustPolicy.verify(), store=store)

        assert policy.disabled_algorithms("other", 2222) is None

    def test_allow_any_never_loads_store(self) -> None:
        """Verify a bypassed policy does not read its sources to restrict."""
        policy = create_host_key_policy(TrustPolicy.allow_any())

        assert policy.disabled_algorithms("server", 2222) is None
