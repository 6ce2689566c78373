"""
Fixtures for SSH host key verification unit tests.

Key blobs are built in SSH wire format (string key type, then key
material) from fixed bytes. They are NOT real keys; verification only
compares blobs byte-for-byte, so real key material is not needed.
"""

import base64
import struct
from pathlib import Path
from typing import Callable, Iterable

import pytest

from hostguard.config import Settings
from hostguard.services.ssh.host_hash import HostHashCodec


def make_key_blob(key_type: str, material: bytes) -> bytes:
    """Encode a key type and key material as SSH wire strings."""
    name = key_type.encode("ascii")
    return struct.pack(">I", len(name)) + name + struct.pack(">I", len(material)) + material


@pytest.fixture
def rsa_key() -> bytes:
    """RSA host key blob."""
    return make_key_blob("ssh-rsa", b"\x01\x00\x01" + bytes(range(64)))


@pytest.fixture
def dsa_key() -> bytes:
    """DSA host key blob."""
    return make_key_blob("ssh-dss", bytes(range(100, 160)))


@pytest.fixture
def ecdsa_key() -> bytes:
    """ECDSA P-256 host key blob."""
    return make_key_blob("ecdsa-sha2-nistp256", b"nistp256" + b"\x04" + bytes(range(64)))


@pytest.fixture
def another_ecdsa_key() -> bytes:
    """A second ECDSA P-256 host key blob, different from ecdsa_key."""
    return make_key_blob("ecdsa-sha2-nistp256", b"nistp256" + b"\x04" + bytes(range(64, 128)))


@pytest.fixture
def ed25519_key() -> bytes:
    """Ed25519 host key blob."""
    return make_key_blob("ssh-ed25519", bytes(range(32)))


@pytest.fixture
def known_hosts_line() -> Callable[..., str]:
    """
    Factory building one known_hosts line.

    Returns:
        Function (host, port, key_type, key_bytes, hashed=False) -> line
    """

    def _line(host: str, port: int, key_type: str, key_bytes: bytes, hashed: bool = False) -> str:
        if hashed:
            host_field = HostHashCodec.hash_host(host, port)
        else:
            host_field = f"[{host}]:{port}"
        return f"{host_field} {key_type} {base64.b64encode(key_bytes).decode('ascii')}"

    return _line


@pytest.fixture
def write_known_hosts(tmp_path: Path) -> Callable[[Iterable[str]], Path]:
    """
    Factory writing known_hosts lines to a fresh file.

    Returns:
        Function (lines) -> path of the written file
    """
    counter = {"n": 0}

    def _write(lines: Iterable[str]) -> Path:
        counter["n"] += 1
        path = tmp_path / f"known_hosts_{counter['n']}"
        content = "".join(f"{line}\n" for line in lines)
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the environment and the user's known_hosts."""
    return Settings(
        _env_file=None,
        known_hosts_files=[str(tmp_path / "known_hosts")],
        strict_host_key_checking=True,
    )
