"""
SSH Host Key Parsing Module

Provides helpers for turning public host keys into the (key type, key
bytes) pair used by verification, and for generating fingerprints that
are safe to log and display.

Functions:
    - decode_key_data: Strict base64 decode of a known_hosts key field
    - parse_public_key_line: Split "ssh-rsa AAAA... comment" into type and bytes
    - host_key_from_pkey: Extract type and bytes from a paramiko key
    - get_key_fingerprint_sha256: OpenSSH-style SHA256 fingerprint

Usage:
    from hostguard.services.ssh.key_parser import get_key_fingerprint_sha256

    fingerprint = get_key_fingerprint_sha256(key_bytes)
    logger.info("Host key fingerprint: %s", fingerprint)

Security Notes:
    - Fingerprints are safe to log and display
    - Key blobs are compared byte-for-byte; no normalisation is applied
"""

import base64
import binascii
import hashlib
from typing import Tuple, Union

import paramiko

from .exceptions import UnparseableLineError


def decode_key_data(key_data: str) -> bytes:
    """
    Decode the base64 key field of a known_hosts line.

    Args:
        key_data: Base64 text of the public key blob

    Returns:
        Raw key blob

    Raises:
        UnparseableLineError: If the text is not valid base64 or decodes
            to an empty blob
    """
    try:
        key_bytes = base64.b64decode(key_data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise UnparseableLineError(f"invalid base64 key data: {e}") from e

    if not key_bytes:
        raise UnparseableLineError("empty key data")

    return key_bytes


def parse_public_key_line(public_key: str) -> Tuple[str, bytes]:
    """
    Parse a public key in OpenSSH format.

    Args:
        public_key: Key text such as "ssh-ed25519 AAAAC3... admin@server"

    Returns:
        (key type name, raw key blob)

    Raises:
        UnparseableLineError: If the key type or key data is missing or
            the key data is not valid base64
    """
    parts = public_key.split()
    if len(parts) < 2:
        raise UnparseableLineError("public key must contain a key type and base64 key data")

    return parts[0], decode_key_data(parts[1])


def host_key_from_pkey(key: paramiko.PKey) -> Tuple[str, bytes]:
    """
    Return the wire key type name and key blob of a paramiko key.

    Args:
        key: Host key presented by a remote server

    Returns:
        (key type name, raw key blob)
    """
    return key.get_name(), key.asbytes()


def get_key_fingerprint_sha256(key_bytes: Union[bytes, bytearray]) -> str:
    """
    Generate an OpenSSH-style SHA256 fingerprint for a key blob.

    The format matches ``ssh-keygen -l``: "SHA256:" followed by the
    unpadded base64 of the SHA256 digest.

    Args:
        key_bytes: Raw public key blob

    Returns:
        Fingerprint string
    """
    digest = hashlib.sha256(bytes(key_bytes)).digest()
    return "SHA256:" + base64.b64encode(digest).decode("ascii").rstrip("=")


__all__ = [
    "decode_key_data",
    "parse_public_key_line",
    "host_key_from_pkey",
    "get_key_fingerprint_sha256",
]
