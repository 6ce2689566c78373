"""
Hashed Known Hosts Host Names

Implements the salted-hash host identifier used by OpenSSH when
HashKnownHosts is enabled. A hashed host field looks like:

    |1|<base64 salt>|<base64 digest>

where the version marker "1" is the only scheme in use, the salt is 20
random bytes chosen when the entry is written, and the digest is
HMAC-SHA1 over the host literal (e.g. "[server.example.com]:2222") keyed
with the salt.

Verification only ever reads an existing salt. A new salt is generated
only when authoring an entry (see hash_host).

References:
    - sshd(8), SSH_KNOWN_HOSTS FILE FORMAT
    - ssh-keygen(1), -H option
"""

import base64
import binascii
import hashlib
import hmac
import os
from typing import Optional, Tuple

# Version marker for the only supported hash scheme
HASH_MAGIC = "|1|"
HASH_DELIMITER = "|"

# HMAC-SHA1 output length; salts are the same length
SALT_LENGTH = 20
DIGEST_LENGTH = hashlib.sha1().digest_size


class HostHashCodec:
    """
    Encode, decode and compare salted-hash host identifiers.

    All methods are stateless; the class only groups the scheme's
    operations.

    Example:
        >>> salt = HostHashCodec.generate_salt()
        >>> digest = HostHashCodec.encode("server.example.com", 2222, salt)
        >>> HostHashCodec.matches("server.example.com", 2222, salt, digest)
        True
    """

    @staticmethod
    def generate_salt() -> bytes:
        """Return a fresh random salt for authoring a hashed entry."""
        return os.urandom(SALT_LENGTH)

    @staticmethod
    def hash_literal(literal: str, salt: bytes) -> bytes:
        """
        Compute HMAC-SHA1 of a host literal keyed with salt.

        Args:
            literal: Exact host string as it would appear unhashed
            salt: HMAC key

        Returns:
            20-byte raw digest
        """
        return hmac.new(salt, literal.encode("utf-8"), hashlib.sha1).digest()

    @classmethod
    def encode(cls, host: str, port: int, salt: bytes) -> bytes:
        """
        Hash the bracketed "[host]:port" literal for (host, port).

        The bracketed form is used regardless of whether port is the
        default SSH port.
        """
        return cls.hash_literal(f"[{host}]:{port}", salt)

    @classmethod
    def matches(cls, host: str, port: int, salt: bytes, digest: bytes) -> bool:
        """Return True if digest is exactly encode(host, port, salt)."""
        return cls.matches_literal(f"[{host}]:{port}", salt, digest)

    @classmethod
    def matches_literal(cls, literal: str, salt: bytes, digest: bytes) -> bool:
        """Return True if digest is exactly the hash of literal under salt."""
        expected = cls.hash_literal(literal, salt)
        # compare_digest is False on any length difference
        return hmac.compare_digest(expected, bytes(digest))

    @staticmethod
    def is_hashed(host_field: str) -> bool:
        """Return True if a known_hosts host field uses the hashed form."""
        return host_field.startswith(HASH_MAGIC)

    @staticmethod
    def parse_hashed(host_field: str) -> Tuple[bytes, bytes]:
        """
        Decode a "|1|salt|digest" host field.

        Args:
            host_field: Host field from a known_hosts line

        Returns:
            (salt, digest) as raw bytes

        Raises:
            ValueError: If the version marker is not "1", the field does not
                have exactly salt and digest parts, either part is not valid
                base64, or either part is not 20 bytes long.
        """
        parts = host_field.split(HASH_DELIMITER)
        # "|1|salt|digest" splits into ["", "1", salt, digest]
        if len(parts) != 4 or parts[0] != "":
            raise ValueError("malformed hashed host field")
        if parts[1] != "1":
            raise ValueError(f"unsupported host hash version {parts[1]!r}")

        try:
            salt = base64.b64decode(parts[2], validate=True)
            digest = base64.b64decode(parts[3], validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"invalid base64 in hashed host field: {e}") from e

        if len(salt) != SALT_LENGTH:
            raise ValueError(f"hashed host salt must be {SALT_LENGTH} bytes, got {len(salt)}")
        if len(digest) != DIGEST_LENGTH:
            raise ValueError(f"hashed host digest must be {DIGEST_LENGTH} bytes, got {len(digest)}")

        return salt, digest

    @staticmethod
    def format_hashed(salt: bytes, digest: bytes) -> str:
        """Encode salt and digest as a "|1|salt|digest" host field."""
        return (
            f"{HASH_MAGIC}{base64.b64encode(salt).decode('ascii')}"
            f"{HASH_DELIMITER}{base64.b64encode(digest).decode('ascii')}"
        )

    @classmethod
    def hash_host(cls, host: str, port: int, salt: Optional[bytes] = None) -> str:
        """
        Author a hashed host field for (host, port).

        Args:
            host: Remote host name or address
            port: Remote SSH port
            salt: Salt to use; a fresh random salt when omitted

        Returns:
            Host field text suitable for the first column of known_hosts
        """
        if salt is None:
            salt = cls.generate_salt()
        return cls.format_hashed(salt, cls.encode(host, port, salt))


__all__ = [
    "HASH_MAGIC",
    "SALT_LENGTH",
    "DIGEST_LENGTH",
    "HostHashCodec",
]
