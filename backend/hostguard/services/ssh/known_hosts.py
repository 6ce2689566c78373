"""
SSH Known Hosts Trust Store Module

Loads known_hosts records from one or more sources into an immutable,
read-only trust store and answers "which entries apply to this host and
port?" for host key verification.

This module handles:
- Reading known_hosts files, in-memory text and database tables
- Parsing OpenSSH known_hosts lines (plain and hashed host names)
- Skipping and logging lines that cannot be parsed
- Looking up every entry whose host pattern matches a host/port

Line Format:
    <host-pattern> <key-type> <base64-key> [comment]

    host-pattern is "host", "[host]:port", a comma-separated list of
    those, or a hashed "|1|salt|digest" field. Blank lines and lines
    starting with "#" are ignored.

Source Types:
    - Filesystem paths (str or os.PathLike), "~" and $VARS expanded
    - KnownHostsTextSource: known_hosts content held in memory
    - DatabaseKnownHostsSource: rows of the ssh_known_hosts table

Usage:
    from hostguard.services.ssh.known_hosts import KnownHostsStore

    store = KnownHostsStore.load(["~/.ssh/known_hosts", "/etc/ssh/ssh_known_hosts"])
    for entry in store.find("server.example.com", 22):
        print(entry.key_type.wire_name)

Error Handling:
    - A source that cannot be read raises KnownHostsReadError and no store
      is produced
    - A line that cannot be parsed is logged at WARNING and skipped
    - A source with no usable lines contributes nothing and is not an error

Thread Safety:
    A loaded store is never mutated. It may be shared by concurrent
    connection attempts without locking. To pick up file changes, load a
    new store and swap the reference.

References:
    - sshd(8), SSH_KNOWN_HOSTS FILE FORMAT
"""

import base64
import logging
import os
from typing import TYPE_CHECKING, Any, Iterable, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ...utils.logging_security import sanitize_for_log, sanitize_path_for_log
from .exceptions import KnownHostsReadError, UnparseableLineError
from .host_hash import HASH_DELIMITER, HostHashCodec
from .key_parser import decode_key_data
from .models import HashedHostPattern, KnownHostsEntry, LiteralHostPattern, SSHKeyType

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

COMMENT_PREFIX = "#"
MARKER_PREFIX = "@"
HOST_LIST_SEPARATOR = ","


class KnownHostsFileSource:
    """
    known_hosts content read from a file.

    Attributes:
        path: Expanded filesystem path
    """

    def __init__(self, path: Any) -> None:
        self.path = os.path.expandvars(os.path.expanduser(os.fspath(path)))

    @property
    def name(self) -> str:
        return self.path

    def read_lines(self) -> List[str]:
        """
        Read the whole file.

        Raises:
            KnownHostsReadError: If the file is missing, unreadable or not UTF-8
        """
        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                return handle.read().splitlines()
        except (OSError, UnicodeDecodeError) as e:
            raise KnownHostsReadError(self.path, str(e)) from e

    def __repr__(self) -> str:
        return f"KnownHostsFileSource(path={self.path!r})"


class KnownHostsTextSource:
    """
    known_hosts content held in memory.

    Attributes:
        name: Label used in log messages
        content: known_hosts text
    """

    def __init__(self, content: str, name: str = "<memory>") -> None:
        self.content = content
        self.name = name

    def read_lines(self) -> List[str]:
        return self.content.splitlines()

    def __repr__(self) -> str:
        return f"KnownHostsTextSource(name={self.name!r})"


class DatabaseKnownHostsSource:
    """
    Trusted host keys stored in the ssh_known_hosts database table.

    Each trusted row becomes one known_hosts line, so database rows go
    through the same parser and matching rules as file entries. Rows whose
    is_trusted flag is false are kept for audit but are not trust anchors.

    Table Schema (ssh_known_hosts):
        - id: Primary key
        - host_pattern: Host field exactly as in known_hosts
          (plain, bracketed or hashed)
        - key_type: Canonical key algorithm name (e.g. "ssh-ed25519")
        - public_key: Base64 public key blob
        - is_trusted: Whether the row may verify a host
        - notes: Optional notes

    Attributes:
        db: SQLAlchemy session used to read the table
        name: Label used in log messages
    """

    QUERY = """
        SELECT host_pattern, key_type, public_key
        FROM ssh_known_hosts
        WHERE is_trusted = :is_trusted
        ORDER BY id
    """

    def __init__(self, db: "Session", name: str = "database:ssh_known_hosts") -> None:
        self.db = db
        self.name = name

    def read_lines(self) -> List[str]:
        """
        Read every trusted row.

        Raises:
            KnownHostsReadError: On any database error
        """
        try:
            result = self.db.execute(text(self.QUERY), {"is_trusted": True})
            return [f"{row.host_pattern} {row.key_type} {row.public_key}" for row in result]
        except SQLAlchemyError as e:
            # Leave the session usable for the caller
            self.db.rollback()
            raise KnownHostsReadError(self.name, str(e)) from e

    def __repr__(self) -> str:
        return f"DatabaseKnownHostsSource(name={self.name!r})"


def as_source(source: Any) -> Any:
    """
    Normalize a configured source into an object with name and read_lines().

    Args:
        source: Filesystem path or source object

    Returns:
        Source object

    Raises:
        TypeError: If the value is neither a path nor a source object
    """
    if isinstance(source, (str, os.PathLike)):
        return KnownHostsFileSource(source)
    if hasattr(source, "read_lines") and hasattr(source, "name"):
        return source
    raise TypeError(f"Unsupported known_hosts source: {source!r}")


def _parse_host_patterns(host_field: str) -> List[Any]:
    # Any "|" prefix is a hashed field; only version 1 parses
    if host_field.startswith(HASH_DELIMITER):
        try:
            salt, digest = HostHashCodec.parse_hashed(host_field)
        except ValueError as e:
            raise UnparseableLineError(str(e)) from e
        return [HashedHostPattern(salt=salt, digest=digest)]

    names = host_field.split(HOST_LIST_SEPARATOR)
    if any(not name for name in names):
        raise UnparseableLineError("empty host name in host list")
    return [LiteralHostPattern(name) for name in names]


def parse_known_hosts_line(line: str, source: str = "<memory>", line_number: int = 0) -> List[KnownHostsEntry]:
    """
    Parse one non-blank, non-comment known_hosts line.

    A line naming several hosts ("host,10.0.0.1 ...") yields one entry per
    host, all sharing the key.

    Args:
        line: Line text
        source: Source name recorded on the entries
        line_number: 1-based line number recorded on the entries

    Returns:
        List of entries (at least one)

    Raises:
        UnparseableLineError: If the line has fewer than three fields, uses
            a marker, has a malformed host field, names an unknown key type
            or carries invalid base64 key data
    """
    fields = line.split()
    if fields and fields[0].startswith(MARKER_PREFIX):
        raise UnparseableLineError(f"unsupported marker {fields[0]!r}", source, line_number)
    if len(fields) < 3:
        raise UnparseableLineError(f"expected 3 fields, found {len(fields)}", source, line_number)

    host_field, key_type_name, key_data = fields[0], fields[1], fields[2]

    key_type = SSHKeyType.from_name(key_type_name)
    if key_type is None:
        raise UnparseableLineError(f"unknown key type {key_type_name!r}", source, line_number)

    try:
        patterns = _parse_host_patterns(host_field)
        key_bytes = decode_key_data(key_data)
    except UnparseableLineError as e:
        raise UnparseableLineError(e.message, source, line_number) from e

    return [
        KnownHostsEntry(
            pattern=pattern,
            key_type=key_type,
            key_bytes=key_bytes,
            source=source,
            line_number=line_number,
        )
        for pattern in patterns
    ]


def parse_known_hosts(lines: Iterable[str], source: str = "<memory>") -> List[KnownHostsEntry]:
    """
    Parse known_hosts lines, skipping blanks, comments and bad lines.

    Args:
        lines: Lines of one source
        source: Source name for entries and log messages

    Returns:
        Entries in line order
    """
    entries: List[KnownHostsEntry] = []
    skipped = 0

    for line_number, raw_line in enumerate(lines, start=1):
        line = raw_line.strip()
        if not line or line.startswith(COMMENT_PREFIX):
            continue

        try:
            entries.extend(parse_known_hosts_line(line, source, line_number))
        except UnparseableLineError as e:
            skipped += 1
            logger.warning(
                "Skipping unparseable known_hosts line %s:%d: %s",
                sanitize_path_for_log(source),
                line_number,
                sanitize_for_log(e.message, max_length=200, allow_special=True),
            )

    if skipped:
        logger.info("Skipped %d unparseable line(s) in %s", skipped, sanitize_path_for_log(source))

    return entries


def format_known_hosts_line(
    host: str,
    port: int,
    key_type: Any,
    key_bytes: bytes,
    hashed: bool = True,
    salt: Optional[bytes] = None,
) -> str:
    """
    Author one known_hosts line for a host key.

    The host field is "[host]:port", or the hashed form of that literal,
    so the line is matched by parse_known_hosts_line on any port.

    Args:
        host: Remote host name or address
        port: Remote SSH port
        key_type: Key algorithm name or SSHKeyType
        key_bytes: Public key blob
        hashed: Write a "|1|salt|digest" host field (default)
        salt: Salt for the hashed field; generated when omitted

    Returns:
        Line text without a trailing newline

    Raises:
        ValueError: If the key type is not registered or the key is empty
    """
    key_type_name = key_type.value if isinstance(key_type, SSHKeyType) else key_type
    if SSHKeyType.from_name(key_type_name) is None:
        raise ValueError(f"Unsupported key type: {key_type_name!r}")
    if not key_bytes:
        raise ValueError("Key data must not be empty")

    if hashed:
        host_field = HostHashCodec.hash_host(host, port, salt)
    else:
        host_field = f"[{host}]:{port}"

    return f"{host_field} {key_type_name} {base64.b64encode(bytes(key_bytes)).decode('ascii')}"


class KnownHostsStore:
    """
    Immutable union of known_hosts entries from one or more sources.

    Entries from every source carry equal trust; source order never gives
    one entry precedence over another.

    Attributes:
        entries: All loaded entries
        source_names: Names of the sources that were loaded

    Example:
        >>> store = KnownHostsStore.load([KnownHostsTextSource(
        ...     "[server.example.com]:2222 ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIH4+w2e8SoiX5nJC6IpE"
        ... )])
        >>> len(store.find("server.example.com", 2222))
        1
    """

    def __init__(self, entries: Iterable[KnownHostsEntry] = (), source_names: Sequence[str] = ()) -> None:
        self._entries: Tuple[KnownHostsEntry, ...] = tuple(entries)
        self._source_names: Tuple[str, ...] = tuple(source_names)

    @classmethod
    def load(cls, sources: Iterable[Any]) -> "KnownHostsStore":
        """
        Read and parse every source.

        Args:
            sources: Filesystem paths and/or source objects

        Returns:
            Loaded store

        Raises:
            KnownHostsReadError: If any source cannot be read
            TypeError: If a source is of an unsupported type
        """
        entries: List[KnownHostsEntry] = []
        names: List[str] = []

        for configured in sources:
            source = as_source(configured)
            lines = source.read_lines()
            source_entries = parse_known_hosts(lines, source.name)
            logger.debug(
                "Loaded %d known_hosts entries from %s",
                len(source_entries),
                sanitize_path_for_log(source.name),
            )
            entries.extend(source_entries)
            names.append(source.name)

        logger.info("Known hosts store ready: %d entries from %d source(s)", len(entries), len(names))
        return cls(entries, names)

    @classmethod
    def from_text(cls, content: str, name: str = "<memory>") -> "KnownHostsStore":
        """Build a store from known_hosts text held in memory."""
        return cls.load([KnownHostsTextSource(content, name)])

    @property
    def entries(self) -> Tuple[KnownHostsEntry, ...]:
        return self._entries

    @property
    def source_names(self) -> Tuple[str, ...]:
        return self._source_names

    def iter_matches(self, host: str, port: int) -> Iterator[KnownHostsEntry]:
        """Lazily yield every entry whose host pattern matches (host, port)."""
        return (entry for entry in self._entries if entry.matches_host(host, port))

    def find(self, host: str, port: int) -> Tuple[KnownHostsEntry, ...]:
        """
        Return every entry whose host pattern matches (host, port).

        The result can be iterated any number of times. Its order follows
        load order but carries no meaning.
        """
        return tuple(self.iter_matches(host, port))

    def find_key(
        self, host: str, port: int, key_type: Optional[SSHKeyType], key_bytes: bytes
    ) -> Optional[KnownHostsEntry]:
        """Return the first entry for (host, port) carrying exactly this key, or None."""
        for entry in self.iter_matches(host, port):
            if entry.matches_key(key_type, key_bytes):
                return entry
        return None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[KnownHostsEntry]:
        return iter(self._entries)

    def __repr__(self) -> str:
        return f"KnownHostsStore(entries={len(self._entries)}, sources={list(self._source_names)!r})"


__all__ = [
    "KnownHostsFileSource",
    "KnownHostsTextSource",
    "DatabaseKnownHostsSource",
    "as_source",
    "parse_known_hosts_line",
    "parse_known_hosts",
    "format_known_hosts_line",
    "KnownHostsStore",
]
