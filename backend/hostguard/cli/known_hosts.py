#!/usr/bin/env python3
"""
hostguard known_hosts CLI
Check a host key against known_hosts files and author hashed host names

Usage:
    python -m hostguard check server.example.com ssh-ed25519 AAAAC3... --port 2222
    python -m hostguard check server.example.com ssh-rsa AAAAB3... --known-hosts ./known_hosts
    python -m hostguard hash-host server.example.com --port 2222
    python -m hostguard hash-host server.example.com --key ssh-ed25519 AAAAC3...
    python -m hostguard hash-host server.example.com --public-key /etc/ssh/ssh_host_ed25519_key.pub

Exit Codes (check):
    0: Host key accepted
    1: Host key rejected, no known_hosts entry for the host
    2: Host key rejected, the host key has changed
    3: known_hosts could not be read, or the key data is invalid
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from hostguard.config import get_settings
from hostguard.services.ssh.config_manager import SSHConfigManager
from hostguard.services.ssh.exceptions import SSHConfigurationError, UnparseableLineError
from hostguard.services.ssh.host_hash import HostHashCodec
from hostguard.services.ssh.key_parser import decode_key_data, parse_public_key_line
from hostguard.services.ssh.known_hosts import format_known_hosts_line
from hostguard.services.ssh.models import DEFAULT_SSH_PORT, RejectionReason, TrustPolicy
from hostguard.services.ssh.verifier import HostKeyVerifier

logger = logging.getLogger(__name__)

EXIT_ACCEPTED = 0
EXIT_NOT_TRUSTED = 1
EXIT_CHANGED = 2
EXIT_CONFIG_ERROR = 3


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser"""
    parser = argparse.ArgumentParser(
        prog="hostguard",
        description="SSH host key verification against known_hosts",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    check = subparsers.add_parser("check", help="Check a presented host key against known_hosts")
    check.add_argument("host", help="Remote host name or address")
    check.add_argument("key_type", help="Key algorithm, e.g. ssh-ed25519")
    check.add_argument("key", help="Base64 public key blob")
    check.add_argument("--port", type=int, default=DEFAULT_SSH_PORT, help="Remote SSH port (default: 22)")
    check.add_argument(
        "--known-hosts",
        action="append",
        dest="known_hosts",
        metavar="PATH",
        help="known_hosts file (repeatable; default: configured files)",
    )
    check.add_argument(
        "--allow-any",
        action="store_true",
        help="Disable host key checking (testing only)",
    )

    hash_host = subparsers.add_parser("hash-host", help="Print a hashed known_hosts host field")
    hash_host.add_argument("host", help="Remote host name or address")
    hash_host.add_argument("--port", type=int, default=DEFAULT_SSH_PORT, help="Remote SSH port (default: 22)")
    key_source = hash_host.add_mutually_exclusive_group()
    key_source.add_argument(
        "--key",
        nargs=2,
        metavar=("KEY_TYPE", "KEY"),
        help="Print a complete known_hosts line for this public key",
    )
    key_source.add_argument(
        "--public-key",
        metavar="PATH",
        help="Print a complete known_hosts line for an OpenSSH public key file",
    )

    return parser


def run_check(args: argparse.Namespace) -> int:
    """Check one host key and print the outcome"""
    if args.allow_any:
        policy = TrustPolicy.allow_any()
    elif args.known_hosts:
        policy = TrustPolicy.verify(*args.known_hosts)
    else:
        policy = SSHConfigManager(get_settings()).resolve_trust_policy()

    try:
        key_bytes = decode_key_data(args.key)
        outcome = HostKeyVerifier(policy).verify(args.host, args.port, args.key_type, key_bytes)
    except (SSHConfigurationError, UnparseableLineError) as e:
        print(f"[hostguard] ERROR: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    print(f"[hostguard] {outcome.message}")

    if outcome.accepted:
        return EXIT_ACCEPTED
    if outcome.reason is RejectionReason.KEY_MISMATCH:
        return EXIT_CHANGED
    return EXIT_NOT_TRUSTED


def run_hash_host(args: argparse.Namespace) -> int:
    """Print a freshly salted hashed host field, or a whole known_hosts line"""
    if not args.key and not args.public_key:
        print(HostHashCodec.hash_host(args.host, args.port))
        return 0

    try:
        if args.public_key:
            with open(os.path.expanduser(args.public_key), "r", encoding="utf-8") as handle:
                key_type, key_bytes = parse_public_key_line(handle.read())
        else:
            key_type, key_bytes = args.key[0], decode_key_data(args.key[1])
        line = format_known_hosts_line(args.host, args.port, key_type, key_bytes)
    except (OSError, ValueError, UnparseableLineError) as e:
        print(f"[hostguard] ERROR: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    print(line)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else get_settings().log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "check":
        return run_check(args)
    return run_hash_host(args)


if __name__ == "__main__":
    sys.exit(main())
