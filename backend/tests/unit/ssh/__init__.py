"""
SSH Host Key Verification Unit Tests

Test Modules:
    test_host_hash.py:
        - HMAC-SHA1 hashed host names and "|1|salt|digest" fields

    test_models.py:
        - Key type registry, host patterns, trust policies, outcomes

    test_known_hosts.py:
        - known_hosts line parsing, skipped lines and comments
        - File, in-memory and database sources
        - Store lookup across multiple sources

    test_verifier.py:
        - ALLOW_ANY bypass, unknown hosts, changed keys, accepted keys
        - Multi-source union independent of source order

    test_policies.py:
        - paramiko MissingHostKeyPolicy adapter
        - Host key algorithm restriction to trusted key types

    test_key_parser.py:
        - Base64 key data, OpenSSH public key lines, fingerprints

    test_config_manager.py:
        - Settings, per-remote overrides and trust policy resolution

    test_connection_manager.py:
        - Connection error categorization with simulated handshakes

    test_handshake.py:
        - Real handshakes against an in-process paramiko server on the
          loopback interface: key type matrix, changed and unknown keys

    test_cli.py:
        - check and hash-host commands and exit codes
        - hash-host from OpenSSH public key files

Test Architecture:
    Key blobs are synthetic and SSH clients are mocked, except in
    test_handshake.py, which only connects to 127.0.0.1. No test reads the
    user's own known_hosts.

Usage:
    # Run all SSH unit tests
    pytest backend/tests/unit/ssh/ -v

    # Run with coverage
    pytest backend/tests/unit/ssh/ --cov=hostguard
"""
