"""Pytest fixtures and utilities for apass tests."""

import subprocess
import tempfile
from pathlib import Path

import pytest
import nacl.pwhash

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from apass.errors import SyncFailure
from apass.vault import SecretVault


@pytest.fixture
def temp_vault_dir():
    """Create a temporary directory for vault files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fast_limits():
    """Cheap Argon2id limits so key derivation stays fast in tests."""
    return {
        "opslimit": nacl.pwhash.argon2id.OPSLIMIT_MIN,
        "memlimit": nacl.pwhash.argon2id.MEMLIMIT_MIN,
    }


@pytest.fixture
def password():
    return "1234qwer"


@pytest.fixture
def make_vault(temp_vault_dir, fast_limits, password):
    """Factory for vault handles on the same vault directory."""
    default_password = password

    def _make(password=default_password, **kwargs):
        options = dict(fast_limits)
        options.update(kwargs)
        return SecretVault(temp_vault_dir / "vault", password=password, **options)

    return _make


@pytest.fixture
def vault(make_vault):
    """A vault handle with a known password and no secret file yet."""
    return make_vault()


@pytest.fixture
def audit_logger(temp_vault_dir):
    """Create an audit logger with temp log path."""
    from apass.audit import AuditLogger
    return AuditLogger(temp_vault_dir / "logs" / "access.log")


class FakeRunner:
    """Records commands instead of running them.

    ``failures`` maps a git subcommand to the exit status it fails with.
    """

    def __init__(self, failures=None):
        self.calls = []
        self.failures = failures or {}

    def __call__(self, command, args, cwd):
        self.calls.append((command, list(args), Path(cwd)))
        subcommand = args[0] if args else ""
        if subcommand in self.failures:
            raise SyncFailure(command, args, self.failures[subcommand], "fatal: simulated")
        return subprocess.CompletedProcess([command, *args], 0, "", "")

    @property
    def git_args(self):
        return [args for command, args, cwd in self.calls if command == "git"]


@pytest.fixture
def make_runner():
    """Factory for fake git runners."""
    return FakeRunner


@pytest.fixture
def log_has():
    """Check the audit log for a RESULT ACTION [key] entry."""
    def _log_has(audit_logger, result, action, key=None):
        for line in audit_logger.read_recent(100):
            parts = line.strip().split()
            if len(parts) >= 5 and parts[2] == result and parts[3] == action:
                if key is None or parts[4] == key:
                    return True
        return False
    return _log_has
