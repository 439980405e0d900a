"""Sync Adapter - Git synchronization of the vault directory.

All commands run with the vault directory as working directory. A failing
command raises SyncFailure, which propagates to the caller unchanged except
for the clone attempt in bind(), whose failure selects the init path.
"""

import subprocess
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional, Sequence

from .errors import ApassError, RemoteRequired, SyncFailure
from .session import Session
from .vault import DEFAULT_VAULT, SECRET_FILE

REMOTE_NAME = "origin"
BRANCH = "master"
REMOTE_QUESTION = "Remote git repository"
BIND_MESSAGE = "[apass] Bind secrets"
UPDATE_MESSAGE = "[apass] Update secrets"

Runner = Callable[[str, Sequence[str], Path], subprocess.CompletedProcess]


def run_command(command: str, args: Sequence[str], cwd: Path) -> subprocess.CompletedProcess:
    """Run an external command and wait for it.

    Args:
        command: Executable name
        args: Arguments passed to the executable
        cwd: Working directory

    Returns:
        The completed process with captured stdout/stderr

    Raises:
        SyncFailure: If the command is missing or exits non-zero

    """
    try:
        proc = subprocess.run(
            [command, *args],
            cwd=str(cwd),
            capture_output=True,
            text=True
        )
    except FileNotFoundError as e:
        raise SyncFailure(command, args, None, str(e)) from e

    if proc.returncode != 0:
        output = "\n".join(part for part in (proc.stdout, proc.stderr) if part)
        raise SyncFailure(command, args, proc.returncode, output)
    return proc


def redact_remote(remote: Optional[str]) -> Optional[str]:
    """Drop credentials embedded in a remote URL."""
    if remote and "://" in remote:
        scheme, rest = remote.split("://", 1)
        userinfo, sep, host = rest.partition("@")
        if sep and "/" not in userinfo:
            return f"{scheme}://{host}"
    return remote


class SyncAdapter:
    """Bind, pull and push a vault directory through git."""

    def __init__(
        self,
        vault_dir=None,
        repo: Optional[str] = None,
        session: Optional[Session] = None,
        runner: Runner = run_command,
        audit_logger=None
    ):
        self.vault_dir = Path(vault_dir) if vault_dir else DEFAULT_VAULT
        self.repo = repo
        self.session = session or Session()
        self.runner = runner
        self.audit_logger = audit_logger

    def git(self, *args: str) -> subprocess.CompletedProcess:
        """Run a git subcommand in the vault directory."""
        return self.runner("git", list(args), self.vault_dir)

    def bind(self, remote: Optional[str] = None) -> str:
        """Bind the vault directory to a remote repository.

        Clones the remote into the vault directory. If the clone fails for
        any reason, initializes a fresh repository instead, commits the
        secret file and pushes it upstream to the remote.

        Args:
            remote: Remote URL; falls back to the configured repo, then a prompt

        Returns:
            The remote that was bound

        Raises:
            RemoteRequired: If no remote is available
            SyncFailure: If the init path fails

        """
        remote = remote or self.repo or self.session.ask(REMOTE_QUESTION)
        with self._audit("BIND", redact_remote(remote)):
            if not remote:
                raise RemoteRequired()

            self.vault_dir.mkdir(parents=True, exist_ok=True)
            try:
                self.git("clone", remote, ".")
            except SyncFailure:
                self.git("init")
                self.git("add", SECRET_FILE)
                self.git("commit", "-m", BIND_MESSAGE)
                self.git("remote", "add", REMOTE_NAME, remote)
                self.git("push", "-u", REMOTE_NAME, BRANCH)
        return remote

    def pull(self) -> None:
        """Pull remote changes into the vault directory."""
        with self._audit("PULL"):
            self.git("pull")

    def push(self) -> None:
        """Commit every change in the vault directory and push it."""
        with self._audit("PUSH"):
            self.git("add", ".")
            self.git("commit", "-m", UPDATE_MESSAGE)
            self.git("push")

    @contextmanager
    def _audit(self, action: str, remote: Optional[str] = None) -> Iterator[None]:
        if self.audit_logger is None:
            yield
            return
        try:
            yield
        except ApassError as e:
            self.audit_logger.log("ERROR", action, remote, type(e).__name__)
            raise
        self.audit_logger.log("OK", action, remote)
