"""Secret Vault - Encrypted key/value operations on a vault directory.

Every operation resolves the master password through the session, decrypts
the whole secret file, checks the master password marker, and (for
mutations) rewrites the whole file with keys in sorted order.
"""

import re
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from .errors import ApassError, AuthenticationFailed, DecryptionError, KeyNotFound, PasswordRequired
from .session import Prompt, Session
from .store import MEM_LIMIT, OPS_LIMIT, EncryptedJSONStore

DEFAULT_VAULT = Path.home() / ".apass" / "vault"
SECRET_FILE = "secret.json"
MASTER_PASSWORD_KEY = "__master_password__"


@dataclass
class Cipher:
    """A store opened with a verified password, plus its decrypted mapping."""

    store: EncryptedJSONStore
    data: Dict[str, str]

    def write(self, data: Dict[str, str]) -> None:
        """Persist ``data`` with keys in ascending order."""
        self.data = sort_properties(data)
        self.store.write(self.data)


def sort_properties(data: Dict[str, str]) -> Dict[str, str]:
    """Return a copy of ``data`` with keys in ascending lexical order."""
    return {key: data[key] for key in sorted(data)}


def match_keyword(keyword: str, name: str) -> bool:
    """True if keyword is a substring of name or a regex matching it."""
    if keyword in name:
        return True
    try:
        return re.search(keyword, name) is not None
    except re.error:
        return False


class SecretVault:
    """Encrypted secrets stored in ``<vault_dir>/secret.json``."""

    def __init__(
        self,
        vault_dir=None,
        password: Optional[str] = None,
        repo: Optional[str] = None,
        prompt: Optional[Prompt] = None,
        session: Optional[Session] = None,
        audit_logger=None,
        opslimit: int = OPS_LIMIT,
        memlimit: int = MEM_LIMIT
    ):
        self.vault_dir = Path(vault_dir) if vault_dir else DEFAULT_VAULT
        self.secret_file = self.vault_dir / SECRET_FILE
        self.session = session or Session(password=password, prompt=prompt)
        self.repo = repo
        self.audit_logger = audit_logger
        self.opslimit = opslimit
        self.memlimit = memlimit

    def cipher(self) -> Cipher:
        """Open the secret file with the session password.

        Returns:
            Cipher whose mapping carries the master password marker

        Raises:
            PasswordRequired: If no password can be resolved
            AuthenticationFailed: If the password does not match the vault

        """
        password = self.session.resolve_password()
        store = EncryptedJSONStore(
            self.secret_file, password, opslimit=self.opslimit, memlimit=self.memlimit
        )

        try:
            data = store.read()
        except DecryptionError as e:
            raise AuthenticationFailed() from e

        # An empty marker counts as absent and is re-seeded
        if data.get(MASTER_PASSWORD_KEY):
            if data[MASTER_PASSWORD_KEY] != password:
                raise AuthenticationFailed()
        else:
            # Persisted by the caller's next write
            data[MASTER_PASSWORD_KEY] = password

        return Cipher(store=store, data=data)

    def _read(self) -> Dict[str, str]:
        """Decrypted mapping as stored on disk; empty for a fresh vault."""
        data = self.cipher().data
        return data if self.secret_file.exists() else {}

    def get(self, key: str) -> Optional[str]:
        """Get a secret value, or None if the key is absent."""
        with self._audit("GET", key):
            return self._read().get(key)

    def all(self) -> Dict[str, str]:
        """Get every stored key/value pair."""
        with self._audit("ALL"):
            return self._read()

    def grep(self, keyword: str) -> Dict[str, str]:
        """Get the pairs whose key contains or matches ``keyword``."""
        with self._audit("GREP", keyword):
            data = self._read()
            return {name: value for name, value in data.items() if match_keyword(keyword, name)}

    def keys(self) -> List[str]:
        """Get all stored keys."""
        with self._audit("KEYS"):
            return list(self._read())

    def set(self, key: str, val: str) -> None:
        """Insert or overwrite a secret value."""
        with self._audit("SET", key):
            cipher = self.cipher()
            data = dict(cipher.data)
            data[key] = val
            cipher.write(data)

    def delete(self, key: str) -> None:
        """Delete a secret value.

        Raises:
            KeyNotFound: If the key is not stored (nothing is written)

        """
        with self._audit("DELETE", key):
            cipher = self.cipher()
            if not self.secret_file.exists() or key not in cipher.data:
                raise KeyNotFound(key)
            data = dict(cipher.data)
            del data[key]
            cipher.write(data)

    def passwd(self, password: str) -> None:
        """Re-encrypt the vault under a new master password."""
        with self._audit("PASSWD"):
            if not password:
                raise PasswordRequired("New password is required")
            cipher = self.cipher()
            data = dict(cipher.data)
            self.session.password = password
            data[MASTER_PASSWORD_KEY] = password
            cipher.store.password = password
            cipher.write(data)

    @contextmanager
    def _audit(self, action: str, key: Optional[str] = None) -> Iterator[None]:
        if self.audit_logger is None:
            yield
            return
        try:
            yield
        except AuthenticationFailed as e:
            self.audit_logger.log("DENIED", action, key, str(e))
            raise
        except ApassError as e:
            self.audit_logger.log("ERROR", action, key, type(e).__name__)
            raise
        self.audit_logger.log("OK", action, key)
