"""Encrypted JSON Store - Password-sealed persistence for the secret mapping.

The mapping is serialized as JSON with sorted keys and sealed with a
libsodium SecretBox. The box key is derived from the master password with
Argon2id; salt and limits travel in a small JSON envelope next to the
ciphertext so the file can be reopened with only the password.
"""

import base64
import json
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional

import nacl.exceptions
import nacl.pwhash
import nacl.secret
import nacl.utils

from .errors import DecryptionError, StoreError

ENVELOPE_VERSION = 1
SALT_SIZE = nacl.pwhash.argon2id.SALTBYTES
KEY_SIZE = nacl.secret.SecretBox.KEY_SIZE
OPS_LIMIT = nacl.pwhash.argon2id.OPSLIMIT_INTERACTIVE
MEM_LIMIT = nacl.pwhash.argon2id.MEMLIMIT_INTERACTIVE


def derive_key(password, salt, opslimit=OPS_LIMIT, memlimit=MEM_LIMIT):
    """Derive the SecretBox key from password using Argon2id."""
    return nacl.pwhash.argon2id.kdf(
        KEY_SIZE,
        password.encode('utf-8'),
        salt,
        opslimit=opslimit,
        memlimit=memlimit
    )


def seal(key, plaintext):
    """Encrypt plaintext; the fresh nonce is prefixed to the result."""
    box = nacl.secret.SecretBox(key)
    return bytes(box.encrypt(plaintext.encode('utf-8')))


def unseal(key, ciphertext):
    """Decrypt nonce-prefixed ciphertext."""
    box = nacl.secret.SecretBox(key)
    return box.decrypt(ciphertext).decode('utf-8')


class EncryptedJSONStore:
    """A flat string mapping stored encrypted at ``path``."""

    def __init__(
        self,
        path: Path,
        password: str,
        opslimit: int = OPS_LIMIT,
        memlimit: int = MEM_LIMIT
    ):
        self.path = Path(path)
        self.password = password
        self.opslimit = opslimit
        self.memlimit = memlimit

    def read(self) -> Dict[str, str]:
        """Decrypt and return the stored mapping.

        Returns:
            The mapping, or an empty dict when the file does not exist

        Raises:
            DecryptionError: If the password does not open the file
            StoreError: If the file or its plaintext is malformed

        """
        if not self.path.exists():
            return {}

        try:
            envelope = json.loads(self.path.read_text(encoding='utf-8'))
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Unreadable secret file {self.path}: {e}") from e

        if not isinstance(envelope, dict):
            raise StoreError(f"Invalid secret file format: {self.path}")

        salt = _b64_field(envelope, 'salt')
        ciphertext = _b64_field(envelope, 'ciphertext')
        opslimit = _limit_field(
            envelope, 'opslimit', OPS_LIMIT,
            nacl.pwhash.argon2id.OPSLIMIT_MIN, nacl.pwhash.argon2id.OPSLIMIT_MAX
        )
        memlimit = _limit_field(
            envelope, 'memlimit', MEM_LIMIT,
            nacl.pwhash.argon2id.MEMLIMIT_MIN, nacl.pwhash.argon2id.MEMLIMIT_MAX
        )

        try:
            key = derive_key(self.password, salt, opslimit, memlimit)
        except (TypeError, ValueError) as e:
            raise StoreError(f"Invalid key derivation parameters in {self.path}") from e

        try:
            plaintext = unseal(key, ciphertext)
        except nacl.exceptions.CryptoError as e:
            raise DecryptionError(f"Unable to decrypt {self.path}") from e

        try:
            data = json.loads(plaintext)
        except json.JSONDecodeError as e:
            raise StoreError("Decrypted payload is not valid JSON") from e

        return _validate_mapping(data)

    def write(self, data: Dict[str, str]) -> None:
        """Encrypt ``data`` and replace the file with it."""
        plaintext = json.dumps(_validate_mapping(data), sort_keys=True, indent=2)

        salt = nacl.utils.random(SALT_SIZE)
        key = derive_key(self.password, salt, self.opslimit, self.memlimit)
        envelope = {
            'version': ENVELOPE_VERSION,
            'kdf': 'argon2id',
            'opslimit': self.opslimit,
            'memlimit': self.memlimit,
            'salt': base64.b64encode(salt).decode('ascii'),
            'ciphertext': base64.b64encode(seal(key, plaintext)).decode('ascii'),
        }

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(envelope, f, indent=2)
                f.write('\n')
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise


def _b64_field(envelope: dict, name: str) -> bytes:
    if name not in envelope:
        raise StoreError(f"Missing field {name!r} in secret file")
    try:
        return base64.b64decode(envelope[name], validate=True)
    except (TypeError, ValueError) as e:
        raise StoreError(f"Field {name!r} is not valid base64") from e


def _validate_mapping(data: Optional[dict]) -> Dict[str, str]:
    if not isinstance(data, dict):
        raise StoreError("Secret mapping must be a JSON object")
    for key, value in data.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise StoreError(f"Secret entry {key!r} must map a string to a string")
    return data


def _limit_field(envelope: dict, name: str, default: int, low: int, high: int) -> int:
    value = envelope.get(name, default)
    # bool is an int subclass
    if not isinstance(value, int) or isinstance(value, bool):
        raise StoreError(f"Field {name!r} must be an integer")
    if not low <= value <= high:
        raise StoreError(f"Field {name!r} is out of range")
    return value
