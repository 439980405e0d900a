"""Tests for the encrypted JSON store."""

import json
import os

import pytest

from apass.errors import DecryptionError, StoreError
from apass.store import EncryptedJSONStore, derive_key, seal, unseal


@pytest.fixture
def secret_path(temp_vault_dir):
    return temp_vault_dir / "secret.json"


@pytest.fixture
def store(secret_path, fast_limits):
    return EncryptedJSONStore(secret_path, "hunter2", **fast_limits)


class TestPrimitives:
    """Tests for key derivation and sealing helpers."""

    def test_derive_key_length(self, fast_limits):
        key = derive_key("pw", b"s" * 16, **fast_limits)
        assert len(key) == 32

    def test_derive_key_depends_on_salt(self, fast_limits):
        assert derive_key("pw", b"a" * 16, **fast_limits) != derive_key("pw", b"b" * 16, **fast_limits)

    def test_seal_uses_fresh_nonce(self):
        key = b"k" * 32
        assert seal(key, "same") != seal(key, "same")
        assert unseal(key, seal(key, "same")) == "same"


class TestRead:
    """Tests for EncryptedJSONStore.read."""

    def test_missing_file_is_empty(self, store, secret_path):
        assert store.read() == {}
        assert not secret_path.exists()

    def test_wrong_password(self, store, secret_path, fast_limits):
        store.write({"foo": "bar"})
        wrong = EncryptedJSONStore(secret_path, "wrong", **fast_limits)
        with pytest.raises(DecryptionError):
            wrong.read()

    def test_not_json(self, store, secret_path):
        secret_path.write_text("not json")
        with pytest.raises(StoreError):
            store.read()

    def test_missing_field(self, store, secret_path):
        secret_path.write_text(json.dumps({"version": 1, "salt": "AAAA"}))
        with pytest.raises(StoreError, match="ciphertext"):
            store.read()

    def test_limits_come_from_file(self, secret_path, fast_limits):
        EncryptedJSONStore(secret_path, "pw", **fast_limits).write({"a": "1"})
        # Default (expensive) limits on the reader side are ignored
        assert EncryptedJSONStore(secret_path, "pw").read() == {"a": "1"}

    @pytest.mark.parametrize("field,value", [
        ("opslimit", "x"),
        ("opslimit", True),
        ("opslimit", None),
        ("memlimit", 1.5),
    ])
    def test_non_integer_limit(self, store, secret_path, field, value):
        store.write({"a": "1"})
        envelope = json.loads(secret_path.read_text())
        envelope[field] = value
        secret_path.write_text(json.dumps(envelope))

        with pytest.raises(StoreError, match=field):
            store.read()

    @pytest.mark.parametrize("field,value", [
        ("opslimit", 0),
        ("memlimit", 0),
        ("memlimit", 2 ** 62),
    ])
    def test_limit_out_of_range(self, store, secret_path, field, value):
        store.write({"a": "1"})
        envelope = json.loads(secret_path.read_text())
        envelope[field] = value
        secret_path.write_text(json.dumps(envelope))

        with pytest.raises(StoreError, match="out of range"):
            store.read()


class TestWrite:
    """Tests for EncryptedJSONStore.write."""

    def test_file_is_encrypted(self, store, secret_path):
        store.write({"foo": "This is foo"})
        raw = secret_path.read_text()
        assert "This is foo" not in raw
        envelope = json.loads(raw)
        assert envelope["kdf"] == "argon2id"
        assert envelope["version"] == 1

    def test_keys_sorted(self, store):
        store.write({"b": "2", "a": "1", "c": "3"})
        assert list(store.read()) == ["a", "b", "c"]

    def test_permissions(self, store, secret_path):
        store.write({"a": "1"})
        assert oct(secret_path.stat().st_mode)[-3:] == "600"

    def test_creates_parent(self, temp_vault_dir, fast_limits):
        path = temp_vault_dir / "nested" / "dir" / "secret.json"
        EncryptedJSONStore(path, "pw", **fast_limits).write({"a": "1"})
        assert path.exists()

    def test_no_temp_files_left(self, store, temp_vault_dir):
        store.write({"a": "1"})
        store.write({"a": "2"})
        assert os.listdir(temp_vault_dir) == ["secret.json"]

    def test_rejects_non_string_values(self, store, secret_path):
        with pytest.raises(StoreError):
            store.write({"a": 1})
        assert not secret_path.exists()

    def test_overwrite_is_complete(self, store):
        store.write({"a": "1", "b": "2"})
        store.write({"c": "3"})
        assert store.read() == {"c": "3"}
