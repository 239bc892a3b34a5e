"""Tests for AES-256-GCM credential encryption with versioned envelope."""

import base64
import json
import logging
import os
import platform
import stat

import pytest

from storelink.services import credential_encryption
from storelink.services.credential_encryption import (
    KEY_FILENAME,
    CredentialDecryptionError,
    decrypt_credentials,
    encrypt_credentials,
    get_or_create_key,
)


@pytest.fixture
def temp_key_dir(tmp_path):
    """Provide a temporary directory for key file storage."""
    return str(tmp_path / "keys")


class TestKeyManagement:
    """Tests for encryption key file lifecycle."""

    def test_get_or_create_key_creates_file(self, temp_key_dir):
        """First call creates key file and returns 32-byte key."""
        key = get_or_create_key(key_dir=temp_key_dir)
        assert len(key) == 32
        assert os.path.exists(os.path.join(temp_key_dir, KEY_FILENAME))

    def test_get_or_create_key_is_idempotent(self, temp_key_dir):
        """Repeated calls return the same key."""
        assert get_or_create_key(key_dir=temp_key_dir) == get_or_create_key(key_dir=temp_key_dir)

    def test_default_dir_is_data_dir(self, tmp_path):
        """Without key_dir the key lands in STORELINK_DATA_DIR."""
        get_or_create_key()
        assert (tmp_path / "data" / KEY_FILENAME).exists()

    @pytest.mark.skipif(platform.system() == "Windows", reason="Unix permissions")
    def test_key_file_has_restricted_permissions(self, temp_key_dir):
        """Key file should be owner-read-write only (0600) on Unix."""
        get_or_create_key(key_dir=temp_key_dir)
        mode = os.stat(os.path.join(temp_key_dir, KEY_FILENAME)).st_mode
        assert stat.S_IMODE(mode) == 0o600

    @pytest.mark.skipif(platform.system() == "Windows", reason="Unix permissions")
    def test_permissive_key_file_warns(self, temp_key_dir, caplog):
        """Key file with overly permissive permissions logs a warning."""
        os.makedirs(temp_key_dir)
        key_path = os.path.join(temp_key_dir, KEY_FILENAME)
        with open(key_path, "wb") as f:
            f.write(os.urandom(32))
        os.chmod(key_path, 0o644)
        with caplog.at_level(logging.WARNING):
            get_or_create_key(key_dir=temp_key_dir)
        assert any("permissions" in msg and "600" in msg for msg in caplog.messages)

    def test_lost_creation_race_reads_winner_key(self, temp_key_dir, monkeypatch):
        """A key file created concurrently is read back instead of overwritten."""
        os.makedirs(temp_key_dir)
        winner = os.urandom(32)
        key_path = os.path.join(temp_key_dir, KEY_FILENAME)

        def racing_open(path, flags, mode=0o777):
            with open(path, "wb") as f:
                f.write(winner)
            raise FileExistsError(path)

        monkeypatch.setattr(credential_encryption.os, "open", racing_open)
        assert get_or_create_key(key_dir=temp_key_dir) == winner
        with open(key_path, "rb") as f:
            assert f.read() == winner

    def test_invalid_key_length_raises(self, temp_key_dir):
        """Key file with wrong length raises ValueError."""
        os.makedirs(temp_key_dir)
        with open(os.path.join(temp_key_dir, KEY_FILENAME), "wb") as f:
            f.write(b"too_short")
        with pytest.raises(ValueError, match="invalid length"):
            get_or_create_key(key_dir=temp_key_dir)

    def test_env_key_takes_precedence(self, temp_key_dir, monkeypatch):
        """STORELINK_CREDENTIAL_KEY env var overrides file-based key."""
        raw_key = os.urandom(32)
        monkeypatch.setenv("STORELINK_CREDENTIAL_KEY", base64.b64encode(raw_key).decode())

        assert get_or_create_key(key_dir=temp_key_dir) == raw_key
        assert not os.path.exists(os.path.join(temp_key_dir, KEY_FILENAME))

    def test_env_key_file(self, tmp_path, monkeypatch):
        """STORELINK_CREDENTIAL_KEY_FILE points at a raw key file."""
        custom_key = os.urandom(32)
        custom_path = tmp_path / "custom_key"
        custom_path.write_bytes(custom_key)
        monkeypatch.setenv("STORELINK_CREDENTIAL_KEY_FILE", str(custom_path))

        assert get_or_create_key() == custom_key

    def test_env_key_wins_over_env_file(self, tmp_path, monkeypatch):
        env_key = os.urandom(32)
        custom_path = tmp_path / "file_key"
        custom_path.write_bytes(os.urandom(32))
        monkeypatch.setenv("STORELINK_CREDENTIAL_KEY", base64.b64encode(env_key).decode())
        monkeypatch.setenv("STORELINK_CREDENTIAL_KEY_FILE", str(custom_path))

        assert get_or_create_key() == env_key

    def test_invalid_env_key_length_raises(self, monkeypatch):
        monkeypatch.setenv("STORELINK_CREDENTIAL_KEY", base64.b64encode(b"short").decode())
        with pytest.raises(ValueError, match="invalid length"):
            get_or_create_key()

    def test_invalid_base64_env_key_raises(self, monkeypatch):
        monkeypatch.setenv("STORELINK_CREDENTIAL_KEY", "not-valid-base64!!!")
        with pytest.raises(ValueError, match="invalid base64"):
            get_or_create_key()

    def test_key_file_missing_raises(self, monkeypatch):
        monkeypatch.setenv("STORELINK_CREDENTIAL_KEY_FILE", "/nonexistent/path/key")
        with pytest.raises(ValueError, match="not a regular file"):
            get_or_create_key()

    @pytest.mark.skipif(platform.system() == "Windows", reason="Unix symlinks")
    def test_key_file_symlink_raises(self, tmp_path, monkeypatch):
        """Symlinked key files are refused."""
        real_path = tmp_path / "real_key"
        real_path.write_bytes(os.urandom(32))
        link_path = tmp_path / "link_key"
        os.symlink(real_path, link_path)
        monkeypatch.setenv("STORELINK_CREDENTIAL_KEY_FILE", str(link_path))
        with pytest.raises(ValueError, match="symlink"):
            get_or_create_key()


class TestEncryptDecrypt:
    """Tests for AES-256-GCM encrypt/decrypt with versioned envelope."""

    def test_round_trip(self, key):
        plaintext = {"access_token": "shpat_abc"}
        aad = "direct_config:acme.myshopify.com:1"
        ciphertext = encrypt_credentials(plaintext, key, aad=aad)
        assert decrypt_credentials(ciphertext, key, aad=aad) == plaintext

    def test_envelope_format(self, key):
        """Ciphertext is a JSON envelope that never contains the plaintext."""
        ciphertext = encrypt_credentials({"access_token": "shpat_abc"}, key, aad="x")
        envelope = json.loads(ciphertext)
        assert envelope["v"] == 1
        assert envelope["alg"] == "AES-256-GCM"
        assert set(envelope) == {"v", "alg", "nonce", "ct"}
        assert "shpat_abc" not in ciphertext

    def test_different_nonce_each_call(self, key):
        plaintext = {"token": "abc123"}
        assert encrypt_credentials(plaintext, key) != encrypt_credentials(plaintext, key)

    def test_wrong_key_fails(self, key):
        ciphertext = encrypt_credentials({"secret": "data"}, key, aad="test")
        with pytest.raises(CredentialDecryptionError):
            decrypt_credentials(ciphertext, os.urandom(32), aad="test")

    def test_wrong_aad_fails(self, key):
        """A ciphertext copied to another row does not decrypt."""
        ciphertext = encrypt_credentials({"k": "v"}, key, aad="direct_config:a.myshopify.com:1")
        with pytest.raises(CredentialDecryptionError):
            decrypt_credentials(ciphertext, key, aad="direct_config:b.myshopify.com:1")

    def test_tampered_ciphertext_fails(self, key):
        envelope = json.loads(encrypt_credentials({"key": "val"}, key, aad="test"))
        raw_ct = base64.b64decode(envelope["ct"])
        envelope["ct"] = base64.b64encode(raw_ct[:-1] + bytes([raw_ct[-1] ^ 0xFF])).decode()
        with pytest.raises(CredentialDecryptionError):
            decrypt_credentials(json.dumps(envelope), key, aad="test")

    @pytest.mark.parametrize("envelope, match", [
        ("not_valid_json{{{", "Invalid envelope format"),
        ("[1, 2]", "not a JSON object"),
        (json.dumps({"v": 99, "alg": "AES-256-GCM", "nonce": "AA==", "ct": "BB=="}),
         "Unsupported envelope version"),
        (json.dumps({"v": 1, "alg": "ROT13", "nonce": "AA==", "ct": "BB=="}),
         "Unsupported algorithm"),
        (json.dumps({"v": 1, "alg": "AES-256-GCM", "ct": "BB=="}), "Malformed envelope"),
        (json.dumps({"v": 1, "alg": "AES-256-GCM", "nonce": "AA==", "ct": "BB=="}),
         "Invalid nonce length"),
    ])
    def test_bad_envelopes_raise(self, key, envelope, match):
        with pytest.raises(CredentialDecryptionError, match=match):
            decrypt_credentials(envelope, key)

    def test_short_key_rejected(self):
        with pytest.raises(ValueError, match="exactly 32 bytes"):
            encrypt_credentials({"k": "v"}, b"short")
        with pytest.raises(CredentialDecryptionError, match="exactly 32 bytes"):
            decrypt_credentials("{}", b"short")
