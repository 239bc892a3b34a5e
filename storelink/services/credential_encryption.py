"""Sealing of store credentials at rest.

Each secret blob is JSON, sealed with AES-256-GCM and bound to the row that
owns it through the AAD string (see ``credential_store``). The stored form is
a small JSON envelope::

    {"v": 1, "alg": "AES-256-GCM", "nonce": "<b64>", "ct": "<b64>"}

The key comes from the first source that is set:
``STORELINK_CREDENTIAL_KEY`` (base64), ``STORELINK_CREDENTIAL_KEY_FILE``
(raw 32 bytes), else a key file generated once in the data directory.
"""

import base64
import binascii
import json
import logging
import os
import platform
import stat

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

logger = logging.getLogger(__name__)

KEY_FILENAME = ".storelink_key"
KEY_LENGTH = 32
ENVELOPE_VERSION = 1
ENVELOPE_ALGORITHM = "AES-256-GCM"
_NONCE_LENGTH = 12
_LOOSE_PERMISSION_BITS = stat.S_IRGRP | stat.S_IWGRP | stat.S_IROTH | stat.S_IWOTH


class CredentialDecryptionError(Exception):
    """A stored envelope could not be opened with the given key and AAD."""


def _check_key_length(key: bytes, origin: str) -> bytes:
    if len(key) != KEY_LENGTH:
        raise ValueError(f"{origin} has invalid length {len(key)} (expected {KEY_LENGTH})")
    return key


def _load_key_file(path: str) -> bytes:
    with open(path, "rb") as f:
        return _check_key_length(f.read(), f"Key file {path}")


def _key_from_env(raw: str) -> bytes:
    try:
        decoded = base64.b64decode(raw, validate=True)
    except binascii.Error as e:
        raise ValueError(f"STORELINK_CREDENTIAL_KEY contains invalid base64: {e}") from e
    return _check_key_length(decoded, "STORELINK_CREDENTIAL_KEY")


def _key_from_configured_file(path: str) -> bytes:
    if os.path.islink(path):
        raise ValueError(f"STORELINK_CREDENTIAL_KEY_FILE must not be a symlink: {path}")
    if not os.path.isfile(path):
        raise ValueError(f"STORELINK_CREDENTIAL_KEY_FILE is not a regular file: {path}")
    return _load_key_file(path)


def _key_from_data_dir(directory: str) -> bytes:
    """Read the generated key file, creating it (mode 0600) on first use."""
    key_path = os.path.join(directory, KEY_FILENAME)

    if os.path.exists(key_path):
        key = _load_key_file(key_path)
        if platform.system() != "Windows":
            mode = stat.S_IMODE(os.stat(key_path).st_mode)
            if mode & _LOOSE_PERMISSION_BITS:
                logger.warning(
                    "Key file %s has permissions %o, expected 600", key_path, mode
                )
        return key

    key = os.urandom(KEY_LENGTH)
    try:
        fd = os.open(key_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    except FileExistsError:
        # Lost the creation race to another process.
        return _load_key_file(key_path)
    try:
        os.write(fd, key)
    finally:
        os.close(fd)
    logger.info("Generated credential key at %s", key_path)
    return key


def get_or_create_key(key_dir: str | None = None) -> bytes:
    """Return the 32-byte credential key.

    ``key_dir`` only affects the generated-file fallback; it defaults to the
    StoreLink data directory.

    Raises:
        ValueError: If a configured key is unusable.
    """
    env_key = os.environ.get("STORELINK_CREDENTIAL_KEY", "").strip()
    if env_key:
        return _key_from_env(env_key)

    key_file = os.environ.get("STORELINK_CREDENTIAL_KEY_FILE", "").strip()
    if key_file:
        return _key_from_configured_file(key_file)

    if key_dir is None:
        from storelink.utils.paths import ensure_data_dir
        key_dir = str(ensure_data_dir())
    else:
        os.makedirs(key_dir, exist_ok=True)
    return _key_from_data_dir(key_dir)


def _aad_bytes(aad: str) -> bytes | None:
    return aad.encode("utf-8") if aad else None


def encrypt_credentials(credentials: dict, key: bytes, aad: str = "") -> str:
    """Seal ``credentials`` into an envelope string bound to ``aad``."""
    if len(key) != KEY_LENGTH:
        raise ValueError(f"Encryption key must be exactly {KEY_LENGTH} bytes (got {len(key)})")
    nonce = os.urandom(_NONCE_LENGTH)
    sealed = AESGCM(key).encrypt(
        nonce,
        json.dumps(credentials, sort_keys=True).encode("utf-8"),
        _aad_bytes(aad),
    )
    return json.dumps({
        "v": ENVELOPE_VERSION,
        "alg": ENVELOPE_ALGORITHM,
        "nonce": base64.b64encode(nonce).decode("ascii"),
        "ct": base64.b64encode(sealed).decode("ascii"),
    })


def _parse_envelope(encrypted: str) -> tuple[bytes, bytes]:
    """Validate the envelope header and return (nonce, ciphertext)."""
    try:
        envelope = json.loads(encrypted)
    except (json.JSONDecodeError, TypeError) as e:
        raise CredentialDecryptionError(f"Invalid envelope format: {e}") from e
    if not isinstance(envelope, dict):
        raise CredentialDecryptionError("Envelope is not a JSON object")
    if envelope.get("v") != ENVELOPE_VERSION:
        raise CredentialDecryptionError(f"Unsupported envelope version {envelope.get('v')}")
    if envelope.get("alg") != ENVELOPE_ALGORITHM:
        raise CredentialDecryptionError(f"Unsupported algorithm {envelope.get('alg')!r}")

    try:
        nonce = base64.b64decode(envelope["nonce"], validate=True)
        ciphertext = base64.b64decode(envelope["ct"], validate=True)
    except (KeyError, TypeError, binascii.Error) as e:
        raise CredentialDecryptionError(f"Malformed envelope field: {e}") from e
    if len(nonce) != _NONCE_LENGTH:
        raise CredentialDecryptionError(f"Invalid nonce length {len(nonce)}")
    return nonce, ciphertext


def decrypt_credentials(encrypted: str, key: bytes, aad: str = "") -> dict:
    """Open an envelope produced by ``encrypt_credentials`` with the same AAD.

    Raises:
        CredentialDecryptionError: On a bad key, envelope, AAD or payload.
    """
    if len(key) != KEY_LENGTH:
        raise CredentialDecryptionError(
            f"Decryption key must be exactly {KEY_LENGTH} bytes (got {len(key)})"
        )
    nonce, ciphertext = _parse_envelope(encrypted)

    try:
        plaintext = AESGCM(key).decrypt(nonce, ciphertext, _aad_bytes(aad))
        result = json.loads(plaintext.decode("utf-8"))
    except Exception as e:
        raise CredentialDecryptionError(f"Decryption failed: {type(e).__name__}") from e

    if not isinstance(result, dict):
        raise CredentialDecryptionError("Decrypted payload is not a JSON object")
    return result
