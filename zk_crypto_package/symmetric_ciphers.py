# zk_crypto_package/symmetric_ciphers.py
"""
Password-based AES-256-CBC for message payloads.

This is a shared-secret scheme: the secret given to ``aes_cbc_encrypt`` must be
given again to ``aes_cbc_decrypt``. PBKDF2-HMAC-SHA256 stretches the secret
into 64 bytes; the first 32 are the AES key, the last 32 key an HMAC-SHA256
tag over salt || iv || ciphertext. The tag is checked before any unpadding,
so a wrong secret or a tampered payload raises DecryptionError instead of
returning garbage.
"""
import base64
import binascii
import logging
from typing import Any, Dict

from Crypto.Cipher import AES
from Crypto.Hash import HMAC, SHA256
from Crypto.Protocol.KDF import PBKDF2
from Crypto.Random import get_random_bytes
from Crypto.Util.Padding import pad, unpad

from .errors import DecryptionError, ValidationError
from .protocol_constants import (
    DEFAULT_PBKDF2_ITERATIONS,
    IV_BYTES,
    MAC_BYTES,
    MIN_PBKDF2_ITERATIONS,
    SALT_BYTES,
    SYMMETRIC_KEY_BITS,
)

logger = logging.getLogger(__name__)

_KEY_BYTES = SYMMETRIC_KEY_BITS // 8
REQUIRED_KEYS = ("salt", "iv", "ciphertext", "mac")


def _derive_keys(secret: str, salt: bytes, iterations: int):
    material = PBKDF2(
        secret.encode("utf-8"),
        salt,
        dkLen=_KEY_BYTES + MAC_BYTES,
        count=iterations,
        hmac_hash_module=SHA256,
    )
    return material[:_KEY_BYTES], material[_KEY_BYTES:]


def _tag(mac_key: bytes, salt: bytes, iv: bytes, ciphertext: bytes) -> HMAC.HMAC:
    h = HMAC.new(mac_key, digestmod=SHA256)
    h.update(salt + iv + ciphertext)
    return h


def _check_inputs(secret: str, iterations: int):
    if not isinstance(secret, str) or not secret:
        raise ValidationError("Encryption secret must be a non-empty string.")
    if iterations < MIN_PBKDF2_ITERATIONS:
        raise ValidationError(f"PBKDF2 iteration count must be at least {MIN_PBKDF2_ITERATIONS}.")


def aes_cbc_encrypt(message: str, secret: str, iterations: int = DEFAULT_PBKDF2_ITERATIONS) -> Dict[str, str]:
    """
    Encrypts ``message`` under ``secret``.
    Returns {"salt", "iv", "mac"} as hex and {"ciphertext"} as base64.
    """
    if not isinstance(message, str):
        raise ValidationError("Message must be a string.")
    _check_inputs(secret, iterations)

    salt = get_random_bytes(SALT_BYTES)
    iv = get_random_bytes(IV_BYTES)
    enc_key, mac_key = _derive_keys(secret, salt, iterations)

    cipher = AES.new(enc_key, AES.MODE_CBC, iv=iv)
    ciphertext = cipher.encrypt(pad(message.encode("utf-8"), AES.block_size))
    mac = _tag(mac_key, salt, iv, ciphertext).digest()

    return {
        "salt": salt.hex(),
        "iv": iv.hex(),
        "ciphertext": base64.b64encode(ciphertext).decode("utf-8"),
        "mac": mac.hex(),
    }


def aes_cbc_decrypt(encrypted_package: Dict[str, Any], secret: str, iterations: int = DEFAULT_PBKDF2_ITERATIONS) -> str:
    """Reverses aes_cbc_encrypt. Raises DecryptionError on any structural or integrity failure."""
    if not isinstance(encrypted_package, dict):
        raise DecryptionError("Encrypted package is not a dictionary.")
    missing = [key for key in REQUIRED_KEYS if not encrypted_package.get(key)]
    if missing:
        raise DecryptionError("Encrypted package is missing required fields.", {"missing": missing})
    _check_inputs(secret, iterations)

    try:
        salt = bytes.fromhex(encrypted_package["salt"])
        iv = bytes.fromhex(encrypted_package["iv"])
        mac = bytes.fromhex(encrypted_package["mac"])
        ciphertext = base64.b64decode(encrypted_package["ciphertext"], validate=True)
    except (TypeError, ValueError, binascii.Error) as e:
        raise DecryptionError("Encrypted package fields are not valid hex/base64.") from e

    if len(salt) != SALT_BYTES or len(iv) != IV_BYTES or len(mac) != MAC_BYTES:
        raise DecryptionError("Encrypted package has a wrong salt, IV or MAC length.")
    if not ciphertext or len(ciphertext) % AES.block_size:
        raise DecryptionError("Ciphertext length is not a positive multiple of the AES block size.")

    enc_key, mac_key = _derive_keys(secret, salt, iterations)
    try:
        _tag(mac_key, salt, iv, ciphertext).verify(mac)
    except ValueError as e:
        logger.warning("AES-CBC decryption rejected: integrity tag mismatch (wrong secret or tampered payload).")
        raise DecryptionError("Decryption failed: wrong secret or tampered payload.") from e

    cipher = AES.new(enc_key, AES.MODE_CBC, iv=iv)
    try:
        plaintext = unpad(cipher.decrypt(ciphertext), AES.block_size)
        return plaintext.decode("utf-8")
    except (ValueError, UnicodeDecodeError) as e:
        raise DecryptionError("Decryption failed: invalid padding or encoding.") from e
