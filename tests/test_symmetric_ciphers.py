import base64

import pytest

from zk_crypto_package import aes_cbc_decrypt, aes_cbc_encrypt, generate_keypair
from zk_crypto_package.errors import DecryptionError, ValidationError

SECRET = "ab" * 32


def test_hello_round_trip():
    package = aes_cbc_encrypt("hello", SECRET)
    assert len(bytes.fromhex(package["salt"])) == 16
    assert len(bytes.fromhex(package["iv"])) == 16
    assert len(base64.b64decode(package["ciphertext"])) % 16 == 0
    assert aes_cbc_decrypt(package, SECRET) == "hello"


def test_unicode_and_empty_messages():
    for message in ["", "naïve ☃ message", "x" * 1000]:
        assert aes_cbc_decrypt(aes_cbc_encrypt(message, SECRET), SECRET) == message


def test_salt_and_iv_are_fresh():
    first = aes_cbc_encrypt("hello", SECRET)
    second = aes_cbc_encrypt("hello", SECRET)
    assert first["salt"] != second["salt"]
    assert first["iv"] != second["iv"]
    assert first["ciphertext"] != second["ciphertext"]


def test_wrong_secret_raises():
    package = aes_cbc_encrypt("hello", SECRET)
    with pytest.raises(DecryptionError):
        aes_cbc_decrypt(package, "cd" * 32)


def test_tampered_ciphertext_raises():
    package = aes_cbc_encrypt("hello world, this is a test", SECRET)
    raw = bytearray(base64.b64decode(package["ciphertext"]))
    raw[0] ^= 0x01
    package["ciphertext"] = base64.b64encode(bytes(raw)).decode("utf-8")
    with pytest.raises(DecryptionError):
        aes_cbc_decrypt(package, SECRET)


def test_tampered_iv_raises():
    package = aes_cbc_encrypt("hello", SECRET)
    iv = bytearray(bytes.fromhex(package["iv"]))
    iv[-1] ^= 0xFF
    package["iv"] = iv.hex()
    with pytest.raises(DecryptionError):
        aes_cbc_decrypt(package, SECRET)


def test_missing_fields_raise():
    package = aes_cbc_encrypt("hello", SECRET)
    del package["mac"]
    with pytest.raises(DecryptionError):
        aes_cbc_decrypt(package, SECRET)


def test_malformed_package_raises():
    with pytest.raises(DecryptionError):
        aes_cbc_decrypt("not a dict", SECRET)
    with pytest.raises(DecryptionError):
        aes_cbc_decrypt({"salt": "zz", "iv": "00", "ciphertext": "!!", "mac": "00"}, SECRET)


def test_custom_iteration_count_must_match():
    package = aes_cbc_encrypt("hello", SECRET, iterations=2000)
    assert aes_cbc_decrypt(package, SECRET, iterations=2000) == "hello"
    with pytest.raises(DecryptionError):
        aes_cbc_decrypt(package, SECRET, iterations=1000)


def test_invalid_inputs_are_rejected():
    with pytest.raises(ValidationError):
        aes_cbc_encrypt("hello", "")
    with pytest.raises(ValidationError):
        aes_cbc_encrypt("hello", SECRET, iterations=999)
    with pytest.raises(ValidationError):
        aes_cbc_encrypt(b"bytes", SECRET)


def test_hello_with_generated_keypair(hash_context):
    keypair = generate_keypair(hash_context)
    package = aes_cbc_encrypt("hello", keypair.private_key)
    assert all(package[field] for field in ("salt", "iv", "ciphertext"))
    assert aes_cbc_decrypt(package, keypair.private_key) == "hello"
