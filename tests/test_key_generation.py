import pytest

from zk_crypto_package import derive_public_key, generate_keypair
from zk_crypto_package.errors import ValidationError
from zk_crypto_package.field_codec import scalar_from_hex
from zk_crypto_package.protocol_constants import FIELD_PRIME


def test_keypair_shape(hash_context):
    keypair = generate_keypair(hash_context)
    assert len(keypair.private_key) == 64
    int(keypair.private_key, 16)
    assert keypair.public_key.startswith("0x")
    assert keypair.public_key == keypair.public_key.lower()
    assert 0 <= scalar_from_hex(keypair.public_key) < FIELD_PRIME


def test_public_key_is_poseidon_of_reduced_secret(hash_context):
    keypair = generate_keypair(hash_context)
    secret = int(keypair.private_key, 16) % FIELD_PRIME
    assert scalar_from_hex(keypair.public_key) == hash_context.hash([secret])


def test_derivation_is_deterministic(hash_context):
    private_key = "ab" * 32
    assert derive_public_key(hash_context, private_key) == derive_public_key(hash_context, private_key)
    assert derive_public_key(hash_context, private_key) == derive_public_key(hash_context, "0x" + private_key)


def test_fresh_keypairs_differ(hash_context):
    assert generate_keypair(hash_context).private_key != generate_keypair(hash_context).private_key


def test_empty_private_key_is_rejected(hash_context):
    with pytest.raises(ValidationError):
        derive_public_key(hash_context, "")


def test_public_key_matches_circomlib_poseidon(hash_context):
    # poseidon([1]) from circomlibjs; p + 1 reduces to the same secret
    expected = 18586133768512220936620570745912940619677854269274689475585506675881198879027
    assert scalar_from_hex(derive_public_key(hash_context, "00" * 31 + "01")) == expected
    assert scalar_from_hex(derive_public_key(hash_context, format(FIELD_PRIME + 1, "064x"))) == expected
