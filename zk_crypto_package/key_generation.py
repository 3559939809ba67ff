# zk_crypto_package/key_generation.py
import logging
from typing import NamedTuple

from Crypto.Random import get_random_bytes

from .errors import ValidationError
from .field_codec import reduce_scalar, scalar_from_hex, strip_hex_prefix, to_hex
from .poseidon_context import HashContext
from .protocol_constants import PRIVATE_KEY_BYTES

logger = logging.getLogger(__name__)


class KeyPair(NamedTuple):
    public_key: str   # 0x-prefixed hex field element
    private_key: str  # 64 hex chars, no prefix


def derive_public_key(hash_context: HashContext, private_key: str) -> str:
    """
    Public key = Poseidon([privateKey mod p]) as 0x-prefixed hex.
    Deterministic: the same private key always yields the same public key.
    """
    if not strip_hex_prefix(private_key or ""):
        raise ValidationError("Private key must be a non-empty hex string.")
    secret_scalar = reduce_scalar(scalar_from_hex(private_key))
    return to_hex(hash_context.hash([secret_scalar]))


def generate_keypair(hash_context: HashContext) -> KeyPair:
    """
    Generates a fresh ephemeral key pair.
    A failing entropy source propagates; it is never retried.
    """
    private_key = get_random_bytes(PRIVATE_KEY_BYTES).hex()
    public_key = derive_public_key(hash_context, private_key)
    logger.debug("Generated ephemeral key pair.")
    return KeyPair(public_key=public_key, private_key=private_key)
