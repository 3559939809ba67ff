# zk_crypto_package/__init__.py

"""
ZK Crypto Package (Using py_ecc, PyCryptodome)
This package provides the cryptographic layer of the message courier:
- Field-element encoding of hex strings, bytes and text (BN254 scalar field)
- circomlib-compatible Poseidon hashing through an explicitly initialised HashContext
- Ephemeral key pair generation (publicKey = Poseidon(privateKey))
- Password-based AES-256-CBC encryption with an HMAC integrity tag (PyCryptodome)
- Poseidon commitments over message, public key and timestamp
- Groth16 proof generation through an external prover and pairing-based verification (py_ecc)
"""
import logging

from .commitment import commit, commit_pair, message_hash, verify_commitment, verify_pair_commitment
from .errors import (
    BackendUnavailableError,
    CommitmentMismatchError,
    CryptographicError,
    DecryptionError,
    InitializationError,
    MessageNotFoundError,
    OperationTimeoutError,
    ProofFormatError,
    ProofRejectedError,
    ProtocolError,
    ValidationError,
)
from .field_codec import scalar_from_bytes, scalar_from_hex, scalar_from_text
from .groth16_verifier import load_verification_key, verify_proof
from .key_generation import KeyPair, derive_public_key, generate_keypair
from .poseidon_context import HashContext, HashContextProvider
from .proof_gateway import ProofBundle, ProofGateway
from .proving_backend import ProvingBackend, SnarkjsProvingBackend
from .symmetric_ciphers import aes_cbc_decrypt, aes_cbc_encrypt

logger = logging.getLogger(__name__)

__all__ = [
    "scalar_from_hex",
    "scalar_from_bytes",
    "scalar_from_text",
    "HashContext",
    "HashContextProvider",
    "KeyPair",
    "generate_keypair",
    "derive_public_key",
    "aes_cbc_encrypt",
    "aes_cbc_decrypt",
    "commit",
    "commit_pair",
    "message_hash",
    "verify_commitment",
    "verify_pair_commitment",
    "ProofBundle",
    "ProofGateway",
    "ProvingBackend",
    "SnarkjsProvingBackend",
    "verify_proof",
    "load_verification_key",
    "ProtocolError",
    "ValidationError",
    "ProofFormatError",
    "MessageNotFoundError",
    "CryptographicError",
    "DecryptionError",
    "CommitmentMismatchError",
    "ProofRejectedError",
    "BackendUnavailableError",
    "OperationTimeoutError",
    "InitializationError",
]

logger.debug("ZK Crypto Package loaded (Using py_ecc, PyCryptodome)")
