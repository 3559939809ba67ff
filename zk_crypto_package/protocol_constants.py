# zk_crypto_package/protocol_constants.py

# BN254 scalar field, the native field of the Groth16/circom toolchain
FIELD_PRIME = 21888242871839275222246405745257275088548364400416034343698204186575808495617
FIELD_BITS = FIELD_PRIME.bit_length()

REPLAY_WINDOW_SECONDS = 86400

SYMMETRIC_KEY_BITS = 256
SALT_BYTES = 16
IV_BYTES = 16
MAC_BYTES = 32
MIN_PBKDF2_ITERATIONS = 1000
DEFAULT_PBKDF2_ITERATIONS = 1000

PRIVATE_KEY_BYTES = 32

# Poseidon x^5 instance used by circomlib, keyed by state width t = inputs + 1
POSEIDON_FULL_ROUNDS = 8
POSEIDON_PARTIAL_ROUNDS = {2: 56, 3: 57, 4: 56, 5: 60}
POSEIDON_ALPHA = 5
