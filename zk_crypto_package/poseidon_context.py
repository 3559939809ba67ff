# zk_crypto_package/poseidon_context.py
"""
Poseidon hashing over the BN254 scalar field, matching circomlib.

The round constants and the Cauchy MDS matrix of every width are drawn from
the self-shrinking Grain LFSR of the Poseidon reference parameter script,
seeded with (prime field, x^alpha S-box, 254-bit field, t, R_F, R_P). That is
how circomlib's published constants were produced, so ``hash([1, 2])`` here
equals ``poseidon([1, 2])`` from circomlibjs and the circom ``Poseidon(2)``
template. The state is laid out as ``[0, *inputs]`` and the digest is
``state[0]`` after the permutation.

``HashContext`` holds the derived parameters and is passed explicitly to every
operation that hashes; ``HashContextProvider`` makes the one-time build safe to
race.
"""
import asyncio
import logging
from collections import deque
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import InitializationError, ValidationError
from .field_codec import is_field_element
from .protocol_constants import (
    FIELD_BITS,
    FIELD_PRIME,
    POSEIDON_ALPHA,
    POSEIDON_FULL_ROUNDS,
    POSEIDON_PARTIAL_ROUNDS,
)

logger = logging.getLogger(__name__)

# H([privateKey]), H([message]) and H([message, publicKey, timestamp])
# plus the two-input pair commitment
DEFAULT_ARITIES: Tuple[int, ...] = (1, 2, 3)


class _GrainLFSR:
    """80-bit Grain LFSR in self-shrinking mode."""

    def __init__(self, width: int, full_rounds: int, partial_rounds: int):
        # field = 1 (prime), sbox = 0 (x^alpha), then n, t, R_F, R_P and 30 ones
        seed = f"{1:02b}{0:04b}{FIELD_BITS:012b}{width:012b}{full_rounds:010b}{partial_rounds:010b}"
        self._state = deque([int(bit) for bit in seed] + [1] * 30, maxlen=80)
        for _ in range(160):
            self._clock()

    def _clock(self) -> int:
        s = self._state
        bit = s[62] ^ s[51] ^ s[38] ^ s[23] ^ s[13] ^ s[0]
        s.append(bit)
        return bit

    def _next_bit(self) -> int:
        while True:
            control = self._clock()
            output = self._clock()
            if control == 1:
                return output

    def next_int(self, bits: int) -> int:
        value = 0
        for _ in range(bits):
            value = (value << 1) | self._next_bit()
        return value


def derive_parameters(width: int) -> Tuple[List[int], List[List[int]]]:
    """Round constants (flat, t per round) and MDS matrix for state width ``width``."""
    partial_rounds = POSEIDON_PARTIAL_ROUNDS[width]
    grain = _GrainLFSR(width, POSEIDON_FULL_ROUNDS, partial_rounds)

    constants: List[int] = []
    while len(constants) < width * (POSEIDON_FULL_ROUNDS + partial_rounds):
        candidate = grain.next_int(FIELD_BITS)
        if candidate < FIELD_PRIME:
            constants.append(candidate)

    # The MDS points continue the same stream and are reduced, not rejected.
    while True:
        points = [grain.next_int(FIELD_BITS) % FIELD_PRIME for _ in range(2 * width)]
        if len(set(points)) != len(points):
            continue
        xs, ys = points[:width], points[width:]
        if any((x + y) % FIELD_PRIME == 0 for x in xs for y in ys):
            continue
        mds = [[pow(x + y, -1, FIELD_PRIME) for y in ys] for x in xs]
        return constants, mds


class _Hasher:
    """One Poseidon width. Immutable once built, so safe to share across threads."""

    def __init__(self, arity: int):
        self.arity = arity
        self.width = arity + 1
        self.partial_rounds = POSEIDON_PARTIAL_ROUNDS[self.width]
        self.constants, self.mds = derive_parameters(self.width)

    def permute(self, state: Sequence[int]) -> List[int]:
        p = FIELD_PRIME
        half = POSEIDON_FULL_ROUNDS // 2
        state = list(state)
        for r in range(POSEIDON_FULL_ROUNDS + self.partial_rounds):
            offset = r * self.width
            state = [(value + self.constants[offset + i]) % p for i, value in enumerate(state)]
            if half <= r < half + self.partial_rounds:
                state[0] = pow(state[0], POSEIDON_ALPHA, p)
            else:
                state = [pow(value, POSEIDON_ALPHA, p) for value in state]
            state = [sum(m * value for m, value in zip(row, state)) % p for row in self.mds]
        return state

    def digest(self, inputs: Sequence[int]) -> int:
        return self.permute([0] + list(inputs))[0]


class HashContext:
    def __init__(self, hashers: Dict[int, _Hasher]):
        self._hashers = dict(hashers)

    @classmethod
    def build(cls, arities: Iterable[int] = DEFAULT_ARITIES) -> "HashContext":
        """Synchronously derives every requested width. Raises InitializationError."""
        hashers = {}
        for arity in arities:
            if arity + 1 not in POSEIDON_PARTIAL_ROUNDS:
                raise InitializationError(f"No Poseidon parameters for {arity} inputs.")
            try:
                logger.info(f"Deriving Poseidon parameters for {arity} input(s)...")
                hashers[arity] = _Hasher(arity)
            except Exception as e:
                logger.critical(f"Poseidon initialisation failed for {arity} input(s): {e}")
                raise InitializationError("Failed to initialise the Poseidon hash.", {"arity": arity}) from e
        logger.info(f"Poseidon hash context ready (arities: {sorted(hashers)}).")
        return cls(hashers)

    @classmethod
    async def create(cls, arities: Iterable[int] = DEFAULT_ARITIES) -> "HashContext":
        return await asyncio.to_thread(cls.build, tuple(arities))

    @property
    def arities(self) -> Tuple[int, ...]:
        return tuple(sorted(self._hashers))

    def hash(self, inputs: Sequence[int]) -> int:
        """Poseidon digest of ``inputs``, always a canonical field element."""
        hasher = self._hashers.get(len(inputs))
        if hasher is None:
            raise ValidationError(f"Poseidon is not configured for {len(inputs)} input(s).")
        for index, value in enumerate(inputs):
            if not is_field_element(value):
                raise ValidationError(f"Hash input {index} is not a canonical field element.")
        return hasher.digest(inputs)


class HashContextProvider:
    """
    Initialise-once guard around HashContext.create().
    Concurrent callers of get() all receive the same, fully built instance.
    """

    def __init__(self, arities: Iterable[int] = DEFAULT_ARITIES):
        self._arities = tuple(arities)
        self._context: Optional[HashContext] = None
        self._lock = asyncio.Lock()

    @property
    def ready(self) -> bool:
        return self._context is not None

    async def get(self) -> HashContext:
        if self._context is not None:
            return self._context
        async with self._lock:
            if self._context is None:
                self._context = await HashContext.create(self._arities)
        return self._context
