# zk_crypto_package/proof_gateway.py
import asyncio
import logging
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .commitment import commit, message_hash
from .errors import OperationTimeoutError, ProofFormatError, ValidationError
from .field_codec import ensure_field_element, reduce_scalar, scalar_from_hex, scalar_from_text, strip_hex_prefix, to_decimal
from .groth16_verifier import verify_proof
from .poseidon_context import HashContext
from .proving_backend import ProvingBackend

logger = logging.getLogger(__name__)

# Order of the circuit's public outputs
SIGNAL_MESSAGE_HASH = 0
SIGNAL_PUBLIC_KEY = 1
SIGNAL_TIMESTAMP = 2
PUBLIC_SIGNAL_COUNT = 3


@dataclass(frozen=True)
class ProofBundle:
    proof: Dict[str, Any]
    public_signals: List[str]
    commitment: str
    timestamp: int


class ProofGateway:
    """
    Builds witnesses for the external prover, invokes it, and verifies
    proofs against the provisioned verification key. Pairing checks run on a
    worker pool so they never block the event loop.
    """

    def __init__(
        self,
        hash_context: HashContext,
        backend: ProvingBackend,
        verification_key: Dict[str, Any],
        executor: Optional[Executor] = None,
        max_workers: int = 2,
    ):
        self.hash_context = hash_context
        self.backend = backend
        self.verification_key = verification_key
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="groth16")

    def build_witness(self, message: str, public_key: str, private_key: str, timestamp: int) -> Dict[str, str]:
        """Circuit input; every value is a canonical decimal field element."""
        if not message:
            raise ValidationError("Message must not be empty.")
        if not strip_hex_prefix(private_key or ""):
            raise ValidationError("Private key must be a non-empty hex string.")
        public_key_element = ensure_field_element(scalar_from_hex(public_key), "public_key")
        return {
            "message": to_decimal(scalar_from_text(message)),
            "publicKey": to_decimal(public_key_element),
            "privateKey": to_decimal(reduce_scalar(scalar_from_hex(private_key))),
            "messageHash": to_decimal(message_hash(self.hash_context, message)),
            "timestamp": to_decimal(timestamp),
        }

    async def generate_proof(
        self,
        message: str,
        public_key: str,
        private_key: str,
        timestamp: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> ProofBundle:
        """
        Proves knowledge of ``private_key`` for ``public_key`` and the message
        hash, and computes the commitment over the same message/key/timestamp.
        ``timestamp`` defaults to the current Unix time in seconds.
        """
        if timestamp is None:
            timestamp = int(time.time())
        loop = asyncio.get_running_loop()
        witness = await loop.run_in_executor(
            self._executor, self.build_witness, message, public_key, private_key, timestamp
        )
        logger.info("Generating Groth16 proof...")
        proof, public_signals = await self.backend.prove(witness, timeout=timeout)
        commitment = await loop.run_in_executor(
            self._executor, commit, self.hash_context, message, public_key, timestamp
        )
        logger.info(f"Proof generated with {len(public_signals)} public signal(s).")
        return ProofBundle(proof=proof, public_signals=list(public_signals), commitment=commitment, timestamp=timestamp)

    async def verify_proof(
        self,
        proof: Dict[str, Any],
        public_signals: List[str],
        timeout: Optional[float] = None,
    ) -> bool:
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(self._executor, verify_proof, proof, public_signals, self.verification_key)
        try:
            return await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise OperationTimeoutError(f"Proof verification timed out after {timeout}s.") from e

    @staticmethod
    def signals_bind(public_signals: List[str], public_key: str, timestamp: int) -> bool:
        """True iff the proof's public key and timestamp signals are the envelope's."""
        if not isinstance(public_signals, list) or len(public_signals) != PUBLIC_SIGNAL_COUNT:
            raise ProofFormatError(f"Expected {PUBLIC_SIGNAL_COUNT} public signals.")
        try:
            expected_key = to_decimal(scalar_from_hex(public_key))
        except ValidationError:
            return False
        return (
            str(public_signals[SIGNAL_PUBLIC_KEY]) == expected_key
            and str(public_signals[SIGNAL_TIMESTAMP]) == str(timestamp)
        )

    def close(self):
        if self._owns_executor:
            self._executor.shutdown(wait=False)
