# zk_crypto_package/proving_backend.py
"""
Boundary with the external Groth16 prover.

The circuit (compiled wasm) and its proving key (zkey) are pre-provisioned
artifacts. ``SnarkjsProvingBackend`` feeds them a witness through the snarkjs
CLI in a private temporary directory and reads back proof.json/public.json.
Each call is a single attempt; failures surface immediately.
"""
import asyncio
import json
import logging
import os
import shlex
import tempfile
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from .errors import BackendUnavailableError, CryptographicError, OperationTimeoutError

logger = logging.getLogger(__name__)

ProofResult = Tuple[Dict[str, Any], List[str]]


class ProvingBackend(ABC):
    @abstractmethod
    async def prove(self, witness: Dict[str, str], timeout: Optional[float] = None) -> ProofResult:
        """Returns (proof, public_signals) for ``witness``."""


class SnarkjsProvingBackend(ProvingBackend):
    def __init__(
        self,
        wasm_path: str,
        zkey_path: str,
        command: Union[str, Sequence[str]] = "npx snarkjs",
    ):
        self.wasm_path = wasm_path
        self.zkey_path = zkey_path
        self.command = shlex.split(command) if isinstance(command, str) else list(command)
        if not os.path.exists(wasm_path):
            logger.warning(f"Circuit wasm not found at {wasm_path}. Proof generation will fail.")
        if not os.path.exists(zkey_path):
            logger.warning(f"Proving key not found at {zkey_path}. Proof generation will fail.")

    async def prove(self, witness: Dict[str, str], timeout: Optional[float] = None) -> ProofResult:
        with tempfile.TemporaryDirectory(prefix="zk-prove-") as work_dir:
            input_path = os.path.join(work_dir, "input.json")
            proof_path = os.path.join(work_dir, "proof.json")
            public_path = os.path.join(work_dir, "public.json")
            with open(input_path, "w") as f:
                json.dump(witness, f)

            cmd = self.command + [
                "groth16", "fullprove", input_path,
                self.wasm_path, self.zkey_path, proof_path, public_path,
            ]
            logger.debug(f"Running prover: {' '.join(self.command)} groth16 fullprove ...")
            try:
                process = await asyncio.create_subprocess_exec(
                    *cmd,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except (FileNotFoundError, PermissionError) as e:
                raise BackendUnavailableError(f"Prover command not available: {self.command[0]}") from e

            try:
                stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
            except asyncio.TimeoutError as e:
                process.kill()
                await process.wait()
                raise OperationTimeoutError(f"Proof generation timed out after {timeout}s.") from e
            except asyncio.CancelledError:
                process.kill()
                await process.wait()
                raise

            output = (stderr or b"").decode("utf-8", "replace") + (stdout or b"").decode("utf-8", "replace")
            if process.returncode != 0:
                if "Assert Failed" in output:
                    logger.error("Prover rejected the witness: circuit constraint not satisfied.")
                    raise CryptographicError("Witness does not satisfy the circuit constraints.")
                logger.error(f"Prover exited with code {process.returncode}: {output[-500:]}")
                raise BackendUnavailableError("Proof generation failed.", {"returncode": process.returncode})

            try:
                with open(proof_path, "r") as f:
                    proof = json.load(f)
                with open(public_path, "r") as f:
                    public_signals = json.load(f)
            except (IOError, json.JSONDecodeError) as e:
                raise BackendUnavailableError("Prover did not produce readable proof output.") from e

        return proof, [str(s) for s in public_signals]
