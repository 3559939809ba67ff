import random
from typing import Dict, List, Optional

import pytest
from py_ecc.optimized_bn128 import G1, G2, curve_order, multiply, normalize

from core.blob_store import InMemoryBlobStore
from core.message_index import SQLiteMessageIndex
from security.secure_communication import SecureMessenger
from zk_crypto_package import HashContext, ProofGateway, ProvingBackend

# ═══════════════════════════════════════════════════════════════════════════════
# GROTH16 TRAPDOOR
# A setup with known toxic waste: anyone holding alpha..delta can produce a
# proof that passes the pairing check for arbitrary public signals, which lets
# the real verifier run without compiled circuit artifacts.
# ═══════════════════════════════════════════════════════════════════════════════


def _int(coord) -> int:
    return coord if isinstance(coord, int) else coord.n


def g1_json(scalar: int) -> List[str]:
    x, y = normalize(multiply(G1, scalar))
    return [str(_int(x)), str(_int(y)), "1"]


def g2_json(scalar: int) -> List[List[str]]:
    x, y = normalize(multiply(G2, scalar))
    return [
        [str(_int(c)) for c in x.coeffs],
        [str(_int(c)) for c in y.coeffs],
        ["1", "0"],
    ]


class Groth16Trapdoor:
    def __init__(self, n_public: int = 3, seed: int = 1337):
        self.rng = random.Random(seed)
        self.n_public = n_public
        self.alpha, self.beta, self.gamma, self.delta = (self.rng.randrange(1, curve_order) for _ in range(4))
        self.ic = [self.rng.randrange(1, curve_order) for _ in range(n_public + 1)]

    def verification_key(self) -> Dict:
        return {
            "protocol": "groth16",
            "curve": "bn128",
            "nPublic": self.n_public,
            "vk_alpha_1": g1_json(self.alpha),
            "vk_beta_2": g2_json(self.beta),
            "vk_gamma_2": g2_json(self.gamma),
            "vk_delta_2": g2_json(self.delta),
            "IC": [g1_json(k) for k in self.ic],
        }

    def prove(self, public_signals: List[str]) -> Dict:
        r = self.rng.randrange(1, curve_order)
        s = self.rng.randrange(1, curve_order)
        x = self.ic[0] + sum(int(sig) * k for sig, k in zip(public_signals, self.ic[1:]))
        c = (r * s - self.alpha * self.beta - self.gamma * x) * pow(self.delta, -1, curve_order) % curve_order
        return {
            "pi_a": g1_json(r),
            "pi_b": g2_json(s),
            "pi_c": g1_json(c),
            "protocol": "groth16",
            "curve": "bn128",
        }


class TrapdoorProvingBackend(ProvingBackend):
    """Plays the role of the circuit: outputs [messageHash, publicKey, timestamp]."""

    def __init__(self, trapdoor: Groth16Trapdoor):
        self.trapdoor = trapdoor
        self.calls = 0

    async def prove(self, witness: Dict[str, str], timeout: Optional[float] = None):
        self.calls += 1
        signals = [witness["messageHash"], witness["publicKey"], witness["timestamp"]]
        return self.trapdoor.prove(signals), signals


# ═══════════════════════════════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture(scope="session")
def hash_context() -> HashContext:
    return HashContext.build()


@pytest.fixture(scope="session")
def trapdoor() -> Groth16Trapdoor:
    return Groth16Trapdoor()


@pytest.fixture(scope="session")
def verification_key(trapdoor) -> Dict:
    return trapdoor.verification_key()


@pytest.fixture
def proving_backend(trapdoor) -> TrapdoorProvingBackend:
    return TrapdoorProvingBackend(trapdoor)


@pytest.fixture
def gateway(hash_context, proving_backend, verification_key):
    gw = ProofGateway(hash_context, proving_backend, verification_key)
    yield gw
    gw.close()


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def message_index(tmp_path):
    index = SQLiteMessageIndex(str(tmp_path / "messages.db"))
    yield index
    index.close()


@pytest.fixture
def messenger(hash_context, gateway, blob_store, message_index) -> SecureMessenger:
    return SecureMessenger(
        hash_context=hash_context,
        gateway=gateway,
        blob_store=blob_store,
        index=message_index,
        proof_timeout=30,
        verify_timeout=120,
        store_timeout=5,
    )
