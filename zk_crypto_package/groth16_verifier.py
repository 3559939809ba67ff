# zk_crypto_package/groth16_verifier.py
"""
Groth16 verification over BN254 for snarkjs-formatted artifacts.

Accepts the JSON shapes snarkjs writes: ``verification_key.json``,
``proof.json`` (pi_a / pi_b / pi_c in projective coordinates as decimal
strings) and ``public.json`` (list of decimal strings). The check is

    e(A, B) == e(alpha, beta) * e(vk_x, gamma) * e(C, delta)

with vk_x = IC[0] + sum(signal_i * IC[i+1]). The function is pure: no I/O, no
shared state. Malformed input raises ProofFormatError, a well-formed proof
that does not verify returns False.
"""
import json
import logging
from typing import Any, Dict, List, Sequence, Union

from py_ecc.optimized_bn128 import (
    FQ,
    FQ2,
    add,
    b,
    b2,
    curve_order,
    field_modulus,
    is_inf,
    is_on_curve,
    multiply,
    pairing,
)

from .errors import ProofFormatError, ValidationError
from .field_codec import scalar_from_decimal
from .protocol_constants import FIELD_PRIME

logger = logging.getLogger(__name__)

SUPPORTED_PROTOCOL = "groth16"
SUPPORTED_CURVES = ("bn128", "bn254")


def _base_coordinate(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ProofFormatError("Curve coordinate must be a decimal string.")
    try:
        number = int(value)
    except ValueError as e:
        raise ProofFormatError("Curve coordinate is not a decimal integer.") from e
    if not 0 <= number < field_modulus:
        raise ProofFormatError("Curve coordinate is outside the base field.")
    return number


def _g1_point(coords: Any, name: str):
    if not isinstance(coords, (list, tuple)) or len(coords) != 3:
        raise ProofFormatError(f"{name} must be a 3-element G1 point.")
    point = tuple(FQ(_base_coordinate(c)) for c in coords)
    if not is_on_curve(point, b):
        raise ProofFormatError(f"{name} is not on the BN254 G1 curve.")
    return point


def _g2_point(coords: Any, name: str):
    if not isinstance(coords, (list, tuple)) or len(coords) != 3:
        raise ProofFormatError(f"{name} must be a 3-element G2 point.")
    point = []
    for pair in coords:
        if not isinstance(pair, (list, tuple)) or len(pair) != 2:
            raise ProofFormatError(f"{name} coordinates must be pairs over FQ2.")
        point.append(FQ2([_base_coordinate(pair[0]), _base_coordinate(pair[1])]))
    point = tuple(point)
    if not is_on_curve(point, b2):
        raise ProofFormatError(f"{name} is not on the BN254 G2 twist.")
    # The twist has a large cofactor; only the order-r subgroup is valid G2.
    if not is_inf(multiply(point, curve_order)):
        raise ProofFormatError(f"{name} is not in the BN254 G2 subgroup.")
    return point


def _check_tags(obj: Dict[str, Any], what: str):
    protocol = obj.get("protocol", SUPPORTED_PROTOCOL)
    curve = obj.get("curve", "bn128")
    if protocol != SUPPORTED_PROTOCOL:
        raise ProofFormatError(f"{what} protocol '{protocol}' is not supported.")
    if curve not in SUPPORTED_CURVES:
        raise ProofFormatError(f"{what} curve '{curve}' is not supported.")


def parse_verification_key(vk: Dict[str, Any]) -> Dict[str, Any]:
    """Validates and converts a snarkjs verification key into curve points."""
    if not isinstance(vk, dict):
        raise ProofFormatError("Verification key must be a JSON object.")
    _check_tags(vk, "Verification key")
    try:
        ic_raw = vk["IC"]
        n_public = vk.get("nPublic", len(ic_raw) - 1 if isinstance(ic_raw, list) else None)
        if not isinstance(ic_raw, list) or not isinstance(n_public, int) or len(ic_raw) != n_public + 1:
            raise ProofFormatError("Verification key IC length does not match nPublic + 1.")
        return {
            "n_public": n_public,
            "alpha": _g1_point(vk["vk_alpha_1"], "vk_alpha_1"),
            "beta": _g2_point(vk["vk_beta_2"], "vk_beta_2"),
            "gamma": _g2_point(vk["vk_gamma_2"], "vk_gamma_2"),
            "delta": _g2_point(vk["vk_delta_2"], "vk_delta_2"),
            "ic": [_g1_point(p, f"IC[{i}]") for i, p in enumerate(ic_raw)],
        }
    except KeyError as e:
        raise ProofFormatError(f"Verification key is missing field {e}.") from e


def parse_proof(proof: Dict[str, Any]) -> Dict[str, Any]:
    if not isinstance(proof, dict):
        raise ProofFormatError("Proof must be a JSON object.")
    _check_tags(proof, "Proof")
    try:
        return {
            "a": _g1_point(proof["pi_a"], "pi_a"),
            "b": _g2_point(proof["pi_b"], "pi_b"),
            "c": _g1_point(proof["pi_c"], "pi_c"),
        }
    except KeyError as e:
        raise ProofFormatError(f"Proof is missing field {e}.") from e


def parse_public_signals(public_signals: Any, expected_count: int) -> List[int]:
    if not isinstance(public_signals, (list, tuple)):
        raise ProofFormatError("Public signals must be a list.")
    if len(public_signals) != expected_count:
        raise ProofFormatError(
            f"Expected {expected_count} public signals, got {len(public_signals)}."
        )
    signals = []
    for i, signal in enumerate(public_signals):
        if isinstance(signal, int) and not isinstance(signal, bool):
            signal = str(signal)
        try:
            signals.append(scalar_from_decimal(signal, f"public_signals[{i}]"))
        except ValidationError as e:
            raise ProofFormatError(e.message, e.details) from e
    return signals


def verify_proof(
    proof: Dict[str, Any],
    public_signals: Sequence[Union[str, int]],
    verification_key: Dict[str, Any],
) -> bool:
    """Returns True iff the proof verifies for these public signals under the key."""
    vk = parse_verification_key(verification_key)
    parsed = parse_proof(proof)
    signals = parse_public_signals(public_signals, vk["n_public"])

    vk_x = vk["ic"][0]
    for signal, ic_point in zip(signals, vk["ic"][1:]):
        vk_x = add(vk_x, multiply(ic_point, signal % FIELD_PRIME))

    lhs = pairing(parsed["b"], parsed["a"])
    rhs = (
        pairing(vk["beta"], vk["alpha"])
        * pairing(vk["gamma"], vk_x)
        * pairing(vk["delta"], parsed["c"])
    )
    result = lhs == rhs
    logger.debug(f"Groth16 pairing check result: {result}")
    return result


def load_verification_key(path: str) -> Dict[str, Any]:
    """Reads and structurally validates a snarkjs verification_key.json."""
    try:
        with open(path, "r") as f:
            vk = json.load(f)
    except (IOError, json.JSONDecodeError) as e:
        raise ProofFormatError(f"Could not read verification key from {path}.") from e
    parse_verification_key(vk)
    logger.info(f"Loaded Groth16 verification key from {path} (nPublic={vk.get('nPublic')}).")
    return vk
