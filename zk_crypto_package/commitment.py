# zk_crypto_package/commitment.py
import logging
from typing import Optional

from .errors import ValidationError
from .field_codec import ensure_field_element, scalar_from_hex, scalar_from_text, to_decimal
from .poseidon_context import HashContext
from .protocol_constants import REPLAY_WINDOW_SECONDS

logger = logging.getLogger(__name__)


def _public_key_element(public_key: str) -> int:
    # Hex decoding without reduction; a key outside the field is malformed.
    return ensure_field_element(scalar_from_hex(public_key), "public_key")


def _timestamp_element(timestamp: int) -> int:
    if isinstance(timestamp, bool) or not isinstance(timestamp, int):
        raise ValidationError("Timestamp must be an integer number of seconds.")
    return ensure_field_element(timestamp, "timestamp")


def message_hash(hash_context: HashContext, message: str) -> int:
    """Poseidon([messageElement]), the messageHash input of the circuit."""
    return hash_context.hash([scalar_from_text(message)])


def commit(hash_context: HashContext, message: str, public_key: str, timestamp: int) -> str:
    """Poseidon([message, publicKey, timestamp]) as a canonical decimal string."""
    elements = [scalar_from_text(message), _public_key_element(public_key), _timestamp_element(timestamp)]
    return to_decimal(hash_context.hash(elements))


def commit_pair(hash_context: HashContext, message: str, public_key: str) -> str:
    """Message/key binding without a timestamp: Poseidon([message, publicKey])."""
    elements = [scalar_from_text(message), _public_key_element(public_key)]
    return to_decimal(hash_context.hash(elements))


def verify_commitment(
    hash_context: HashContext,
    message: str,
    public_key: str,
    commitment: str,
    timestamp: int,
    now: int,
    replay_window: int = REPLAY_WINDOW_SECONDS,
) -> bool:
    """
    True iff the commitment recomputes exactly and the timestamp is not older
    than the replay window (now - timestamp <= replay_window). A timestamp
    ahead of ``now`` is accepted. Expected failures return False; only
    malformed inputs raise.
    """
    _timestamp_element(timestamp)
    age = now - timestamp
    if age > replay_window:
        logger.info(f"Commitment rejected: timestamp is {age}s old (window {replay_window}s).")
        return False

    expected = commit(hash_context, message, public_key, timestamp)
    if not isinstance(commitment, str) or expected != commitment:
        logger.info("Commitment rejected: recomputed value does not match.")
        return False
    return True


def verify_pair_commitment(hash_context: HashContext, message: str, public_key: str, commitment: Optional[str]) -> bool:
    return isinstance(commitment, str) and commit_pair(hash_context, message, public_key) == commitment
