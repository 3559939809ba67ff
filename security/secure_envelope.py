# --- File: security/secure_envelope.py ---
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from zk_crypto_package.errors import ValidationError

logger = logging.getLogger(__name__)


class MessageStatus(str, Enum):
    PENDING = "pending"
    SENDING = "sending"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


# Forward order of the lifecycle; FAILED is a sink reachable from any non-terminal state.
_LIFECYCLE_ORDER = [
    MessageStatus.PENDING,
    MessageStatus.SENDING,
    MessageStatus.SENT,
    MessageStatus.DELIVERED,
    MessageStatus.READ,
]
TERMINAL_STATUSES = frozenset({MessageStatus.READ, MessageStatus.FAILED})


def parse_status(value: Any) -> MessageStatus:
    """Maps a raw value onto MessageStatus. Anything outside the set is rejected."""
    if isinstance(value, MessageStatus):
        return value
    try:
        return MessageStatus(value)
    except ValueError as e:
        allowed = [s.value for s in MessageStatus]
        raise ValidationError(f"Invalid message status '{value}'.", {"allowed": allowed}) from e


def is_forward_transition(current: MessageStatus, new: MessageStatus) -> bool:
    """
    True if ``current -> new`` follows the lifecycle. Only used for logging:
    the index accepts any status in the set, so out-of-order updates are
    recorded with a warning instead of being refused.
    """
    if current in TERMINAL_STATUSES:
        return False
    if new == MessageStatus.FAILED:
        return True
    return _LIFECYCLE_ORDER.index(new) > _LIFECYCLE_ORDER.index(current)


def log_transition(message_id: str, current: Optional[MessageStatus], new: MessageStatus):
    if current is None or current == new:
        logger.debug(f"Message {message_id}: status {new.value}.")
    elif is_forward_transition(current, new):
        logger.info(f"Message {message_id}: status {current.value} -> {new.value}.")
    else:
        logger.warning(
            f"Message {message_id}: out-of-order status change {current.value} -> {new.value} accepted."
        )


class EncryptedPayload(BaseModel):
    """AES-256-CBC output of zk_crypto_package.aes_cbc_encrypt."""
    salt: str = Field(..., description="PBKDF2 salt (hex, 16 bytes).")
    iv: str = Field(..., description="CBC initialisation vector (hex, 16 bytes).")
    ciphertext: str = Field(..., description="PKCS#7-padded ciphertext (base64).")
    mac: str = Field(..., description="HMAC-SHA256 over salt || iv || ciphertext (hex).")


class MessageEnvelope(BaseModel):
    """
    Everything a recipient needs to check and open a message, minus the
    ephemeral secret. This is the value written to the blob store.
    """
    message_id: str
    order_id: str
    sender_id: str
    recipient_id: str
    encrypted_payload: EncryptedPayload
    proof: Dict[str, Any] = Field(..., description="Groth16 proof (snarkjs proof.json).")
    public_signals: List[str] = Field(..., description="[messageHash, publicKey, timestamp] as decimal strings.")
    commitment: str = Field(..., description="Poseidon commitment (decimal).")
    public_key: str = Field(..., description="Ephemeral public key (0x-prefixed hex).")
    timestamp: int = Field(..., description="Unix seconds committed in the proof and the commitment.")
    # The index is authoritative for status; the stored blob keeps the value at write time.
    status: MessageStatus = MessageStatus.PENDING


class MessageRecord(BaseModel):
    """One row of the message index. Sender and recipient share the row."""
    model_config = ConfigDict(from_attributes=True)

    message_id: str
    order_id: str
    sender_id: str
    recipient_id: str
    blob_id: Optional[str] = None
    timestamp: int
    status: MessageStatus = MessageStatus.PENDING
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SendReceipt(BaseModel):
    """
    Returned once to the sender. ``ephemeral_secret`` is not persisted anywhere
    and has to reach the recipient out of band.
    """
    envelope: MessageEnvelope
    blob_id: str
    message: str
    ephemeral_secret: str


class OpenedMessage(BaseModel):
    message_id: str
    order_id: str
    sender_id: str
    recipient_id: str
    message: str
    public_key: str
    timestamp: int
    status: MessageStatus
