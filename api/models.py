from pydantic import BaseModel, Field
from typing import Dict, Any, Optional, List

from security.secure_envelope import MessageEnvelope, MessageStatus

# --- API Request/Response Models (using Pydantic) ---


class HealthResponse(BaseModel):
    status: str
    hash_ready: bool = Field(..., description="Whether the Poseidon hash context has been built")
    blob_store: str


class KeyPairResponse(BaseModel):
    """Fresh ephemeral key pair. The private key is returned once and not stored."""
    public_key: str = Field(..., description="0x-prefixed hex field element")
    private_key: str = Field(..., description="64 hex characters")


class SendMessageRequest(BaseModel):
    order_id: str = Field(..., description="Order the message belongs to")
    sender: str = Field(..., description="Sender participant id")
    recipient: str = Field(..., description="Recipient participant id")
    message: str = Field(..., description="Plaintext message")


class SendMessageResponse(BaseModel):
    """Response to the sender: the stored envelope plus the one-time ephemeral secret."""
    envelope: MessageEnvelope
    blob_id: str
    message: str = Field(..., description="The plaintext, echoed back to the sender only")
    ephemeral_secret: str = Field(..., description="Decryption secret to hand to the recipient out of band")


class MessageSummary(BaseModel):
    message_id: str
    order_id: str
    sender: str
    recipient: str
    blob_id: Optional[str] = None
    timestamp: int
    status: MessageStatus


class MessageListResponse(BaseModel):
    participant: str
    messages: List[MessageSummary]


class OpenMessageRequest(BaseModel):
    secret: str = Field(..., description="Ephemeral secret received from the sender")


class OpenMessageResponse(BaseModel):
    message_id: str
    order_id: str
    sender: str
    recipient: str
    message: str
    public_key: str
    timestamp: int
    status: MessageStatus
    verified: bool = True


class StatusUpdateRequest(BaseModel):
    status: str = Field(..., description="One of pending, sending, sent, delivered, read, failed")


class VerifyProofRequest(BaseModel):
    proof: Dict[str, Any] = Field(..., description="Groth16 proof as produced by snarkjs")
    public_signals: List[Any] = Field(..., description="Public signals as decimal strings")


class VerifyProofResponse(BaseModel):
    verified: bool


class ErrorResponse(BaseModel):
    message: str
    error: str
    details: Optional[Any] = None
