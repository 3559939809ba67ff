# --- File: api/endpoints.py ---
from fastapi import HTTPException, Body, Depends, Query
from typing import Optional
import logging

from api.models import (
    HealthResponse, KeyPairResponse, SendMessageRequest, SendMessageResponse,
    MessageSummary, MessageListResponse, OpenMessageRequest, OpenMessageResponse,
    StatusUpdateRequest, VerifyProofRequest, VerifyProofResponse,
)
from security.secure_communication import SecureMessenger
from security.secure_envelope import MessageRecord
from zk_crypto_package import HashContextProvider

# --- Dependency Injection Setup ---
# Global instances, set by lifespan in main.py
_hash_provider_instance: Optional[HashContextProvider] = None
_messenger_instance: Optional[SecureMessenger] = None
_blob_store_name: str = "unknown"


def get_messenger() -> SecureMessenger:
    if _messenger_instance is None:
        logging.critical("SecureMessenger instance is None during request. This indicates a startup failure.")
        raise HTTPException(status_code=503, detail="Messaging service not available or not initialized.")
    return _messenger_instance


def _summary(record: MessageRecord) -> MessageSummary:
    return MessageSummary(
        message_id=record.message_id,
        order_id=record.order_id,
        sender=record.sender_id,
        recipient=record.recipient_id,
        blob_id=record.blob_id,
        timestamp=record.timestamp,
        status=record.status,
    )

# --- API Endpoints ---


async def health():
    ready = _hash_provider_instance is not None and _hash_provider_instance.ready
    return HealthResponse(
        status="ok" if ready and _messenger_instance is not None else "degraded",
        hash_ready=ready,
        blob_store=_blob_store_name,
    )


async def generate_keys(messenger: SecureMessenger = Depends(get_messenger)):
    keypair = await messenger.generate_keys()
    logging.info("Generated ephemeral key pair via API.")
    return KeyPairResponse(public_key=keypair.public_key, private_key=keypair.private_key)


async def send_message(
    send_request: SendMessageRequest = Body(...),
    messenger: SecureMessenger = Depends(get_messenger),
):
    logging.info(f"Received send request: order_id={send_request.order_id}, {send_request.sender} -> {send_request.recipient}")
    receipt = await messenger.send(
        order_id=send_request.order_id,
        sender_id=send_request.sender,
        recipient_id=send_request.recipient,
        message=send_request.message,
    )
    return SendMessageResponse(
        envelope=receipt.envelope,
        blob_id=receipt.blob_id,
        message=receipt.message,
        ephemeral_secret=receipt.ephemeral_secret,
    )


async def list_messages(
    participant: str = Query(..., description="Participant id (sender or recipient)"),
    order_id: Optional[str] = Query(None, description="Optional order id prefix"),
    messenger: SecureMessenger = Depends(get_messenger),
):
    logging.info(f"Received list request for participant={participant}, order_id prefix={order_id}")
    records = await messenger.list_messages(participant, order_id)
    return MessageListResponse(participant=participant, messages=[_summary(r) for r in records])


async def open_message(
    message_id: str,
    open_request: OpenMessageRequest = Body(...),
    messenger: SecureMessenger = Depends(get_messenger),
):
    logging.info(f"Received open request for message_id: {message_id}")
    opened = await messenger.open(message_id, open_request.secret)
    return OpenMessageResponse(
        message_id=opened.message_id,
        order_id=opened.order_id,
        sender=opened.sender_id,
        recipient=opened.recipient_id,
        message=opened.message,
        public_key=opened.public_key,
        timestamp=opened.timestamp,
        status=opened.status,
    )


async def update_status(
    message_id: str,
    status_request: StatusUpdateRequest = Body(...),
    messenger: SecureMessenger = Depends(get_messenger),
):
    logging.info(f"Received status update for message_id: {message_id} -> {status_request.status}")
    record = await messenger.update_status(message_id, status_request.status)
    return _summary(record)


async def verify_proof(
    verify_request: VerifyProofRequest = Body(...),
    messenger: SecureMessenger = Depends(get_messenger),
):
    verified = await messenger.verify_submitted_proof(verify_request.proof, verify_request.public_signals)
    logging.info(f"Proof verification via API: {verified}")
    return VerifyProofResponse(verified=verified)
