# --- File: security/secure_communication.py ---
import asyncio
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as ModelValidationError

from core.blob_store import BlobStore
from core.message_index import MessageIndex
from utils import new_message_id, pick_timeout, require_text, unix_now
from zk_crypto_package import (
    HashContext,
    KeyPair,
    ProofGateway,
    aes_cbc_decrypt,
    aes_cbc_encrypt,
    generate_keypair,
    message_hash,
    verify_commitment,
)
from zk_crypto_package.errors import (
    CommitmentMismatchError,
    MessageNotFoundError,
    ProofRejectedError,
    ValidationError,
)
from zk_crypto_package.field_codec import to_decimal
from zk_crypto_package.proof_gateway import SIGNAL_MESSAGE_HASH
from zk_crypto_package.protocol_constants import DEFAULT_PBKDF2_ITERATIONS, REPLAY_WINDOW_SECONDS

from .secure_envelope import (
    EncryptedPayload,
    MessageEnvelope,
    MessageRecord,
    MessageStatus,
    OpenedMessage,
    SendReceipt,
    log_transition,
    parse_status,
)

logger = logging.getLogger(__name__)


class SecureMessenger:
    """
    Sends and opens zero-knowledge authenticated messages.

    Sending derives an ephemeral key pair, encrypts the message under the
    ephemeral secret, proves knowledge of that secret, commits to
    message/key/timestamp and stores the resulting envelope. Opening checks the
    proof before touching the payload and releases the plaintext only after
    the commitment recomputes.
    """

    def __init__(
        self,
        hash_context: HashContext,
        gateway: ProofGateway,
        blob_store: BlobStore,
        index: MessageIndex,
        pbkdf2_iterations: int = DEFAULT_PBKDF2_ITERATIONS,
        replay_window: int = REPLAY_WINDOW_SECONDS,
        proof_timeout: Optional[float] = None,
        verify_timeout: Optional[float] = None,
        store_timeout: Optional[float] = None,
    ):
        self.hash_context = hash_context
        self.gateway = gateway
        self.blob_store = blob_store
        self.index = index
        self.pbkdf2_iterations = pbkdf2_iterations
        self.replay_window = replay_window
        self.proof_timeout = proof_timeout
        self.verify_timeout = verify_timeout
        self.store_timeout = store_timeout

    async def generate_keys(self) -> KeyPair:
        return await asyncio.to_thread(generate_keypair, self.hash_context)

    async def _get_record(self, message_id: str) -> MessageRecord:
        record = await asyncio.to_thread(self.index.get, message_id)
        if record is None:
            raise MessageNotFoundError(f"Message '{message_id}' not found.")
        return record

    async def _advance(self, message_id: str, current: MessageStatus, new: MessageStatus, blob_id: Optional[str] = None):
        log_transition(message_id, current, new)
        await asyncio.to_thread(self.index.update_status, message_id, new, blob_id)

    def _mark_failed(self, message_id: str, current: MessageStatus):
        # Synchronous so it also runs while the send task is being cancelled.
        log_transition(message_id, current, MessageStatus.FAILED)
        try:
            self.index.update_status(message_id, MessageStatus.FAILED)
        except Exception as e:
            logger.error(f"Could not mark message {message_id} as failed: {e}")

    async def send(
        self,
        order_id: str,
        sender_id: str,
        recipient_id: str,
        message: str,
        timeout: Optional[float] = None,
    ) -> SendReceipt:
        """
        Runs the send path pending -> sending -> sent. Any failure after the
        message is indexed leaves it ``failed``; nothing produced before the
        failure is returned.
        """
        order_id = require_text(order_id, "order_id")
        sender_id = require_text(sender_id, "sender_id")
        recipient_id = require_text(recipient_id, "recipient_id")
        if not isinstance(message, str) or not message:
            raise ValidationError("Message must be a non-empty string.", {"field": "message"})

        message_id = new_message_id()
        timestamp = unix_now()
        logger.info(f"SEND ({sender_id} -> {recipient_id}): message {message_id} for order {order_id}.")

        record = MessageRecord(
            message_id=message_id,
            order_id=order_id,
            sender_id=sender_id,
            recipient_id=recipient_id,
            timestamp=timestamp,
            status=MessageStatus.PENDING,
        )
        await asyncio.to_thread(self.index.insert, record)
        status = MessageStatus.PENDING

        try:
            await self._advance(message_id, status, MessageStatus.SENDING)
            status = MessageStatus.SENDING

            keypair = await self.generate_keys()
            encrypted = await asyncio.to_thread(
                aes_cbc_encrypt, message, keypair.private_key, self.pbkdf2_iterations
            )
            bundle = await self.gateway.generate_proof(
                message,
                keypair.public_key,
                keypair.private_key,
                timestamp=timestamp,
                timeout=pick_timeout(timeout, self.proof_timeout),
            )
            envelope = MessageEnvelope(
                message_id=message_id,
                order_id=order_id,
                sender_id=sender_id,
                recipient_id=recipient_id,
                encrypted_payload=EncryptedPayload(**encrypted),
                proof=bundle.proof,
                public_signals=bundle.public_signals,
                commitment=bundle.commitment,
                public_key=keypair.public_key,
                timestamp=bundle.timestamp,
                status=MessageStatus.SENT,
            )
            blob_id = await self.blob_store.put(
                envelope.model_dump_json().encode("utf-8"),
                timeout=pick_timeout(timeout, self.store_timeout),
            )
            await self._advance(message_id, status, MessageStatus.SENT, blob_id=blob_id)
        except BaseException:
            self._mark_failed(message_id, status)
            raise

        logger.info(f"SEND ({sender_id} -> {recipient_id}): message {message_id} stored as blob {blob_id}.")
        return SendReceipt(
            envelope=envelope,
            blob_id=blob_id,
            message=message,
            ephemeral_secret=keypair.private_key,
        )

    async def list_messages(self, participant_id: str, order_id_prefix: Optional[str] = None) -> List[MessageRecord]:
        participant_id = require_text(participant_id, "participant")
        return await asyncio.to_thread(self.index.find_by_participant, participant_id, order_id_prefix or None)

    async def fetch_envelope(self, message_id: str, timeout: Optional[float] = None) -> MessageEnvelope:
        """Loads the stored envelope; its status is taken from the index."""
        record = await self._get_record(message_id)
        if not record.blob_id:
            raise MessageNotFoundError(
                f"Message '{message_id}' has no stored envelope.", {"status": record.status.value}
            )
        raw = await self.blob_store.get(record.blob_id, timeout=pick_timeout(timeout, self.store_timeout))
        try:
            envelope = MessageEnvelope.model_validate_json(raw)
        except ModelValidationError as e:
            raise ValidationError(f"Stored envelope for message '{message_id}' is malformed.") from e
        if envelope.message_id != message_id:
            raise ValidationError(f"Stored envelope does not belong to message '{message_id}'.")
        return envelope.model_copy(update={"status": record.status})

    def _check_plaintext(self, envelope: MessageEnvelope, plaintext: str, now: int) -> bool:
        expected_hash = to_decimal(message_hash(self.hash_context, plaintext))
        if envelope.public_signals[SIGNAL_MESSAGE_HASH] != expected_hash:
            logger.warning(f"Message {envelope.message_id}: proof message hash does not match the plaintext.")
            return False
        return verify_commitment(
            self.hash_context,
            plaintext,
            envelope.public_key,
            envelope.commitment,
            envelope.timestamp,
            now,
            replay_window=self.replay_window,
        )

    async def open(
        self,
        message_id: str,
        secret: str,
        now: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> OpenedMessage:
        """
        Verifies and decrypts a message for its recipient.
        Order: proof, proof-to-envelope binding, decryption (in memory only),
        message hash and commitment. The plaintext leaves this method only if
        every step passed.
        """
        envelope = await self.fetch_envelope(message_id, timeout=timeout)

        verified = await self.gateway.verify_proof(
            envelope.proof,
            envelope.public_signals,
            timeout=pick_timeout(timeout, self.verify_timeout),
        )
        if not verified:
            logger.warning(f"OPEN {message_id}: proof verification failed.")
            raise ProofRejectedError("Proof verification failed.")
        if not ProofGateway.signals_bind(envelope.public_signals, envelope.public_key, envelope.timestamp):
            logger.warning(f"OPEN {message_id}: proof signals do not match the envelope.")
            raise ProofRejectedError("Proof does not belong to this message envelope.")

        plaintext = await asyncio.to_thread(
            aes_cbc_decrypt, envelope.encrypted_payload.model_dump(), secret, self.pbkdf2_iterations
        )
        now = unix_now() if now is None else now
        if not await asyncio.to_thread(self._check_plaintext, envelope, plaintext, now):
            raise CommitmentMismatchError("Commitment verification failed.")

        logger.info(f"OPEN {message_id}: proof and commitment verified.")
        return OpenedMessage(
            message_id=envelope.message_id,
            order_id=envelope.order_id,
            sender_id=envelope.sender_id,
            recipient_id=envelope.recipient_id,
            message=plaintext,
            public_key=envelope.public_key,
            timestamp=envelope.timestamp,
            status=envelope.status,
        )

    async def update_status(self, message_id: str, status: Any) -> MessageRecord:
        new_status = parse_status(status)
        record = await self._get_record(message_id)
        log_transition(message_id, record.status, new_status)
        updated = await asyncio.to_thread(self.index.update_status, message_id, new_status)
        if not updated:
            raise MessageNotFoundError(f"Message '{message_id}' not found.")
        return record.model_copy(update={"status": new_status})

    async def verify_submitted_proof(
        self,
        proof: Dict[str, Any],
        public_signals: List[str],
        timeout: Optional[float] = None,
    ) -> bool:
        return await self.gateway.verify_proof(
            proof, public_signals, timeout=pick_timeout(timeout, self.verify_timeout)
        )
