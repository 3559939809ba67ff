import json

import pytest

from security.secure_communication import SecureMessenger
from security.secure_envelope import MessageStatus
from zk_crypto_package import ProofGateway, ProvingBackend
from zk_crypto_package.errors import (
    BackendUnavailableError,
    CommitmentMismatchError,
    DecryptionError,
    MessageNotFoundError,
    ProofRejectedError,
    ValidationError,
)


class UnavailableBackend(ProvingBackend):
    async def prove(self, witness, timeout=None):
        raise BackendUnavailableError("prover offline")


def _tamper(blob_store, blob_id, **changes):
    envelope = json.loads(blob_store._blobs[blob_id])
    envelope.update(changes)
    blob_store._blobs[blob_id] = json.dumps(envelope).encode("utf-8")


async def _send(messenger, message="Package left at the front desk", order_id="order-1"):
    return await messenger.send(order_id, "alice", "bob", message)


@pytest.mark.asyncio
async def test_send_then_open(messenger, message_index):
    receipt = await _send(messenger)
    envelope = receipt.envelope
    assert receipt.message == "Package left at the front desk"
    assert envelope.status == MessageStatus.SENT
    assert envelope.public_signals[1] == str(int(envelope.public_key, 16))
    assert envelope.public_signals[2] == str(envelope.timestamp)

    record = message_index.get(envelope.message_id)
    assert record.status == MessageStatus.SENT
    assert record.blob_id == receipt.blob_id

    opened = await messenger.open(envelope.message_id, receipt.ephemeral_secret)
    assert opened.message == "Package left at the front desk"
    assert opened.sender_id == "alice"
    assert opened.recipient_id == "bob"
    assert opened.timestamp == envelope.timestamp


@pytest.mark.asyncio
async def test_ephemeral_secret_is_not_stored(messenger, blob_store, message_index):
    receipt = await _send(messenger)
    stored = blob_store._blobs[receipt.blob_id].decode("utf-8")
    assert receipt.ephemeral_secret not in stored
    assert "Package left at the front desk" not in stored
    assert "ephemeral_secret" not in message_index.get(receipt.envelope.message_id).model_dump()


@pytest.mark.asyncio
async def test_wrong_secret_is_rejected(messenger):
    receipt = await _send(messenger)
    with pytest.raises(DecryptionError):
        await messenger.open(receipt.envelope.message_id, "00" * 32)


@pytest.mark.asyncio
async def test_tampered_signal_rejects_proof(messenger, blob_store):
    receipt = await _send(messenger)
    signals = list(receipt.envelope.public_signals)
    signals[2] = str(int(signals[2]) + 1)
    _tamper(blob_store, receipt.blob_id, public_signals=signals)
    with pytest.raises(ProofRejectedError):
        await messenger.open(receipt.envelope.message_id, receipt.ephemeral_secret)


@pytest.mark.asyncio
async def test_tampered_commitment_is_rejected(messenger, blob_store):
    receipt = await _send(messenger)
    _tamper(blob_store, receipt.blob_id, commitment="1")
    with pytest.raises(CommitmentMismatchError):
        await messenger.open(receipt.envelope.message_id, receipt.ephemeral_secret)


@pytest.mark.asyncio
async def test_expired_message_is_rejected(messenger):
    receipt = await _send(messenger)
    with pytest.raises(CommitmentMismatchError):
        await messenger.open(
            receipt.envelope.message_id, receipt.ephemeral_secret, now=receipt.envelope.timestamp + 86401
        )


@pytest.mark.asyncio
async def test_backend_failure_marks_message_failed(hash_context, verification_key, blob_store, message_index):
    gateway = ProofGateway(hash_context, UnavailableBackend(), verification_key)
    messenger = SecureMessenger(hash_context, gateway, blob_store, message_index)
    try:
        with pytest.raises(BackendUnavailableError):
            await messenger.send("order-1", "alice", "bob", "hello")
    finally:
        gateway.close()
    records = await messenger.list_messages("bob")
    assert len(records) == 1
    assert records[0].status == MessageStatus.FAILED
    assert records[0].blob_id is None
    with pytest.raises(MessageNotFoundError):
        await messenger.open(records[0].message_id, "00" * 32)


@pytest.mark.asyncio
async def test_invalid_send_is_not_indexed(messenger):
    with pytest.raises(ValidationError):
        await messenger.send("order-1", "alice", "bob", "")
    with pytest.raises(ValidationError):
        await messenger.send("order-1", " ", "bob", "hello")
    assert await messenger.list_messages("bob") == []


@pytest.mark.asyncio
async def test_list_messages_for_both_participants(messenger):
    first = await _send(messenger, order_id="order-1")
    second = await _send(messenger, order_id="order-2")
    for participant in ("alice", "bob"):
        ids = [r.message_id for r in await messenger.list_messages(participant)]
        assert set(ids) == {first.envelope.message_id, second.envelope.message_id}
    filtered = await messenger.list_messages("bob", "order-2")
    assert [r.message_id for r in filtered] == [second.envelope.message_id]


@pytest.mark.asyncio
async def test_status_updates(messenger):
    receipt = await _send(messenger)
    message_id = receipt.envelope.message_id
    updated = await messenger.update_status(message_id, "delivered")
    assert updated.status == MessageStatus.DELIVERED
    envelope = await messenger.fetch_envelope(message_id)
    assert envelope.status == MessageStatus.DELIVERED

    # out-of-order changes inside the status set are accepted
    assert (await messenger.update_status(message_id, "pending")).status == MessageStatus.PENDING

    with pytest.raises(ValidationError):
        await messenger.update_status(message_id, "archived")
    with pytest.raises(MessageNotFoundError):
        await messenger.update_status("missing", "read")


@pytest.mark.asyncio
async def test_open_unknown_message(messenger):
    with pytest.raises(MessageNotFoundError):
        await messenger.open("missing", "00" * 32)
