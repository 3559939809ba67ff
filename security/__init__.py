# security/__init__.py
# Import SecureMessenger from security.secure_communication; core imports this package.
from .secure_envelope import (
    EncryptedPayload,
    MessageEnvelope,
    MessageRecord,
    MessageStatus,
    OpenedMessage,
    SendReceipt,
    parse_status,
)

__all__ = [
    "EncryptedPayload",
    "MessageEnvelope",
    "MessageRecord",
    "MessageStatus",
    "OpenedMessage",
    "SendReceipt",
    "parse_status",
]
