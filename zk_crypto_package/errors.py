# zk_crypto_package/errors.py
from typing import Any, Optional


class ProtocolError(Exception):
    """Base class for every error raised by the messaging protocol."""
    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(ProtocolError):
    """Malformed or missing input at the protocol boundary."""
    status_code = 400


class ProofFormatError(ValidationError):
    """Proof, public signals or verification key do not have the expected shape."""


class MessageNotFoundError(ProtocolError):
    status_code = 404


class CryptographicError(ProtocolError):
    """A definite cryptographic rejection. Never a transport failure."""
    status_code = 422


class DecryptionError(CryptographicError):
    pass


class CommitmentMismatchError(CryptographicError):
    pass


class ProofRejectedError(CryptographicError):
    pass


class BackendUnavailableError(ProtocolError):
    """Proving backend or store unreachable. Does not mean the proof is invalid."""
    status_code = 503


class OperationTimeoutError(BackendUnavailableError):
    status_code = 504


class InitializationError(ProtocolError):
    """The algebraic hash primitive could not be built."""
    status_code = 503
