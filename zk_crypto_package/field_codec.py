# zk_crypto_package/field_codec.py
"""
Mapping between strings/bytes and integers of the BN254 scalar field.

Two encodings are used by the protocol and they are deliberately different:

- ``scalar_from_hex`` parses a hex string as-is and never reduces. Callers
  that need a canonical element must reduce (or reject) explicitly.
- ``scalar_from_bytes`` reads bytes big-endian and reduces modulo the field
  prime. This is lossy: any two inputs whose integer values are congruent
  mod p (anything longer than ~31 bytes can wrap) encode to the same element.
  The proving circuit expects exactly this encoding, so it must not change.
"""
import logging
from typing import Union

from .errors import ValidationError
from .protocol_constants import FIELD_PRIME

logger = logging.getLogger(__name__)

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


def strip_hex_prefix(value: str) -> str:
    if value.startswith("0x") or value.startswith("0X"):
        return value[2:]
    return value


def scalar_from_hex(value: str) -> int:
    """Parses an optionally 0x-prefixed hex string. Empty input maps to zero."""
    if not isinstance(value, str):
        raise ValidationError(f"Expected a hex string, got {type(value).__name__}.")
    clean_hex = strip_hex_prefix(value)
    if not clean_hex:
        return 0
    if not all(c in _HEX_DIGITS for c in clean_hex):
        raise ValidationError("Value is not a valid hex string.", {"value": value[:80]})
    return int(clean_hex, 16)


def scalar_from_bytes(data: Union[bytes, bytearray]) -> int:
    """Big-endian integer of ``data`` reduced modulo the field prime (lossy)."""
    if not isinstance(data, (bytes, bytearray)):
        raise ValidationError(f"Expected bytes, got {type(data).__name__}.")
    return int.from_bytes(bytes(data), "big") % FIELD_PRIME


def scalar_from_text(text: str) -> int:
    """UTF-8 encodes ``text`` and maps it with ``scalar_from_bytes``."""
    if not isinstance(text, str):
        raise ValidationError(f"Expected a string, got {type(text).__name__}.")
    return scalar_from_bytes(text.encode("utf-8"))


def reduce_scalar(value: int) -> int:
    return value % FIELD_PRIME


def is_field_element(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value < FIELD_PRIME


def ensure_field_element(value: int, name: str = "value") -> int:
    if not is_field_element(value):
        raise ValidationError(f"{name} is not a canonical field element.", {"name": name})
    return value


def to_decimal(value: int) -> str:
    """Canonical decimal rendering used for witnesses, signals and commitments."""
    return str(ensure_field_element(value))


def to_hex(value: int) -> str:
    return "0x" + format(value, "x")


def scalar_from_decimal(value: str, name: str = "value") -> int:
    """Parses a canonical decimal string (no sign, no leading zeros) into a field element."""
    if not isinstance(value, str) or not value.isdigit() or not value.isascii():
        raise ValidationError(f"{name} must be a decimal string.", {"name": name})
    if len(value) > 1 and value[0] == "0":
        raise ValidationError(f"{name} is not in canonical decimal form.", {"name": name})
    return ensure_field_element(int(value), name)
