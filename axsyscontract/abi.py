"""Encoding of contract calls that take a single dynamic ``bytes`` argument."""

from __future__ import annotations

from .common import keccak256

_WORD = 32


class AbiError(ValueError):
    """Call data could not be decoded."""


def method_id(signature: str) -> bytes:
    """Return the 4-byte selector for a function signature such as ``Submit(bytes)``."""
    return keccak256(signature.encode())[:4]


def _word(value: int) -> bytes:
    return value.to_bytes(_WORD, "big")


def encode_bytes_call(signature: str, payload: bytes) -> bytes:
    """Encode a call of ``signature`` with ``payload`` as its only bytes argument."""
    payload = bytes(payload)
    padding = (-len(payload)) % _WORD
    return (
        method_id(signature)
        + _word(_WORD)
        + _word(len(payload))
        + payload
        + bytes(padding)
    )


def decode_bytes_argument(data: bytes) -> bytes:
    """Decode the single bytes argument from call data with the selector removed."""
    data = bytes(data)
    if not data:
        raise AbiError("abi: attempting to unmarshall an empty string while arguments are expected")
    if len(data) < _WORD:
        raise AbiError(
            f"abi: cannot marshal in to go type: length insufficient {len(data)} require {_WORD}"
        )
    offset = int.from_bytes(data[:_WORD], "big")
    if offset + _WORD > len(data):
        raise AbiError(
            f"abi: cannot marshal in to go slice: offset {offset + _WORD} "
            f"would go over slice boundary (len={len(data)})"
        )
    length = int.from_bytes(data[offset:offset + _WORD], "big")
    start = offset + _WORD
    if start + length > len(data):
        raise AbiError(
            f"abi: cannot marshal in to go type: length insufficient {len(data)} "
            f"require {start + length}"
        )
    return data[start:start + length]