import pytest

from axsyscontract.abi import (
    AbiError,
    decode_bytes_argument,
    encode_bytes_call,
    method_id,
)


def test_method_ids_match_known_selectors():
    assert method_id("Submit(bytes)") == bytes([83, 44, 81, 214])
    assert method_id("Remove(bytes)") == bytes([42, 198, 250, 166])


@pytest.mark.parametrize(
    "payload",
    [b"", b"x", b"{}", b"a" * 32, b"b" * 33, bytes(range(200))],
)
def test_encode_decode_roundtrip(payload):
    encoded = encode_bytes_call("Submit(bytes)", payload)
    assert encoded[:4] == method_id("Submit(bytes)")
    assert (len(encoded) - 4) % 32 == 0
    assert decode_bytes_argument(encoded[4:]) == payload


def test_encoded_layout_for_empty_payload():
    encoded = encode_bytes_call("Remove(bytes)", b"")
    body = encoded[4:]
    assert len(body) == 64
    assert int.from_bytes(body[:32], "big") == len(body) // 2
    assert int.from_bytes(body[32:], "big") == 0


def test_decode_empty_data_message():
    with pytest.raises(AbiError) as info:
        decode_bytes_argument(b"")
    assert str(info.value) == (
        "abi: attempting to unmarshall an empty string while arguments are expected"
    )


def test_decode_short_data_fails():
    with pytest.raises(AbiError):
        decode_bytes_argument(b"\x00" * 5)


def test_decode_offset_past_end_fails():
    data = (1000).to_bytes(32, "big") + bytes(32)
    with pytest.raises(AbiError):
        decode_bytes_argument(data)


def test_decode_length_past_end_fails():
    encoded = encode_bytes_call("Submit(bytes)", b"hello")[4:]
    truncated = encoded[:64]
    with pytest.raises(AbiError):
        decode_bytes_argument(truncated)


def test_abi_error_is_value_error():
    with pytest.raises(ValueError):
        decode_bytes_argument(b"")