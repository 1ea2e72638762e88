# tests/test_envelope.py
import pytest

from envelope import MAX_FIELD_LEN, Envelope, decode, decode_frame, encode, frame_length
from errors import FieldTooLarge, InvalidDescriptor, Malformed, Truncated


def test_wire_layout():
    e = Envelope(descriptor=7, payload=b"abc", metadata=b"\x01\x02")
    assert encode(e) == b"\x07" + b"\x00\x03" + b"abc" + b"\x00\x02" + b"\x01\x02"


def test_empty_fields():
    frame = encode(Envelope(descriptor=255))
    assert frame == b"\xff\x00\x00\x00\x00"
    assert decode(frame) == Envelope(descriptor=255)


@pytest.mark.parametrize("e", [
    Envelope(0, b"", b""),
    Envelope(1, b"login:alice", b""),
    Envelope(200, bytes(range(256)) * 3, b'{"route": "a"}'),
    Envelope(42, b"\x00" * MAX_FIELD_LEN, b"\xff" * MAX_FIELD_LEN),
])
def test_round_trip(e):
    frame = encode(e)
    assert len(frame) == frame_length(e)
    assert decode(frame) == e


def test_max_payload_accepted():
    e = Envelope(1, b"x" * 65535)
    assert decode(encode(e)).payload == e.payload


def test_oversized_payload_rejected():
    with pytest.raises(FieldTooLarge) as info:
        encode(Envelope(1, b"x" * 65536))
    assert info.value.field == "payload"
    assert info.value.size == 65536


def test_oversized_metadata_rejected():
    with pytest.raises(FieldTooLarge) as info:
        encode(Envelope(1, b"", b"m" * 65536))
    assert info.value.field == "metadata"


@pytest.mark.parametrize("descriptor", [-1, 256, 1.0, "1", True, None])
def test_invalid_descriptor(descriptor):
    with pytest.raises(InvalidDescriptor):
        encode(Envelope(descriptor, b"x"))


def test_decode_empty_is_malformed():
    with pytest.raises(Malformed):
        decode(b"")


def test_decode_non_bytes_is_malformed():
    with pytest.raises(Malformed):
        decode("not bytes")


@pytest.mark.parametrize("cut", [1, 2, 3, 5, 7, 8, 9, 10])
def test_decode_truncated(cut):
    frame = encode(Envelope(3, b"abcd", b"mm"))
    assert len(frame) == 11
    with pytest.raises(Truncated) as info:
        decode(frame[:cut])
    assert info.value.available == cut
    assert info.value.needed > cut


def test_decode_stops_at_frame_end():
    first = encode(Envelope(1, b"one", b"m"))
    second = encode(Envelope(2, b"two"))
    buf = first + second

    e, consumed = decode_frame(buf)
    assert e == Envelope(1, b"one", b"m")
    assert consumed == len(first)

    e, consumed = decode_frame(buf[consumed:])
    assert e == Envelope(2, b"two")
    assert consumed == len(second)


def test_decode_accepts_bytearray_and_memoryview():
    frame = encode(Envelope(9, b"p", b"q"))
    assert decode(bytearray(frame)) == Envelope(9, b"p", b"q")
    assert decode(memoryview(frame)) == Envelope(9, b"p", b"q")


def test_insert_and_decode_values():
    e = Envelope().override_descriptor(1).insert_payload("login:alice").insert_metadata({"to": "cannon"})
    assert e.descriptor == 1
    assert e.payload == b'"login:alice"'
    assert e.decode_payload() == "login:alice"
    assert e.decode_metadata() == {"to": "cannon"}

    got = decode(encode(e))
    assert got.decode_payload() == "login:alice"
    assert got.decode_metadata() == {"to": "cannon"}


def test_unicode_values():
    e = Envelope().insert_payload("Привет, мир 🌍")
    assert e.decode_payload() == "Привет, мир 🌍"


def test_decode_payload_garbage_is_malformed():
    with pytest.raises(Malformed):
        Envelope(1, b"\xff\xfe not json").decode_payload()


def test_override_descriptor_validates():
    e = Envelope(1)
    with pytest.raises(InvalidDescriptor):
        e.override_descriptor(300)
    assert e.descriptor == 1
