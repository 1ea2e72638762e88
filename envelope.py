# farcaster/envelope.py
import json
import logging
import struct
from dataclasses import dataclass
from typing import Any, Tuple

from errors import FieldTooLarge, InvalidDescriptor, Malformed, Truncated

MAX_FIELD_LEN = 0xFFFF  # 16-bit length fields
MAX_DESCRIPTOR = 0xFF

_HEADER = struct.Struct("!BH")  # descriptor, payload length
_LENGTH = struct.Struct("!H")   # metadata length

HEADER_LEN = _HEADER.size
LENGTH_LEN = _LENGTH.size
MIN_FRAME_LEN = HEADER_LEN + LENGTH_LEN

ENC = "utf-8"


def _serialize(value: Any) -> bytes:
    return json.dumps(value, ensure_ascii=False).encode(ENC)


def _deserialize(data: bytes, field: str) -> Any:
    try:
        return json.loads(data.decode(ENC))
    except (UnicodeDecodeError, ValueError) as exc:
        raise Malformed(f"{field} is not a serialized value: {exc}") from exc


def _check_descriptor(descriptor) -> int:
    # bool is an int subclass but never a meaningful tag
    if isinstance(descriptor, bool) or not isinstance(descriptor, int):
        raise InvalidDescriptor(descriptor)
    if not 0 <= descriptor <= MAX_DESCRIPTOR:
        raise InvalidDescriptor(descriptor)
    return descriptor


@dataclass
class Envelope:
    """One message: a descriptor tag, the payload and auxiliary metadata.

    Nothing here knows whether ``payload`` currently holds plaintext or
    ciphertext. Callers decrypt exactly once, before ``decode_payload``.
    """

    descriptor: int = 0
    payload: bytes = b""
    metadata: bytes = b""

    def override_descriptor(self, byte: int) -> "Envelope":
        self.descriptor = _check_descriptor(byte)
        return self

    def insert_payload(self, value: Any) -> "Envelope":
        """Serialize ``value`` into the payload field."""
        logging.debug("Inserted payload: %r", value)
        self.payload = _serialize(value)
        logging.debug("Serialized payload data: %s", self.payload.hex())
        return self

    def insert_metadata(self, value: Any) -> "Envelope":
        logging.debug("Inserted metadata: %r", value)
        self.metadata = _serialize(value)
        logging.debug("Serialized metadata: %s", self.metadata.hex())
        return self

    def decode_payload(self) -> Any:
        return _deserialize(self.payload, "payload")

    def decode_metadata(self) -> Any:
        return _deserialize(self.metadata, "metadata")


def frame_length(envelope: Envelope) -> int:
    return MIN_FRAME_LEN + len(envelope.payload) + len(envelope.metadata)


def encode(envelope: Envelope) -> bytes:
    """Envelope -> ``descriptor || len(payload) || payload || len(metadata) || metadata``."""
    descriptor = _check_descriptor(envelope.descriptor)
    payload = bytes(envelope.payload)
    metadata = bytes(envelope.metadata)
    if len(payload) > MAX_FIELD_LEN:
        raise FieldTooLarge("payload", len(payload), MAX_FIELD_LEN)
    if len(metadata) > MAX_FIELD_LEN:
        raise FieldTooLarge("metadata", len(metadata), MAX_FIELD_LEN)
    return b"".join((
        _HEADER.pack(descriptor, len(payload)),
        payload,
        _LENGTH.pack(len(metadata)),
        metadata,
    ))


def decode_frame(data: bytes) -> Tuple[Envelope, int]:
    """Decode the first frame in ``data``.

    Returns the envelope and the number of bytes the frame occupied. Whatever
    follows the frame in ``data`` is left alone, so a buffer holding several
    frames can be walked by slicing off ``consumed`` bytes at a time.
    """
    try:
        view = memoryview(data)
    except TypeError as exc:
        raise Malformed(f"cannot decode {type(data).__name__}") from exc
    available = len(view)
    if available == 0:
        raise Malformed("empty frame")
    if available < HEADER_LEN:
        raise Truncated(HEADER_LEN, available)

    descriptor, payload_len = _HEADER.unpack_from(view, 0)
    offset = HEADER_LEN
    needed = offset + payload_len + LENGTH_LEN
    if available < needed:
        raise Truncated(needed, available)
    payload = bytes(view[offset:offset + payload_len])
    offset += payload_len

    (metadata_len,) = _LENGTH.unpack_from(view, offset)
    offset += LENGTH_LEN
    needed = offset + metadata_len
    if available < needed:
        raise Truncated(needed, available)
    metadata = bytes(view[offset:needed])

    return Envelope(descriptor, payload, metadata), needed


def decode(data: bytes) -> Envelope:
    return decode_frame(data)[0]
