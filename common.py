# farcaster/common.py
import asyncio
import os
import struct
from typing import Tuple

from envelope import HEADER_LEN, LENGTH_LEN, MAX_FIELD_LEN
from errors import Malformed

DEFAULT_SERVER_ADDR = "127.0.0.1:1234"
ADDR_ENV = "FARCASTER_ADDR"
KEY_ENV = "FARCASTER_KEY"
NONCE_ENV = "FARCASTER_NONCE"


def _check_length(field: str, size: int, limit: int) -> None:
    if size > limit:
        raise Malformed(f"declared {field} length {size} exceeds limit {limit}")


async def read_frame(
    reader: asyncio.StreamReader,
    max_payload: int = MAX_FIELD_LEN,
    max_metadata: int = MAX_FIELD_LEN,
) -> bytes:
    """Read exactly one frame, field by field, and return its raw bytes.

    Every read is sized by what the frame has declared so far, so bytes of the
    next frame are never consumed. Raises ``asyncio.IncompleteReadError`` with
    the frame bytes received so far in ``partial`` if the stream ends first.
    """
    frame = bytearray()

    async def take(n: int) -> bytes:
        try:
            chunk = await reader.readexactly(n)
        except asyncio.IncompleteReadError as exc:
            raise asyncio.IncompleteReadError(bytes(frame) + exc.partial, len(frame) + n) from None
        frame.extend(chunk)
        return chunk

    header = await take(HEADER_LEN)
    payload_len = struct.unpack("!H", header[1:])[0]
    _check_length("payload", payload_len, max_payload)
    await take(payload_len)

    metadata_len = struct.unpack("!H", await take(LENGTH_LEN))[0]
    _check_length("metadata", metadata_len, max_metadata)
    await take(metadata_len)
    return bytes(frame)


async def write_frame(writer: asyncio.StreamWriter, frame: bytes) -> None:
    writer.write(frame)
    await writer.drain()  # flush


async def close_writer(writer: asyncio.StreamWriter) -> None:
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        # peer already reset the connection; the socket is closed either way
        pass


def parse_addr(addr: str) -> Tuple[str, int]:
    """``"host:port"`` -> ``(host, port)``. IPv6 hosts may be bracketed."""
    host, sep, port = addr.rpartition(":")
    if not sep or not host:
        raise ValueError(f"address must look like host:port, got {addr!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    port_num = int(port)
    if not 0 <= port_num <= 0xFFFF:
        raise ValueError(f"port out of range: {port_num}")
    return host, port_num


def default_addr() -> str:
    return os.environ.get(ADDR_ENV, DEFAULT_SERVER_ADDR)


def hex_bytes(value: str) -> bytes:
    """argparse type for hex encoded key material."""
    return bytes.fromhex(value)


def _env_hex(name: str) -> bytes | None:
    value = os.environ.get(name)
    return bytes.fromhex(value) if value else None


def resolve_key_material(key: bytes | None, nonce: bytes | None) -> Tuple[bytes | None, bytes | None]:
    """Fill in key/nonce from the environment when not given on the command line."""
    if key is None:
        key = _env_hex(KEY_ENV)
    if nonce is None:
        nonce = _env_hex(NONCE_ENV)
    if (key is None) != (nonce is None):
        raise ValueError("key and nonce must be given together")
    return key, nonce
