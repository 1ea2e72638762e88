# farcaster/crypto/base.py
from typing import Tuple

from errors import InvalidKeyMaterial

KEY_LEN = 32    # AES-256
NONCE_LEN = 12  # 96-bit GCM nonce
TAG_LEN = 16

_BYTES_LIKE = (bytes, bytearray, memoryview)


def _material(value, name: str, length: int) -> bytes:
    # bytes(32) would silently build a zero key, so ints are refused up front
    if not isinstance(value, _BYTES_LIKE):
        raise InvalidKeyMaterial(f"{name} must be bytes, got {type(value).__name__}")
    value = bytes(value)
    if len(value) != length:
        raise InvalidKeyMaterial(f"{name} must be exactly {length} bytes, got {len(value)}")
    return value


def check_key_material(key, nonce) -> Tuple[bytes, bytes]:
    """Validate a pre-shared key/nonce pair and return both as ``bytes``."""
    return _material(key, "key", KEY_LEN), _material(nonce, "nonce", NONCE_LEN)
