# farcaster/crypto/aesgcm.py
import logging

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from crypto.base import TAG_LEN, check_key_material
from envelope import Envelope
from errors import AuthenticationFailed


def encrypt_payload(envelope: Envelope, key: bytes, nonce: bytes) -> None:
    """Replace ``envelope.payload`` with its AES-256-GCM ciphertext.

    The result is ciphertext followed by the 16 byte tag, so the payload grows
    by ``TAG_LEN`` bytes. No associated data is authenticated: descriptor and
    metadata go out as they are. The key/nonce pair must never be reused for a
    different payload.
    """
    key, nonce = check_key_material(key, nonce)
    aead = AESGCM(key)
    envelope.payload = aead.encrypt(nonce, bytes(envelope.payload), None)
    logging.debug("Encrypted payload data: %s", envelope.payload.hex())


def decrypt_payload(envelope: Envelope, key: bytes, nonce: bytes) -> bytes:
    """Return the plaintext of ``envelope.payload``; the envelope is not modified.

    Raises ``AuthenticationFailed`` if the tag does not verify.
    """
    key, nonce = check_key_material(key, nonce)
    payload = bytes(envelope.payload)
    if len(payload) < TAG_LEN:
        raise AuthenticationFailed(f"payload of {len(payload)} bytes is shorter than the tag")
    aead = AESGCM(key)
    try:
        plaintext = aead.decrypt(nonce, payload, None)
    except InvalidTag:
        raise AuthenticationFailed("payload failed authentication") from None
    logging.debug("Decrypted %d payload bytes", len(plaintext))
    return plaintext
