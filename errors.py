# farcaster/errors.py


class FarcasterError(Exception):
    """Base class for every error raised by the envelope core."""


class EncodeError(FarcasterError, ValueError):
    pass


class FieldTooLarge(EncodeError):
    def __init__(self, field: str, size: int, limit: int) -> None:
        super().__init__(f"{field} is {size} bytes, limit is {limit}")
        self.field = field
        self.size = size
        self.limit = limit


class InvalidDescriptor(EncodeError):
    def __init__(self, descriptor) -> None:
        super().__init__(f"descriptor must be an int in 0..255, got {descriptor!r}")
        self.descriptor = descriptor


class DecodeError(FarcasterError, ValueError):
    pass


class Truncated(DecodeError):
    """Fewer bytes than the declared field lengths require."""

    def __init__(self, needed: int, available: int) -> None:
        super().__init__(f"frame needs {needed} bytes, only {available} available")
        self.needed = needed
        self.available = available


class Malformed(DecodeError):
    pass


class CipherError(FarcasterError):
    pass


class AuthenticationFailed(CipherError):
    """The AEAD tag did not verify: tampered data, wrong key or wrong nonce."""


class InvalidKeyMaterial(CipherError, ValueError):
    pass


class ConnectError(FarcasterError, ConnectionError):
    pass


class ReceiveError(FarcasterError):
    pass


class ConnectionClosed(ReceiveError, ConnectionError):
    """The stream ended before a whole frame was read."""

    def __init__(self, received: int = 0) -> None:
        if received:
            msg = f"connection closed after {received} bytes of a frame"
        else:
            msg = "connection closed"
        super().__init__(msg)
        self.received = received


class ProtocolError(ReceiveError):
    """Bytes on the wire do not form a valid frame. The cause is kept in ``error``."""

    def __init__(self, error: DecodeError) -> None:
        super().__init__(f"protocol error: {error}")
        self.error = error
