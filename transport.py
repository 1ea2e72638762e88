# farcaster/transport.py
import asyncio
import logging

from common import close_writer, read_frame, write_frame
from envelope import MAX_FIELD_LEN, Envelope, decode, encode
from errors import ConnectError, ConnectionClosed, DecodeError, ProtocolError


class Transport:
    """Frame level send/receive over one connected stream.

    A transport is Connected from construction until ``close`` or the first
    stream/protocol failure, then Disconnected for good. It never encrypts;
    callers run ``encrypt_payload``/``decrypt_payload`` around ``send`` and
    ``receive``. One transport belongs to one task: concurrent ``receive``
    calls on the same instance are not supported.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        max_payload: int = MAX_FIELD_LEN,
        max_metadata: int = MAX_FIELD_LEN,
    ) -> None:
        self.reader: asyncio.StreamReader | None = reader
        self.writer: asyncio.StreamWriter | None = writer
        self.max_payload = max_payload
        self.max_metadata = max_metadata
        self.peer = writer.get_extra_info("peername")

    @classmethod
    async def connect(
        cls,
        host: str,
        port: int,
        timeout: float | None = None,
        **limits: int,
    ) -> "Transport":
        try:
            reader, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise ConnectError(f"timed out connecting to {host}:{port}") from exc
        except OSError as exc:
            raise ConnectError(f"cannot connect to {host}:{port}: {exc}") from exc
        logging.debug("Connected to %s:%s", host, port)
        return cls(reader, writer, **limits)

    @classmethod
    def from_stream(
        cls,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        **limits: int,
    ) -> "Transport":
        return cls(reader, writer, **limits)

    @property
    def connected(self) -> bool:
        return self.writer is not None and not self.writer.is_closing()

    async def send(self, envelope: Envelope) -> None:
        """Encode ``envelope`` and return once the whole frame is written and drained."""
        if not self.connected:
            raise ConnectionError("transport is not connected")
        frame = encode(envelope)
        logging.debug("Sending frame to %s: %s", self.peer, frame.hex())
        try:
            await write_frame(self.writer, frame)
        except OSError:
            await self.close()
            raise

    async def receive(self) -> Envelope:
        """Wait for the next complete frame and decode it.

        Raises ``ConnectionClosed`` if the stream ends before the frame is
        complete and ``ProtocolError`` if the bytes are not a valid frame.
        Both leave the transport closed, as does cancelling a pending
        receive (e.g. through ``asyncio.wait_for``).
        """
        if self.reader is None:
            raise ConnectionClosed()
        try:
            frame = await read_frame(self.reader, self.max_payload, self.max_metadata)
        except asyncio.IncompleteReadError as exc:
            await self.close()
            raise ConnectionClosed(len(exc.partial)) from exc
        except DecodeError as exc:
            await self.close()
            raise ProtocolError(exc) from exc
        except OSError as exc:
            await self.close()
            raise ConnectionClosed() from exc
        except asyncio.CancelledError:
            # the frame is half consumed; the stream can no longer be reframed
            self._abort()
            raise
        logging.debug("Received frame from %s: %s", self.peer, frame.hex())

        try:
            return decode(frame)
        except DecodeError as exc:
            await self.close()
            raise ProtocolError(exc) from exc

    def _abort(self) -> None:
        writer, self.writer, self.reader = self.writer, None, None
        if writer is not None:
            writer.close()
            logging.debug("Aborted transport to %s", self.peer)

    async def close(self) -> None:
        writer, self.writer, self.reader = self.writer, None, None
        if writer is not None:
            await close_writer(writer)
            logging.debug("Closed transport to %s", self.peer)

    async def __aenter__(self) -> "Transport":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
