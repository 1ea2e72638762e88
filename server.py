# farcaster/server.py
import argparse
import asyncio
import logging
from typing import Awaitable, Callable, Optional

from common import KEY_ENV, NONCE_ENV, default_addr, hex_bytes, parse_addr, resolve_key_material
from crypto.base import check_key_material
from crypto.aesgcm import decrypt_payload
from envelope import MAX_FIELD_LEN, Envelope
from errors import CipherError, ConnectionClosed, EncodeError, ProtocolError
from transport import Transport

Handler = Callable[[Envelope], Awaitable[Optional[Envelope]]]


class EnvelopeServer:
    """Accepts connections and runs one independent session per connection.

    ``handler`` is called with every envelope a peer sends; if it returns an
    envelope, that is sent back on the same connection. Sessions share
    nothing, and a failure in one only closes that connection.
    """

    def __init__(
        self,
        handler: Handler,
        max_payload: int = MAX_FIELD_LEN,
        max_metadata: int = MAX_FIELD_LEN,
    ) -> None:
        self.handler = handler
        self.max_payload = max_payload
        self.max_metadata = max_metadata
        self._server: asyncio.Server | None = None

    async def start(self, host: str = "127.0.0.1", port: int = 1234) -> asyncio.Server:
        self._server = await asyncio.start_server(self._handle_client, host, port)
        return self._server

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """Session loop for one accepted connection; passed to ``asyncio.start_server``."""
        transport = Transport.from_stream(
            reader, writer, max_payload=self.max_payload, max_metadata=self.max_metadata
        )
        peer = transport.peer
        logging.info("Accepted connection from %s", peer)
        try:
            while True:
                envelope = await transport.receive()
                logging.debug("Envelope from %s: descriptor=%d", peer, envelope.descriptor)
                reply = await self.handler(envelope)
                if reply is not None:
                    await transport.send(reply)
        except ConnectionClosed:
            logging.info("Client %s disconnected", peer)
        except ProtocolError as exc:
            logging.error("Dropping %s: %s", peer, exc)
        except (CipherError, EncodeError) as exc:
            logging.error("Dropping %s: %s", peer, exc)
        except OSError:
            logging.error("Lost connection to %s", peer)
        except Exception:
            logging.exception("Unhandled error in session with %s", peer)
        finally:
            await transport.close()


def logging_handler(key: Optional[bytes] = None, nonce: Optional[bytes] = None) -> Handler:
    """Handler that logs each envelope, decrypting the payload when key material is given."""

    async def handle(envelope: Envelope) -> None:
        payload = envelope.payload
        if key is not None:
            payload = decrypt_payload(envelope, key, nonce)
        logging.info(
            "descriptor=%d payload=%r metadata=%r",
            envelope.descriptor, payload, envelope.metadata,
        )
        return None

    return handle


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="farcaster-server", description="Receive envelopes and log them")
    parser.add_argument("--addr", default=default_addr(), help="listening address, host:port")
    parser.add_argument("--key", type=hex_bytes, default=None, help=f"hex AES-256 key (or ${KEY_ENV})")
    parser.add_argument("--nonce", type=hex_bytes, default=None, help=f"hex 96-bit nonce (or ${NONCE_ENV})")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


async def amain(addr: str, key: Optional[bytes] = None, nonce: Optional[bytes] = None) -> None:
    host, port = parse_addr(addr)
    server = EnvelopeServer(logging_handler(key, nonce))
    srv = await server.start(host, port)
    logging.info("Starting server on '%s'", addr)
    async with srv:
        await srv.serve_forever()


def main(argv=None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    try:
        key, nonce = resolve_key_material(args.key, args.nonce)
        if key is not None:
            check_key_material(key, nonce)
        parse_addr(args.addr)
    except ValueError as exc:
        raise SystemExit(f"farcaster-server: {exc}")
    asyncio.run(amain(args.addr, key, nonce))


if __name__ == "__main__":
    main()
