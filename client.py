# farcaster/client.py
import argparse
import asyncio
import dataclasses
import json
import logging

from common import KEY_ENV, NONCE_ENV, default_addr, hex_bytes, parse_addr, resolve_key_material
from crypto.aesgcm import decrypt_payload, encrypt_payload
from crypto.base import check_key_material
from envelope import Envelope, frame_length
from errors import FarcasterError
from transport import Transport


async def send_one(
    host: str,
    port: int,
    envelope: Envelope,
    key: bytes | None = None,
    nonce: bytes | None = None,
    wait: bool = False,
    timeout: float | None = None,
) -> Envelope | None:
    """Connect, send ``envelope`` (encrypted when key material is given) and optionally wait for one reply.

    The caller's envelope is left as it was; a copy is encrypted. A reply is
    decrypted with the same key/nonce before it is returned.
    """
    if key is not None:
        envelope = dataclasses.replace(envelope)
        encrypt_payload(envelope, key, nonce)
    async with await Transport.connect(host, port, timeout=timeout) as transport:
        await transport.send(envelope)
        logging.info("Sent %d byte frame to %s:%s", frame_length(envelope), host, port)
        if not wait:
            return None
        reply = await asyncio.wait_for(transport.receive(), timeout=timeout)
    if key is not None:
        reply.payload = decrypt_payload(reply, key, nonce)
    return reply


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="farcaster-client", description="Send one envelope")
    parser.add_argument("message", help="payload value, sent serialized")
    parser.add_argument("--addr", default=default_addr(), help="server address, host:port")
    parser.add_argument("--descriptor", type=int, default=0, help="message kind tag, 0..255")
    parser.add_argument("--metadata", type=json.loads, default=None, help="JSON value for the metadata field")
    parser.add_argument("--key", type=hex_bytes, default=None, help=f"hex AES-256 key (or ${KEY_ENV})")
    parser.add_argument("--nonce", type=hex_bytes, default=None, help=f"hex 96-bit nonce (or ${NONCE_ENV})")
    parser.add_argument("--wait", action="store_true", help="wait for a reply and print it")
    parser.add_argument("--timeout", type=float, default=None, help="seconds to wait for connect and reply")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    try:
        host, port = parse_addr(args.addr)
        key, nonce = resolve_key_material(args.key, args.nonce)
        if key is not None:
            check_key_material(key, nonce)
        envelope = Envelope().override_descriptor(args.descriptor).insert_payload(args.message)
        if args.metadata is not None:
            envelope.insert_metadata(args.metadata)
    except ValueError as exc:
        raise SystemExit(f"farcaster-client: {exc}")

    try:
        reply = asyncio.run(send_one(host, port, envelope, key, nonce, wait=args.wait, timeout=args.timeout))
    except (FarcasterError, OSError, asyncio.TimeoutError) as exc:
        logging.error("%s", exc)
        return 1
    if reply is not None:
        print(f"descriptor={reply.descriptor} payload={reply.payload!r} metadata={reply.metadata!r}", flush=True)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
