"""Request/reply exchanges and the binary transfer conventions.

Every exchange follows the same path::

    Idle -> CommandSent -> ReceivingPayload -> Complete
                       \\-> Error (malformed reply)

The reply shape is looked up in ``COMMAND_SPECS``, so callers only build
an envelope and hand it to :func:`perform`. Functions here expect the
caller to own the channel for the whole exchange; the channel has no
request IDs and interleaving two exchanges would mix their frames.

The channel is any object with ``send_text(str)``, ``send_binary(bytes)``
and ``receive() -> Message``.
"""

from __future__ import annotations

import logging

from ..errors import (
    CallerError,
    MalformedReply,
    ShortRead,
    Usb2SnesConnectionError,
)
from ..models.device import DirEntry
from .commands import (
    Envelope,
    Reply,
    build_get_address,
    build_get_file,
    build_list,
    build_put_address,
    build_put_file,
)
from .framing import chunk_payload, decode_results, encode_command
from .parser import parse_listing, parse_size

logger = logging.getLogger(__name__)

UPLOAD_CHUNK_SIZE = 1024


def send_command(channel, envelope: Envelope) -> None:
    channel.send_text(encode_command(envelope))


def read_results(channel) -> list[str]:
    """Receive the next frame and decode it as a structured reply."""
    message = channel.receive()
    if message.is_binary:
        raise MalformedReply(
            f"Expected a structured reply, got {len(message.data)} binary bytes",
            desynchronized=True,
        )
    return decode_results(message.text)


def read_payload(channel, size: int) -> bytes:
    """Accumulate binary frames until exactly ``size`` bytes have arrived.

    The device may split the payload over any number of frames.

    Raises:
        ShortRead: If the channel fails before ``size`` bytes are read.
        MalformedReply: If a text frame interrupts the payload, or the
            frames carry more than ``size`` bytes.
    """
    buf = bytearray()
    while len(buf) < size:
        try:
            message = channel.receive()
        except Usb2SnesConnectionError as e:
            raise ShortRead(size, len(buf)) from e
        if not message.is_binary:
            raise MalformedReply(
                f"Text frame {message.text!r} inside a {size}-byte payload "
                f"after {len(buf)} bytes",
                desynchronized=True,
            )
        buf += message.data
        if len(buf) > size:
            raise MalformedReply(
                f"Payload overran: expected {size} bytes, got {len(buf)}",
                desynchronized=True,
            )
    logger.debug("Received %d payload bytes", size)
    return bytes(buf)


def send_payload(channel, data: bytes, chunk_size: int = UPLOAD_CHUNK_SIZE) -> int:
    """Stream ``data`` as binary frames in order. Returns the frame count.

    No acknowledgment is read between chunks.
    """
    chunks = chunk_payload(data, chunk_size)
    for chunk in chunks:
        channel.send_binary(chunk)
    logger.debug("Sent %d payload bytes in %d frames", len(data), len(chunks))
    return len(chunks)


def _announced_size(envelope: Envelope) -> int:
    # Sized opcodes carry the byte count as their last operand.
    return int(envelope.operands[-1], 16)


def perform(
    channel,
    envelope: Envelope,
    payload: bytes | None = None,
    chunk_size: int = UPLOAD_CHUNK_SIZE,
):
    """Run one complete exchange for ``envelope``.

    Returns ``None`` for fire-and-forget commands, the result strings for
    structured replies, the payload bytes for reads and downloads, and the
    number of binary frames sent for uploads.
    """
    reply = envelope.spec.reply

    if reply is Reply.UPLOAD:
        expected = _announced_size(envelope)
        if payload is None or len(payload) != expected:
            raise CallerError(
                f"{envelope.opcode.value} announces {expected} bytes, "
                f"payload has {0 if payload is None else len(payload)}"
            )
    elif payload is not None:
        raise CallerError(f"{envelope.opcode.value} does not take a payload")

    send_command(channel, envelope)

    if reply is Reply.NONE:
        return None
    if reply is Reply.RESULTS:
        return read_results(channel)
    if reply is Reply.MEMORY:
        return read_payload(channel, _announced_size(envelope))
    if reply is Reply.DOWNLOAD:
        try:
            results = read_results(channel)
        except MalformedReply as e:
            # The file body may already be on its way.
            raise MalformedReply(str(e), desynchronized=True) from e
        return read_payload(channel, parse_size(results))
    return send_payload(channel, payload, chunk_size)


def memory_read(channel, address: int, size: int) -> bytes:
    """Read ``size`` bytes of SNES memory starting at ``address``."""
    return perform(channel, build_get_address(address, size))


def memory_write(
    channel, address: int, data: bytes, chunk_size: int = UPLOAD_CHUNK_SIZE
) -> int:
    """Write ``data`` to SNES memory starting at ``address``."""
    return perform(channel, build_put_address(address, len(data)), data, chunk_size)


def download(channel, path: str) -> bytes:
    """Fetch a whole remote file; its size arrives first as a hex string."""
    return perform(channel, build_get_file(path))


def upload(
    channel, path: str, content: bytes, chunk_size: int = UPLOAD_CHUNK_SIZE
) -> int:
    """Write ``content`` to a remote file. Returns the frame count."""
    return perform(channel, build_put_file(path, len(content)), content, chunk_size)


def list_directory(channel, path: str) -> list[DirEntry]:
    """List a remote directory, preserving the device's entry order."""
    return parse_listing(perform(channel, build_list(path)))
