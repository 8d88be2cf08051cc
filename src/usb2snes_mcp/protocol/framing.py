"""Wire framing for the usb2snes WebSocket protocol.

Requests are single text frames holding a JSON object::

    {"Opcode": "GetAddress", "Space": "SNES", "Flags": [], "Operands": ["f50000", "10"]}

Structured replies are text frames holding ``{"Results": [...]}`` where
every result is a string. Binary payloads travel as binary frames with no
header; the receiver knows their total length from the request or from a
preceding size reply, never from the frames themselves.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

from ..errors import MalformedReply
from .commands import Envelope


@dataclass(frozen=True)
class Message:
    """A frame received from the channel: either ``text`` or ``data``."""

    text: str | None = None
    data: bytes | None = None

    @property
    def is_binary(self) -> bool:
        return self.data is not None

    def __repr__(self) -> str:
        if self.is_binary:
            return f"Message(binary, {len(self.data)} bytes)"
        return f"Message(text={self.text!r})"


def encode_command(envelope: Envelope) -> str:
    """Serialize an envelope into the JSON text of a request frame."""
    return json.dumps(
        {
            "Opcode": envelope.opcode.value,
            "Space": envelope.space.wire_name,
            "Flags": [flag.value for flag in envelope.flags],
            "Operands": list(envelope.operands),
        }
    )


def decode_results(text: str) -> list[str]:
    """Parse a structured reply frame into its ordered result strings.

    Raises:
        MalformedReply: If the frame is not a ``{"Results": [str, ...]}`` object.
    """
    try:
        reply = json.loads(text)
    except (TypeError, ValueError) as e:
        raise MalformedReply(f"Reply is not valid JSON: {text!r}") from e

    if not isinstance(reply, dict) or "Results" not in reply:
        raise MalformedReply(f"Reply has no Results list: {text!r}")

    results = reply["Results"]
    if not isinstance(results, list) or not all(isinstance(r, str) for r in results):
        raise MalformedReply(f"Results must be a list of strings: {results!r}")
    return results


def chunk_payload(data: bytes, chunk_size: int) -> list[bytes]:
    """Split ``data`` into binary frames of at most ``chunk_size`` bytes.

    Produces ``ceil(len(data) / chunk_size)`` chunks; only the last one may
    be shorter. Empty data produces no chunks.
    """
    if chunk_size <= 0:
        raise ValueError(f"Chunk size must be positive, got {chunk_size}")
    return [
        bytes(data[offset : offset + chunk_size])
        for offset in range(0, len(data), chunk_size)
    ]
