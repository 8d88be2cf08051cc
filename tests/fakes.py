"""In-memory stand-ins for the WebSocket channel."""

from __future__ import annotations

import json
from collections import deque

from usb2snes_mcp.errors import Usb2SnesConnectionError
from usb2snes_mcp.protocol.framing import Message


def results(*values: str) -> Message:
    """A structured reply frame."""
    return Message(text=json.dumps({"Results": list(values)}))


def binary(data: bytes) -> Message:
    return Message(data=bytes(data))


def split(data: bytes, size: int) -> list[Message]:
    """Binary frames carrying ``data`` in pieces of ``size`` bytes."""
    return [binary(data[i : i + size]) for i in range(0, len(data), size)]


class FakeChannel:
    """Scripted channel: replays queued frames and records what was sent.

    Queued exceptions are raised from ``receive``; an empty queue behaves
    like a closed connection. ``on_receive`` runs before each receive.
    """

    def __init__(self, replies=(), on_receive=None) -> None:
        self.replies = deque(replies)
        self.sent: list[tuple[str, object]] = []
        self.on_receive = on_receive
        self.receive_count = 0
        self.closed = False

    def send_text(self, text: str) -> None:
        self.sent.append(("text", text))

    def send_binary(self, data: bytes) -> None:
        self.sent.append(("binary", bytes(data)))

    def receive(self) -> Message:
        self.receive_count += 1
        if self.on_receive is not None:
            self.on_receive(self)
        if not self.replies:
            raise Usb2SnesConnectionError("channel closed")
        item = self.replies.popleft()
        if isinstance(item, BaseException):
            raise item
        return item

    def close(self) -> None:
        self.closed = True

    def queue(self, *messages: Message) -> None:
        self.replies.extend(messages)

    @property
    def commands(self) -> list[dict]:
        return [json.loads(payload) for kind, payload in self.sent if kind == "text"]

    @property
    def binary_frames(self) -> list[bytes]:
        return [payload for kind, payload in self.sent if kind == "binary"]


class FakeDevice:
    """Channel backed by an in-memory SD card, answering like a server.

    Supports PutFile, GetFile, List and Remove; downloads are sent back in
    frames of ``frame_size`` bytes.
    """

    def __init__(self, frame_size: int = 1024) -> None:
        self.files: dict[str, bytes] = {}
        self.frame_size = frame_size
        self.outbox: deque[Message] = deque()
        self._upload_path: str | None = None
        self._upload_size = 0
        self._upload_buf = bytearray()

    def send_text(self, text: str) -> None:
        request = json.loads(text)
        opcode, operands = request["Opcode"], request["Operands"]
        if opcode == "PutFile":
            self._upload_path = operands[0]
            self._upload_size = int(operands[1], 16)
            self._upload_buf = bytearray()
            self._finish_upload()
        elif opcode == "GetFile":
            data = self.files[operands[0]]
            self.outbox.append(results(f"{len(data):x}"))
            self.outbox.extend(split(data, self.frame_size))
        elif opcode == "List":
            prefix = operands[0].rstrip("/") + "/"
            names = [p[len(prefix):] for p in self.files if p.startswith(prefix)]
            pairs = []
            for name in names:
                pairs += ["1", name]
            self.outbox.append(results(*pairs))
        elif opcode == "Remove":
            self.files.pop(operands[0], None)

    def send_binary(self, data: bytes) -> None:
        assert self._upload_path is not None, "binary frame outside an upload"
        self._upload_buf += data
        self._finish_upload()

    def _finish_upload(self) -> None:
        if self._upload_path is not None and len(self._upload_buf) == self._upload_size:
            self.files[self._upload_path] = bytes(self._upload_buf)
            self._upload_path = None

    def receive(self) -> Message:
        if not self.outbox:
            raise Usb2SnesConnectionError("channel closed")
        return self.outbox.popleft()

    def close(self) -> None:
        pass
