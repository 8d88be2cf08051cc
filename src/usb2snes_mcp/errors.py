"""Exception hierarchy for the usb2snes protocol client."""

from __future__ import annotations


class Usb2SnesError(Exception):
    """Base class for every error raised by the client."""


class Usb2SnesConnectionError(Usb2SnesError, ConnectionError):
    """The channel could not be opened, closed unexpectedly, or is unusable."""


class MalformedReply(Usb2SnesError, ValueError):
    """A reply did not have the shape its opcode expects.

    ``desynchronized`` is set when the channel can no longer be trusted
    to be aligned on frame boundaries (unread or surplus binary bytes).
    """

    def __init__(self, message: str, *, desynchronized: bool = False) -> None:
        super().__init__(message)
        self.desynchronized = desynchronized


class InvalidSize(MalformedReply):
    """The size announced before a download is not a hexadecimal number."""

    def __init__(self, value: object) -> None:
        super().__init__(f"Invalid transfer size {value!r}", desynchronized=True)
        self.value = value


class ShortRead(Usb2SnesError):
    """The channel closed before a binary transfer was complete."""

    def __init__(self, expected: int, received: int) -> None:
        super().__init__(
            f"Channel closed after {received} of {expected} payload bytes"
        )
        self.expected = expected
        self.received = received


class Unsupported(Usb2SnesError):
    """The attached device reports a capability flag that forbids the call."""

    def __init__(self, opcode: str, capability: str) -> None:
        super().__init__(f"{opcode} is not available: device reports {capability}")
        self.opcode = opcode
        self.capability = capability


class CallerError(Usb2SnesError, ValueError):
    """Invalid arguments, detected before anything was sent."""


class ChannelBusy(Usb2SnesError, RuntimeError):
    """An operation was started while another one still owns the channel."""
