"""WebSocket message channel to a usb2snes-compatible server.

QUsb2Snes and SNI listen on ``ws://localhost:23074``; the original
usb2snes server and older QUsb2Snes builds use ``ws://localhost:8080``.
The server proxies every command to the attached cart or emulator.
"""

from __future__ import annotations

import logging

import websocket

from ..errors import Usb2SnesConnectionError
from ..protocol.framing import Message

logger = logging.getLogger(__name__)

DEFAULT_URL = "ws://localhost:23074"
LEGACY_URL = "ws://localhost:8080"
CONNECT_TIMEOUT = 5.0


class WebSocketChannel:
    """Ordered, full-duplex text/binary frame channel.

    Usage::

        channel = WebSocketChannel()
        channel.open()
        channel.send_text('{"Opcode": "DeviceList", ...}')
        message = channel.receive()
        channel.close()
    """

    def __init__(
        self,
        url: str = DEFAULT_URL,
        timeout: float | None = CONNECT_TIMEOUT,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._ws = None

    @property
    def url(self) -> str:
        return self._url

    @property
    def connected(self) -> bool:
        return self._ws is not None and self._ws.connected

    def open(self) -> None:
        """Connect to the server.

        ``timeout`` also bounds every later receive; a device that never
        answers surfaces as a connection error rather than a hang.

        Raises:
            Usb2SnesConnectionError: If the server cannot be reached.
        """
        try:
            self._ws = websocket.create_connection(self._url, timeout=self._timeout)
        except (websocket.WebSocketException, OSError) as e:
            raise Usb2SnesConnectionError(
                f"Could not connect to usb2snes server at {self._url}: {e}"
            ) from e
        logger.info("Connected to %s", self._url)

    def close(self) -> None:
        """Close the WebSocket connection."""
        if self._ws is None:
            return
        try:
            self._ws.close()
        except (websocket.WebSocketException, OSError) as e:
            logger.warning("Error closing channel: %s", e)
        finally:
            self._ws = None
            logger.info("Disconnected from %s", self._url)

    def _require_open(self):
        if not self.connected:
            raise Usb2SnesConnectionError("Channel is not connected")
        return self._ws

    def send_text(self, text: str) -> None:
        ws = self._require_open()
        try:
            ws.send(text)
        except (websocket.WebSocketException, OSError) as e:
            raise Usb2SnesConnectionError(f"Failed to send text frame: {e}") from e

    def send_binary(self, data: bytes) -> None:
        ws = self._require_open()
        try:
            ws.send_binary(data)
        except (websocket.WebSocketException, OSError) as e:
            raise Usb2SnesConnectionError(f"Failed to send binary frame: {e}") from e

    def receive(self) -> Message:
        """Block until the next data frame arrives.

        Ping/pong frames are answered by websocket-client and never
        returned.

        Raises:
            Usb2SnesConnectionError: On close frames, timeouts, or socket errors.
        """
        ws = self._require_open()
        try:
            opcode, data = ws.recv_data()
        except (websocket.WebSocketException, OSError) as e:
            raise Usb2SnesConnectionError(f"Failed to receive frame: {e}") from e

        if opcode == websocket.ABNF.OPCODE_TEXT:
            return Message(text=data.decode("utf-8"))
        if opcode == websocket.ABNF.OPCODE_BINARY:
            return Message(data=bytes(data))
        if opcode == websocket.ABNF.OPCODE_CLOSE:
            raise Usb2SnesConnectionError("Server closed the connection")
        raise Usb2SnesConnectionError(f"Unexpected frame opcode {opcode:#x}")
