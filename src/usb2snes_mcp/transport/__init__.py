"""Message channel transports."""

from .websocket_channel import DEFAULT_URL, LEGACY_URL, WebSocketChannel
