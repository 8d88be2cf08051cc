"""Tests for the WebSocket channel, with websocket-client mocked out."""

from unittest.mock import MagicMock, patch

import pytest
import websocket

from usb2snes_mcp.errors import Usb2SnesConnectionError
from usb2snes_mcp.transport.websocket_channel import DEFAULT_URL, WebSocketChannel


def _open_channel(ws: MagicMock) -> WebSocketChannel:
    with patch("websocket.create_connection", return_value=ws) as create:
        channel = WebSocketChannel(timeout=2.0)
        channel.open()
    create.assert_called_once_with(DEFAULT_URL, timeout=2.0)
    return channel


def test_default_url():
    assert WebSocketChannel().url == "ws://localhost:23074"


def test_open_failure():
    with patch(
        "websocket.create_connection",
        side_effect=ConnectionRefusedError("refused"),
    ):
        channel = WebSocketChannel()
        with pytest.raises(Usb2SnesConnectionError):
            channel.open()
    assert not channel.connected


def test_receive_text_and_binary():
    ws = MagicMock()
    ws.recv_data.side_effect = [
        (websocket.ABNF.OPCODE_TEXT, b'{"Results": []}'),
        (websocket.ABNF.OPCODE_BINARY, b"\x01\x02"),
    ]
    channel = _open_channel(ws)

    first = channel.receive()
    second = channel.receive()
    assert first.text == '{"Results": []}'
    assert second.data == b"\x01\x02"


def test_receive_close_frame():
    ws = MagicMock()
    ws.recv_data.return_value = (websocket.ABNF.OPCODE_CLOSE, b"")
    channel = _open_channel(ws)
    with pytest.raises(Usb2SnesConnectionError):
        channel.receive()


def test_receive_timeout():
    ws = MagicMock()
    ws.recv_data.side_effect = websocket.WebSocketTimeoutException("timed out")
    channel = _open_channel(ws)
    with pytest.raises(Usb2SnesConnectionError):
        channel.receive()


def test_send_frames():
    ws = MagicMock()
    channel = _open_channel(ws)
    channel.send_text("{}")
    channel.send_binary(b"\x00")
    ws.send.assert_called_once_with("{}")
    ws.send_binary.assert_called_once_with(b"\x00")


def test_send_failure():
    ws = MagicMock()
    ws.send_binary.side_effect = websocket.WebSocketConnectionClosedException("gone")
    channel = _open_channel(ws)
    with pytest.raises(Usb2SnesConnectionError):
        channel.send_binary(b"\x00")


def test_closed_channel_refuses_io():
    ws = MagicMock()
    channel = _open_channel(ws)
    channel.close()
    ws.close.assert_called_once()
    with pytest.raises(Usb2SnesConnectionError):
        channel.send_text("{}")
    with pytest.raises(Usb2SnesConnectionError):
        channel.receive()
