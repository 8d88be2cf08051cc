"""Client and MCP server for SD2SNES/FXPak carts and emulators over usb2snes."""

__version__ = "0.1.0"

from .client import SyncClient
from .errors import (
    CallerError,
    ChannelBusy,
    InvalidSize,
    MalformedReply,
    ShortRead,
    Unsupported,
    Usb2SnesConnectionError,
    Usb2SnesError,
)
