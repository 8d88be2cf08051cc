"""Blocking usb2snes client.

One ``SyncClient`` owns one channel and runs one exchange at a time.
The protocol carries no request IDs, so a reply is matched to its
request only by order; the client hands the channel to exactly one
operation at a time through a scoped lease and refuses any other
operation until that lease is released.

Usage::

    with SyncClient.connect() as client:
        client.set_name("usb2snes-mcp")
        devices = client.list_device()
        client.attach(devices[0])
        info = client.info()
        wram = client.get_address(0xF50000, 0x100)
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager

from .errors import (
    CallerError,
    ChannelBusy,
    MalformedReply,
    ShortRead,
    Unsupported,
    Usb2SnesConnectionError,
)
from .models.device import DeviceInfo, DirEntry
from .protocol import transfer
from .protocol.commands import (
    COMMAND_SPECS,
    Envelope,
    Opcode,
    build_app_version,
    build_attach,
    build_boot,
    build_device_list,
    build_info,
    build_make_dir,
    build_menu,
    build_name,
    build_remove,
    build_rename,
    build_reset,
)
from .protocol.framing import Message
from .protocol.parser import (
    parse_app_version,
    parse_device_info,
    parse_device_list,
)
from .protocol.transfer import UPLOAD_CHUNK_SIZE
from .transport.websocket_channel import (
    CONNECT_TIMEOUT,
    DEFAULT_URL,
    WebSocketChannel,
)

logger = logging.getLogger(__name__)

CLIENT_NAME = "usb2snes-mcp"


class ChannelLease:
    """Access to the channel for the duration of a single operation.

    Every frame that passes through is traced. ``sent`` records whether any
    frame went out, after which the exchange can no longer be abandoned
    cleanly. Once released, the lease refuses further use.
    """

    def __init__(self, channel, trace_level: int = logging.DEBUG) -> None:
        self._channel = channel
        self._trace_level = trace_level
        self._active = True
        self.sent = False

    @property
    def active(self) -> bool:
        return self._active

    def release(self) -> None:
        self._active = False

    def _check(self) -> None:
        if not self._active:
            raise ChannelBusy("Channel lease used after its operation finished")

    def send_text(self, text: str) -> None:
        self._check()
        logger.log(self._trace_level, ">> %s", text)
        self.sent = True
        self._channel.send_text(text)

    def send_binary(self, data: bytes) -> None:
        self._check()
        logger.log(self._trace_level, ">> <%d binary bytes>", len(data))
        self.sent = True
        self._channel.send_binary(data)

    def receive(self) -> Message:
        self._check()
        message = self._channel.receive()
        if message.is_binary:
            logger.log(self._trace_level, "<< <%d binary bytes>", len(message.data))
        else:
            logger.log(self._trace_level, "<< %s", message.text)
        return message


class SyncClient:
    """Session with a usb2snes server over one message channel.

    Args:
        channel: An open channel (``send_text``, ``send_binary``,
            ``receive``, ``close``).
        devel: Trace every frame at INFO level instead of DEBUG.
        chunk_size: Size of the binary frames used for uploads.
    """

    def __init__(
        self,
        channel,
        *,
        devel: bool = False,
        chunk_size: int = UPLOAD_CHUNK_SIZE,
    ) -> None:
        if chunk_size <= 0:
            raise CallerError(f"Chunk size must be positive, got {chunk_size}")
        self._channel = channel
        self._devel = devel
        self._chunk_size = chunk_size
        self._lock = threading.Lock()
        self._device: str | None = None
        self._name: str | None = None
        self._device_info: DeviceInfo | None = None
        self._unusable: str | None = None

    @classmethod
    def connect(
        cls,
        url: str = DEFAULT_URL,
        *,
        timeout: float | None = CONNECT_TIMEOUT,
        devel: bool = False,
        chunk_size: int = UPLOAD_CHUNK_SIZE,
    ) -> SyncClient:
        """Open a WebSocket channel to ``url`` and wrap it in a client.

        Raises:
            Usb2SnesConnectionError: If the server cannot be reached.
        """
        channel = WebSocketChannel(url, timeout=timeout)
        channel.open()
        return cls(channel, devel=devel, chunk_size=chunk_size)

    @classmethod
    def connect_with_devel(cls, url: str = DEFAULT_URL, **kwargs) -> SyncClient:
        """Like :meth:`connect`, tracing every frame at INFO level."""
        return cls.connect(url, devel=True, **kwargs)

    # ─── Session state ───────────────────────────────────────────────

    @property
    def device(self) -> str | None:
        return self._device

    @property
    def name(self) -> str | None:
        return self._name

    @property
    def device_info(self) -> DeviceInfo | None:
        """Info from the last :meth:`info` call for the attached device."""
        return self._device_info

    @property
    def usable(self) -> bool:
        return self._unusable is None

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    def close(self) -> None:
        """Close the channel. The client cannot be used afterwards."""
        if self._unusable is None:
            self._unusable = "client closed"
        self._channel.close()

    def __enter__(self) -> SyncClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ─── Channel ownership ───────────────────────────────────────────

    def _poison(self, reason: str) -> None:
        logger.warning("Connection is no longer usable: %s", reason)
        self._unusable = reason

    def _guard(self, opcode: Opcode) -> None:
        capability = COMMAND_SPECS[opcode].blocked_by
        info = self._device_info
        if capability and info is not None and capability in info.flags:
            raise Unsupported(opcode.value, capability)

    @contextmanager
    def _operation(self, opcode: Opcode):
        """Check state and capabilities, then lease the channel for one exchange.

        Once a frame has gone out, any exception that escapes leaves replies
        queued on the channel, so the client is poisoned before re-raising.
        """
        if self._unusable is not None:
            raise Usb2SnesConnectionError(f"Connection unusable: {self._unusable}")
        self._guard(opcode)
        if not self._lock.acquire(blocking=False):
            raise ChannelBusy(
                f"Cannot start {opcode.value}: another operation owns the channel"
            )
        lease = ChannelLease(
            self._channel, logging.INFO if self._devel else logging.DEBUG
        )
        try:
            yield lease
        except (ShortRead, Usb2SnesConnectionError) as e:
            self._poison(str(e))
            raise
        except MalformedReply as e:
            if e.desynchronized:
                self._poison(str(e))
            raise
        except BaseException as e:
            if lease.sent:
                self._poison(f"{opcode.value} interrupted by {type(e).__name__}")
            raise
        finally:
            lease.release()
            self._lock.release()

    def _call(self, envelope: Envelope):
        with self._operation(envelope.opcode) as channel:
            return transfer.perform(channel, envelope)

    # ─── Session commands ────────────────────────────────────────────

    def set_name(self, name: str = CLIENT_NAME) -> None:
        """Announce this client's name to the server.

        Servers never answer Name, so nothing is read back; waiting for a
        reply would swallow the answer to the next command instead.
        """
        self._call(build_name(name))
        self._name = name

    def app_version(self) -> str:
        return parse_app_version(self._call(build_app_version()))

    def list_device(self) -> list[str]:
        """Enumerate devices known to the server, in server order."""
        return parse_device_list(self._call(build_device_list()))

    def attach(self, device: str) -> None:
        """Select ``device`` as the implicit target of later commands.

        Replaces any previous attachment and forgets its cached info.
        Whether ``device`` was enumerated is the caller's concern.
        """
        self._call(build_attach(device))
        self._device = device
        self._device_info = None
        logger.info("Attached to %s", device)

    def info(self) -> DeviceInfo:
        """Query the attached device and cache the result for capability checks."""
        info = parse_device_info(self._call(build_info()))
        self._device_info = info
        return info

    # ─── Control commands ────────────────────────────────────────────

    def menu(self) -> None:
        self._call(build_menu())

    def reset(self) -> None:
        self._call(build_reset())

    def boot(self, path: str) -> None:
        self._call(build_boot(path))

    # ─── Memory ──────────────────────────────────────────────────────

    def get_address(self, address: int, size: int) -> bytes:
        """Read ``size`` bytes of SNES memory at ``address``."""
        with self._operation(Opcode.GET_ADDRESS) as channel:
            return transfer.memory_read(channel, address, size)

    def put_address(self, address: int, data: bytes) -> int:
        """Write ``data`` into SNES memory at ``address``."""
        with self._operation(Opcode.PUT_ADDRESS) as channel:
            return transfer.memory_write(channel, address, bytes(data), self._chunk_size)

    # ─── Filesystem ──────────────────────────────────────────────────

    def ls(self, path: str) -> list[DirEntry]:
        with self._operation(Opcode.LIST) as channel:
            return transfer.list_directory(channel, path)

    def get_file(self, path: str) -> bytes:
        """Download a whole file from the device."""
        with self._operation(Opcode.GET_FILE) as channel:
            return transfer.download(channel, path)

    def send_file(self, path: str, data: bytes) -> int:
        """Upload ``data`` to ``path``. Returns the number of binary frames sent.

        An interrupted upload leaves the remote file in an undefined state.
        """
        with self._operation(Opcode.PUT_FILE) as channel:
            return transfer.upload(channel, path, bytes(data), self._chunk_size)

    def remove_path(self, path: str) -> None:
        self._call(build_remove(path))

    def make_dir(self, path: str) -> None:
        self._call(build_make_dir(path))

    def rename(self, path: str, new_name: str) -> None:
        self._call(build_rename(path, new_name))
