"""Opcode table and command envelope builders.

Every usb2snes request is a JSON object naming an opcode, an address
space, optional flags and a list of string operands. The table below
describes, per opcode, how many operands it takes, which reply shape
follows it on the channel, and which device capability flag forbids it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..errors import CallerError
from ..models.device import NO_CONTROL_CMD, NO_FILE_CMD

SNES_BUS_SIZE = 0x1000000  # 24-bit address space exposed by the server


class Opcode(str, Enum):
    """Request opcodes; the value is the name used on the wire."""

    DEVICE_LIST = "DeviceList"
    ATTACH = "Attach"
    APP_VERSION = "AppVersion"
    NAME = "Name"
    INFO = "Info"
    BOOT = "Boot"
    MENU = "Menu"
    RESET = "Reset"
    GET_ADDRESS = "GetAddress"
    PUT_ADDRESS = "PutAddress"
    LIST = "List"
    PUT_FILE = "PutFile"
    GET_FILE = "GetFile"
    REMOVE = "Remove"
    MAKE_DIR = "MakeDir"
    RENAME = "Rename"


class Space(Enum):
    """Target address space of a command."""

    NONE = "NONE"
    SNES = "SNES"
    FILE = "FILE"

    @property
    def wire_name(self) -> str:
        # Servers expose the cart filesystem through the SNES space and
        # default session commands to it as well.
        return "SNES"


class Flag(str, Enum):
    """Optional request flags."""

    NORESPONSE = "NORESPONSE"
    CLRX = "CLRX"
    SETX = "SETX"
    CLRC = "CLRC"
    SETC = "SETC"


class Reply(Enum):
    """What the channel carries back after a command."""

    NONE = "none"           # fire-and-forget
    RESULTS = "results"     # one text frame with {"Results": [...]}
    MEMORY = "memory"       # binary frames, size taken from the operands
    DOWNLOAD = "download"   # size reply, then binary frames
    UPLOAD = "upload"       # nothing back; client streams binary frames


@dataclass(frozen=True)
class CommandSpec:
    """Static description of one opcode."""

    space: Space
    arity: int
    reply: Reply
    blocked_by: str | None = None


COMMAND_SPECS: dict[Opcode, CommandSpec] = {
    Opcode.DEVICE_LIST: CommandSpec(Space.NONE, 0, Reply.RESULTS),
    Opcode.ATTACH: CommandSpec(Space.NONE, 1, Reply.NONE),
    Opcode.APP_VERSION: CommandSpec(Space.NONE, 0, Reply.RESULTS),
    Opcode.NAME: CommandSpec(Space.NONE, 1, Reply.NONE),
    Opcode.INFO: CommandSpec(Space.NONE, 0, Reply.RESULTS),
    Opcode.BOOT: CommandSpec(Space.NONE, 1, Reply.NONE, NO_CONTROL_CMD),
    Opcode.MENU: CommandSpec(Space.NONE, 0, Reply.NONE, NO_CONTROL_CMD),
    Opcode.RESET: CommandSpec(Space.NONE, 0, Reply.NONE, NO_CONTROL_CMD),
    Opcode.GET_ADDRESS: CommandSpec(Space.SNES, 2, Reply.MEMORY),
    Opcode.PUT_ADDRESS: CommandSpec(Space.SNES, 2, Reply.UPLOAD),
    Opcode.LIST: CommandSpec(Space.FILE, 1, Reply.RESULTS, NO_FILE_CMD),
    Opcode.PUT_FILE: CommandSpec(Space.FILE, 2, Reply.UPLOAD, NO_FILE_CMD),
    Opcode.GET_FILE: CommandSpec(Space.FILE, 1, Reply.DOWNLOAD, NO_FILE_CMD),
    Opcode.REMOVE: CommandSpec(Space.FILE, 1, Reply.NONE, NO_FILE_CMD),
    Opcode.MAKE_DIR: CommandSpec(Space.FILE, 1, Reply.NONE, NO_FILE_CMD),
    Opcode.RENAME: CommandSpec(Space.FILE, 2, Reply.NONE, NO_FILE_CMD),
}


@dataclass(frozen=True)
class Envelope:
    """A single request, ready to be encoded."""

    opcode: Opcode
    space: Space
    flags: tuple[Flag, ...] = ()
    operands: tuple[str, ...] = ()

    @property
    def spec(self) -> CommandSpec:
        return COMMAND_SPECS[self.opcode]

    def __repr__(self) -> str:
        return f"Envelope({self.opcode.value}, operands={list(self.operands)})"


def build_command(
    opcode: Opcode, *operands: str, flags: tuple[Flag, ...] = ()
) -> Envelope:
    """Build the envelope for ``opcode``, checking its operand count."""
    spec = COMMAND_SPECS[opcode]
    if len(operands) != spec.arity:
        raise CallerError(
            f"{opcode.value} takes {spec.arity} operand(s), got {len(operands)}"
        )
    for operand in operands:
        if not isinstance(operand, str):
            raise CallerError(
                f"{opcode.value} operands must be strings, got {operand!r}"
            )
    try:
        flag_set = tuple(Flag(f) for f in flags)
    except ValueError as e:
        raise CallerError(f"Unknown flag for {opcode.value}: {e}") from e
    return Envelope(
        opcode=opcode,
        space=spec.space,
        flags=flag_set,
        operands=tuple(operands),
    )


def _check_path(path: str) -> str:
    if not isinstance(path, str) or not path:
        raise CallerError(f"Remote path must be a non-empty string, got {path!r}")
    return path


def _check_region(address: int, size: int) -> None:
    if not 0 <= address < SNES_BUS_SIZE:
        raise CallerError(f"Address must be 0x000000-0xFFFFFF, got {address:#x}")
    if size <= 0:
        raise CallerError(f"Size must be positive, got {size}")
    if address + size > SNES_BUS_SIZE:
        raise CallerError(
            f"Region {address:#x}+{size:#x} runs past the end of the SNES bus"
        )


def build_device_list() -> Envelope:
    return build_command(Opcode.DEVICE_LIST)


def build_attach(device: str) -> Envelope:
    """Build an Attach command selecting ``device`` for this connection."""
    if not isinstance(device, str) or not device:
        raise CallerError("Device name must be a non-empty string")
    return build_command(Opcode.ATTACH, device)


def build_app_version() -> Envelope:
    return build_command(Opcode.APP_VERSION)


def build_name(name: str) -> Envelope:
    """Build a Name command announcing the client to the server."""
    if not isinstance(name, str) or not name:
        raise CallerError("Client name must be a non-empty string")
    return build_command(Opcode.NAME, name)


def build_info() -> Envelope:
    return build_command(Opcode.INFO)


def build_boot(path: str) -> Envelope:
    return build_command(Opcode.BOOT, _check_path(path))


def build_menu() -> Envelope:
    return build_command(Opcode.MENU)


def build_reset() -> Envelope:
    return build_command(Opcode.RESET)


def build_get_address(address: int, size: int) -> Envelope:
    """Build a memory read of ``size`` bytes at ``address``.

    Both operands are sent as lowercase hexadecimal.
    """
    _check_region(address, size)
    return build_command(Opcode.GET_ADDRESS, f"{address:x}", f"{size:x}")


def build_put_address(address: int, size: int) -> Envelope:
    """Build a memory write header; ``size`` bytes follow as binary frames."""
    _check_region(address, size)
    return build_command(Opcode.PUT_ADDRESS, f"{address:x}", f"{size:x}")


def build_list(path: str) -> Envelope:
    return build_command(Opcode.LIST, _check_path(path))


def build_put_file(path: str, size: int) -> Envelope:
    """Build a file upload header announcing ``size`` bytes.

    The server preallocates the file; the content follows as binary frames.
    """
    if size < 0:
        raise CallerError(f"File size must not be negative, got {size}")
    return build_command(Opcode.PUT_FILE, _check_path(path), f"{size:x}")


def build_get_file(path: str) -> Envelope:
    return build_command(Opcode.GET_FILE, _check_path(path))


def build_remove(path: str) -> Envelope:
    return build_command(Opcode.REMOVE, _check_path(path))


def build_make_dir(path: str) -> Envelope:
    return build_command(Opcode.MAKE_DIR, _check_path(path))


def build_rename(path: str, new_name: str) -> Envelope:
    """Build a Rename command; ``new_name`` is a name, not a full path."""
    return build_command(Opcode.RENAME, _check_path(path), _check_path(new_name))
