"""MCP server entry point for usb2snes devices.

Exposes tools, a resource, and a prompt via the Model Context Protocol
using the official Python MCP SDK with stdio transport. Every tool talks
to the device through a usb2snes-compatible server (QUsb2Snes, SNI).
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from .client import CLIENT_NAME, SyncClient
from .errors import CallerError
from .transport.websocket_channel import DEFAULT_URL
from .utils.hexdump import hexdump, parse_address_spec
from .utils.localfs import find_newest_file, remote_basename, remote_join

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "usb2snes",
    instructions="MCP server for SD2SNES/FXPak carts and emulators via usb2snes",
)

# Global connection state
_client: SyncClient | None = None


def _server_url() -> str:
    return os.environ.get("USB2SNES_URL", DEFAULT_URL)


def _get_client() -> SyncClient:
    """Get the active client, raising if not connected."""
    if _client is None or not _client.usable:
        raise RuntimeError(
            "Not connected to a device. Use the 'connect' tool first."
        )
    return _client


def _open_client(devel: bool = False) -> SyncClient:
    if devel:
        client = SyncClient.connect_with_devel(_server_url())
    else:
        client = SyncClient.connect(_server_url())
    try:
        client.set_name(CLIENT_NAME)
    except BaseException:
        client.close()
        raise
    return client


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(device: str | None = None, devel: bool = False) -> dict[str, Any]:
    """Connect to the usb2snes server and attach to a device.

    Attaches to the first device the server reports unless ``device``
    names another one, then reads its info (type, firmware, running game,
    capability flags).

    Args:
        device: Device name as listed by list_devices (optional).
        devel: Log every frame exchanged with the server.
    """
    global _client
    if _client is not None:
        if _client.usable:
            return {
                "connected": True,
                "message": "Already connected",
                "device": _client.device,
            }
        # Drop the broken session before opening a new one
        _client.close()
        _client = None

    client = _open_client(devel)
    try:
        version = client.app_version()
        devices = client.list_device()
        if not devices:
            client.close()
            return {"error": "No device found", "server_version": version}

        chosen = device or devices[0]
        if chosen not in devices:
            client.close()
            return {"error": f"Can't find the specified device {chosen!r}", "devices": devices}

        client.attach(chosen)
        info = client.info()
    except BaseException:
        client.close()
        raise
    _client = client

    result: dict[str, Any] = {
        "connected": True,
        "server_version": version,
        "device": chosen,
        "devices": devices,
    }
    result.update(info.to_dict())
    return result


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the connection to the usb2snes server."""
    global _client
    if _client is None:
        return {"disconnected": True}
    _client.close()
    _client = None
    return {"disconnected": True}


@mcp.tool()
def list_devices() -> dict[str, Any]:
    """List every device the server knows, with type, firmware, game and flags.

    Each device is queried over its own short-lived connection, so this
    works whether or not 'connect' was used.
    """
    with _open_client() as lister:
        names = lister.list_device()

    devices = []
    for name in names:
        with _open_client() as info_client:
            info_client.attach(name)
            info = info_client.info()
        entry: dict[str, Any] = {"device": name}
        entry.update(info.to_dict())
        devices.append(entry)
    return {"devices": devices}


@mcp.tool()
def get_device_info() -> dict[str, Any]:
    """Refresh and return the attached device's info."""
    client = _get_client()
    result: dict[str, Any] = {"device": client.device}
    result.update(client.info().to_dict())
    return result


# ─── MEMORY TOOLS ─────────────────────────────────────────────────────

@mcp.tool()
def read_memory(address: str, size: int | None = None) -> dict[str, Any]:
    """Read SNES memory and return it as hex.

    Args:
        address: Hex address on the usb2snes bus (e.g. "F50010"), or
                 "address:size" with a decimal size (e.g. "F50010:16").
        size: Number of bytes; required unless given in ``address``.
    """
    try:
        if size is None:
            addr, size = parse_address_spec(address)
        else:
            addr = int(address, 16)
    except (CallerError, ValueError) as e:
        return {"error": str(e)}

    data = _get_client().get_address(addr, size)
    return {
        "address": f"{addr:06X}",
        "size": len(data),
        "hex": data.hex(),
        "dump": hexdump(data),
    }


@mcp.tool()
def write_memory(address: str, data_hex: str) -> dict[str, Any]:
    """Write bytes into SNES memory.

    Args:
        address: Hex address on the usb2snes bus (e.g. "F50010").
        data_hex: Bytes to write as a hex string (e.g. "0a0b0c").
    """
    try:
        addr = int(address, 16)
        data = bytes.fromhex(data_hex)
    except ValueError as e:
        return {"error": str(e)}
    _get_client().put_address(addr, data)
    return {"address": f"{addr:06X}", "written": len(data)}


# ─── FILE TOOLS ───────────────────────────────────────────────────────

@mcp.tool()
def list_directory(path: str = "/") -> dict[str, Any]:
    """List a directory on the device's SD card. Path separator is '/'."""
    entries = _get_client().ls(path)
    return {"path": path, "entries": [e.to_dict() for e in entries]}


@mcp.tool()
def upload_file(local_path: str, remote_path: str) -> dict[str, Any]:
    """Upload a local file to the device.

    Args:
        local_path: File on this computer.
        remote_path: Destination on the device, e.g. "/games/Super Metroid.sfc".
    """
    data = Path(local_path).read_bytes()
    logger.info("Sending %s to %s (%d bytes)", local_path, remote_path, len(data))
    frames = _get_client().send_file(remote_path, data)
    return {"uploaded": remote_path, "size": len(data), "frames": frames}


@mcp.tool()
def download_file(remote_path: str, local_path: str | None = None) -> dict[str, Any]:
    """Download a file from the device.

    Args:
        remote_path: File on the device.
        local_path: Destination on this computer; defaults to the remote
                    file name in the current directory.
    """
    target = Path(local_path) if local_path else Path(remote_basename(remote_path))
    data = _get_client().get_file(remote_path)
    target.write_bytes(data)
    return {"downloaded": remote_path, "local_path": str(target), "size": len(data)}


@mcp.tool()
def remove_path(path: str) -> dict[str, Any]:
    """Delete a file or empty directory on the device."""
    _get_client().remove_path(path)
    return {"removed": path}


@mcp.tool()
def make_dir(path: str) -> dict[str, Any]:
    """Create a directory on the device."""
    _get_client().make_dir(path)
    return {"created": path}


@mcp.tool()
def rename_path(path: str, new_name: str) -> dict[str, Any]:
    """Rename a file on the device; ``new_name`` is a name, not a path."""
    _get_client().rename(path, new_name)
    return {"renamed": path, "new_name": new_name}


@mcp.tool()
def upload_latest(
    local_source_dir: str,
    target_dir: str,
    wipe_target_dir: bool = False,
    extension: str = ".sfc",
) -> dict[str, Any]:
    """Upload the most recently modified ROM from a local directory.

    Args:
        local_source_dir: Directory on this computer, e.g. a downloads folder.
        target_dir: Directory on the device to put the file into.
        wipe_target_dir: Delete files with the same extension in
                         ``target_dir`` before uploading.
        extension: File extension to look for (default ".sfc").
    """
    try:
        newest = find_newest_file(local_source_dir, extension)
    except (FileNotFoundError, NotADirectoryError) as e:
        return {"error": str(e)}
    logger.info("Newest %s file found: %s", extension, newest.name)

    client = _get_client()
    removed = []
    if wipe_target_dir:
        for entry in client.ls(target_dir):
            if not entry.is_dir and entry.name.lower().endswith(extension.lower()):
                remote = remote_join(target_dir, entry.name)
                logger.info("Deleting %s", remote)
                client.remove_path(remote)
                removed.append(remote)

    remote_path = remote_join(target_dir, newest.name)
    data = newest.read_bytes()
    client.send_file(remote_path, data)
    return {"uploaded": remote_path, "size": len(data), "removed": removed}


# ─── CONTROL TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def boot(path: str) -> dict[str, Any]:
    """Boot a ROM stored on the device, e.g. "/games/Super Metroid.sfc"."""
    _get_client().boot(path)
    return {"booted": path}


@mcp.tool()
def reset() -> dict[str, bool]:
    """Reset the game running on the device."""
    _get_client().reset()
    return {"reset": True}


@mcp.tool()
def menu() -> dict[str, bool]:
    """Bring the cart back to its menu."""
    _get_client().menu()
    return {"menu": True}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("usb2snes://session")
def resource_session() -> str:
    """Current connection: server URL, attached device, and cached info."""
    if _client is None:
        return json.dumps({"connected": False, "url": _server_url()})
    info = _client.device_info
    return json.dumps({
        "connected": _client.usable,
        "url": _server_url(),
        "device": _client.device,
        "info": info.to_dict() if info else None,
    })


# ─── MCP PROMPTS ─────────────────────────────────────────────────────

@mcp.prompt()
def install_rom(local_path: str, target_dir: str = "/roms") -> str:
    """Guide the AI through copying a ROM to the cart and booting it.

    Args:
        local_path: ROM file on this computer.
        target_dir: Directory on the device to copy it into.
    """
    return f"""Install and start {local_path} on the device.
Steps:
- Use connect, then check the flags: NO_FILE_CMD means files cannot be copied,
  NO_CONTROL_CMD means the ROM cannot be booted remotely
- Use list_directory on {target_dir} to see what is already there
- Use upload_file to copy the ROM into {target_dir}
- Use boot with the uploaded path"""


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
