"""Opcode-specific interpretation of structured replies."""

from __future__ import annotations

import re

from ..errors import InvalidSize, MalformedReply
from ..models.device import DeviceInfo, DirEntry, FileType

_HEX_RE = re.compile(r"[0-9A-Fa-f]+")


def parse_app_version(results: list[str]) -> str:
    """AppVersion replies with a single version string."""
    if len(results) != 1:
        raise MalformedReply(f"AppVersion expects 1 result, got {results!r}")
    return results[0]


def parse_device_list(results: list[str]) -> list[str]:
    """DeviceList replies with one descriptor per device, in server order."""
    return list(results)


def parse_device_info(results: list[str]) -> DeviceInfo:
    """Parse an Info reply.

    The reply is ``[firmware version, device type, running game, *flags]``.
    Flags are kept as reported, including ones this client does not know.
    """
    if len(results) < 3:
        raise MalformedReply(f"Info expects at least 3 results, got {results!r}")
    return DeviceInfo(
        version=results[0],
        dev_type=results[1],
        game=results[2],
        flags=frozenset(results[3:]),
    )


def parse_listing(results: list[str]) -> list[DirEntry]:
    """Parse a List reply made of ``(type, name)`` pairs.

    Entries keep the order the device returned them in.
    """
    if len(results) % 2:
        raise MalformedReply(
            f"List expects (type, name) pairs, got {len(results)} results"
        )
    entries = []
    for marker, name in zip(results[0::2], results[1::2]):
        try:
            file_type = FileType(marker)
        except ValueError as e:
            raise MalformedReply(f"Unknown entry type {marker!r} for {name!r}") from e
        entries.append(DirEntry(name=name, file_type=file_type))
    return entries


def parse_size(results: list[str]) -> int:
    """Parse the size reply that precedes a file download.

    The single result is an unsigned hexadecimal number.

    Raises:
        InvalidSize: If the reply does not hold exactly one hex string.
    """
    if len(results) != 1:
        raise InvalidSize(results)
    value = results[0]
    if not _HEX_RE.fullmatch(value):
        raise InvalidSize(value)
    return int(value, 16)
