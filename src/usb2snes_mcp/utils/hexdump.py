"""Address specifications and hex dumps for memory reads."""

from __future__ import annotations

import re

from ..errors import CallerError

_ADDRESS_SPEC_RE = re.compile(r"(?:0x)?([0-9A-Fa-f]+):([0-9]+)")


def parse_address_spec(spec: str) -> tuple[int, int]:
    """Parse ``address_in_hex:size_in_decimal``, e.g. ``F50010:16``.

    Raises:
        CallerError: If ``spec`` does not have that form.
    """
    match = _ADDRESS_SPEC_RE.fullmatch(spec.strip())
    if match is None:
        raise CallerError(
            f"Address must be written hex_address:size, e.g. F50010:16; got {spec!r}"
        )
    return int(match.group(1), 16), int(match.group(2))


def hexdump(data: bytes, width: int = 16) -> list[str]:
    """Render ``data`` as rows of ``width`` bytes prefixed by their offset.

    >>> hexdump(bytes(range(3)))
    ['00 : 00 01 02']
    """
    return [
        f"{offset:02X} : " + " ".join(f"{b:02X}" for b in data[offset : offset + width])
        for offset in range(0, len(data), width)
    ]
