"""Tests for address parsing, hex dumps, and local file helpers."""

import os

import pytest

from usb2snes_mcp.errors import CallerError
from usb2snes_mcp.utils.hexdump import hexdump, parse_address_spec
from usb2snes_mcp.utils.localfs import find_newest_file, remote_basename, remote_join


def test_parse_address_spec():
    assert parse_address_spec("F50010:16") == (0xF50010, 16)
    assert parse_address_spec("0x7e0000:2") == (0x7E0000, 2)


@pytest.mark.parametrize("spec", ["F50010", "F50010:", ":16", "G0:1", "F50010:0x10"])
def test_parse_address_spec_invalid(spec):
    with pytest.raises(CallerError):
        parse_address_spec(spec)


def test_hexdump_rows():
    rows = hexdump(bytes(range(20)))
    assert len(rows) == 2
    assert rows[0].startswith("00 : 00 01 02")
    assert rows[1] == "10 : 10 11 12 13"


def test_hexdump_empty():
    assert hexdump(b"") == []


def test_find_newest_file(tmp_path):
    old = tmp_path / "old.sfc"
    new = tmp_path / "new.SFC"
    other = tmp_path / "newest.smc"
    for i, path in enumerate((old, new, other)):
        path.write_bytes(b"x")
        os.utime(path, (1000 + i, 1000 + i))

    assert find_newest_file(tmp_path) == new
    assert find_newest_file(tmp_path, ".smc") == other


def test_find_newest_file_none(tmp_path):
    (tmp_path / "readme.txt").write_text("hi")
    with pytest.raises(FileNotFoundError):
        find_newest_file(tmp_path)


def test_remote_paths():
    assert remote_join("/games/", "a.sfc") == "/games/a.sfc"
    assert remote_join("/", "a.sfc") == "/a.sfc"
    assert remote_basename("/games/Super Metroid.sfc") == "Super Metroid.sfc"
