"""Data models for devices and remote directory entries."""

from .device import (
    DeviceInfo,
    DirEntry,
    FileType,
    NO_CONTROL_CMD,
    NO_FILE_CMD,
)
