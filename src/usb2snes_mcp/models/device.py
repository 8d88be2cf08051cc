"""Device and remote filesystem models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

# Capability flags reported in the Info reply
NO_FILE_CMD = "NO_FILE_CMD"
NO_CONTROL_CMD = "NO_CONTROL_CMD"


class FileType(Enum):
    """Entry type marker used by the List reply."""

    DIRECTORY = "0"
    FILE = "1"


@dataclass(frozen=True)
class DirEntry:
    """One entry of a remote directory listing."""

    name: str
    file_type: FileType

    @property
    def is_dir(self) -> bool:
        return self.file_type is FileType.DIRECTORY

    def to_dict(self) -> dict:
        return {"name": self.name, "type": "dir" if self.is_dir else "file"}


@dataclass
class DeviceInfo:
    """State reported by the Info command for the attached device."""

    version: str = ""
    dev_type: str = ""
    game: str = ""
    flags: frozenset[str] = field(default_factory=frozenset)

    @property
    def supports_files(self) -> bool:
        return NO_FILE_CMD not in self.flags

    @property
    def supports_control(self) -> bool:
        return NO_CONTROL_CMD not in self.flags

    def to_dict(self) -> dict:
        return {
            "type": self.dev_type,
            "version": self.version,
            "game": self.game,
            "flags": sorted(self.flags),
        }
