"""Raw binary image loader.

A raw image carries no header: every byte of the file is copied verbatim into
the address space starting at the requested load address.
"""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO

from py6502.bus import MemoryPort
from py6502.utils import debug_log

from .program import ProgramImage

ADDRESS_SPACE_SIZE = 0x10000


class ProgramFormatError(RuntimeError):
    """Raised when an image cannot be placed in the address space."""


def load_binary(stream: BinaryIO, memory: MemoryPort, start: int, *, name: str = "") -> ProgramImage:
    """Copy the contents of ``stream`` into ``memory`` at ``start`` and return metadata."""

    payload = stream.read()
    _validate_bounds(start, len(payload))
    for offset, value in enumerate(payload):
        memory.store8(start + offset, value)

    program = ProgramImage(name=name)
    program.add_region(start, start + len(payload) - 1)
    debug_log("loader", "loaded %d bytes at %04x-%04x", len(payload), start, start + len(payload) - 1)
    return program


def load_binary_from_path(path: Path, memory: MemoryPort, start: int) -> ProgramImage:
    """Load a raw image from the filesystem."""

    with path.open("rb") as handle:
        return load_binary(handle, memory, start, name=path.name)


def _validate_bounds(start: int, length: int) -> None:
    if length == 0:
        raise ProgramFormatError("Program image is empty")
    if start < 0 or start >= ADDRESS_SPACE_SIZE:
        raise ProgramFormatError(f"Load address {start:#x} outside address space")
    if start + length > ADDRESS_SPACE_SIZE:
        raise ProgramFormatError(
            f"Image of {length} bytes at {start:#06x} exceeds address space"
        )
