"""Loaders for 6502 program images."""

from __future__ import annotations

from .binary import ProgramFormatError, load_binary, load_binary_from_path
from .program import AddressRegion, ProgramImage

__all__ = [
    "AddressRegion",
    "ProgramImage",
    "ProgramFormatError",
    "load_binary",
    "load_binary_from_path",
]
