"""Memory access port for the 6502 emulator."""

from .memory import (
    AccessFunction,
    Addressable,
    CallbackMemory,
    Memory,
    MemoryError,
    MemoryPort,
    MemorySystem,
    ReadWrite,
    Region,
    UnmappedMemory,
)

__all__ = [
    "AccessFunction",
    "Addressable",
    "CallbackMemory",
    "Memory",
    "MemoryError",
    "MemoryPort",
    "MemorySystem",
    "ReadWrite",
    "Region",
    "UnmappedMemory",
]
