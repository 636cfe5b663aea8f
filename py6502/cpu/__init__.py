"""CPU package for the 6502 emulator."""

from .core import MOS6502, CPUError, CPUState, IllegalOpcodeError, StatusFlags
from . import opcodes

__all__ = [
    "MOS6502",
    "CPUState",
    "StatusFlags",
    "CPUError",
    "IllegalOpcodeError",
    "opcodes",
]
