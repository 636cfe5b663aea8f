"""Behavioral emulator for the MOS 6502 microprocessor.

The CPU core lives in :mod:`py6502.cpu` and talks to memory only through the
port contract in :mod:`py6502.bus`. The remaining packages are host-side
helpers for loading images and assembling a runnable machine.
"""

from __future__ import annotations

from . import bus, cpu, loader, system, utils

__all__: list[str] = [
    "cpu",
    "bus",
    "loader",
    "system",
    "utils",
]

__version__ = "0.1.0"
