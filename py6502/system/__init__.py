"""Machine assembly helpers."""

from __future__ import annotations

from .machine import Machine, MachineConfig, MainRam, create_machine

__all__ = [
    "MachineConfig",
    "Machine",
    "MainRam",
    "create_machine",
]
