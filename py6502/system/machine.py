"""Assembly of a flat-RAM 6502 machine."""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Optional

from py6502.bus import Memory, MemorySystem, UnmappedMemory
from py6502.cpu import MOS6502
from py6502.loader import ProgramFormatError, ProgramImage, load_binary
from py6502.utils import TraceRecorder


@dataclass
class MachineConfig:
    """Runtime configuration for a machine."""

    ram_size: int = 0x10000
    program_image: Optional[bytes] = None
    load_address: int = 0x8000
    reset_vector: Optional[int] = None
    trace_capacity: int = 0


@dataclass
class Machine:
    """Aggregates the memory map, RAM block and CPU."""

    memory: MemorySystem
    ram: Memory
    cpu: MOS6502
    program: ProgramImage | None = None
    trace: TraceRecorder | None = None

    def run(self, max_instructions: int | None = None) -> int:
        return self.cpu.run(max_instructions)


class MainRam(Memory):
    """System RAM block starting at address zero."""


def _require_ram(ram: Memory, start: int, length: int, what: str) -> None:
    end = start + length - 1
    if not (ram.contains(start) and ram.contains(end)):
        raise ProgramFormatError(
            f"{what} at {start:#06x}-{end:#06x} lies outside RAM "
            f"{ram.get_start_address():#06x}-{ram.get_end_address():#06x}"
        )


def create_machine(config: MachineConfig) -> Machine:
    """Instantiate a machine with the requested configuration.

    The program image and the reset vector must land in RAM; anything written
    to the unmapped remainder of the address space would be discarded.
    """

    memory = MemorySystem()
    memory.allocate_space(0x10000)

    ram = MainRam(0x0000, config.ram_size)
    memory.register_memory(ram)
    if config.ram_size < 0x10000:
        memory.register_memory(UnmappedMemory(config.ram_size, 0x10000 - config.ram_size))

    program = None
    if config.program_image is not None:
        if config.program_image:
            _require_ram(ram, config.load_address, len(config.program_image), "program image")
        program = load_binary(io.BytesIO(config.program_image), memory, config.load_address)

    if config.reset_vector is not None:
        _require_ram(ram, MOS6502.RESET_VECTOR, 2, "reset vector")
        vector = config.reset_vector & 0xFFFF
        memory.store8(MOS6502.RESET_VECTOR, vector & 0xFF)
        memory.store8(MOS6502.RESET_VECTOR + 1, vector >> 8)

    trace = TraceRecorder(config.trace_capacity) if config.trace_capacity > 0 else None
    cpu = MOS6502(memory, trace=trace)

    return Machine(memory=memory, ram=ram, cpu=cpu, program=program, trace=trace)
