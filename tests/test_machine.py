"""Machine assembly tests."""

import pytest

from py6502.bus import MemoryError
from py6502.cpu import MOS6502
from py6502.loader import ProgramFormatError
from py6502.system import MachineConfig, MainRam, create_machine


def test_default_machine_maps_full_ram() -> None:
    machine = create_machine(MachineConfig())

    assert machine.memory.get_memory(MainRam) is machine.ram
    assert machine.memory.get_end_address(MainRam) == 0xFFFF
    assert machine.program is None
    assert machine.trace is None
    assert isinstance(machine.cpu, MOS6502)


def test_program_image_and_reset_vector() -> None:
    config = MachineConfig(
        program_image=bytes((0xA9, 0x07, 0x00, 0x00)),
        load_address=0x0600,
        reset_vector=0x0600,
    )
    machine = create_machine(config)

    assert machine.program is not None
    assert machine.program.entry_point == 0x0600
    assert machine.memory.load8(0xFFFC) == 0x00
    assert machine.memory.load8(0xFFFD) == 0x06

    executed = machine.run()

    assert executed == 2
    assert machine.cpu.state.a == 0x07
    assert machine.cpu.halted


def test_small_ram_leaves_upper_space_unmapped() -> None:
    machine = create_machine(MachineConfig(ram_size=0x1000))

    machine.memory.store8(0x2000, 0x55)

    assert machine.memory.load8(0x2000) == 0x00
    assert machine.memory.get_end_address(MainRam) == 0x0FFF


def test_program_outside_ram_is_rejected() -> None:
    config = MachineConfig(program_image=b"\xEA", load_address=0xFFFF + 1)

    with pytest.raises(ProgramFormatError):
        create_machine(config)


def test_oversized_ram_is_rejected() -> None:
    with pytest.raises(MemoryError):
        create_machine(MachineConfig(ram_size=0x10001))


def test_trace_capacity_enables_recorder() -> None:
    config = MachineConfig(
        program_image=bytes((0xE8, 0xE8, 0xE8, 0x00, 0x00)),
        load_address=0x8000,
        reset_vector=0x8000,
        trace_capacity=2,
    )
    machine = create_machine(config)

    machine.run()

    assert machine.trace is machine.cpu.trace
    entries = list(machine.trace.entries())
    assert [entry.mnemonic for entry in entries] == ["INX", "BRK"]
    assert entries[-1].halted
    assert entries[0].x == 3


def test_run_respects_instruction_limit() -> None:
    config = MachineConfig(
        program_image=bytes((0x4C, 0x00, 0x80)),  # JMP $8000
        reset_vector=0x8000,
    )
    machine = create_machine(config)

    assert machine.run(max_instructions=5) == 5
    assert not machine.cpu.halted


def test_program_beyond_small_ram_is_rejected() -> None:
    config = MachineConfig(
        ram_size=0x1000,
        program_image=bytes((0xA9, 0x07, 0x00, 0x00)),
        load_address=0x8000,
    )

    with pytest.raises(ProgramFormatError):
        create_machine(config)


def test_program_straddling_ram_end_is_rejected() -> None:
    config = MachineConfig(ram_size=0x1000, program_image=b"\xEA\xEA", load_address=0x0FFF)

    with pytest.raises(ProgramFormatError):
        create_machine(config)


def test_reset_vector_needs_ram_at_top_of_memory() -> None:
    config = MachineConfig(
        ram_size=0x1000,
        program_image=bytes((0xA9, 0x07, 0x00, 0x00)),
        load_address=0x0200,
        reset_vector=0x0200,
    )

    with pytest.raises(ProgramFormatError):
        create_machine(config)


def test_small_ram_program_without_vector_loads() -> None:
    config = MachineConfig(ram_size=0x1000, program_image=b"\xEA", load_address=0x0FFF)

    machine = create_machine(config)

    assert machine.memory.load8(0x0FFF) == 0xEA


def test_empty_program_image_is_rejected() -> None:
    config = MachineConfig(program_image=b"", reset_vector=0x8000)

    with pytest.raises(ProgramFormatError):
        create_machine(config)
