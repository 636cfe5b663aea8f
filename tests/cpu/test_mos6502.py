"""Tests for the 6502 execution engine."""

from __future__ import annotations

import pytest

from py6502.bus import CallbackMemory, Memory, MemoryError, MemorySystem, ReadWrite
from py6502.cpu import CPUError, IllegalOpcodeError, MOS6502


def make_cpu(entry_point: int = 0x8000) -> tuple[MOS6502, Memory]:
    ms = MemorySystem()
    ms.allocate_space(0x10000)
    ram = Memory(0x0000, 0x10000)
    ms.register_memory(ram)
    ram.store16(0xFFFC, entry_point)

    cpu = MOS6502(ms)
    cpu.power_on()
    return cpu, ram


def load(ram: Memory, address: int, *data: int) -> None:
    ram.load_image(bytes(data), address)


def test_power_on_loads_reset_vector_and_masks_interrupts() -> None:
    cpu, _ = make_cpu(0x1234)

    assert cpu.state.pc == 0x1234
    assert cpu.state.flags.interrupt_disable
    assert cpu.initialized


def test_run_performs_power_on_before_first_instruction() -> None:
    data = bytearray(0x10000)
    data[0xFFFC] = 0x00
    data[0xFFFD] = 0x90
    data[0x9000] = 0x00  # BRK
    accesses: list[tuple[str, int, int]] = []

    def access(rw: ReadWrite, address: int, value: int) -> int | None:
        if rw == ReadWrite.READ:
            accesses.append(("R", address, data[address]))
            return data[address]
        accesses.append(("W", address, value))
        data[address] = value
        return None

    cpu = MOS6502(CallbackMemory(access))
    executed = cpu.run()

    assert executed == 1
    assert accesses[:9] == [
        ("R", 0x802E, 0x00),
        ("R", 0x802F, 0x00),
        ("R", 0x01B6, 0x00),
        ("W", 0x01B6, 0x80),
        ("W", 0x01B5, 0x30),
        ("R", 0x8030, 0x00),
        ("R", 0x8014, 0x00),
        ("R", 0xFFFC, 0x00),
        ("R", 0xFFFD, 0x90),
    ]
    # The first instruction fetch follows the vector pull.
    assert accesses[9] == ("R", 0x9000, 0x00)
    assert cpu.state.flags.interrupt_disable


def test_lda_immediate_zero_sets_zero_flag() -> None:
    cpu, ram = make_cpu(0x8000)
    cpu.state.flags.negative = True
    load(ram, 0x8000, 0xA9, 0x00)

    cpu.step()

    assert cpu.state.a == 0x00
    assert cpu.state.flags.zero
    assert not cpu.state.flags.negative
    assert cpu.state.pc == 0x8002


def test_lda_immediate_negative_sets_negative_flag() -> None:
    cpu, ram = make_cpu(0x8000)
    load(ram, 0x8000, 0xA9, 0x80)

    cpu.step()

    assert cpu.state.a == 0x80
    assert cpu.state.flags.negative
    assert not cpu.state.flags.zero


def test_beq_taken_with_negative_offset() -> None:
    cpu, ram = make_cpu(0x8010)
    cpu.state.flags.zero = True
    load(ram, 0x8010, 0xF0, 0xFE)

    cpu.step()

    assert cpu.state.pc == 0x8010


def test_beq_not_taken_leaves_pc_after_operand() -> None:
    cpu, ram = make_cpu(0x8010)
    cpu.state.flags.zero = False
    load(ram, 0x8010, 0xF0, 0xFE)

    cpu.step()

    assert cpu.state.pc == 0x8012


@pytest.mark.parametrize(
    ("opcode", "flag", "value"),
    [
        (0x90, "carry", False),
        (0xB0, "carry", True),
        (0xD0, "zero", False),
        (0x30, "negative", True),
        (0x10, "negative", False),
        (0x50, "overflow", False),
        (0x70, "overflow", True),
    ],
)
def test_branches_follow_their_flag(opcode: int, flag: str, value: bool) -> None:
    cpu, ram = make_cpu(0x8000)
    setattr(cpu.state.flags, flag, value)
    load(ram, 0x8000, opcode, 0x10)

    cpu.step()
    assert cpu.state.pc == 0x8012

    cpu, ram = make_cpu(0x8000)
    setattr(cpu.state.flags, flag, not value)
    load(ram, 0x8000, opcode, 0x10)

    cpu.step()
    assert cpu.state.pc == 0x8002


def test_illegal_opcode_raises_without_mutating_state() -> None:
    cpu, ram = make_cpu(0x8000)
    cpu.state.a = 0x12
    cpu.state.x = 0x34
    load(ram, 0x8000, 0xFF)
    before = cpu.state.clone()

    with pytest.raises(IllegalOpcodeError) as excinfo:
        cpu.step()

    assert excinfo.value.opcode == 0xFF
    assert excinfo.value.address == 0x8000
    assert "0xff" in str(excinfo.value)
    assert "0x8000" in str(excinfo.value)
    assert cpu.state == before


def test_illegal_opcode_stops_run() -> None:
    cpu, ram = make_cpu(0x8000)
    load(ram, 0x8000, 0xE8, 0x02)  # INX, then an unassigned byte

    with pytest.raises(IllegalOpcodeError):
        cpu.run()

    assert cpu.state.x == 1
    assert cpu.state.pc == 0x8001
    assert isinstance(IllegalOpcodeError(0x02, 0), CPUError)


@pytest.mark.parametrize("register", ["A", "X", "Y", "SP"])
def test_set_register_clamps_to_byte(register: str) -> None:
    cpu, _ = make_cpu()

    cpu.set_register(register, 0x7F)
    assert cpu.get_register(register) == 0x7F

    cpu.set_register(register, 0x1FF)
    assert cpu.get_register(register) == 0xFF

    cpu.set_register(register, -3)
    assert cpu.get_register(register) == 0x00


def test_set_register_pc_uses_sixteen_bits() -> None:
    cpu, _ = make_cpu()

    cpu.set_register("PC", 0x1234)
    assert cpu.get_register("PC") == 0x1234

    cpu.set_register("PC", 0x12345)
    assert cpu.get_register("PC") == 0xFFFF

    cpu.set_register("PC", -1)
    assert cpu.get_register("PC") == 0x0000


def test_unknown_register_name_raises() -> None:
    cpu, _ = make_cpu()

    with pytest.raises(CPUError):
        cpu.set_register("B", 1)
    with pytest.raises(CPUError):
        cpu.get_register("Q")


def test_run_stops_at_break() -> None:
    cpu, ram = make_cpu(0x8000)
    load(ram, 0x8000, 0xA9, 0x42, 0x00, 0xEA)

    executed = cpu.run()

    assert executed == 2
    assert cpu.state.a == 0x42
    assert cpu.halted
    assert cpu.state.pc == 0x8004
    assert cpu.instruction_count == 2


def test_run_with_break_already_set_executes_nothing() -> None:
    cpu, ram = make_cpu(0x8000)
    load(ram, 0x8000, 0xE8)
    cpu.state.flags.brk = True

    assert cpu.run() == 0
    assert cpu.state.x == 0


def test_run_honours_instruction_limit() -> None:
    cpu, ram = make_cpu(0x8000)
    load(ram, 0x8000, 0xE8, 0x4C, 0x00, 0x80)  # loop: INX; JMP $8000

    executed = cpu.run(max_instructions=10)

    assert executed == 10
    assert cpu.state.x == 5
    assert not cpu.halted


def test_reset_restores_power_up_state() -> None:
    cpu, ram = make_cpu(0x8000)
    load(ram, 0x8000, 0xA9, 0x42, 0x00, 0x00)
    cpu.run()

    cpu.reset()

    assert cpu.state.a == 0
    assert cpu.state.sp == 0xFF
    assert cpu.state.pc == 0
    assert not cpu.initialized
    assert not cpu.halted

    ram.store16(0xFFFC, 0x9000)
    load(ram, 0x9000, 0xA2, 0x07, 0x00, 0x00)
    cpu.run()

    assert cpu.state.x == 0x07
    assert cpu.state.pc == 0x9004


def test_counting_loop_program() -> None:
    cpu, ram = make_cpu(0x8000)
    load(
        ram,
        0x8000,
        0xA2, 0x05,        # LDX #5
        0xA9, 0x00,        # LDA #0
        0x18,              # CLC
        0x69, 0x03,        # ADC #3
        0xCA,              # DEX
        0xD0, 0xFA,        # BNE -6
        0x8D, 0x00, 0x02,  # STA $0200
        0x00, 0x00,        # BRK
    )

    executed = cpu.run()

    assert executed == 24
    assert cpu.state.a == 15
    assert ram.load8(0x0200) == 15
    assert cpu.state.x == 0
    assert cpu.state.flags.zero  # left by the final DEX; STA and BRK keep it


def test_memory_errors_propagate() -> None:
    cpu = MOS6502(Memory(0x0000, 0x100))

    with pytest.raises(MemoryError):
        cpu.run()


def test_absolute_load_reads_in_program_order() -> None:
    data = bytearray(0x10000)
    data[0x0400:0x0403] = bytes((0xAD, 0x00, 0x30))  # LDA $3000
    data[0x3000] = 0x5A
    reads: list[int] = []

    def access(rw: ReadWrite, address: int, value: int) -> int | None:
        if rw == ReadWrite.READ:
            reads.append(address)
            return data[address]
        data[address] = value
        return None

    cpu = MOS6502(CallbackMemory(access))
    cpu.state.pc = 0x0400
    cpu.step()

    assert reads == [0x0400, 0x0401, 0x0402, 0x3000]
    assert cpu.state.a == 0x5A
