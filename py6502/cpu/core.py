"""Core 6502 CPU implementation."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Callable, ClassVar, Sequence

from py6502.bus import MemoryPort
from py6502.utils import TraceRecorder, debug_enabled, debug_log

from .opcodes import AddressingMode, Instruction, OPCODE_TABLE


class CPUError(Exception):
    """Base error for CPU-related failures."""


class IllegalOpcodeError(CPUError):
    """Raised when the CPU fetches a byte that has no instruction assigned."""

    def __init__(self, opcode: int, address: int) -> None:
        super().__init__(f"illegal opcode {opcode:#04x} at {address:#06x}")
        self.opcode = opcode
        self.address = address


# Status byte layout: NV-BDIZC
FLAG_C = 0x01
FLAG_Z = 0x02
FLAG_I = 0x04
FLAG_D = 0x08
FLAG_B = 0x10
FLAG_UNUSED = 0x20
FLAG_V = 0x40
FLAG_N = 0x80

STACK_PAGE = 0x0100

REGISTER_LIMITS = {
    "A": 0xFF,
    "X": 0xFF,
    "Y": 0xFF,
    "SP": 0xFF,
    "PC": 0xFFFF,
}


def clamp(value: int, low: int, high: int) -> int:
    if value > high:
        return high
    if value < low:
        return low
    return value


def to_signed8(value: int) -> int:
    value &= 0xFF
    return value - 0x100 if value & 0x80 else value


@dataclass
class StatusFlags:
    """The seven processor flags, stored independently."""

    carry: bool = False
    zero: bool = False
    interrupt_disable: bool = False
    decimal_mode: bool = False
    brk: bool = False
    overflow: bool = False
    negative: bool = False


@dataclass
class CPUState:
    """Snapshot of the 6502 register file."""

    a: int = 0x00
    x: int = 0x00
    y: int = 0x00
    sp: int = 0xFF
    pc: int = 0x0000
    flags: StatusFlags = field(default_factory=StatusFlags)

    def clone(self) -> "CPUState":
        return CPUState(self.a, self.x, self.y, self.sp, self.pc, replace(self.flags))


@dataclass
class MOS6502:
    """Instruction execution engine driven over an injected memory port."""

    memory: MemoryPort
    instruction_table: Sequence[Instruction | None] = field(default=OPCODE_TABLE)
    trace: TraceRecorder | None = None

    RESET_VECTOR: ClassVar[int] = 0xFFFC

    state: CPUState = field(default_factory=CPUState)
    initialized: bool = False
    instruction_count: int = 0

    def reset(self) -> None:
        """Return to the power-up register file; the next ``run`` repeats power-on."""

        self.state = CPUState()
        self.initialized = False
        self.instruction_count = 0

    def power_on(self) -> None:
        """Replay the hardware start-up bus sequence and load the reset vector.

        The accesses before the vector pull mirror what the chip puts on the
        bus during its reset cycles. Only the vector pull and the interrupt
        mask have an effect on later execution.
        """

        self.read_byte(0x802E)
        self.read_byte(0x802F)
        self.read_byte(0x01B6)
        self.write_byte(0x01B6, 0x80)
        self.write_byte(0x01B5, 0x30)
        self.read_byte(0x8030)
        self.read_byte(0x8014)

        low = self.read_byte(self.RESET_VECTOR)
        high = self.read_byte(self.RESET_VECTOR + 1)
        self.state.pc = (high << 8) | low
        self.state.flags.interrupt_disable = True
        self.initialized = True
        if debug_enabled("cpu"):
            debug_log("cpu", "power-on complete pc=%04x", self.state.pc)

    @property
    def halted(self) -> bool:
        return self.state.flags.brk

    def run(self, max_instructions: int | None = None) -> int:
        """Execute until BRK sets the break flag or ``max_instructions`` have run.

        Returns the number of instructions executed by this call.
        """

        if not self.initialized:
            self.power_on()

        executed = 0
        while not self.state.flags.brk:
            if max_instructions is not None and executed >= max_instructions:
                break
            self.step()
            executed += 1
        if debug_enabled("cpu"):
            debug_log(
                "cpu",
                "run stopped pc=%04x executed=%d halted=%s",
                self.state.pc,
                executed,
                self.halted,
            )
        return executed

    def step(self) -> Instruction:
        """Fetch, decode and execute a single instruction."""

        pc_before = self.state.pc
        opcode = self.read_byte(pc_before)
        instruction = self._decode(opcode, pc_before)
        self.state.pc = (pc_before + 1) & 0xFFFF

        if instruction.operand_bytes == 2:
            operand = self.fetch16()
        elif instruction.operand_bytes == 1:
            operand = self.fetch8()
        else:
            operand = 0

        if debug_enabled("cpu"):
            debug_log(
                "cpu",
                "pc=%04x opcode=%02x %s operand=%04x",
                pc_before,
                opcode,
                instruction,
                operand,
            )

        handler = getattr(self, instruction.handler, None)
        if handler is None:
            raise CPUError(f"handler '{instruction.handler}' not implemented")
        handler(instruction, operand)
        self.instruction_count += 1

        if self.trace is not None:
            self.trace.record_step(
                self.state,
                pc_before,
                opcode,
                self.get_status_byte(),
                halted=self.halted,
                mnemonic=instruction.mnemonic,
            )
        return instruction

    # ------------------------------------------------------------------
    # Register and flag accessors

    def get_register(self, name: str) -> int:
        key = name.upper()
        if key == "A":
            return self.state.a
        if key == "X":
            return self.state.x
        if key == "Y":
            return self.state.y
        if key == "SP":
            return self.state.sp
        if key == "PC":
            return self.state.pc
        raise CPUError(f"unknown register {name}")

    def set_register(self, name: str, value: int) -> None:
        key = name.upper()
        limit = REGISTER_LIMITS.get(key)
        if limit is None:
            raise CPUError(f"unknown register {name}")
        value = clamp(value, 0, limit)
        if key == "A":
            self.state.a = value
        elif key == "X":
            self.state.x = value
        elif key == "Y":
            self.state.y = value
        elif key == "SP":
            self.state.sp = value
        else:
            self.state.pc = value

    def get_flags(self) -> StatusFlags:
        return replace(self.state.flags)

    def set_flags_from_byte(self, value: int) -> None:
        """Set every flag whose bit is 1 in ``value``; clear bits are ignored."""

        flags = self.state.flags
        if value & FLAG_C:
            flags.carry = True
        if value & FLAG_Z:
            flags.zero = True
        if value & FLAG_I:
            flags.interrupt_disable = True
        if value & FLAG_D:
            flags.decimal_mode = True
        if value & FLAG_B:
            flags.brk = True
        if value & FLAG_V:
            flags.overflow = True
        if value & FLAG_N:
            flags.negative = True

    def get_status_byte(self) -> int:
        """Pack the flags into NV-BDIZC order; B and bit 5 are always 0."""

        flags = self.state.flags
        status = 0
        if flags.carry:
            status |= FLAG_C
        if flags.zero:
            status |= FLAG_Z
        if flags.interrupt_disable:
            status |= FLAG_I
        if flags.decimal_mode:
            status |= FLAG_D
        if flags.overflow:
            status |= FLAG_V
        if flags.negative:
            status |= FLAG_N
        return status

    def format_stats(self) -> list[str]:
        """Human-readable register dump."""

        return [
            "-- CPU STATS --",
            f"Accumulator:     0x{self.state.a:02X}",
            f"X Index:         0x{self.state.x:02X}",
            f"Y Index:         0x{self.state.y:02X}",
            f"Stack Pointer:   0x{self.state.sp:02X}",
            f"Program Counter: 0x{self.state.pc:04X}",
            f"Status Register: 0b{self.get_status_byte():08b}",
            "-- CPU STATS --",
        ]

    # ------------------------------------------------------------------
    # Memory helpers

    def read_byte(self, address: int) -> int:
        return self.memory.load8(address & 0xFFFF) & 0xFF

    def write_byte(self, address: int, value: int) -> None:
        self.memory.store8(address & 0xFFFF, clamp(value, 0, 0xFF))

    def read_short(self, address: int) -> int:
        low = self.read_byte(address)
        high = self.read_byte((address + 1) & 0xFFFF)
        return (high << 8) | low

    def write_short(self, address: int, value: int) -> None:
        value = clamp(value, 0, 0xFFFF)
        self.write_byte(address, value & 0xFF)
        self.write_byte((address + 1) & 0xFFFF, value >> 8)

    def fetch8(self) -> int:
        value = self.read_byte(self.state.pc)
        self.state.pc = (self.state.pc + 1) & 0xFFFF
        return value

    def fetch16(self) -> int:
        low = self.fetch8()
        high = self.fetch8()
        return (high << 8) | low

    # ------------------------------------------------------------------
    # Stack helpers

    def push8(self, value: int) -> None:
        self.write_byte(STACK_PAGE + self.state.sp, clamp(value, 0, 0xFF))
        # Underflow wraps to the top of the stack page rather than faulting.
        self.state.sp = 0xFF if self.state.sp == 0 else self.state.sp - 1

    def pop8(self) -> int:
        self.state.sp = 0x00 if self.state.sp == 0xFF else self.state.sp + 1
        address = STACK_PAGE + self.state.sp
        value = self.read_byte(address)
        self.write_byte(address, 0)
        return value

    def push16(self, value: int) -> None:
        value = clamp(value, 0, 0xFFFF)
        # Low byte goes on the stack first; pop16 undoes this order.
        self.push8(value & 0xFF)
        self.push8(value >> 8)

    def pop16(self) -> int:
        high = self.pop8()
        low = self.pop8()
        return (high << 8) | low

    # ------------------------------------------------------------------
    # Instruction handlers: arithmetic and logic

    def op_adc(self, instruction: Instruction, operand: int) -> None:
        value = self._read_operand(instruction.mode, operand)
        self.set_register("A", self.state.a + value)
        self._update_arithmetic_flags(value, self.state.a)

    def op_sbc(self, instruction: Instruction, operand: int) -> None:
        value = self._read_operand(instruction.mode, operand)
        self.set_register("A", self.state.a - value)
        self._update_arithmetic_flags(value, self.state.a)

    def op_and(self, instruction: Instruction, operand: int) -> None:
        value = self._read_operand(instruction.mode, operand)
        self.set_register("A", self.state.a & value)
        self._update_nz_flags(self.state.a)

    def op_ora(self, instruction: Instruction, operand: int) -> None:
        value = self._read_operand(instruction.mode, operand)
        self.set_register("A", self.state.a | value)
        self._update_nz_flags(self.state.a)

    def op_eor(self, instruction: Instruction, operand: int) -> None:
        value = self._read_operand(instruction.mode, operand)
        self.set_register("A", self.state.a ^ value)
        self._update_nz_flags(self.state.a)

    def op_bit(self, instruction: Instruction, operand: int) -> None:
        value = self._read_operand(instruction.mode, operand)
        flags = self.state.flags
        flags.zero = (self.state.a & value) == 0
        flags.negative = (value & 0x80) != 0
        flags.overflow = (value & 0x40) != 0

    def op_compare(self, instruction: Instruction, operand: int) -> None:
        register = self._require_register(instruction)
        value = self._read_operand(instruction.mode, operand)
        current = self.get_register(register)
        self.state.flags.zero = current == value
        self.state.flags.negative = ((current - value) & 0x80) != 0

    # ------------------------------------------------------------------
    # Instruction handlers: shifts and rotates

    def op_asl(self, instruction: Instruction, operand: int) -> None:
        self._modify(instruction, operand, self._op_asl)

    def op_lsr(self, instruction: Instruction, operand: int) -> None:
        self._modify(instruction, operand, self._op_lsr)

    def op_rol(self, instruction: Instruction, operand: int) -> None:
        self._modify(instruction, operand, self._op_rol)

    def op_ror(self, instruction: Instruction, operand: int) -> None:
        self._modify(instruction, operand, self._op_ror)

    # ------------------------------------------------------------------
    # Instruction handlers: increment and decrement

    def op_inc_memory(self, instruction: Instruction, operand: int) -> None:
        self._modify(instruction, operand, lambda value: clamp(value + 1, 0, 0xFF))

    def op_dec_memory(self, instruction: Instruction, operand: int) -> None:
        self._modify(instruction, operand, lambda value: clamp(value - 1, 0, 0xFF))

    def op_inc_register(self, instruction: Instruction, _: int) -> None:
        register = self._require_register(instruction)
        self.set_register(register, self.get_register(register) + 1)
        self._update_nz_flags(self.get_register(register))

    def op_dec_register(self, instruction: Instruction, _: int) -> None:
        register = self._require_register(instruction)
        self.set_register(register, self.get_register(register) - 1)
        self._update_nz_flags(self.get_register(register))

    # ------------------------------------------------------------------
    # Instruction handlers: loads, stores and transfers

    def op_load(self, instruction: Instruction, operand: int) -> None:
        register = self._require_register(instruction)
        value = self._read_operand(instruction.mode, operand)
        self.set_register(register, value)
        self._update_nz_flags(value)

    def op_store(self, instruction: Instruction, operand: int) -> None:
        register = self._require_register(instruction)
        address = self._resolve_address(instruction.mode, operand)
        self.write_byte(address, self.get_register(register))

    def op_tax(self, _: Instruction, __: int) -> None:
        self._transfer("A", "X")

    def op_tay(self, _: Instruction, __: int) -> None:
        self._transfer("A", "Y")

    def op_tsx(self, _: Instruction, __: int) -> None:
        self._transfer("SP", "X")

    def op_txa(self, _: Instruction, __: int) -> None:
        self._transfer("X", "A")

    def op_txs(self, _: Instruction, __: int) -> None:
        self.set_register("SP", self.state.x)

    def op_tya(self, _: Instruction, __: int) -> None:
        self._transfer("Y", "A")

    # ------------------------------------------------------------------
    # Instruction handlers: stack

    def op_pha(self, _: Instruction, __: int) -> None:
        self.push8(self.state.a)

    def op_php(self, _: Instruction, __: int) -> None:
        self.push8(self.get_status_byte())

    def op_pla(self, _: Instruction, __: int) -> None:
        self.set_register("A", self.pop8())
        self._update_nz_flags(self.state.a)

    def op_plp(self, _: Instruction, __: int) -> None:
        self.set_flags_from_byte(self.pop8())

    # ------------------------------------------------------------------
    # Instruction handlers: control flow

    def op_jmp(self, instruction: Instruction, operand: int) -> None:
        self.set_register("PC", self._resolve_address(instruction.mode, operand))

    def op_jsr(self, instruction: Instruction, operand: int) -> None:
        self.push16(self.state.pc)
        self.set_register("PC", operand)

    def op_rts(self, _: Instruction, __: int) -> None:
        self.set_register("PC", self.pop16())

    def op_rti(self, _: Instruction, __: int) -> None:
        self.set_flags_from_byte(self.pop8())
        self.set_register("PC", self.pop16())

    def op_branch_bcc(self, _: Instruction, operand: int) -> None:
        self._branch_if(not self.state.flags.carry, operand)

    def op_branch_bcs(self, _: Instruction, operand: int) -> None:
        self._branch_if(self.state.flags.carry, operand)

    def op_branch_beq(self, _: Instruction, operand: int) -> None:
        self._branch_if(self.state.flags.zero, operand)

    def op_branch_bne(self, _: Instruction, operand: int) -> None:
        self._branch_if(not self.state.flags.zero, operand)

    def op_branch_bmi(self, _: Instruction, operand: int) -> None:
        self._branch_if(self.state.flags.negative, operand)

    def op_branch_bpl(self, _: Instruction, operand: int) -> None:
        self._branch_if(not self.state.flags.negative, operand)

    def op_branch_bvc(self, _: Instruction, operand: int) -> None:
        self._branch_if(not self.state.flags.overflow, operand)

    def op_branch_bvs(self, _: Instruction, operand: int) -> None:
        self._branch_if(self.state.flags.overflow, operand)

    # ------------------------------------------------------------------
    # Instruction handlers: flags and misc

    def op_sec(self, _: Instruction, __: int) -> None:
        self.state.flags.carry = True

    def op_clc(self, _: Instruction, __: int) -> None:
        self.state.flags.carry = False

    def op_sed(self, _: Instruction, __: int) -> None:
        self.state.flags.decimal_mode = True

    def op_cld(self, _: Instruction, __: int) -> None:
        self.state.flags.decimal_mode = False

    def op_sei(self, _: Instruction, __: int) -> None:
        self.state.flags.interrupt_disable = True

    def op_cli(self, _: Instruction, __: int) -> None:
        self.state.flags.interrupt_disable = False

    def op_clv(self, _: Instruction, __: int) -> None:
        self.state.flags.overflow = False

    def op_nop(self, _: Instruction, __: int) -> None:
        """No operation."""

    def op_brk(self, _: Instruction, __: int) -> None:
        self.state.flags.brk = True
        if debug_enabled("cpu"):
            debug_log("cpu", "break at pc=%04x", self.state.pc)

    # ------------------------------------------------------------------
    # Decode and addressing helpers

    def _decode(self, opcode: int, address: int) -> Instruction:
        instruction = self.instruction_table[opcode]
        if instruction is None:
            if debug_enabled("cpu"):
                debug_log("cpu", "illegal opcode %02x at %04x", opcode, address)
            raise IllegalOpcodeError(opcode, address)
        return instruction

    def _resolve_address(self, mode: AddressingMode, operand: int) -> int:
        if mode in (AddressingMode.ZERO_PAGE, AddressingMode.ABSOLUTE):
            return operand
        if mode in (AddressingMode.ZERO_PAGE_X, AddressingMode.ABSOLUTE_X):
            return (operand + self.state.x) & 0xFFFF
        if mode in (AddressingMode.ZERO_PAGE_Y, AddressingMode.ABSOLUTE_Y):
            return (operand + self.state.y) & 0xFFFF
        if mode == AddressingMode.INDIRECT:
            return self.read_short(operand)
        if mode == AddressingMode.INDEXED_INDIRECT:
            return self.read_short((operand + self.state.x) & 0xFFFF)
        if mode == AddressingMode.INDIRECT_INDEXED:
            return (self.read_short(operand) + self.state.y) & 0xFFFF
        raise CPUError(f"addressing mode {mode.name} cannot be resolved to an address")

    def _read_operand(self, mode: AddressingMode, operand: int) -> int:
        if mode == AddressingMode.IMMEDIATE:
            return operand & 0xFF
        return self.read_byte(self._resolve_address(mode, operand))

    def _modify(self, instruction: Instruction, operand: int, mutate: Callable[[int], int]) -> int:
        if instruction.mode == AddressingMode.ACCUMULATOR:
            result = mutate(self.state.a) & 0xFF
            self.set_register("A", result)
        else:
            address = self._resolve_address(instruction.mode, operand)
            result = mutate(self.read_byte(address)) & 0xFF
            self.write_byte(address, result)
        self._update_nz_flags(result)
        return result

    def _require_register(self, instruction: Instruction) -> str:
        if instruction.register is None:
            raise CPUError(f"instruction {instruction.mnemonic} missing register metadata")
        return instruction.register

    def _transfer(self, source: str, target: str) -> None:
        value = self.get_register(source)
        self.set_register(target, value)
        self._update_nz_flags(value)

    def _branch_if(self, condition: bool, operand: int) -> None:
        if condition:
            self.set_register("PC", self.state.pc + to_signed8(operand))

    # ------------------------------------------------------------------
    # 8-bit operation helpers

    def _op_asl(self, value: int) -> int:
        self.state.flags.carry = (value & 0x80) != 0
        return (value << 1) & 0xFF

    def _op_lsr(self, value: int) -> int:
        self.state.flags.carry = (value & 0x01) != 0
        return value >> 1

    def _op_rol(self, value: int) -> int:
        carry_in = 0x01 if self.state.flags.carry else 0
        self.state.flags.carry = (value & 0x80) != 0
        return ((value << 1) | carry_in) & 0xFF

    def _op_ror(self, value: int) -> int:
        carry_in = 0x80 if self.state.flags.carry else 0
        self.state.flags.carry = (value & 0x01) != 0
        return (value >> 1) | carry_in

    # ------------------------------------------------------------------
    # Flag helpers

    def _update_nz_flags(self, value: int) -> None:
        value &= 0xFF
        self.state.flags.zero = value == 0
        self.state.flags.negative = (value & 0x80) != 0

    def _update_arithmetic_flags(self, operand: int, result: int) -> None:
        # Carry and overflow are only ever raised here, from the saturated
        # result; nothing in ADC/SBC clears them.
        self._update_nz_flags(result)
        if operand + result >= 0x100:
            self.state.flags.carry = True
        if operand + result >= 0x80:
            self.state.flags.overflow = True
