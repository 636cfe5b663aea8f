"""Opcode metadata for the 6502 CPU."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Final, Iterable, List, Sequence


class AddressingMode(Enum):
    """Addressing modes of the documented 6502 instruction set.

    Each value is an ``(operand_bytes, label)`` pair: the number of operand
    bytes that follow the opcode in memory and the short assembler notation.
    """

    IMPLIED = (0, "impl")
    ACCUMULATOR = (0, "acc")
    IMMEDIATE = (1, "#")
    ZERO_PAGE = (1, "zpg")
    ZERO_PAGE_X = (1, "zpg,x")
    ZERO_PAGE_Y = (1, "zpg,y")
    RELATIVE = (1, "rel")
    INDEXED_INDIRECT = (1, "(ind,x)")
    INDIRECT_INDEXED = (1, "(ind),y")
    ABSOLUTE = (2, "abs")
    ABSOLUTE_X = (2, "abs,x")
    ABSOLUTE_Y = (2, "abs,y")
    INDIRECT = (2, "ind")

    @property
    def operand_bytes(self) -> int:
        return self.value[0]

    @property
    def label(self) -> str:
        return self.value[1]


@dataclass(frozen=True)
class Instruction:
    """Metadata describing a single 6502 opcode."""

    opcode: int
    mnemonic: str
    mode: AddressingMode
    handler: str
    register: str | None = None

    def __post_init__(self) -> None:
        if not 0 <= self.opcode <= 0xFF:
            raise ValueError(f"opcode out of range: {self.opcode}")
        if self.register is not None and self.register not in ("A", "X", "Y"):
            raise ValueError(f"unsupported register {self.register!r} for {self.mnemonic}")

    @property
    def operand_bytes(self) -> int:
        return self.mode.operand_bytes

    @property
    def length(self) -> int:
        return 1 + self.operand_bytes

    def __str__(self) -> str:
        return f"{self.mnemonic} {self.mode.label}"


class OpcodeTable:
    """Mutable builder for the 256-entry instruction table."""

    _TABLE_SIZE: Final[int] = 0x100

    def __init__(self) -> None:
        self._table: List[Instruction | None] = [None] * self._TABLE_SIZE

    def register(self, instruction: Instruction) -> None:
        opcode = instruction.opcode
        existing = self._table[opcode]
        if existing is not None:
            raise ValueError(
                f"opcode {opcode:#04x} already registered as {existing}")
        self._table[opcode] = instruction

    def register_all(self, instructions: Iterable[Instruction]) -> None:
        for instruction in instructions:
            self.register(instruction)

    def freeze(self) -> Sequence[Instruction | None]:
        return tuple(self._table)


def build_instruction_table(instructions: Iterable[Instruction]) -> Sequence[Instruction | None]:
    """Build a 256-entry instruction lookup table."""

    table = OpcodeTable()
    table.register_all(instructions)
    return table.freeze()


M = AddressingMode

DEFAULT_INSTRUCTIONS: Sequence[Instruction] = (
    # ADC / SBC
    Instruction(0x69, "ADC", M.IMMEDIATE, "op_adc"),
    Instruction(0x65, "ADC", M.ZERO_PAGE, "op_adc"),
    Instruction(0x75, "ADC", M.ZERO_PAGE_X, "op_adc"),
    Instruction(0x6D, "ADC", M.ABSOLUTE, "op_adc"),
    Instruction(0x7D, "ADC", M.ABSOLUTE_X, "op_adc"),
    Instruction(0x79, "ADC", M.ABSOLUTE_Y, "op_adc"),
    Instruction(0x61, "ADC", M.INDEXED_INDIRECT, "op_adc"),
    Instruction(0x71, "ADC", M.INDIRECT_INDEXED, "op_adc"),
    Instruction(0xE9, "SBC", M.IMMEDIATE, "op_sbc"),
    Instruction(0xE5, "SBC", M.ZERO_PAGE, "op_sbc"),
    Instruction(0xF5, "SBC", M.ZERO_PAGE_X, "op_sbc"),
    Instruction(0xED, "SBC", M.ABSOLUTE, "op_sbc"),
    Instruction(0xFD, "SBC", M.ABSOLUTE_X, "op_sbc"),
    Instruction(0xF9, "SBC", M.ABSOLUTE_Y, "op_sbc"),
    Instruction(0xE1, "SBC", M.INDEXED_INDIRECT, "op_sbc"),
    Instruction(0xF1, "SBC", M.INDIRECT_INDEXED, "op_sbc"),
    # AND / ORA / EOR
    Instruction(0x29, "AND", M.IMMEDIATE, "op_and"),
    Instruction(0x25, "AND", M.ZERO_PAGE, "op_and"),
    Instruction(0x35, "AND", M.ZERO_PAGE_X, "op_and"),
    Instruction(0x2D, "AND", M.ABSOLUTE, "op_and"),
    Instruction(0x3D, "AND", M.ABSOLUTE_X, "op_and"),
    Instruction(0x39, "AND", M.ABSOLUTE_Y, "op_and"),
    Instruction(0x21, "AND", M.INDEXED_INDIRECT, "op_and"),
    Instruction(0x31, "AND", M.INDIRECT_INDEXED, "op_and"),
    Instruction(0x09, "ORA", M.IMMEDIATE, "op_ora"),
    Instruction(0x05, "ORA", M.ZERO_PAGE, "op_ora"),
    Instruction(0x15, "ORA", M.ZERO_PAGE_X, "op_ora"),
    Instruction(0x0D, "ORA", M.ABSOLUTE, "op_ora"),
    Instruction(0x1D, "ORA", M.ABSOLUTE_X, "op_ora"),
    Instruction(0x19, "ORA", M.ABSOLUTE_Y, "op_ora"),
    Instruction(0x01, "ORA", M.INDEXED_INDIRECT, "op_ora"),
    Instruction(0x11, "ORA", M.INDIRECT_INDEXED, "op_ora"),
    Instruction(0x49, "EOR", M.IMMEDIATE, "op_eor"),
    Instruction(0x45, "EOR", M.ZERO_PAGE, "op_eor"),
    Instruction(0x55, "EOR", M.ZERO_PAGE_X, "op_eor"),
    Instruction(0x4D, "EOR", M.ABSOLUTE, "op_eor"),
    Instruction(0x5D, "EOR", M.ABSOLUTE_X, "op_eor"),
    Instruction(0x59, "EOR", M.ABSOLUTE_Y, "op_eor"),
    Instruction(0x41, "EOR", M.INDEXED_INDIRECT, "op_eor"),
    Instruction(0x51, "EOR", M.INDIRECT_INDEXED, "op_eor"),
    # BIT
    Instruction(0x24, "BIT", M.ZERO_PAGE, "op_bit"),
    Instruction(0x2C, "BIT", M.ABSOLUTE, "op_bit"),
    # Shifts and rotates
    Instruction(0x0A, "ASL", M.ACCUMULATOR, "op_asl"),
    Instruction(0x06, "ASL", M.ZERO_PAGE, "op_asl"),
    Instruction(0x16, "ASL", M.ZERO_PAGE_X, "op_asl"),
    Instruction(0x0E, "ASL", M.ABSOLUTE, "op_asl"),
    Instruction(0x1E, "ASL", M.ABSOLUTE_X, "op_asl"),
    Instruction(0x4A, "LSR", M.ACCUMULATOR, "op_lsr"),
    Instruction(0x46, "LSR", M.ZERO_PAGE, "op_lsr"),
    Instruction(0x56, "LSR", M.ZERO_PAGE_X, "op_lsr"),
    Instruction(0x4E, "LSR", M.ABSOLUTE, "op_lsr"),
    Instruction(0x5E, "LSR", M.ABSOLUTE_X, "op_lsr"),
    Instruction(0x2A, "ROL", M.ACCUMULATOR, "op_rol"),
    Instruction(0x26, "ROL", M.ZERO_PAGE, "op_rol"),
    Instruction(0x36, "ROL", M.ZERO_PAGE_X, "op_rol"),
    Instruction(0x2E, "ROL", M.ABSOLUTE, "op_rol"),
    Instruction(0x3E, "ROL", M.ABSOLUTE_X, "op_rol"),
    Instruction(0x6A, "ROR", M.ACCUMULATOR, "op_ror"),
    Instruction(0x66, "ROR", M.ZERO_PAGE, "op_ror"),
    Instruction(0x76, "ROR", M.ZERO_PAGE_X, "op_ror"),
    Instruction(0x6E, "ROR", M.ABSOLUTE, "op_ror"),
    Instruction(0x7E, "ROR", M.ABSOLUTE_X, "op_ror"),
    # Jumps and subroutines
    Instruction(0x4C, "JMP", M.ABSOLUTE, "op_jmp"),
    Instruction(0x6C, "JMP", M.INDIRECT, "op_jmp"),
    Instruction(0x20, "JSR", M.ABSOLUTE, "op_jsr"),
    Instruction(0x60, "RTS", M.IMPLIED, "op_rts"),
    Instruction(0x40, "RTI", M.IMPLIED, "op_rti"),
    # Branches
    Instruction(0x90, "BCC", M.RELATIVE, "op_branch_bcc"),
    Instruction(0xB0, "BCS", M.RELATIVE, "op_branch_bcs"),
    Instruction(0xF0, "BEQ", M.RELATIVE, "op_branch_beq"),
    Instruction(0xD0, "BNE", M.RELATIVE, "op_branch_bne"),
    Instruction(0x30, "BMI", M.RELATIVE, "op_branch_bmi"),
    Instruction(0x10, "BPL", M.RELATIVE, "op_branch_bpl"),
    Instruction(0x50, "BVC", M.RELATIVE, "op_branch_bvc"),
    Instruction(0x70, "BVS", M.RELATIVE, "op_branch_bvs"),
    # Flag set/clear
    Instruction(0x38, "SEC", M.IMPLIED, "op_sec"),
    Instruction(0x18, "CLC", M.IMPLIED, "op_clc"),
    Instruction(0xF8, "SED", M.IMPLIED, "op_sed"),
    Instruction(0xD8, "CLD", M.IMPLIED, "op_cld"),
    Instruction(0x78, "SEI", M.IMPLIED, "op_sei"),
    Instruction(0x58, "CLI", M.IMPLIED, "op_cli"),
    Instruction(0xB8, "CLV", M.IMPLIED, "op_clv"),
    # CMP / CPX / CPY
    Instruction(0xC9, "CMP", M.IMMEDIATE, "op_compare", register="A"),
    Instruction(0xC5, "CMP", M.ZERO_PAGE, "op_compare", register="A"),
    Instruction(0xD5, "CMP", M.ZERO_PAGE_X, "op_compare", register="A"),
    Instruction(0xCD, "CMP", M.ABSOLUTE, "op_compare", register="A"),
    Instruction(0xDD, "CMP", M.ABSOLUTE_X, "op_compare", register="A"),
    Instruction(0xD9, "CMP", M.ABSOLUTE_Y, "op_compare", register="A"),
    Instruction(0xC1, "CMP", M.INDEXED_INDIRECT, "op_compare", register="A"),
    Instruction(0xD1, "CMP", M.INDIRECT_INDEXED, "op_compare", register="A"),
    Instruction(0xE0, "CPX", M.IMMEDIATE, "op_compare", register="X"),
    Instruction(0xE4, "CPX", M.ZERO_PAGE, "op_compare", register="X"),
    Instruction(0xEC, "CPX", M.ABSOLUTE, "op_compare", register="X"),
    Instruction(0xC0, "CPY", M.IMMEDIATE, "op_compare", register="Y"),
    Instruction(0xC4, "CPY", M.ZERO_PAGE, "op_compare", register="Y"),
    Instruction(0xCC, "CPY", M.ABSOLUTE, "op_compare", register="Y"),
    # Increment / decrement
    Instruction(0xE6, "INC", M.ZERO_PAGE, "op_inc_memory"),
    Instruction(0xF6, "INC", M.ZERO_PAGE_X, "op_inc_memory"),
    Instruction(0xEE, "INC", M.ABSOLUTE, "op_inc_memory"),
    Instruction(0xFE, "INC", M.ABSOLUTE_X, "op_inc_memory"),
    Instruction(0xC6, "DEC", M.ZERO_PAGE, "op_dec_memory"),
    Instruction(0xD6, "DEC", M.ZERO_PAGE_X, "op_dec_memory"),
    Instruction(0xCE, "DEC", M.ABSOLUTE, "op_dec_memory"),
    Instruction(0xDE, "DEC", M.ABSOLUTE_X, "op_dec_memory"),
    Instruction(0xE8, "INX", M.IMPLIED, "op_inc_register", register="X"),
    Instruction(0xC8, "INY", M.IMPLIED, "op_inc_register", register="Y"),
    Instruction(0xCA, "DEX", M.IMPLIED, "op_dec_register", register="X"),
    Instruction(0x88, "DEY", M.IMPLIED, "op_dec_register", register="Y"),
    # Stack push/pull
    Instruction(0x48, "PHA", M.IMPLIED, "op_pha"),
    Instruction(0x08, "PHP", M.IMPLIED, "op_php"),
    Instruction(0x68, "PLA", M.IMPLIED, "op_pla"),
    Instruction(0x28, "PLP", M.IMPLIED, "op_plp"),
    # Loads
    Instruction(0xA9, "LDA", M.IMMEDIATE, "op_load", register="A"),
    Instruction(0xA5, "LDA", M.ZERO_PAGE, "op_load", register="A"),
    Instruction(0xB5, "LDA", M.ZERO_PAGE_X, "op_load", register="A"),
    Instruction(0xAD, "LDA", M.ABSOLUTE, "op_load", register="A"),
    Instruction(0xBD, "LDA", M.ABSOLUTE_X, "op_load", register="A"),
    Instruction(0xB9, "LDA", M.ABSOLUTE_Y, "op_load", register="A"),
    Instruction(0xA1, "LDA", M.INDEXED_INDIRECT, "op_load", register="A"),
    Instruction(0xB1, "LDA", M.INDIRECT_INDEXED, "op_load", register="A"),
    Instruction(0xA2, "LDX", M.IMMEDIATE, "op_load", register="X"),
    Instruction(0xA6, "LDX", M.ZERO_PAGE, "op_load", register="X"),
    Instruction(0xB6, "LDX", M.ZERO_PAGE_Y, "op_load", register="X"),
    Instruction(0xAE, "LDX", M.ABSOLUTE, "op_load", register="X"),
    Instruction(0xBE, "LDX", M.ABSOLUTE_Y, "op_load", register="X"),
    Instruction(0xA0, "LDY", M.IMMEDIATE, "op_load", register="Y"),
    Instruction(0xA4, "LDY", M.ZERO_PAGE, "op_load", register="Y"),
    Instruction(0xB4, "LDY", M.ZERO_PAGE_X, "op_load", register="Y"),
    Instruction(0xAC, "LDY", M.ABSOLUTE, "op_load", register="Y"),
    Instruction(0xBC, "LDY", M.ABSOLUTE_X, "op_load", register="Y"),
    # Stores
    Instruction(0x85, "STA", M.ZERO_PAGE, "op_store", register="A"),
    Instruction(0x95, "STA", M.ZERO_PAGE_X, "op_store", register="A"),
    Instruction(0x8D, "STA", M.ABSOLUTE, "op_store", register="A"),
    Instruction(0x9D, "STA", M.ABSOLUTE_X, "op_store", register="A"),
    Instruction(0x99, "STA", M.ABSOLUTE_Y, "op_store", register="A"),
    Instruction(0x81, "STA", M.INDEXED_INDIRECT, "op_store", register="A"),
    Instruction(0x91, "STA", M.INDIRECT_INDEXED, "op_store", register="A"),
    Instruction(0x86, "STX", M.ZERO_PAGE, "op_store", register="X"),
    Instruction(0x96, "STX", M.ZERO_PAGE_Y, "op_store", register="X"),
    Instruction(0x8E, "STX", M.ABSOLUTE, "op_store", register="X"),
    Instruction(0x84, "STY", M.ZERO_PAGE, "op_store", register="Y"),
    Instruction(0x94, "STY", M.ZERO_PAGE_X, "op_store", register="Y"),
    Instruction(0x8C, "STY", M.ABSOLUTE, "op_store", register="Y"),
    # Register transfers
    Instruction(0xAA, "TAX", M.IMPLIED, "op_tax"),
    Instruction(0xA8, "TAY", M.IMPLIED, "op_tay"),
    Instruction(0xBA, "TSX", M.IMPLIED, "op_tsx"),
    Instruction(0x8A, "TXA", M.IMPLIED, "op_txa"),
    Instruction(0x9A, "TXS", M.IMPLIED, "op_txs"),
    Instruction(0x98, "TYA", M.IMPLIED, "op_tya"),
    # Misc
    Instruction(0xEA, "NOP", M.IMPLIED, "op_nop"),
    # BRK is followed by a signature byte that the CPU skips.
    Instruction(0x00, "BRK", M.IMMEDIATE, "op_brk"),
)


OPCODE_TABLE: Sequence[Instruction | None] = build_instruction_table(DEFAULT_INSTRUCTIONS)


def lookup(opcode: int) -> Instruction | None:
    """Return the instruction registered for ``opcode`` or ``None``."""

    return OPCODE_TABLE[opcode & 0xFF]
