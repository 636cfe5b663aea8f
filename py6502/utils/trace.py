"""Execution trace buffer for post-mortem inspection of a run."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterator, Protocol, Sequence

from .debug import debug_log


class RegisterFile(Protocol):
    """The register attributes a trace snapshot copies."""

    a: int
    x: int
    y: int
    sp: int


@dataclass(frozen=True)
class TraceEntry:
    """Register file as it stood after one executed instruction."""

    pc: int
    opcode: int | None
    mnemonic: str
    a: int
    x: int
    y: int
    sp: int
    status: int
    halted: bool
    note: str = ""

    def format(self) -> str:
        opcode = "--" if self.opcode is None else f"{self.opcode:02X}"
        markers = (["HALT"] if self.halted else []) + ([self.note] if self.note else [])
        return (
            f"pc={self.pc:04X} opcode={opcode} {self.mnemonic or '?':<3} "
            f"A={self.a:02X} X={self.x:02X} Y={self.y:02X} SP={self.sp:02X} "
            f"P={self.status:08b} flags={','.join(markers) or '-'}"
        )


class TraceRecorder:
    """Keeps the most recent ``capacity`` trace entries; older ones fall off."""

    def __init__(self, capacity: int = 256) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._entries: Deque[TraceEntry] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._entries)

    def record_step(
        self,
        cpu_state: RegisterFile,
        pc: int,
        opcode: int | None,
        status: int,
        *,
        halted: bool,
        mnemonic: str = "",
        note: str = "",
    ) -> None:
        """Append a snapshot of ``cpu_state`` taken after the step at ``pc``."""

        self._entries.append(
            TraceEntry(
                pc=pc & 0xFFFF,
                opcode=None if opcode is None else opcode & 0xFF,
                mnemonic=mnemonic,
                a=cpu_state.a & 0xFF,
                x=cpu_state.x & 0xFF,
                y=cpu_state.y & 0xFF,
                sp=cpu_state.sp & 0xFF,
                status=status & 0xFF,
                halted=halted,
                note=note,
            )
        )

    def entries(self, limit: int | None = None) -> Iterator[TraceEntry]:
        """Oldest-first iteration over the last ``limit`` entries (all by default)."""

        skip = 0 if limit is None else len(self._entries) - min(len(self._entries), max(limit, 0))
        for index, entry in enumerate(self._entries):
            if index >= skip:
                yield entry

    def last_entry(self) -> TraceEntry | None:
        return self._entries[-1] if self._entries else None

    def clear(self) -> None:
        self._entries.clear()

    def format_entries(self, limit: int | None = None) -> Sequence[str]:
        return [entry.format() for entry in self.entries(limit)]

    def dump(self, category: str = "trace", limit: int | None = None) -> None:
        for line in self.format_entries(limit):
            debug_log(category, line)
