"""Memory access port for the 6502 emulator.

The CPU core never owns memory. It is handed an object that satisfies the
``MemoryPort`` contract (``load8``/``store8``) and performs every read and
write through it, in program order. The classes below are the stock ports a
host can use: a flat RAM block, a 16-bit memory map that dispatches to
registered regions, and an adapter for a single host access function.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, Optional, Protocol, Type, TypeVar

from py6502.utils import debug_enabled, debug_log

ADDRESS_SPACE = 0x10000


def _mask16(value: int) -> int:
    return value & 0xFFFF


class MemoryError(Exception):
    """Raised when the memory map is misconfigured or an access misses every region."""


class MemoryPort(Protocol):
    """The two operations the CPU requires from its host."""

    def load8(self, address: int) -> int:
        ...

    def store8(self, address: int, value: int) -> None:
        ...


class Addressable:
    """Something that answers for a fixed range of the address space."""

    def get_start_address(self) -> int:  # pragma: no cover - interface
        raise NotImplementedError

    def get_end_address(self) -> int:  # pragma: no cover - interface
        raise NotImplementedError

    def load8(self, address: int) -> int:  # pragma: no cover - interface
        raise NotImplementedError

    def store8(self, address: int, value: int) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def contains(self, address: int) -> bool:
        return self.get_start_address() <= address <= self.get_end_address()

    # 16-bit helpers are little-endian, low byte at ``address``.

    def load16(self, address: int) -> int:
        low = self.load8(address) & 0xFF
        high = self.load8(_mask16(address + 1)) & 0xFF
        return (high << 8) | low

    def store16(self, address: int, value: int) -> None:
        self.store8(address, value & 0xFF)
        self.store8(_mask16(address + 1), (value >> 8) & 0xFF)


@dataclass(eq=False)
class Region(Addressable):
    """A ``length``-byte window starting at ``start``."""

    start: int
    length: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.length <= 0:
            raise MemoryError(f"bad region start={self.start:#x} length={self.length:#x}")
        if self.start + self.length > ADDRESS_SPACE:
            raise MemoryError(f"region {self.start:#06x}+{self.length:#x} runs past 0xffff")

    def get_start_address(self) -> int:
        return self.start

    def get_end_address(self) -> int:
        return self.start + self.length - 1

    def _offset(self, address: int) -> int:
        if not self.contains(address):
            raise MemoryError(
                f"{address:#06x} is outside {type(self).__name__} "
                f"{self.start:#06x}-{self.get_end_address():#06x}"
            )
        return address - self.start


@dataclass(eq=False)
class Memory(Region):
    """Plain read/write storage."""

    def __post_init__(self) -> None:
        super().__post_init__()
        self._cells = bytearray(self.length)

    def load8(self, address: int) -> int:
        return self._cells[self._offset(address)]

    def store8(self, address: int, value: int) -> None:
        self._cells[self._offset(address)] = value & 0xFF

    def load_image(self, data: bytes, address: int | None = None) -> None:
        """Copy ``data`` in starting at ``address`` (the region start by default)."""

        first = self._offset(self.start if address is None else address)
        last = first + len(data)
        if last > self.length:
            raise MemoryError(f"{len(data)} bytes at {self.start + first:#06x} do not fit before {self.get_end_address():#06x}")
        self._cells[first:last] = data

    def snapshot(self) -> bytes:
        return bytes(self._cells)


@dataclass(eq=False)
class UnmappedMemory(Region):
    """Reads as zero, swallows writes."""

    def load8(self, address: int) -> int:
        return 0x00

    def store8(self, address: int, value: int) -> None:
        return None


class ReadWrite(Enum):
    """Direction flag passed to a host access function."""

    READ = "READ"
    WRITE = "WRITE"


AccessFunction = Callable[[ReadWrite, int, int], Optional[int]]


class CallbackMemory(Addressable):
    """Adapts a single host ``access(rw, address, value)`` function to the port contract.

    Reads call ``access(ReadWrite.READ, address, -1)`` and use its return value;
    writes call ``access(ReadWrite.WRITE, address, value)`` and ignore the result.
    """

    def __init__(self, access: AccessFunction) -> None:
        self._access = access

    def get_start_address(self) -> int:
        return 0x0000

    def get_end_address(self) -> int:
        return 0xFFFF

    def load8(self, address: int) -> int:
        address = _mask16(address)
        value = self._access(ReadWrite.READ, address, -1)
        if value is None:
            raise MemoryError(f"access function returned no data for read at {address:#06x}")
        return value & 0xFF

    def store8(self, address: int, value: int) -> None:
        self._access(ReadWrite.WRITE, _mask16(address), value & 0xFF)


T_Addressable = TypeVar("T_Addressable", bound=Addressable)


class MemorySystem:
    """Address decoder: every slot of the allocated space points at one region.

    Regions registered later shadow earlier ones where they overlap. Slots no
    region claims fall through to an ``UnmappedMemory`` filler.
    """

    def __init__(self) -> None:
        self._space: list[Addressable] | None = None
        self._registry: Dict[Type[Addressable], Addressable] = {}

    def allocate_space(self, capacity: int) -> None:
        if not 0 < capacity <= ADDRESS_SPACE:
            raise MemoryError(f"capacity {capacity} out of range (1-65536)")
        self._space = [UnmappedMemory(0, capacity)] * capacity
        self._registry.clear()

    def register_memory(self, memory: Addressable) -> None:
        space = self._require_space()
        start = _mask16(memory.get_start_address())
        end = _mask16(memory.get_end_address())
        if end < start:
            raise MemoryError(f"{type(memory).__name__} ends before it starts")
        if end >= len(space):
            raise MemoryError(f"{type(memory).__name__} {start:#06x}-{end:#06x} exceeds allocated space")
        space[start:end + 1] = [memory] * (end - start + 1)
        self._registry[type(memory)] = memory
        if debug_enabled("bus"):
            debug_log("bus", "mapped %s at %04x-%04x", type(memory).__name__, start, end)

    def get_memory(self, cls: Type[T_Addressable]) -> T_Addressable | None:
        return self._registry.get(cls)  # type: ignore[return-value]

    def get_memories(self) -> Iterable[Addressable]:
        return self._registry.values()

    def get_start_address(self, cls: Type[T_Addressable]) -> int:
        return self._lookup(cls).get_start_address()

    def get_end_address(self, cls: Type[T_Addressable]) -> int:
        return self._lookup(cls).get_end_address()

    def load8(self, address: int) -> int:
        address = _mask16(address)
        value = self._slot(address).load8(address) & 0xFF
        if debug_enabled("bus"):
            debug_log("bus", "load8 addr=%04x val=%02x", address, value)
        return value

    def store8(self, address: int, value: int) -> None:
        address = _mask16(address)
        target = self._slot(address)
        if debug_enabled("bus"):
            debug_log("bus", "store8 addr=%04x val=%02x", address, value & 0xFF)
        target.store8(address, value)

    def _lookup(self, cls: Type[T_Addressable]) -> Addressable:
        memory = self._registry.get(cls)
        if memory is None:
            raise MemoryError(f"no {cls.__name__} registered")
        return memory

    def _slot(self, address: int) -> Addressable:
        space = self._require_space()
        if address >= len(space):
            raise MemoryError(f"address {address:#06x} outside allocated space")
        return space[address]

    def _require_space(self) -> list[Addressable]:
        if self._space is None:
            raise MemoryError("memory space not allocated")
        return self._space
