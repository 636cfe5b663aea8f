"""Where a loaded image ended up in the address space."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class AddressRegion:
    """Inclusive address range ``start..end``."""

    start: int
    end: int
    comment: str = ""

    def __post_init__(self) -> None:
        if not 0 <= self.start <= self.end <= 0xFFFF:
            raise ValueError(f"invalid region {self.start:#06x}-{self.end:#06x}")

    def length(self) -> int:
        return self.end - self.start + 1

    def __contains__(self, address: int) -> bool:
        return self.start <= address <= self.end


@dataclass
class ProgramImage:
    name: str = ""
    regions: List[AddressRegion] = field(default_factory=list)

    def add_region(self, start: int, end: int, comment: str = "") -> AddressRegion:
        region = AddressRegion(start, end, comment)
        self.regions.append(region)
        return region

    @property
    def entry_point(self) -> int | None:
        """First byte of the first region, where a raw image starts executing."""

        return self.regions[0].start if self.regions else None

    @property
    def size(self) -> int:
        return sum(region.length() for region in self.regions)

    def covers(self, address: int) -> bool:
        return any(address in region for region in self.regions)
