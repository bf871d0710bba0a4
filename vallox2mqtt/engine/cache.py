"""Last-seen register values."""

from dataclasses import dataclass
from typing import Dict, Iterator, Optional

from ..models.register import RegisterValue


@dataclass(frozen=True)
class CacheEntry:
    """Last accepted value of a register and when it was accepted."""
    value: RegisterValue
    timestamp: float

    def age(self, now: float) -> float:
        return now - self.timestamp


class RegisterCache:
    """Mapping from register number to its last accepted value.

    Entries are only ever overwritten, never evicted; the register space
    is bounded by the protocol.
    """

    def __init__(self):
        self._entries: Dict[int, CacheEntry] = {}

    def lookup(self, register: int) -> Optional[CacheEntry]:
        return self._entries.get(register)

    def store(self, register: int, value: RegisterValue, timestamp: float) -> CacheEntry:
        entry = CacheEntry(value=value, timestamp=timestamp)
        self._entries[register] = entry
        return entry

    def registers(self) -> list:
        """Registers with at least one accepted value, sorted."""
        return sorted(self._entries)

    def __contains__(self, register: int) -> bool:
        return register in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[int]:
        return iter(self.registers())
