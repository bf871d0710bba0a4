"""Selection of registers due for a scheduled re-query."""

from typing import Iterable, List

from .cache import RegisterCache


def due_registers(
    registers: Iterable[int],
    cache: RegisterCache,
    now: float,
    max_age: float,
) -> List[int]:
    """Return registers that are missing from the cache or older than max_age."""
    due = []
    for register in registers:
        entry = cache.lookup(register)
        if entry is None or entry.age(now) >= max_age:
            due.append(register)
    return due
