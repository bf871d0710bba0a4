"""Duplicate suppression and staleness decisions for bus values."""

from enum import Enum
from typing import Optional

from ..models.register import RegisterValue
from .cache import CacheEntry


class Decision(Enum):
    """What to do with a register value received from the bus."""
    FIRST_SEEN = "first_seen"
    CHANGED = "changed"
    REFRESHED = "refreshed"
    DUPLICATE_FRESH = "duplicate_fresh"
    DUPLICATE_STALE = "duplicate_stale"

    @property
    def accepted(self) -> bool:
        """Whether the value is stored and published."""
        return self in (Decision.FIRST_SEEN, Decision.CHANGED, Decision.REFRESHED)

    def __str__(self) -> str:
        return self.value


def classify(
    event: RegisterValue,
    entry: Optional[CacheEntry],
    now: float,
    freshness: float,
    solicited: bool = False,
) -> Decision:
    """Classify a bus value against the cached one.

    Args:
        event: Value just received
        entry: Cached entry for the same register, if any
        now: Current clock reading
        freshness: Seconds an unchanged value stays fresh
        solicited: Whether the value answers a query this bridge sent

    Returns:
        FIRST_SEEN when the register has never been accepted, CHANGED when
        the raw value differs, REFRESHED for an unchanged answer to our own
        query, otherwise DUPLICATE_FRESH or DUPLICATE_STALE depending on the
        age of the cached entry.
    """
    if entry is None:
        return Decision.FIRST_SEEN
    if entry.value.raw_value != event.raw_value:
        return Decision.CHANGED
    if solicited:
        return Decision.REFRESHED
    if entry.age(now) < freshness:
        return Decision.DUPLICATE_FRESH
    return Decision.DUPLICATE_STALE
