"""Single-task event dispatcher.

All cache, debounce and announcement state is owned by one Dispatcher and
only touched from its run loop. The bus reader, the MQTT message loop and
timers never mutate that state; they post messages into the mailbox.

Timers are kept in the dispatcher itself, against the injected clock, so
the whole engine can be driven step by step with a fake clock.
"""

import asyncio
import heapq
import itertools
import logging
import time
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..config import TimingConfig
from ..protocol.constants import FAN_SPEED
from ..protocol.values import decode_speed
from .cache import RegisterCache
from .debouncer import SpeedDebouncer, WriteAction
from .messages import (
    BrokerConnected,
    BusEvent,
    PlatformStatus,
    RefreshTick,
    SpeedAttempt,
    SpeedRequest,
)
from .policy import Decision, classify
from .refresh import due_registers

logger = logging.getLogger(__name__)


class Dispatcher:
    """Arbitrate bus events, speed commands, timers and platform status.

    Collaborators:
        device: bus driver with events(), is_for_me(), query(), set_speed()
        publisher: state sink with publish_value(event)
        announcer: discovery sink with announce_register(register) and
            announce_all(registers)
    """

    def __init__(
        self,
        device,
        publisher,
        announcer,
        timing: TimingConfig,
        registers: Iterable[int],
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the dispatcher.

        Args:
            device: Bus driver
            publisher: State publisher
            announcer: Discovery announcer
            timing: Dedup, refresh and debounce timing
            registers: Well-known registers kept fresh by the scheduled refresh
            clock: Monotonic clock in seconds
        """
        self.device = device
        self.publisher = publisher
        self.announcer = announcer
        self.timing = timing
        self.registers = list(registers)
        self.clock = clock

        self.cache = RegisterCache()
        self.debouncer = SpeedDebouncer(
            cooldown=timing.cooldown_seconds,
            grace=timing.grace_seconds,
        )

        # register -> time of our unanswered query
        self._outstanding: Dict[int, float] = {}

        self._queue: asyncio.Queue = asyncio.Queue()
        self._timers: List[Tuple[float, int, object]] = []
        self._seq = itertools.count()

        self._stats = {
            "events": 0,
            "accepted": 0,
            "ignored": 0,
            "queries": 0,
            "writes": 0,
            "errors": 0,
        }

    # Mailbox

    def post(self, message) -> None:
        """Deliver a message to the dispatcher."""
        self._queue.put_nowait(message)

    def schedule(self, delay: float, message) -> None:
        """Deliver a message once delay seconds have passed on the clock."""
        heapq.heappush(self._timers, (self.clock() + delay, next(self._seq), message))

    def _pop_due(self, now: float) -> Optional[object]:
        if self._timers and self._timers[0][0] <= now:
            return heapq.heappop(self._timers)[2]
        return None

    def _next_timeout(self) -> Optional[float]:
        if not self._timers:
            return None
        return max(0.0, self._timers[0][0] - self.clock())

    async def process_pending(self) -> int:
        """Handle every queued message and every timer that is due.

        Returns:
            Number of messages handled
        """
        handled = 0
        while True:
            message = self._pop_due(self.clock())
            if message is None:
                if self._queue.empty():
                    return handled
                message = self._queue.get_nowait()
            await self.dispatch(message)
            handled += 1

    async def run(self) -> None:
        """Run the dispatcher and the bus reader until cancelled.

        Raises:
            ConnectionError: If the bus connection is lost
        """
        self.schedule(self.timing.initial_query_delay_seconds, RefreshTick())
        self.schedule(self.timing.refresh_interval_seconds, RefreshTick(periodic=True))

        await asyncio.gather(self._loop(), self.pump_bus())

    async def _loop(self) -> None:
        logger.info("Dispatcher started")
        while True:
            await self.process_pending()
            try:
                message = await asyncio.wait_for(self._queue.get(), timeout=self._next_timeout())
            except asyncio.TimeoutError:
                continue
            await self.dispatch(message)

    async def pump_bus(self) -> None:
        """Forward every bus value into the mailbox."""
        async for event in self.device.events():
            self.post(BusEvent(event))

    async def dispatch(self, message) -> None:
        """Handle one message; failures are logged and never propagate."""
        try:
            if isinstance(message, BusEvent):
                await self.handle_bus_event(message)
            elif isinstance(message, SpeedRequest):
                self.handle_speed_request(message)
            elif isinstance(message, SpeedAttempt):
                await self.handle_speed_attempt()
            elif isinstance(message, RefreshTick):
                await self.handle_refresh(message)
            elif isinstance(message, PlatformStatus):
                self.handle_platform_status(message)
            elif isinstance(message, BrokerConnected):
                self.handle_broker_connected()
            else:
                logger.warning(f"Unknown dispatcher message {message!r}")
        except Exception as e:
            self._stats["errors"] += 1
            logger.error(f"Error handling {message!r}: {e}", exc_info=True)

    # Bus events

    async def handle_bus_event(self, message: BusEvent) -> Optional[Decision]:
        event = message.event
        if not self.device.is_for_me(event):
            return None

        self._stats["events"] += 1
        now = self.clock()
        solicited = self._answer_outstanding(event.address, now)
        decision = classify(
            event,
            self.cache.lookup(event.address),
            now,
            self.timing.freshness_seconds,
            solicited=solicited,
        )
        logger.debug(f"Received {event}: {decision}")

        if decision is Decision.DUPLICATE_FRESH:
            self._stats["ignored"] += 1
            return decision

        if decision is Decision.DUPLICATE_STALE:
            # Firmware rarely reports fan speed unprompted; an old unchanged
            # value is re-read rather than republished.
            self._stats["ignored"] += 1
            await self.query(event.address, now)
            if event.address != FAN_SPEED:
                await self.query(FAN_SPEED, now)
            return decision

        self._stats["accepted"] += 1
        self.cache.store(event.address, event, now)

        if event.address == FAN_SPEED:
            speed = decode_speed(event.raw_value)
            if speed is not None:
                self.debouncer.confirm(speed, now)

        if decision is Decision.FIRST_SEEN:
            self.announcer.announce_register(event.address)

        self.publisher.publish_value(event)
        return decision

    def _answer_outstanding(self, register: int, now: float) -> bool:
        asked = self._outstanding.pop(register, None)
        return asked is not None and now - asked < self.timing.query_timeout_seconds

    async def query(self, register: int, now: Optional[float] = None) -> bool:
        """Query a register unless a query for it is still unanswered.

        Returns:
            True if a query was sent
        """
        if now is None:
            now = self.clock()
        asked = self._outstanding.get(register)
        if asked is not None and now - asked < self.timing.query_timeout_seconds:
            return False

        try:
            await self.device.query(register)
        except Exception as e:
            self._stats["errors"] += 1
            logger.error(f"Querying register 0x{register:02x} failed: {e}")
            return False

        self._outstanding[register] = now
        self._stats["queries"] += 1
        return True

    # Speed commands

    def handle_speed_request(self, message: SpeedRequest) -> None:
        if self.debouncer.request(message.speed, self.clock()):
            self.post(SpeedAttempt())

    async def handle_speed_attempt(self) -> None:
        previous = self.debouncer.confirmed
        decision = self.debouncer.attempt(self.clock())

        if decision.action is WriteAction.WAIT:
            self.schedule(self.timing.retry_delay_seconds, SpeedAttempt())
            return
        if decision.action is not WriteAction.WRITE:
            return

        logger.debug(f"Sending speed update to {decision.speed}")
        try:
            await self.device.set_speed(decision.speed)
        except Exception as e:
            self.debouncer.confirmed = previous
            self._stats["errors"] += 1
            logger.error(f"Setting speed {decision.speed} failed: {e}")
            return
        self._stats["writes"] += 1

        await asyncio.sleep(self.timing.settle_seconds)
        await self.query(FAN_SPEED)

    # Refresh and announcements

    async def handle_refresh(self, message: RefreshTick) -> List[int]:
        if message.periodic:
            self.schedule(self.timing.refresh_interval_seconds, RefreshTick(periodic=True))

        now = self.clock()
        due = due_registers(self.registers, self.cache, now, self.timing.freshness_seconds)
        logger.debug(f"Scheduled register query: {[hex(r) for r in due]}")
        for register in due:
            await self.query(register, now)
        return due

    def handle_platform_status(self, message: PlatformStatus) -> None:
        if message.status == "online":
            # Home Assistant restarted and needs discovery again
            self.announce_all()
        elif message.status == "offline":
            logger.info("Home Assistant went offline")
        else:
            logger.info(f"Unknown HA status message {message.status}")

    def handle_broker_connected(self) -> None:
        """Announce and republish everything on a new broker session.

        Values accepted while the broker was unreachable were stored but
        their publishes failed; the cache is the only copy left.
        """
        self.announce_all()
        self.republish_all()

    def announce_all(self) -> None:
        self.announcer.announce_all(self.cache.registers())

    def republish_all(self) -> int:
        """Publish every cached value again.

        Returns:
            Number of values published
        """
        count = 0
        for register in self.cache:
            self.publisher.publish_value(self.cache.lookup(register).value)
            count += 1
        logger.debug(f"Republished {count} cached values")
        return count

    @property
    def stats(self) -> dict:
        """Get dispatcher statistics."""
        return {**self._stats, "cached_registers": len(self.cache)}
