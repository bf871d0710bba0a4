"""Tests for the dispatcher: dedup, refresh, debounce and announcements together."""

import pytest

from vallox2mqtt.engine.messages import (
    BrokerConnected,
    BusEvent,
    PlatformStatus,
    RefreshTick,
    SpeedRequest,
)
from vallox2mqtt.engine.policy import Decision
from vallox2mqtt.mqtt.topics import TOPIC_MAP_OLD
from vallox2mqtt.protocol.constants import (
    FAN_SPEED,
    MAINBOARD_1,
    TEMP_INCOMING_OUTSIDE,
    TEMP_OUTGOING_INSIDE,
)

from conftest import FakeDevice, make_event

SPEED_3 = 0x07
SPEED_5 = 0x1F


async def deliver(dispatcher, event):
    dispatcher.post(BusEvent(event))
    await dispatcher.process_pending()


async def settle(dispatcher, clock, seconds: int):
    """Advance the clock one second at a time, firing due timers."""
    for _ in range(seconds):
        clock.advance(1.0)
        await dispatcher.process_pending()


class TestBusEvents:
    """Tests for register value reconciliation."""

    @pytest.mark.asyncio
    async def test_first_event_cached_announced_published(self, dispatcher, publisher, announcer):
        """Test the first value of a register is stored, announced and published."""
        event = make_event(TEMP_INCOMING_OUTSIDE, 100)
        await deliver(dispatcher, event)

        assert dispatcher.cache.lookup(TEMP_INCOMING_OUTSIDE).value.raw_value == 100
        assert announcer.registers == [TEMP_INCOMING_OUTSIDE]
        assert publisher.published == [event]

    @pytest.mark.asyncio
    async def test_duplicate_within_window_is_noop(self, dispatcher, publisher, announcer, clock):
        """Test the same value twice in the window publishes once."""
        event = make_event(FAN_SPEED, SPEED_3)
        await deliver(dispatcher, event)
        first_seen_at = dispatcher.cache.lookup(FAN_SPEED).timestamp

        clock.advance(30)
        await deliver(dispatcher, event)

        assert len(publisher.published) == 1
        assert publisher.published[0].value == 3
        assert announcer.registers == [FAN_SPEED]
        assert dispatcher.cache.lookup(FAN_SPEED).timestamp == first_seen_at

    @pytest.mark.asyncio
    async def test_changed_value_published_without_announce(self, dispatcher, publisher, announcer, clock):
        """Test a changed value is published but not announced again."""
        await deliver(dispatcher, make_event(FAN_SPEED, SPEED_3))
        clock.advance(1)
        await deliver(dispatcher, make_event(FAN_SPEED, SPEED_5))

        assert [e.value for e in publisher.published] == [3, 5]
        assert announcer.registers == [FAN_SPEED]
        assert dispatcher.cache.lookup(FAN_SPEED).value.value == 5

    @pytest.mark.asyncio
    async def test_not_for_me_ignored(self, dispatcher, publisher):
        """Test values addressed to the mainboard are ignored."""
        await deliver(dispatcher, make_event(FAN_SPEED, SPEED_3, destination=MAINBOARD_1))

        assert publisher.published == []
        assert FAN_SPEED not in dispatcher.cache

    @pytest.mark.asyncio
    async def test_answer_to_own_panel_address_accepted(self, dispatcher, publisher):
        """Test values sent directly to the bridge are accepted."""
        await deliver(dispatcher, make_event(FAN_SPEED, SPEED_3, destination=0x22))
        assert len(publisher.published) == 1

    @pytest.mark.asyncio
    async def test_stale_duplicate_requeries(self, dispatcher, publisher, device, clock):
        """Test an old unchanged value triggers re-queries, not a republish."""
        await deliver(dispatcher, make_event(TEMP_OUTGOING_INSIDE, 150))
        clock.advance(901)

        decision = await dispatcher.handle_bus_event(BusEvent(make_event(TEMP_OUTGOING_INSIDE, 150)))

        assert decision is Decision.DUPLICATE_STALE
        assert len(publisher.published) == 1
        assert device.queries == [TEMP_OUTGOING_INSIDE, FAN_SPEED]

    @pytest.mark.asyncio
    async def test_requery_answer_republished(self, dispatcher, publisher, device, clock):
        """Test the answer to a stale re-query is accepted and republished."""
        event = make_event(FAN_SPEED, SPEED_3)
        await deliver(dispatcher, event)
        clock.advance(901)
        await deliver(dispatcher, event)
        assert device.queries == [FAN_SPEED]

        clock.advance(0.1)
        await deliver(dispatcher, event)

        assert len(publisher.published) == 2
        assert dispatcher.cache.lookup(FAN_SPEED).timestamp == clock.now

    @pytest.mark.asyncio
    async def test_stale_requery_not_repeated_while_outstanding(self, dispatcher, device, clock):
        """Test repeated stale values do not flood the bus with queries."""
        event = make_event(FAN_SPEED, SPEED_3)
        await deliver(dispatcher, event)
        clock.advance(901)

        await dispatcher.handle_bus_event(BusEvent(event))
        clock.advance(1)
        # Broadcast arriving before the answer counts as the answer
        await dispatcher.handle_bus_event(BusEvent(event))
        await dispatcher.handle_bus_event(BusEvent(event))

        assert device.queries == [FAN_SPEED]

    @pytest.mark.asyncio
    async def test_fan_speed_event_confirms_speed(self, dispatcher, clock):
        """Test accepted fan speed values update the confirmed speed."""
        await deliver(dispatcher, make_event(FAN_SPEED, SPEED_5))

        assert dispatcher.debouncer.confirmed.speed == 5
        assert dispatcher.debouncer.confirmed.confirmed_at == clock.now

    @pytest.mark.asyncio
    async def test_invalid_speed_mask_not_confirmed(self, dispatcher, publisher):
        """Test a fan speed byte that is not a speed mask confirms nothing."""
        await deliver(dispatcher, make_event(FAN_SPEED, 0x02))

        assert publisher.published[0].value == 0x02
        assert dispatcher.debouncer.confirmed is None

    @pytest.mark.asyncio
    async def test_publish_failure_does_not_stop_dispatcher(self, dispatcher, publisher):
        """Test a failing sink is logged and the next message still runs."""
        def broken(event):
            raise RuntimeError("sink down")

        publisher.publish_value = broken
        await deliver(dispatcher, make_event(FAN_SPEED, SPEED_3))
        assert dispatcher.stats["errors"] == 1

        del publisher.publish_value
        await deliver(dispatcher, make_event(TEMP_INCOMING_OUTSIDE, 100))
        assert len(publisher.published) == 1

    @pytest.mark.asyncio
    async def test_pump_bus_forwards_events(self, publisher, announcer, timing, clock):
        """Test bus events flow through the mailbox."""
        from vallox2mqtt.engine.dispatcher import Dispatcher

        events = [make_event(FAN_SPEED, SPEED_3), make_event(TEMP_INCOMING_OUTSIDE, 100)]
        dispatcher = Dispatcher(
            FakeDevice(events), publisher, announcer, timing, sorted(TOPIC_MAP_OLD), clock=clock,
        )

        await dispatcher.pump_bus()
        assert await dispatcher.process_pending() == 2
        assert publisher.published == events


class TestScheduledRefresh:
    """Tests for the scheduled register refresh."""

    @pytest.mark.asyncio
    async def test_initial_refresh_queries_all(self, dispatcher, device):
        """Test an empty cache queries every well-known register."""
        await dispatcher.handle_refresh(RefreshTick())
        assert device.queries == sorted(TOPIC_MAP_OLD)

    @pytest.mark.asyncio
    async def test_fresh_registers_not_queried(self, dispatcher, device, clock):
        """Test registers seen recently are skipped."""
        for register in TOPIC_MAP_OLD:
            await deliver(dispatcher, make_event(register, 1))
        clock.advance(60)

        assert await dispatcher.handle_refresh(RefreshTick()) == []
        assert device.queries == []

    @pytest.mark.asyncio
    async def test_silent_fan_speed_queried(self, dispatcher, device, clock):
        """Test a fan speed not heard from for a refresh interval is queried."""
        await deliver(dispatcher, make_event(FAN_SPEED, SPEED_3))
        dispatcher.schedule(dispatcher.timing.refresh_interval_seconds, RefreshTick(periodic=True))

        for _ in range(2):
            clock.advance(dispatcher.timing.refresh_interval_seconds)
            await dispatcher.process_pending()

        assert FAN_SPEED in device.queries

    @pytest.mark.asyncio
    async def test_periodic_tick_reschedules(self, dispatcher, device, clock):
        """Test the periodic refresh keeps firing."""
        dispatcher.schedule(900, RefreshTick(periodic=True))

        clock.advance(900)
        await dispatcher.process_pending()
        first = len(device.queries)

        # Queries go unanswered, so the next tick asks again
        clock.advance(900)
        await dispatcher.process_pending()
        assert len(device.queries) == 2 * first

    @pytest.mark.asyncio
    async def test_query_failure_is_isolated(self, dispatcher, device):
        """Test one failing query does not stop the rest."""
        calls = []

        async def flaky(register):
            calls.append(register)
            if register == FAN_SPEED:
                raise OSError("serial write failed")

        device.query = flaky
        await dispatcher.handle_refresh(RefreshTick())

        assert calls == sorted(TOPIC_MAP_OLD)
        assert dispatcher.stats["errors"] == 1


class TestSpeedCommands:
    """Tests for debounced speed writes."""

    @pytest.mark.asyncio
    async def test_burst_coalesced_into_last_value(self, dispatcher, device, clock):
        """Test rapid commands produce one write of the last value."""
        for speed in (1, 2, 3):
            dispatcher.post(SpeedRequest(speed))
            await dispatcher.process_pending()
            clock.advance(1)
            await dispatcher.process_pending()

        await settle(dispatcher, clock, 10)

        assert device.writes == [3]
        assert device.queries == [FAN_SPEED]

    @pytest.mark.asyncio
    async def test_no_write_before_cooldown(self, dispatcher, device, clock):
        """Test a single command waits for the cooldown."""
        dispatcher.post(SpeedRequest(4))
        await settle(dispatcher, clock, 4)
        assert device.writes == []

        await settle(dispatcher, clock, 2)
        assert device.writes == [4]

    @pytest.mark.asyncio
    async def test_command_equal_to_confirmed_speed_dropped(self, dispatcher, device, clock):
        """Test setting the speed the device reported 3s ago writes nothing."""
        await deliver(dispatcher, make_event(FAN_SPEED, SPEED_5))
        clock.advance(3)

        dispatcher.post(SpeedRequest(5))
        await settle(dispatcher, clock, 10)

        assert device.writes == []

    @pytest.mark.asyncio
    async def test_echo_after_write_confirms(self, dispatcher, device, publisher, clock):
        """Test the queried echo after a write is accepted."""
        await deliver(dispatcher, make_event(FAN_SPEED, SPEED_3))
        dispatcher.post(SpeedRequest(5))
        await settle(dispatcher, clock, 6)
        assert device.writes == [5]

        await deliver(dispatcher, make_event(FAN_SPEED, SPEED_5, destination=0x22))

        assert publisher.published[-1].value == 5
        assert dispatcher.debouncer.confirmed.speed == 5

    @pytest.mark.asyncio
    async def test_write_failure_not_retried(self, dispatcher, device, clock):
        """Test a failed write is logged and the belief is restored."""
        await deliver(dispatcher, make_event(FAN_SPEED, SPEED_3))
        confirmed = dispatcher.debouncer.confirmed
        device.fail_writes = True

        dispatcher.post(SpeedRequest(6))
        await settle(dispatcher, clock, 15)

        assert device.writes == []
        assert device.queries == []
        assert dispatcher.debouncer.confirmed == confirmed
        assert dispatcher.debouncer.idle
        assert dispatcher.stats["errors"] == 1

    @pytest.mark.asyncio
    async def test_new_command_after_write(self, dispatcher, device, clock):
        """Test commands after a completed write start a new cycle."""
        dispatcher.post(SpeedRequest(2))
        await settle(dispatcher, clock, 6)
        dispatcher.post(SpeedRequest(7))
        await settle(dispatcher, clock, 6)

        assert device.writes == [2, 7]


class TestAnnouncements:
    """Tests for platform status and reconnect handling."""

    @pytest.mark.asyncio
    async def test_platform_online_full_pass(self, dispatcher, announcer):
        """Test Home Assistant coming online re-announces every cached register."""
        await deliver(dispatcher, make_event(TEMP_OUTGOING_INSIDE, 150))
        await deliver(dispatcher, make_event(FAN_SPEED, SPEED_3))

        dispatcher.post(PlatformStatus("online"))
        await dispatcher.process_pending()

        assert announcer.passes == [[FAN_SPEED, TEMP_OUTGOING_INSIDE]]

    @pytest.mark.asyncio
    async def test_platform_offline_ignored(self, dispatcher, announcer):
        """Test offline and unknown status payloads do nothing."""
        dispatcher.post(PlatformStatus("offline"))
        dispatcher.post(PlatformStatus("restarting"))
        await dispatcher.process_pending()

        assert announcer.passes == []

    @pytest.mark.asyncio
    async def test_broker_connected_full_pass(self, dispatcher, announcer):
        """Test a new broker session re-announces."""
        dispatcher.post(BrokerConnected())
        await dispatcher.process_pending()

        assert announcer.passes == [[]]

    @pytest.mark.asyncio
    async def test_broker_connected_republishes_cache(self, dispatcher, publisher, clock):
        """Test values accepted before the broker session are published again."""
        speed = make_event(FAN_SPEED, SPEED_3)
        temperature = make_event(TEMP_OUTGOING_INSIDE, 150)
        await deliver(dispatcher, speed)
        await deliver(dispatcher, temperature)
        publisher.published.clear()

        clock.advance(1)
        dispatcher.post(BrokerConnected())
        await dispatcher.process_pending()

        assert publisher.published == [speed, temperature]
        # Republishing does not reset freshness
        assert dispatcher.cache.lookup(FAN_SPEED).timestamp == clock.now - 1

    @pytest.mark.asyncio
    async def test_platform_online_does_not_republish(self, dispatcher, publisher):
        """Test Home Assistant restarts only re-announce."""
        await deliver(dispatcher, make_event(FAN_SPEED, SPEED_3))
        publisher.published.clear()

        dispatcher.post(PlatformStatus("online"))
        await dispatcher.process_pending()

        assert publisher.published == []
