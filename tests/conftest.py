"""Shared fixtures and fakes for vallox2mqtt tests."""

from typing import List, Tuple

import pytest

from vallox2mqtt.bus.driver import ValloxDevice
from vallox2mqtt.config import DeviceConfig, MQTTConfig, TimingConfig
from vallox2mqtt.engine.dispatcher import Dispatcher
from vallox2mqtt.models.register import RegisterValue
from vallox2mqtt.mqtt.topics import TOPIC_MAP_OLD
from vallox2mqtt.protocol.constants import ALL_PANELS, MAINBOARD_1
from vallox2mqtt.protocol.values import decode_value


def make_event(register: int, raw: int, destination: int = ALL_PANELS) -> RegisterValue:
    """Build a register value as the mainboard would send it."""
    return RegisterValue(
        source=MAINBOARD_1,
        destination=destination,
        address=register,
        value=decode_value(register, raw),
        raw_value=raw,
    )


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDevice(ValloxDevice):
    """Bus driver recording queries and writes instead of sending frames."""

    def __init__(self, events=()):
        super().__init__(connection=None, panel_address=0x22, enable_write=True)
        self.queries: List[int] = []
        self.writes: List[int] = []
        self.fail_writes = False
        self._events = list(events)

    async def events(self):
        for event in self._events:
            yield event

    async def query(self, register: int) -> None:
        self.queries.append(register)

    async def set_speed(self, speed: int) -> None:
        if self.fail_writes:
            raise OSError("bus write failed")
        self.writes.append(speed)


class FakePublisher:
    def __init__(self):
        self.published: List[RegisterValue] = []

    def publish_value(self, event: RegisterValue) -> None:
        self.published.append(event)


class FakeAnnouncer:
    def __init__(self):
        self.registers: List[int] = []
        self.passes: List[List[int]] = []

    def announce_register(self, register: int) -> bool:
        self.registers.append(register)
        return True

    def announce_all(self, registers=()) -> List[str]:
        self.passes.append(list(registers))
        return []


class FakeMQTTClient:
    """Stand-in for MQTTClient recording fire-and-forget publishes."""

    def __init__(self, device_id: str = "vallox"):
        self.device_id = device_id
        self.published: List[Tuple[str, object, bool]] = []

    def topic(self, *parts: str) -> str:
        return "/".join([self.device_id, *parts])

    @property
    def availability_topic(self) -> str:
        return self.topic("availability")

    def publish_nowait(self, topic: str, payload, retain: bool = False) -> None:
        self.published.append((topic, payload, retain))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def device():
    return FakeDevice()


@pytest.fixture
def publisher():
    return FakePublisher()


@pytest.fixture
def announcer():
    return FakeAnnouncer()


@pytest.fixture
def timing():
    return TimingConfig(settle_seconds=0)


@pytest.fixture
def dispatcher(device, publisher, announcer, timing, clock):
    return Dispatcher(
        device=device,
        publisher=publisher,
        announcer=announcer,
        timing=timing,
        registers=sorted(TOPIC_MAP_OLD),
        clock=clock,
    )


@pytest.fixture
def mqtt_config():
    return MQTTConfig(url="tcp://broker.local:1883")


@pytest.fixture
def device_config():
    return DeviceConfig()


@pytest.fixture
def mqtt_client():
    return FakeMQTTClient()
