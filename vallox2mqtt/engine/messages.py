"""Messages delivered to the dispatcher mailbox."""

from dataclasses import dataclass

from ..models.register import RegisterValue


@dataclass(frozen=True)
class BusEvent:
    event: RegisterValue


@dataclass(frozen=True)
class SpeedRequest:
    speed: int


@dataclass(frozen=True)
class SpeedAttempt:
    pass


@dataclass(frozen=True)
class RefreshTick:
    periodic: bool = False


@dataclass(frozen=True)
class PlatformStatus:
    status: str


@dataclass(frozen=True)
class BrokerConnected:
    pass
