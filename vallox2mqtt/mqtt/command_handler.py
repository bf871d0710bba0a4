"""MQTT command handler for fan speed and platform status messages.

Validates incoming MQTT payloads and forwards them to the dispatcher
mailbox. Nothing here touches dispatcher state directly.
"""

import logging
from typing import Callable, List

from pydantic import ValidationError

from ..engine.messages import PlatformStatus, SpeedRequest
from ..models.commands import validate_speed
from . import topics

logger = logging.getLogger(__name__)


class CommandHandler:
    """Route incoming MQTT messages to the dispatcher."""

    def __init__(
        self,
        device_id: str,
        discovery_prefix: str,
        post: Callable[[object], None],
    ):
        """Initialize the command handler.

        Args:
            device_id: Device identifier used as topic prefix
            discovery_prefix: Home Assistant discovery prefix
            post: Callable delivering a message to the dispatcher
        """
        self.speed_topic = f"{device_id}/{topics.FAN_SPEED_SET}"
        self.status_topic = f"{discovery_prefix}/status"
        self._post = post

    @property
    def subscriptions(self) -> List[str]:
        """Topics this handler needs."""
        return [self.status_topic, self.speed_topic]

    async def handle_message(self, topic: str, payload: bytes) -> bool:
        """Handle an incoming MQTT message.

        Args:
            topic: MQTT topic
            payload: Raw payload bytes

        Returns:
            True if a message was forwarded to the dispatcher
        """
        if topic == self.speed_topic:
            return self._handle_speed(payload)

        if topic == self.status_topic:
            status = payload.decode("utf-8", errors="replace").strip()
            self._post(PlatformStatus(status))
            return True

        logger.debug(f"Ignoring message on {topic}")
        return False

    def _handle_speed(self, payload: bytes) -> bool:
        logger.info(f"Received speed change {payload!r} to {self.speed_topic}")
        try:
            command = validate_speed(payload)
        except ValidationError as e:
            logger.error(f"Cannot parse speed from body {payload!r}: {e.errors()[0]['msg']}")
            return False

        self._post(SpeedRequest(command.speed))
        return True
