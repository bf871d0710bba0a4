"""State publisher for MQTT."""

import logging

from ..config import DeviceConfig
from ..models.register import RegisterValue
from .client import MQTTClient
from .topics import raw_topic, topic_map

logger = logging.getLogger(__name__)


class StatePublisher:
    """Publish accepted register values to their state topics.

    Registers with a named topic go to it as the decoded value; with raw
    passthrough enabled every register is also published undecoded under
    raw/<register>.
    """

    def __init__(self, mqtt_client: MQTTClient, config: DeviceConfig):
        """Initialize the state publisher.

        Args:
            mqtt_client: MQTT client
            config: Device configuration
        """
        self.client = mqtt_client
        self.config = config
        self._topics = topic_map(config.new_protocol)

    def publish_value(self, event: RegisterValue) -> None:
        """Publish a register value without waiting for completion."""
        name = self._topics.get(event.address)
        if name is not None:
            self.client.publish_nowait(self.client.topic(name), str(event.value))

        if self.config.enable_raw:
            self.client.publish_nowait(
                self.client.topic(raw_topic(event.address)),
                str(event.raw_value),
            )
