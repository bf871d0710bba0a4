"""Home Assistant MQTT Discovery configuration."""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Set

from ..config import DeviceConfig, MQTTConfig
from ..protocol.constants import SPEED_MAX
from . import topics
from .client import MQTTClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Entity:
    """A Home Assistant entity backed by one state topic."""
    component: str
    uid: str
    name: str
    state_topic: str
    command_topic: Optional[str] = None


WELL_KNOWN_ENTITIES = (
    Entity("sensor", "fan_speed", "speed", topics.FAN_SPEED),
    Entity("select", "fan_select", "speed select", topics.FAN_SPEED, topics.FAN_SPEED_SET),
    Entity("sensor", "temp_incoming_outside", "outdoor temperature", topics.TEMP_INCOMING_OUTSIDE),
    Entity("sensor", "temp_incoming_inside", "incoming temperature", topics.TEMP_INCOMING_INSIDE),
    Entity("sensor", "temp_outgoing_inside", "interior temperature", topics.TEMP_OUTGOING_INSIDE),
    Entity("sensor", "temp_outgoing_outside", "exhaust temperature", topics.TEMP_OUTGOING_OUTSIDE),
)


def raw_entity(register: int) -> Entity:
    """Sensor entity for a raw register topic."""
    return Entity(
        "sensor",
        f"raw_{register:x}",
        f"raw {register:x}",
        topics.raw_topic(register),
    )


class DiscoveryManager:
    """Manager for Home Assistant MQTT Discovery.

    Keeps the set of entities announced in the current session so each
    is announced once; a full pass clears the set and announces again.
    """

    def __init__(
        self,
        mqtt_client: MQTTClient,
        config: MQTTConfig,
        device: DeviceConfig,
    ):
        """Initialize the discovery manager.

        Args:
            mqtt_client: MQTT client
            config: MQTT configuration
            device: Device configuration
        """
        self.client = mqtt_client
        self.config = config
        self.device = device
        self.announced: Set[str] = set()
        self._device_info = {
            "identifiers": [device.id],
            "manufacturer": "Vallox",
            "model": "Digit SE",
            "name": device.name,
        }

    def _uid(self, uid: str) -> str:
        return f"{self.device.id}_{uid}"

    def discovery_topic(self, entity: Entity) -> str:
        """Build a discovery topic.

        Returns:
            Discovery topic string
        """
        return f"{self.config.discovery_prefix}/{entity.component}/{self._uid(entity.uid)}/config"

    def build_config(self, entity: Entity) -> dict[str, Any]:
        """Build the discovery config of an entity."""
        msg: dict[str, Any] = {
            "unique_id": self._uid(entity.uid),
            "name": entity.name,
            "device": self._device_info,
            "state_topic": self.client.topic(entity.state_topic),
            "availability_topic": self.client.availability_topic,
        }
        if self.device.object_id:
            msg["object_id"] = self._uid(entity.uid)
        if entity.command_topic:
            msg["command_topic"] = self.client.topic(entity.command_topic)

        if entity.uid == "fan_select":
            msg["options"] = [str(i) for i in range(self.device.speed_min, SPEED_MAX + 1)]
            msg["icon"] = "mdi:fan"
        elif entity.uid == "fan_speed":
            msg["expire_after"] = 1800
            msg["icon"] = "mdi:fan"
            msg["state_class"] = "measurement"
        elif entity.uid.startswith("temp_"):
            msg["unit_of_measurement"] = "°C"
            msg["state_class"] = "measurement"
            msg["expire_after"] = 1800
            msg["device_class"] = "temperature"

        return msg

    def announce_if_new(self, entity: Entity) -> bool:
        """Publish the entity's discovery config unless already announced.

        Returns:
            True if a config was published
        """
        uid = self._uid(entity.uid)
        if uid in self.announced:
            return False
        self.announced.add(uid)
        logger.debug(f"Announcing {entity.component} {uid}")
        self.client.publish_nowait(self.discovery_topic(entity), self.build_config(entity))
        return True

    def announce_register(self, register: int) -> bool:
        """Announce a raw register sensor when raw passthrough is enabled."""
        if not self.device.enable_raw:
            return False
        return self.announce_if_new(raw_entity(register))

    def announce_all(self, registers: Iterable[int] = ()) -> List[str]:
        """Forget earlier announcements and announce every entity again.

        Args:
            registers: Registers seen so far, announced as raw sensors

        Returns:
            Unique ids announced in this pass
        """
        logger.info("Publishing Home Assistant discovery configs")
        self.announced = set()

        for entity in WELL_KNOWN_ENTITIES:
            self.announce_if_new(entity)
        for register in registers:
            self.announce_register(register)

        return sorted(self.announced)
