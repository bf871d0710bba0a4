"""MQTT client and Home Assistant discovery integration."""

from .client import MQTTClient
from .publisher import StatePublisher
from .discovery import DiscoveryManager
from .command_handler import CommandHandler

__all__ = ["MQTTClient", "StatePublisher", "DiscoveryManager", "CommandHandler"]
