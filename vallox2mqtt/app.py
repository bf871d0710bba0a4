"""Main application orchestrator for vallox2mqtt."""

import asyncio
import logging
import signal
from datetime import datetime
from typing import List, Optional, Union

from .config import AppConfig, get_config
from .bus.connection import RS485Connection
from .bus.driver import ValloxDevice
from .engine.dispatcher import Dispatcher
from .engine.messages import BrokerConnected
from .mqtt.client import MQTTClient
from .mqtt.command_handler import CommandHandler
from .mqtt.discovery import DiscoveryManager
from .mqtt.publisher import StatePublisher
from .mqtt.topics import topic_map
from .utils.logging import setup_logging

logger = logging.getLogger(__name__)


class Vallox2MQTT:
    """Main application class.

    Wires the RS-485 bus, the dispatcher and the MQTT broker together and
    runs them until shutdown.
    """

    def __init__(self, config: Union[AppConfig, str, None] = None):
        """Initialize the application.

        Args:
            config: AppConfig instance, path to YAML config file, or None for env/defaults
        """
        if isinstance(config, AppConfig):
            self.config = config
        else:
            self.config = get_config(config)

        self._shutdown_event = asyncio.Event()
        self._broker_ready = asyncio.Event()
        self._start_time: Optional[datetime] = None

        # Components (initialized in start())
        self.serial: Optional[RS485Connection] = None
        self.device: Optional[ValloxDevice] = None
        self.mqtt: Optional[MQTTClient] = None
        self.discovery: Optional[DiscoveryManager] = None
        self.publisher: Optional[StatePublisher] = None
        self.dispatcher: Optional[Dispatcher] = None
        self.command_handler: Optional[CommandHandler] = None

    def build(self) -> None:
        """Create all components without connecting anything."""
        device_config = self.config.device

        self.serial = RS485Connection(self.config.serial)
        self.device = ValloxDevice(
            self.serial,
            panel_address=device_config.panel_address,
            enable_write=device_config.enable_write,
        )

        self.mqtt = MQTTClient(self.config.mqtt, device_config.id)
        self.discovery = DiscoveryManager(self.mqtt, self.config.mqtt, device_config)
        self.publisher = StatePublisher(self.mqtt, device_config)

        self.dispatcher = Dispatcher(
            device=self.device,
            publisher=self.publisher,
            announcer=self.discovery,
            timing=self.config.timing,
            registers=sorted(topic_map(device_config.new_protocol)),
        )
        self.command_handler = CommandHandler(
            device_id=device_config.id,
            discovery_prefix=self.config.mqtt.discovery_prefix,
            post=self.dispatcher.post,
        )

        self.mqtt.on_connect = self._on_mqtt_connect
        self.mqtt.on_connection_lost = self._on_mqtt_connection_lost

    async def start(self) -> None:
        """Start the application.

        Opens the serial port, then runs the MQTT connection and, once the
        broker has been reached, the dispatcher until shutdown is requested
        or the bus fails.
        """
        setup_logging(
            level=self.config.logging.effective_level,
            log_file=self.config.logging.file,
            format_string=self.config.logging.format,
        )

        device_config = self.config.device
        logger.info(
            f"Starting with device id {device_config.id} name {device_config.name} "
            f"port {self.config.serial.device}"
        )
        logger.info(f"Write enabled: {device_config.enable_write}")
        self._start_time = datetime.now()

        self.build()
        self._setup_signal_handlers()

        # Bus open failure is fatal
        await self.serial.connect()

        tasks: List[asyncio.Task] = [
            asyncio.create_task(self._run_dispatcher(), name="dispatcher"),
            asyncio.create_task(
                self.mqtt.run(self.command_handler.handle_message), name="mqtt"
            ),
        ]
        shutdown = asyncio.create_task(self._shutdown_event.wait(), name="shutdown")

        try:
            done, _ = await asyncio.wait(
                [*tasks, shutdown],
                return_when=asyncio.FIRST_COMPLETED,
            )
            for task in done:
                if task is not shutdown:
                    # Raises the failure that ended the task
                    task.result()
        except asyncio.CancelledError:
            logger.info("Application cancelled")
        except Exception as e:
            logger.error(f"Application error: {e}", exc_info=True)
            raise
        finally:
            await self.stop(tasks + [shutdown])

    async def _run_dispatcher(self) -> None:
        """Run the dispatcher once the broker is reachable for the first time."""
        logger.info("Waiting for MQTT broker before reading the bus")
        await self._broker_ready.wait()
        await self.dispatcher.run()

    async def _on_mqtt_connect(self) -> None:
        for topic in self.command_handler.subscriptions:
            await self.mqtt.subscribe(topic)
        logger.info(f"Subscribed to {', '.join(self.command_handler.subscriptions)}")
        # New session, discovery and state have to be sent again
        self.dispatcher.post(BrokerConnected())
        self._broker_ready.set()

    def _on_mqtt_connection_lost(self, error: Exception) -> None:
        logger.warning(f"MQTT connection lost, state publishing paused: {error}")

    async def stop(self, tasks: Optional[List[asyncio.Task]] = None) -> None:
        """Stop the application gracefully."""
        logger.info("Stopping vallox2mqtt")
        self._shutdown_event.set()

        if self.mqtt:
            await self.mqtt.disconnect()

        for task in tasks or []:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        if self.serial:
            try:
                await self.serial.disconnect()
            except Exception as e:
                logger.error(f"Error disconnecting serial: {e}")

        if self.dispatcher:
            logger.info(f"Statistics: {self.dispatcher.stats}")
        logger.info("vallox2mqtt stopped")

    def _setup_signal_handlers(self) -> None:
        """Set up signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def signal_handler(sig):
            logger.info(f"Received signal {sig.name}, initiating shutdown")
            self._shutdown_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))

    @property
    def stats(self) -> dict:
        """Get application statistics."""
        return {
            "uptime": (
                str(datetime.now() - self._start_time)
                if self._start_time
                else None
            ),
            "dispatcher": self.dispatcher.stats if self.dispatcher else None,
            "serial": self.serial.stats if self.serial else None,
        }


async def run_app(config: Union[AppConfig, str, None] = None) -> None:
    """Run the application.

    Args:
        config: AppConfig instance, path to config file, or None for env/defaults
    """
    app = Vallox2MQTT(config)
    await app.start()
