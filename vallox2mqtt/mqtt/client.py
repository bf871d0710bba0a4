"""Async MQTT client wrapper."""

import asyncio
import json
import logging
import ssl
from typing import Any, Awaitable, Callable, Optional, Set

import aiomqtt

from ..config import MQTTConfig
from . import topics

logger = logging.getLogger(__name__)

# Type alias for message callback
MessageCallback = Callable[[str, bytes], Awaitable[None]]


class MQTTClient:
    """Async MQTT client for Home Assistant integration.

    Wraps aiomqtt with a reconnecting run loop, lifecycle hooks and
    fire-and-forget publishing.
    """

    def __init__(self, config: MQTTConfig, device_id: str):
        """Initialize the MQTT client.

        Args:
            config: MQTT configuration
            device_id: Device identifier used as topic prefix
        """
        self.config = config
        self.device_id = device_id
        self._client: Optional[aiomqtt.Client] = None
        self._connected = False
        self._pending: Set[asyncio.Task] = set()

        # Lifecycle hooks
        self.on_connect: Optional[Callable[[], Awaitable[None]]] = None
        self.on_connection_lost: Optional[Callable[[Exception], None]] = None
        self.on_reconnecting: Optional[Callable[[float], None]] = None

    @property
    def connected(self) -> bool:
        """Check if connected to MQTT broker."""
        return self._connected

    @property
    def availability_topic(self) -> str:
        """Get the availability topic."""
        return self.topic(topics.AVAILABILITY)

    def topic(self, *parts: str) -> str:
        """Build a topic with the device id prefix.

        Args:
            parts: Topic path components

        Returns:
            Full topic string
        """
        return "/".join([self.device_id, *parts])

    def _make_client(self) -> aiomqtt.Client:
        return aiomqtt.Client(
            hostname=self.config.hostname,
            port=self.config.port,
            username=self.config.username,
            password=self.config.password,
            identifier=self.config.client_id,
            keepalive=self.config.keepalive,
            tls_context=ssl.create_default_context() if self.config.tls else None,
            # Last Will and Testament for availability
            will=aiomqtt.Will(
                topic=self.availability_topic,
                payload="offline",
                qos=self.config.qos,
                retain=True,
            ),
        )

    async def run(self, callback: MessageCallback) -> None:
        """Stay connected to the broker and deliver messages to callback.

        Reconnects with exponential backoff whenever the connection drops.
        Only returns when cancelled.
        """
        delay = self.config.reconnect_min_seconds

        while True:
            logger.info(
                f"Connecting to MQTT broker at {self.config.hostname}:{self.config.port} "
                f"client id {self.config.client_id} user {self.config.username}"
            )
            try:
                async with self._make_client() as client:
                    self._client = client
                    self._connected = True
                    delay = self.config.reconnect_min_seconds
                    logger.info("Connected to MQTT broker")

                    await self.publish_availability("online")
                    if self.on_connect:
                        await self.on_connect()

                    await self._message_loop(client, callback)

            except aiomqtt.MqttError as e:
                logger.error(f"MQTT connection to {self.config.url} lost: {e}")
                if self.on_connection_lost:
                    self.on_connection_lost(e)
            finally:
                self._client = None
                self._connected = False

            logger.info(f"MQTT reconnecting to {self.config.url} in {delay:.0f}s")
            if self.on_reconnecting:
                self.on_reconnecting(delay)
            await asyncio.sleep(delay)
            delay = min(delay * 2, self.config.reconnect_max_seconds)

    async def _message_loop(self, client: aiomqtt.Client, callback: MessageCallback) -> None:
        async for message in client.messages:
            topic = str(message.topic)

            if isinstance(message.payload, bytes):
                payload = message.payload
            else:
                payload = str(message.payload).encode()

            logger.debug(f"Received message on {topic}: {payload[:100]}")

            try:
                await callback(topic, payload)
            except Exception as e:
                logger.error(f"Error processing message on {topic}: {e}")

    async def publish(
        self,
        topic: str,
        payload: Any,
        retain: bool = False,
        qos: Optional[int] = None,
    ) -> None:
        """Publish a message to a topic.

        Args:
            topic: MQTT topic
            payload: Message payload (will be JSON-encoded if dict/list)
            retain: Whether to retain the message
            qos: QoS level (default from config)

        Raises:
            ConnectionError: If not connected
        """
        if not self._client or not self._connected:
            raise ConnectionError("Not connected to MQTT broker")

        if qos is None:
            qos = self.config.qos

        if isinstance(payload, (dict, list)):
            payload_str = json.dumps(payload)
        elif payload is None:
            payload_str = ""
        else:
            payload_str = str(payload)

        await self._client.publish(topic, payload=payload_str, qos=qos, retain=retain)
        logger.debug(f"Published to {topic}: {payload_str[:100]}")

    def publish_nowait(self, topic: str, payload: Any, retain: bool = False) -> asyncio.Task:
        """Publish without waiting; failures are only logged.

        Returns:
            The detached publish task
        """
        task = asyncio.create_task(self.publish(topic, payload, retain=retain))
        self._pending.add(task)
        task.add_done_callback(self._publish_done)
        return task

    def _publish_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Publishing msg failed: {error}")

    async def publish_availability(self, status: str) -> None:
        """Publish availability status.

        Args:
            status: "online" or "offline"
        """
        await self.publish(self.availability_topic, status, retain=True)
        logger.info(f"Published availability: {status}")

    async def subscribe(self, topic: str) -> None:
        """Subscribe to a topic.

        Args:
            topic: MQTT topic pattern
        """
        if not self._client or not self._connected:
            raise ConnectionError("Not connected to MQTT broker")

        await self._client.subscribe(topic, qos=self.config.qos)
        logger.debug(f"Subscribed to {topic}")

    async def disconnect(self) -> None:
        """Mark the bridge offline; the run loop closes the connection on cancel."""
        if self._connected:
            try:
                await self.publish_availability("offline")
            except aiomqtt.MqttError as e:
                logger.debug(f"Could not publish offline status: {e}")
