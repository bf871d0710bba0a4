"""Configuration management with Pydantic validation.

Supports three configuration sources (in priority order):
1. YAML config file (for traditional deployments)
2. Environment variables (for Docker)
3. Default values
"""

import os
from pathlib import Path
from typing import Optional, Literal
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .protocol.constants import DEFAULT_PANEL_ADDRESS, SPEED_MIN, SPEED_MAX


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""


class SerialConfig(BaseModel):
    """Serial port configuration for the RS-485 adapter."""

    device: str = Field(
        ...,
        description="Serial port device path"
    )
    baudrate: int = Field(
        default=9600,
        description="Baud rate"
    )


class MQTTConfig(BaseModel):
    """MQTT broker configuration."""

    url: str = Field(
        ...,
        description="Broker URL, e.g. tcp://localhost:1883"
    )
    username: Optional[str] = Field(
        default=None,
        description="MQTT username (optional)"
    )
    password: Optional[str] = Field(
        default=None,
        description="MQTT password (optional)"
    )
    client_id: Optional[str] = Field(
        default=None,
        description="MQTT client identifier (defaults to device id)"
    )
    discovery_prefix: str = Field(
        default="homeassistant",
        description="Home Assistant MQTT discovery prefix"
    )
    keepalive: int = Field(
        default=150,
        ge=5,
        description="Keepalive interval in seconds"
    )
    qos: int = Field(
        default=0,
        ge=0,
        le=2,
        description="MQTT QoS level"
    )
    reconnect_min_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Initial reconnect delay"
    )
    reconnect_max_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Maximum reconnect delay"
    )

    @field_validator("username", "password", "client_id", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        """Convert empty strings to None."""
        if v == "":
            return None
        return v

    @field_validator("url")
    @classmethod
    def check_url(cls, v: str) -> str:
        """Require a scheme and host in the broker URL."""
        parsed = urlparse(v)
        if parsed.scheme not in ("tcp", "mqtt", "ssl", "tls", "mqtts") or not parsed.hostname:
            raise ValueError(f"Unsupported MQTT URL: {v}")
        return v

    @property
    def hostname(self) -> str:
        """Broker hostname from the URL."""
        return urlparse(self.url).hostname

    @property
    def tls(self) -> bool:
        """Check if the URL asks for a TLS connection."""
        return urlparse(self.url).scheme in ("ssl", "tls", "mqtts")

    @property
    def port(self) -> int:
        """Broker port from the URL, or the scheme's default."""
        port = urlparse(self.url).port
        if port is not None:
            return port
        return 8883 if self.tls else 1883


class DeviceConfig(BaseModel):
    """Vallox device and entity settings."""

    id: str = Field(
        default="vallox",
        min_length=1,
        description="Device identifier, used as topic prefix and unique id prefix"
    )
    name: str = Field(
        default="Vallox",
        description="Device display name in Home Assistant"
    )
    enable_write: bool = Field(
        default=False,
        description="Allow writing fan speed to the bus"
    )
    speed_min: int = Field(
        default=1,
        ge=SPEED_MIN,
        le=SPEED_MAX,
        description="Lowest speed offered in the speed selector"
    )
    enable_raw: bool = Field(
        default=False,
        description="Publish every register to raw topics"
    )
    object_id: bool = Field(
        default=True,
        description="Include object_id in discovery messages"
    )
    new_protocol: bool = Field(
        default=False,
        description="Use the newer temperature register set"
    )
    panel_address: int = Field(
        default=DEFAULT_PANEL_ADDRESS,
        ge=0x21,
        le=0x2F,
        description="Bus address this bridge uses as a control panel"
    )


class TimingConfig(BaseModel):
    """Dedup, refresh and debounce timing, all in seconds."""

    freshness_seconds: float = Field(
        default=900.0,
        gt=0,
        description="Age after which an unchanged value is considered stale"
    )
    refresh_interval_seconds: float = Field(
        default=900.0,
        gt=0,
        description="Interval of the scheduled register refresh"
    )
    initial_query_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Delay before the first register refresh"
    )
    cooldown_seconds: float = Field(
        default=5.0,
        ge=0,
        description="Quiet period before a requested speed is written"
    )
    grace_seconds: float = Field(
        default=10.0,
        ge=0,
        description="How long a confirmed speed suppresses identical requests"
    )
    retry_delay_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Delay between write attempts during the cooldown"
    )
    settle_seconds: float = Field(
        default=0.02,
        ge=0,
        description="Bus turnaround delay between a write and its query"
    )
    query_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="How long an unanswered query counts as outstanding"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level"
    )
    debug: bool = Field(
        default=False,
        description="Force DEBUG level"
    )
    file: Optional[Path] = Field(
        default=None,
        description="Log file path (optional)"
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format"
    )

    @property
    def effective_level(self) -> str:
        """Level after applying the debug flag."""
        return "DEBUG" if self.debug else self.level


class AppConfig(BaseModel):
    """Complete application configuration."""

    serial: SerialConfig = Field(
        description="Serial port settings"
    )
    mqtt: MQTTConfig = Field(
        description="MQTT broker settings"
    )
    device: DeviceConfig = Field(
        default_factory=DeviceConfig,
        description="Device settings"
    )
    timing: TimingConfig = Field(
        default_factory=TimingConfig,
        description="Dedup, refresh and debounce timing"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging settings"
    )

    @model_validator(mode="after")
    def default_client_id(self) -> "AppConfig":
        """Use the device id as MQTT client id unless one is set."""
        if self.mqtt.client_id is None:
            self.mqtt.client_id = self.device.id
        return self


def _to_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes", "on")


# Environment variable mapping
ENV_MAPPING = {
    # Serial
    "VALLOX_SERIAL_DEVICE": ("serial", "device"),
    "VALLOX_SERIAL_BAUDRATE": ("serial", "baudrate", int),

    # MQTT
    "VALLOX_MQTT_URL": ("mqtt", "url"),
    "VALLOX_MQTT_USER": ("mqtt", "username"),
    "VALLOX_MQTT_PASSWORD": ("mqtt", "password"),
    "VALLOX_MQTT_CLIENT_ID": ("mqtt", "client_id"),
    "VALLOX_MQTT_DISCOVERY_PREFIX": ("mqtt", "discovery_prefix"),
    "VALLOX_MQTT_QOS": ("mqtt", "qos", int),
    "VALLOX_MQTT_KEEPALIVE": ("mqtt", "keepalive", int),

    # Device
    "VALLOX_DEVICE_ID": ("device", "id"),
    "VALLOX_DEVICE_NAME": ("device", "name"),
    "VALLOX_ENABLE_WRITE": ("device", "enable_write", _to_bool),
    "VALLOX_SPEED_MIN": ("device", "speed_min", int),
    "VALLOX_ENABLE_RAW": ("device", "enable_raw", _to_bool),
    "VALLOX_OBJECT_ID": ("device", "object_id", _to_bool),
    "VALLOX_NEW_PROTOCOL": ("device", "new_protocol", _to_bool),
    "VALLOX_PANEL_ADDRESS": ("device", "panel_address", lambda x: int(x, 0)),

    # Timing
    "VALLOX_FRESHNESS_SECONDS": ("timing", "freshness_seconds", float),
    "VALLOX_REFRESH_INTERVAL_SECONDS": ("timing", "refresh_interval_seconds", float),
    "VALLOX_COOLDOWN_SECONDS": ("timing", "cooldown_seconds", float),
    "VALLOX_GRACE_SECONDS": ("timing", "grace_seconds", float),
    "VALLOX_INITIAL_QUERY_DELAY_SECONDS": ("timing", "initial_query_delay_seconds", float),
    "VALLOX_RETRY_DELAY_SECONDS": ("timing", "retry_delay_seconds", float),
    "VALLOX_SETTLE_SECONDS": ("timing", "settle_seconds", float),
    "VALLOX_QUERY_TIMEOUT_SECONDS": ("timing", "query_timeout_seconds", float),

    # Logging
    "VALLOX_DEBUG": ("logging", "debug", _to_bool),
    "VALLOX_LOG_LEVEL": ("logging", "level"),
}


def _get_env_value(env_var: str, mapping: tuple):
    """Get environment variable value with optional type conversion."""
    value = os.environ.get(env_var)
    if value is None:
        return None

    # Apply type conversion if specified
    if len(mapping) > 2:
        converter = mapping[2]
        try:
            return converter(value)
        except (ValueError, TypeError):
            return value
    return value


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables.

    Returns:
        AppConfig with values from environment (or defaults)

    Raises:
        pydantic.ValidationError: If required variables are missing
    """
    config_dict = {
        "serial": {},
        "mqtt": {},
        "device": {},
        "timing": {},
        "logging": {},
    }

    for env_var, mapping in ENV_MAPPING.items():
        value = _get_env_value(env_var, mapping)
        if value is not None:
            section = mapping[0]
            key = mapping[1]
            config_dict[section][key] = value

    return AppConfig(**config_dict)


def load_config(config_path: str) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        Validated AppConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        pydantic.ValidationError: If config validation fails
    """
    path = Path(config_path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(path, "r") as f:
        raw_config = yaml.safe_load(f) or {}

    # Support environment variable substitution
    raw_config = _substitute_env_vars(raw_config)

    return AppConfig(**raw_config)


def get_config(config_path: Optional[str] = None) -> AppConfig:
    """Get configuration from config file or environment variables.

    Args:
        config_path: Optional path to YAML config file

    Returns:
        Validated AppConfig instance

    Raises:
        ConfigError: If required settings are missing or invalid
    """
    try:
        if config_path:
            path = Path(config_path)
            if path.exists():
                return load_config(config_path)

        return load_config_from_env()
    except ValidationError as e:
        raise ConfigError(str(e)) from e


def _substitute_env_vars(config):
    """Recursively substitute environment variables in config values.

    Environment variables are referenced as ${VAR_NAME} or $VAR_NAME.
    """
    if isinstance(config, dict):
        return {k: _substitute_env_vars(v) for k, v in config.items()}
    elif isinstance(config, list):
        return [_substitute_env_vars(item) for item in config]
    elif isinstance(config, str):
        if config.startswith("${") and config.endswith("}"):
            var_name = config[2:-1]
            return os.environ.get(var_name, config)
        elif config.startswith("$") and not config.startswith("${"):
            var_name = config[1:]
            return os.environ.get(var_name, config)
        return config
    else:
        return config


def create_default_config() -> str:
    """Generate default configuration as YAML string."""
    config = AppConfig(
        serial={"device": "/dev/ttyUSB0"},
        mqtt={"url": "tcp://localhost:1883"},
    )
    return yaml.dump(
        config.model_dump(mode="json", exclude_none=True),
        default_flow_style=False,
        sort_keys=False,
    )


def print_env_help() -> str:
    """Generate help text for environment variables."""
    lines = [
        "Environment Variables:",
        "",
        "  Required:",
        "    VALLOX_SERIAL_DEVICE     Serial device path, e.g. /dev/ttyUSB0",
        "    VALLOX_MQTT_URL          Broker URL, e.g. tcp://192.168.1.10:1883",
        "",
        "  Serial:",
        "    VALLOX_SERIAL_BAUDRATE   Baud rate (default: 9600)",
        "",
        "  MQTT:",
        "    VALLOX_MQTT_USER         Username (optional)",
        "    VALLOX_MQTT_PASSWORD     Password (optional)",
        "    VALLOX_MQTT_CLIENT_ID    Client ID (default: device id)",
        "    VALLOX_MQTT_DISCOVERY_PREFIX  HA discovery prefix (default: homeassistant)",
        "    VALLOX_MQTT_QOS          QoS level 0-2 (default: 0)",
        "    VALLOX_MQTT_KEEPALIVE    Keepalive in seconds (default: 150)",
        "",
        "  Device:",
        "    VALLOX_DEVICE_ID         Topic and unique id prefix (default: vallox)",
        "    VALLOX_DEVICE_NAME       Display name (default: Vallox)",
        "    VALLOX_ENABLE_WRITE      Allow speed changes (default: false)",
        "    VALLOX_SPEED_MIN         Lowest selectable speed (default: 1)",
        "    VALLOX_ENABLE_RAW        Publish all registers raw (default: false)",
        "    VALLOX_OBJECT_ID         Send object_id in discovery (default: true)",
        "    VALLOX_NEW_PROTOCOL      Newer temperature registers (default: false)",
        "    VALLOX_PANEL_ADDRESS     Bus address of the bridge, 0x21-0x2f (default: 0x22)",
        "",
        "  Timing:",
        "    VALLOX_FRESHNESS_SECONDS        Duplicate suppression window (default: 900)",
        "    VALLOX_REFRESH_INTERVAL_SECONDS Scheduled refresh interval (default: 900)",
        "    VALLOX_INITIAL_QUERY_DELAY_SECONDS  Delay before the first refresh (default: 1)",
        "    VALLOX_COOLDOWN_SECONDS         Quiet period before a speed write (default: 5)",
        "    VALLOX_GRACE_SECONDS            Confirmed speed suppression window (default: 10)",
        "    VALLOX_RETRY_DELAY_SECONDS      Delay between write attempts (default: 1)",
        "    VALLOX_SETTLE_SECONDS           Delay between a write and its query (default: 0.02)",
        "    VALLOX_QUERY_TIMEOUT_SECONDS    Outstanding query lifetime (default: 5)",
        "",
        "  Logging:",
        "    VALLOX_DEBUG             Enable debug logging (default: false)",
        "    VALLOX_LOG_LEVEL         DEBUG, INFO, WARNING, ERROR (default: INFO)",
    ]
    return "\n".join(lines)
