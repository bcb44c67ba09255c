"""Configuration management for the Step Bridge."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

import yaml


@dataclass
class SensorConfig:
    """Configuration for the motion sensor connection and supervisor."""

    source: str = "ble"  # ble or replay
    adapter: str = "hci0"
    mac: str = ""
    notify_uuid: str = ""
    replay_file: str = ""
    replay_rate_hz: float = 50.0
    handshake_timeout_sec: float = 5.0
    max_reconnect_attempts: int = 3
    reconnect_delay_sec: float = 1.0
    watchdog_interval_sec: float = 2.0


@dataclass
class DetectorConfig:
    """Configuration for the step detection algorithm."""

    alpha: float = 0.8
    acceleration_threshold: float = 10.0
    min_time_between_steps_ms: int = 250


@dataclass
class MetricsConfig:
    """Conversion factors from steps to distance and energy."""

    step_length_m: float = 0.762
    calories_per_step: float = 0.04
    steps_goal: int = 10000


@dataclass
class RewardConfig:
    """Configuration for FIT rewards granted on step thresholds."""

    enabled: bool = True
    steps_threshold: int = 8000
    amount: int = 10
    transaction_type: str = "steps"
    description: str = "{threshold} steps completed"


@dataclass
class StorageConfig:
    """Configuration for durable counter state."""

    dir: str = "./state"
    step_key: str = "stepCounter"
    session_key: str = "accelerometerState"


@dataclass
class WalletConfig:
    """Configuration for the FIT token ledger."""

    dir: str = "./db"
    file: str = "wallet.db"
    owner: str = "local"


@dataclass
class LoggingConfig:
    """Configuration for logging and data persistence."""

    dir: str = "./logs"
    file_prefix: str = "steps"
    mode: str = "regular"  # regular or verbose
    status_interval_sec: float = 30.0
    verbose_whitelist: List[str] = None

    def __post_init__(self) -> None:
        if self.verbose_whitelist is None:
            self.verbose_whitelist = []


@dataclass
class AppConfig:
    """Main application configuration."""

    sensor: SensorConfig = None
    detector: DetectorConfig = None
    metrics: MetricsConfig = None
    rewards: RewardConfig = None
    storage: StorageConfig = None
    wallet: WalletConfig = None
    logging: LoggingConfig = None

    def __post_init__(self) -> None:
        if self.sensor is None:
            self.sensor = SensorConfig()
        if self.detector is None:
            self.detector = DetectorConfig()
        if self.metrics is None:
            self.metrics = MetricsConfig()
        if self.rewards is None:
            self.rewards = RewardConfig()
        if self.storage is None:
            self.storage = StorageConfig()
        if self.wallet is None:
            self.wallet = WalletConfig()
        if self.logging is None:
            self.logging = LoggingConfig()


_SECTIONS = {
    "sensor": SensorConfig,
    "detector": DetectorConfig,
    "metrics": MetricsConfig,
    "rewards": RewardConfig,
    "storage": StorageConfig,
    "wallet": WalletConfig,
}


def load_config(config_path: str) -> AppConfig:
    """Load configuration from YAML file with environment variable support."""
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with config_file.open("r", encoding="utf-8") as f:
        raw_config = yaml.safe_load(f)

    if not raw_config:
        raise ValueError(f"Empty or invalid configuration file: {config_path}")
    if not isinstance(raw_config, dict):
        raise ValueError(f"Configuration root must be a mapping: {config_path}")

    _substitute_env_vars(raw_config)

    config = AppConfig()

    for section, section_cls in _SECTIONS.items():
        if raw_config.get(section):
            try:
                setattr(config, section, section_cls(**raw_config[section]))
            except TypeError as e:
                raise ValueError(f"Invalid '{section}' section: {e}") from e

    if raw_config.get("logging"):
        logging_data = raw_config["logging"]
        # Whitelist may be written as a mapping in older configs
        if isinstance(logging_data.get("verbose_whitelist"), dict):
            logging_data["verbose_whitelist"] = list(logging_data["verbose_whitelist"].keys())
        try:
            config.logging = LoggingConfig(**logging_data)
        except TypeError as e:
            raise ValueError(f"Invalid 'logging' section: {e}") from e

    return config


def _substitute_env_vars(data: Any) -> None:
    """Recursively substitute environment variables in configuration data."""
    if isinstance(data, dict):
        for key, value in data.items():
            if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
                env_var = value[2:-1]
                data[key] = os.getenv(env_var, value)
            else:
                _substitute_env_vars(value)
    elif isinstance(data, list):
        for i, item in enumerate(data):
            if isinstance(item, str) and item.startswith("${") and item.endswith("}"):
                data[i] = os.getenv(item[2:-1], item)
            else:
                _substitute_env_vars(item)


def validate_config(config: AppConfig) -> List[str]:
    """Validate configuration and return list of validation errors."""
    errors = []

    sensor = config.sensor
    if sensor.source not in ("ble", "replay"):
        errors.append(f"Unknown sensor source: {sensor.source}")
    if sensor.source == "ble":
        if not sensor.mac:
            errors.append("Sensor MAC address is required for BLE source")
        if not sensor.notify_uuid:
            errors.append("Sensor notify_uuid is required for BLE source")
    if sensor.source == "replay" and not sensor.replay_file:
        errors.append("Sensor replay_file is required for replay source")
    if sensor.handshake_timeout_sec <= 0:
        errors.append("Sensor handshake_timeout_sec must be positive")
    if sensor.max_reconnect_attempts < 0:
        errors.append("Sensor max_reconnect_attempts must not be negative")
    if sensor.reconnect_delay_sec < 0:
        errors.append("Sensor reconnect_delay_sec must not be negative")

    if not 0.0 <= config.detector.alpha < 1.0:
        errors.append("Detector alpha must be in [0, 1)")
    if config.detector.min_time_between_steps_ms < 0:
        errors.append("Detector min_time_between_steps_ms must not be negative")

    if config.metrics.step_length_m <= 0:
        errors.append("Metrics step_length_m must be positive")
    if config.metrics.calories_per_step < 0:
        errors.append("Metrics calories_per_step must not be negative")

    if config.rewards.steps_threshold <= 0:
        errors.append("Rewards steps_threshold must be positive")
    if config.rewards.amount <= 0:
        errors.append("Rewards amount must be positive")

    if config.storage.step_key == config.storage.session_key:
        errors.append("Storage step_key and session_key must differ")

    for path_name, path_str in [
        ("logging.dir", config.logging.dir),
        ("storage.dir", config.storage.dir),
        ("wallet.dir", config.wallet.dir),
    ]:
        path = Path(path_str)
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            errors.append(f"Cannot create directory {path_name}: {path_str} - {e}")

    return errors


def default_config(base_dir: Optional[str] = None) -> AppConfig:
    """Build a default configuration rooted at ``base_dir``."""
    config = AppConfig()
    if base_dir:
        root = Path(base_dir)
        config.logging.dir = str(root / "logs")
        config.storage.dir = str(root / "state")
        config.wallet.dir = str(root / "db")
    return config
