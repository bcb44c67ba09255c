"""Step Bridge - accelerometer step counting with FIT token rewards."""

__version__ = "0.1.0"

from .bridge import StepBridge
from .config import load_config, AppConfig
from .detector import StepDetector
from .logs import NdjsonLogger
from .metrics import calculate_metrics

__all__ = ["StepBridge", "load_config", "AppConfig", "StepDetector", "NdjsonLogger", "calculate_metrics"]
