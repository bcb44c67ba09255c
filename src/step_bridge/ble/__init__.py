"""BLE motion sensor support."""

from .motion_sensor import BleMotionSensor
from .wtvb_parse import parse_5561

__all__ = ["BleMotionSensor", "parse_5561"]
