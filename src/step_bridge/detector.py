"""Step detection with exponential smoothing, rising-edge threshold and refractory period."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional


@dataclass
class AccelerationSample:
    """Single tri-axial acceleration reading (m/s^2, gravity included)."""

    x: Optional[float]
    y: Optional[float]
    z: Optional[float]
    timestamp_ns: int = field(default_factory=time.monotonic_ns)

    @property
    def is_complete(self) -> bool:
        return self.x is not None and self.y is not None and self.z is not None

    @property
    def magnitude(self) -> float:
        """Euclidean norm of the acceleration vector."""
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], timestamp_ns: Optional[int] = None) -> AccelerationSample:
        """Build a sample from a ``{"x", "y", "z"}`` record, missing axes become None."""
        return cls(
            x=_as_float(data.get("x")),
            y=_as_float(data.get("y")),
            z=_as_float(data.get("z")),
            timestamp_ns=time.monotonic_ns() if timestamp_ns is None else timestamp_ns,
        )

    def to_dict(self) -> dict:
        """Convert sample to dictionary for logging."""
        return {"ts": self.timestamp_ns, "x": self.x, "y": self.y, "z": self.z}


def _as_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass
class DetectorParams:
    """Parameters for the step detection algorithm."""

    alpha: float = 0.8
    acceleration_threshold: float = 10.0
    min_time_between_steps_ms: int = 250


@dataclass
class StepEvent:
    """Confirmed step."""

    timestamp_ns: int
    smoothed_magnitude: float
    raw_magnitude: float


class StepDetector:
    """Turns a stream of acceleration samples into discrete step events.

    Each sample updates an exponential moving average of the acceleration
    magnitude. A step is confirmed when the smoothed value is above the
    threshold, still rising, and the refractory window since the previous
    step has elapsed.
    """

    def __init__(self, params: Optional[DetectorParams] = None, start_ns: Optional[int] = None) -> None:
        self.params = params or DetectorParams()

        self._smoothed_magnitude = 0.0
        self._last_magnitude = 0.0
        self._last_step_ns = time.monotonic_ns() if start_ns is None else start_ns
        self._refractory_ns = self.params.min_time_between_steps_ms * 1_000_000

        self._sample_count = 0
        self._step_count = 0

    def process_sample(self, sample: AccelerationSample) -> Optional[StepEvent]:
        """
        Process one acceleration sample and return a StepEvent if a step is confirmed.

        Samples missing any axis are ignored without touching detector state.
        """
        if not sample.is_complete:
            return None

        self._sample_count += 1
        magnitude = sample.magnitude
        alpha = self.params.alpha
        self._smoothed_magnitude = alpha * self._smoothed_magnitude + (1 - alpha) * magnitude

        event = None
        if (
            self._smoothed_magnitude > self.params.acceleration_threshold
            and self._smoothed_magnitude > self._last_magnitude
            and sample.timestamp_ns - self._last_step_ns > self._refractory_ns
        ):
            self._last_step_ns = sample.timestamp_ns
            self._step_count += 1
            event = StepEvent(
                timestamp_ns=sample.timestamp_ns,
                smoothed_magnitude=self._smoothed_magnitude,
                raw_magnitude=magnitude,
            )

        # Rising-edge reference follows every sample
        self._last_magnitude = self._smoothed_magnitude
        return event

    @property
    def smoothed_magnitude(self) -> float:
        return self._smoothed_magnitude

    @property
    def last_step_ns(self) -> int:
        return self._last_step_ns

    @property
    def sample_count(self) -> int:
        return self._sample_count

    @property
    def step_count(self) -> int:
        """Steps confirmed by this detector instance."""
        return self._step_count

    def get_status(self) -> Dict[str, Any]:
        """Get status information for the periodic report."""
        return {
            "smoothed_magnitude": round(self._smoothed_magnitude, 4),
            "sample_count": self._sample_count,
            "step_count": self._step_count,
        }
