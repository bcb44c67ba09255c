"""Durable key-value storage for the step counter and sensor session state."""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Protocol

from .metrics import STEP_LENGTH_M, CALORIES_PER_STEP, StepCounterState, calculate_metrics

logger = logging.getLogger(__name__)

_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStore(Protocol):
    """Minimal string key-value store interface."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class MemoryStore(KeyValueStore):
    """In-process store, used by tests and replay runs."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """Stores each key as ``<dir>/<key>.json``, written synchronously on every set."""

    def __init__(self, directory: str) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if not _KEY_RE.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            f.write(value)
            f.flush()
        tmp_path.replace(path)

    def delete(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()


@dataclass
class AccelerometerSessionState:
    """Whether the sensor stream was ever established and is currently permitted."""

    is_initialized: bool = False
    has_permission: bool = False
    last_init_time_ms: int = 0

    def to_dict(self) -> dict:
        return {
            "isInitialized": self.is_initialized,
            "hasPermission": self.has_permission,
            "lastInitTime": self.last_init_time_ms,
        }


def _load_json(store: KeyValueStore, key: str) -> Optional[dict]:
    try:
        raw = store.get(key)
    except UnicodeDecodeError:
        logger.warning(f"Stored state for {key!r} is not valid UTF-8, using defaults")
        return None
    if raw is None:
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning(f"Stored state for {key!r} is not valid JSON, using defaults")
        return None
    if not isinstance(data, dict):
        logger.warning(f"Stored state for {key!r} is not an object, using defaults")
        return None
    return data


class StepStateRepository:
    """Loads and saves StepCounterState under a fixed key."""

    def __init__(
        self,
        store: KeyValueStore,
        key: str = "stepCounter",
        step_length_m: float = STEP_LENGTH_M,
        calories_per_step: float = CALORIES_PER_STEP,
    ) -> None:
        self.store = store
        self.key = key
        self.step_length_m = step_length_m
        self.calories_per_step = calories_per_step

    def load(self) -> StepCounterState:
        """Read the stored counter, falling back to zero on missing or bad data."""
        data = _load_json(self.store, self.key)
        if data is None:
            return StepCounterState()

        steps = data.get("steps", 0)
        valid = not isinstance(steps, bool) and isinstance(steps, (int, float))
        if not valid or not math.isfinite(steps) or steps < 0:
            logger.warning(f"Stored step count {steps!r} is invalid, using defaults")
            return StepCounterState()

        # Derived fields are recomputed rather than trusted
        return calculate_metrics(int(steps), self.step_length_m, self.calories_per_step)

    def save(self, state: StepCounterState) -> None:
        self.store.set(self.key, json.dumps(state.to_dict()))

    def reset(self) -> StepCounterState:
        state = StepCounterState()
        self.save(state)
        return state


class SessionStateRepository:
    """Loads and saves AccelerometerSessionState under a fixed key."""

    def __init__(self, store: KeyValueStore, key: str = "accelerometerState") -> None:
        self.store = store
        self.key = key

    def load(self) -> AccelerometerSessionState:
        data = _load_json(self.store, self.key)
        if data is None:
            return AccelerometerSessionState()

        try:
            return AccelerometerSessionState(
                is_initialized=bool(data.get("isInitialized", False)),
                has_permission=bool(data.get("hasPermission", False)),
                last_init_time_ms=int(data.get("lastInitTime", 0)),
            )
        except (TypeError, ValueError, OverflowError):
            logger.warning(f"Stored session state for {self.key!r} is invalid, using defaults")
            return AccelerometerSessionState()

    def save(self, state: AccelerometerSessionState) -> None:
        self.store.set(self.key, json.dumps(state.to_dict()))
