"""Structured step log: one JSON object per line, one file per day.

Every record carries ``seq`` (monotonic per process), ``type``, ``msg``,
``ts_ms`` (milliseconds since the logger was created) and ``hms`` wall clock
time. Step and reward events also carry the cumulative ``steps`` count.
"""

from __future__ import annotations

import json
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, TextIO

RECORD_TYPES = ("event", "status", "error", "debug", "notify")


class NdjsonLogger:
    """Appends step, sensor and reward records to ``<log_dir>/<prefix>_<YYYYMMDD>.ndjson``."""

    def __init__(
        self,
        log_dir: str,
        file_prefix: str = "steps",
        mode: str = "regular",
        verbose_whitelist: Iterable[str] = (),
    ) -> None:
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.file_prefix = file_prefix
        self.mode = mode
        self.verbose_whitelist = set(verbose_whitelist)

        self._seq = 0
        self._origin_ns = time.monotonic_ns()
        self._day: Optional[str] = None
        self._fh: Optional[TextIO] = None
        self._open_for_today()

    @property
    def current_path(self) -> Optional[Path]:
        return self._path_for(self._day) if self._day else None

    def log(
        self,
        msg_type: str,
        msg: str,
        steps: Optional[int] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        if msg_type not in RECORD_TYPES:
            raise ValueError(f"Unknown record type: {msg_type}")
        if msg_type == "debug" and not self._debug_enabled(msg):
            return

        self._seq += 1
        record: Dict[str, Any] = {"seq": self._seq, "type": msg_type, "msg": msg}
        if steps is not None:
            record["steps"] = steps
        if data is not None:
            record["data"] = data
        record["ts_ms"] = round((time.monotonic_ns() - self._origin_ns) / 1e6, 3)
        record["hms"] = datetime.now().strftime("%H:%M:%S.%f")[:-3]
        self._write(record)

    def event(self, msg: str, steps: Optional[int] = None, data: Optional[Dict[str, Any]] = None) -> None:
        self.log("event", msg, steps=steps, data=data)

    def status(self, msg: str, data: Optional[Dict[str, Any]] = None) -> None:
        self.log("status", msg, data=data)

    def error(self, msg: str, data: Optional[Dict[str, Any]] = None) -> None:
        self.log("error", msg, data=data)

    def debug(self, msg: str, data: Optional[Dict[str, Any]] = None) -> None:
        """Dropped in regular mode unless ``msg`` is whitelisted."""
        self.log("debug", msg, data=data)

    def notify(self, msg: str, level: str) -> None:
        """Record a message that was shown to the user."""
        self.log("notify", msg, data={"level": level})

    def close(self) -> None:
        if self._fh:
            self._fh.close()
            self._fh = None

    def _debug_enabled(self, msg: str) -> bool:
        return self.mode == "verbose" or msg in self.verbose_whitelist

    def _path_for(self, day: str) -> Path:
        return self.log_dir / f"{self.file_prefix}_{day}.ndjson"

    def _open_for_today(self) -> None:
        day = datetime.now().strftime("%Y%m%d")
        if day == self._day and self._fh:
            return
        self.close()
        self._fh = self._path_for(day).open("a", encoding="utf-8", buffering=1)
        self._day = day

    def _write(self, record: Dict[str, Any]) -> None:
        # Reopens after midnight, and after close() for late records
        self._open_for_today()
        self._fh.write(json.dumps(record, separators=(",", ":"), ensure_ascii=False) + "\n")

    def __enter__(self) -> NdjsonLogger:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
