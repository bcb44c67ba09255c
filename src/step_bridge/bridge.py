"""Main bridge module that ties the motion sensor to the step counter."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from .ble.motion_sensor import BleMotionSensor
from .config import AppConfig, SensorConfig
from .detector import AccelerationSample, DetectorParams, StepDetector, StepEvent
from .logs import NdjsonLogger
from .metrics import StepCounterState, calculate_metrics, goal_progress
from .notify import LogNotifier, Notifier
from .rewards import RewardTrigger
from .sensors import MotionPlatform, ReplayMotionPlatform
from .storage import JsonFileStore, KeyValueStore, SessionStateRepository, StepStateRepository
from .supervisor import PermissionSupervisor, SensorState
from .wallet import Wallet

logger = logging.getLogger(__name__)


def create_platform(sensor: SensorConfig) -> MotionPlatform:
    """Build the sample source named by the sensor configuration."""
    if sensor.source == "replay":
        return ReplayMotionPlatform(sensor.replay_file, rate_hz=sensor.replay_rate_hz)
    if sensor.source == "ble":
        return BleMotionSensor(
            mac_address=sensor.mac,
            notify_uuid=sensor.notify_uuid,
            adapter=sensor.adapter,
        )
    raise ValueError(f"Unknown sensor source: {sensor.source}")


class StepBridge:
    """Step counting pipeline: sensor samples in, persisted counts and rewards out."""

    def __init__(
        self,
        config: AppConfig,
        platform: Optional[MotionPlatform] = None,
        wallet: Optional[Wallet] = None,
        notifier: Optional[Notifier] = None,
        store: Optional[KeyValueStore] = None,
        event_log: Optional[NdjsonLogger] = None,
    ) -> None:
        self.config = config

        self._owns_event_log = event_log is None
        self.logger = event_log or NdjsonLogger(
            config.logging.dir,
            config.logging.file_prefix,
            mode=config.logging.mode,
            verbose_whitelist=config.logging.verbose_whitelist,
        )

        store = store or JsonFileStore(config.storage.dir)
        self.step_repo = StepStateRepository(
            store,
            key=config.storage.step_key,
            step_length_m=config.metrics.step_length_m,
            calories_per_step=config.metrics.calories_per_step,
        )
        self.session_repo = SessionStateRepository(store, key=config.storage.session_key)

        self._owns_wallet = wallet is None and config.rewards.enabled
        if self._owns_wallet:
            wallet = Wallet(str(Path(config.wallet.dir) / config.wallet.file), owner=config.wallet.owner)
        self.wallet = wallet

        self.notifier = notifier or LogNotifier(self.logger)
        self.platform = platform or create_platform(config.sensor)

        self.state: StepCounterState = self.step_repo.load()

        self.detector = StepDetector(DetectorParams(
            alpha=config.detector.alpha,
            acceleration_threshold=config.detector.acceleration_threshold,
            min_time_between_steps_ms=config.detector.min_time_between_steps_ms,
        ))

        self.rewards: Optional[RewardTrigger] = None
        if config.rewards.enabled:
            self.rewards = RewardTrigger(
                ledger=self.wallet,
                notifier=self.notifier,
                steps_threshold=config.rewards.steps_threshold,
                amount=config.rewards.amount,
                transaction_type=config.rewards.transaction_type,
                description=config.rewards.description,
                initial_steps=self.state.steps,
                event_log=self.logger,
            )

        self.supervisor = PermissionSupervisor(
            platform=self.platform,
            session_repo=self.session_repo,
            on_sample=self._on_sample,
            notifier=self.notifier,
            handshake_timeout_sec=config.sensor.handshake_timeout_sec,
            max_reconnect_attempts=config.sensor.max_reconnect_attempts,
            reconnect_delay_sec=config.sensor.reconnect_delay_sec,
            event_log=self.logger,
        )

        self._stop_requested = False
        self._tasks: List[asyncio.Task] = []

    async def start(self) -> bool:
        """Start the sensor and background tasks; True when the sensor is connected."""
        self._stop_requested = False

        self.logger.status("Bridge starting", {
            "source": self.config.sensor.source,
            "steps": self.state.steps,
            "session": self.supervisor.session.to_dict(),
            "detector_params": {
                "alpha": self.detector.params.alpha,
                "acceleration_threshold": self.detector.params.acceleration_threshold,
                "min_time_between_steps_ms": self.detector.params.min_time_between_steps_ms,
            },
        })

        if self.supervisor.session.is_initialized:
            connected = await self.supervisor.resume()
        else:
            connected = await self.supervisor.request_permissions()

        self._tasks.append(asyncio.create_task(self._watchdog_loop()))
        self._tasks.append(asyncio.create_task(self._status_loop()))

        self.logger.status("Bridge started", {
            "connected": connected,
            "sensor_state": self.supervisor.state.value,
        })
        return connected

    async def retry(self) -> bool:
        """Manual "try again" after the sensor was given up on."""
        return await self.supervisor.request_permissions()

    async def stop(self) -> None:
        """Stop the bridge and release the sensor."""
        self._stop_requested = True
        self.logger.status("Bridge stopping")

        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

        await self.supervisor.stop()

        self.logger.status("Bridge stopped", self.get_status())
        if self._owns_wallet and self.wallet:
            self.wallet.close()
        if self._owns_event_log:
            self.logger.close()

    def reset_steps(self) -> None:
        """Zero the persisted step counter and the reward checkpoint."""
        self.state = self.step_repo.reset()
        if self.rewards:
            self.rewards.reset(0)
        self.logger.status("Step counter reset")

    def get_status(self) -> dict:
        status = {
            "steps": self.state.steps,
            "distance_km": round(self.state.distance_km, 3),
            "calories_kcal": round(self.state.calories_kcal, 2),
            "goal_progress": round(goal_progress(self.state.steps, self.config.metrics.steps_goal), 1),
            "sensor": self.supervisor.get_status(),
            "detector": self.detector.get_status(),
        }
        if self.rewards:
            status["rewards"] = {
                "last_rewarded_steps": self.rewards.last_rewarded_steps,
                "granted": self.rewards.granted_count,
                "failed": self.rewards.failed_count,
            }
        if self.wallet:
            status["balance"] = self.wallet.balance
        return status

    @property
    def is_connected(self) -> bool:
        return self.supervisor.state is SensorState.CONNECTED

    def _on_sample(self, sample: AccelerationSample) -> None:
        """Handle one acceleration sample from the platform."""
        event = self.detector.process_sample(sample)
        if event:
            self._record_step(event)

    def _record_step(self, event: StepEvent) -> None:
        self.state = calculate_metrics(
            self.state.steps + 1,
            self.config.metrics.step_length_m,
            self.config.metrics.calories_per_step,
        )
        self.step_repo.save(self.state)

        self.logger.event("STEP", steps=self.state.steps, data={
            "smoothed": round(event.smoothed_magnitude, 3),
            "magnitude": round(event.raw_magnitude, 3),
        })

        if self.rewards:
            self.rewards.check(self.state.steps)

    async def _watchdog_loop(self) -> None:
        """Periodically verify the sensor still has permission."""
        while not self._stop_requested:
            await asyncio.sleep(self.config.sensor.watchdog_interval_sec)
            try:
                await self.supervisor.check_connection()
            except Exception as e:
                self.logger.error("Watchdog error", {"error": str(e), "type": type(e).__name__})

    async def _status_loop(self) -> None:
        """Periodic status reporting."""
        while not self._stop_requested:
            await asyncio.sleep(self.config.logging.status_interval_sec)
            self.logger.status("Bridge status", self.get_status())


async def run_bridge(
    config_path: str,
    replay_file: Optional[str] = None,
    reset: bool = False,
) -> None:
    """Run the bridge with the specified configuration."""
    from .config import load_config, validate_config

    config = load_config(config_path)
    if replay_file:
        config.sensor.source = "replay"
        config.sensor.replay_file = replay_file

    errors = validate_config(config)
    if errors:
        logger.error("Configuration validation failed:")
        for error in errors:
            logger.error(f"  - {error}")
        return

    bridge = StepBridge(config)
    if reset:
        bridge.reset_steps()

    try:
        connected = await bridge.start()
        if not connected and bridge.supervisor.manual_retry_available:
            logger.error(f"Sensor unavailable: {bridge.supervisor.last_error}")
            return

        if isinstance(bridge.platform, ReplayMotionPlatform):
            await bridge.platform.wait_finished()
        else:
            while True:
                await asyncio.sleep(1.0)
    finally:
        await bridge.stop()
        logger.info(f"Total steps: {bridge.state.steps}")
