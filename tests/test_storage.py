"""Tests for durable counter and session state."""

import json

import pytest

from step_bridge.metrics import calculate_metrics
from step_bridge.storage import (
    AccelerometerSessionState,
    JsonFileStore,
    MemoryStore,
    SessionStateRepository,
    StepStateRepository,
)


class TestStepStateRepository:
    """Test suite for the step counter record."""

    def setup_method(self):
        self.store = MemoryStore()
        self.repo = StepStateRepository(self.store)

    def test_cold_start_defaults(self):
        state = self.repo.load()
        assert state.steps == 0
        assert state.distance_km == 0.0
        assert state.calories_kcal == 0.0

    def test_save_and_load(self):
        self.repo.save(calculate_metrics(1234))
        assert self.repo.load() == calculate_metrics(1234)

    def test_stored_format(self):
        self.repo.save(calculate_metrics(1000))
        data = json.loads(self.store.get("stepCounter"))
        assert data["steps"] == 1000
        assert data["distance"] == pytest.approx(0.762)
        assert data["calories"] == pytest.approx(40.0)

    def test_derived_fields_recomputed(self):
        self.store.set("stepCounter", json.dumps({"steps": 1000, "distance": 99, "calories": 99}))
        state = self.repo.load()
        assert state.distance_km == pytest.approx(0.762)
        assert state.calories_kcal == pytest.approx(40.0)

    @pytest.mark.parametrize("raw", [
        "not json",
        "[1, 2, 3]",
        json.dumps({"steps": -5}),
        json.dumps({"steps": "many"}),
        json.dumps({"steps": True}),
        '{"steps": NaN}',
        '{"steps": Infinity}',
        '{"steps": 1e999}',
    ])
    def test_bad_data_falls_back_to_defaults(self, raw):
        self.store.set("stepCounter", raw)
        assert self.repo.load().steps == 0

    def test_reset(self):
        self.repo.save(calculate_metrics(50))
        assert self.repo.reset().steps == 0
        assert self.repo.load().steps == 0


class TestSessionStateRepository:
    """Test suite for the accelerometer session record."""

    def setup_method(self):
        self.store = MemoryStore()
        self.repo = SessionStateRepository(self.store)

    def test_cold_start_defaults(self):
        assert self.repo.load() == AccelerometerSessionState(False, False, 0)

    def test_save_and_load(self):
        state = AccelerometerSessionState(True, True, 1_700_000_000_000)
        self.repo.save(state)
        assert self.repo.load() == state

    def test_stored_keys(self):
        self.repo.save(AccelerometerSessionState(True, False, 42))
        assert json.loads(self.store.get("accelerometerState")) == {
            "isInitialized": True,
            "hasPermission": False,
            "lastInitTime": 42,
        }

    @pytest.mark.parametrize("raw", [
        json.dumps({"lastInitTime": "yesterday"}),
        '{"isInitialized": true, "lastInitTime": 1e999}',
        '{"lastInitTime": NaN}',
    ])
    def test_bad_data_falls_back_to_defaults(self, raw):
        self.store.set("accelerometerState", raw)
        assert self.repo.load() == AccelerometerSessionState()


class TestJsonFileStore:
    """Test suite for the file-backed store."""

    def test_missing_key(self, tmp_path):
        assert JsonFileStore(str(tmp_path)).get("stepCounter") is None

    def test_persists_across_instances(self, tmp_path):
        StepStateRepository(JsonFileStore(str(tmp_path))).save(calculate_metrics(77))

        reopened = StepStateRepository(JsonFileStore(str(tmp_path)))
        assert reopened.load().steps == 77
        assert (tmp_path / "stepCounter.json").exists()

    def test_undecodable_file_falls_back_to_defaults(self, tmp_path):
        (tmp_path / "stepCounter.json").write_bytes(b'\xff\xfe{"steps": 3}')
        (tmp_path / "accelerometerState.json").write_bytes(b"\xff\xff")
        store = JsonFileStore(str(tmp_path))

        assert StepStateRepository(store).load().steps == 0
        assert SessionStateRepository(store).load() == AccelerometerSessionState()

    def test_delete(self, tmp_path):
        store = JsonFileStore(str(tmp_path))
        store.set("k", "{}")
        store.delete("k")
        assert store.get("k") is None

    def test_rejects_path_like_keys(self, tmp_path):
        with pytest.raises(ValueError):
            JsonFileStore(str(tmp_path)).set("../escape", "{}")
