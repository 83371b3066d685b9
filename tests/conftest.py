"""
Pytest configuration and shared fixtures for the traffic simulator test suite.

Provides model factories, an in-memory storage double with failure switches,
scripted text generators, and application clients bound to a temporary
DuckDB file.
"""

import asyncio
import os
import tempfile
import uuid as _uuid
from typing import Optional

import numpy as np
import pytest
from fastapi.testclient import TestClient

# Set testing environment BEFORE importing the app
_test_db_path = os.path.join(
    tempfile.gettempdir(), f"trafficsim_test_{_uuid.uuid4().hex[:8]}.duckdb"
)
os.environ["TESTING"] = "true"
os.environ["DB_PATH"] = _test_db_path
os.environ["INFERENCE_BASE_URL"] = ""


from trafficsim.connectors.inference_client import InferenceError, TextGenerator
from trafficsim.engine.actor import SimulationActor
from trafficsim.engine.explainer import ExplanationProvider
from trafficsim.engine.metric_generator import MetricGenerator
from trafficsim.models import (
    HistoryRow,
    MetricPair,
    MetricSnapshot,
    ScenarioType,
    SimulationRecord,
)
from trafficsim.storage.base import HISTORY_RETENTION_LIMIT
from trafficsim.storage.duckdb_storage import DuckDBStorage, StorageError


# ---------------------------------------------------------------------------
# Model factories
# ---------------------------------------------------------------------------


def make_snapshot(
    latency_ms: int = 100,
    success_rate_percent: float = 100.0,
    requests_handled: int = 10,
    error_count: int = 0,
) -> MetricSnapshot:
    """Factory function for creating test MetricSnapshot objects."""
    return MetricSnapshot(
        latency_ms=latency_ms,
        success_rate_percent=success_rate_percent,
        requests_handled=requests_handled,
        error_count=error_count,
    )


def make_metric_pair(**unprotected_overrides) -> MetricPair:
    """Factory function for a MetricPair with a degraded unprotected side."""
    defaults = dict(
        latency_ms=2500,
        success_rate_percent=50.0,
        requests_handled=300,
        error_count=200,
    )
    defaults.update(unprotected_overrides)
    return MetricPair(
        protected=make_snapshot(latency_ms=130, success_rate_percent=99.1, requests_handled=500, error_count=3),
        unprotected=make_snapshot(**defaults),
    )


def make_record(
    simulation_id: str = "sim-test",
    scenario: ScenarioType = ScenarioType.SPIKE,
    started_at_ms: int = 1_700_000_000_000,
    explanation: str = "Test explanation.",
) -> SimulationRecord:
    """Factory function for creating test SimulationRecord objects."""
    return SimulationRecord(
        id=simulation_id,
        scenario=scenario,
        started_at_ms=started_at_ms,
        metrics=make_metric_pair(),
        explanation=explanation,
    )


def make_history_row(timestamp: int, simulation_id: Optional[str] = None) -> HistoryRow:
    """Factory function for creating test HistoryRow objects."""
    record = make_record(
        simulation_id=simulation_id or f"sim-{timestamp}",
        started_at_ms=timestamp,
    )
    return HistoryRow.from_record(record)


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class MockStorage:
    """
    In-memory stand-in for StorageBackend.

    Failure switches make the next matching operation raise StorageError.
    """

    def __init__(self):
        self.states: dict[str, dict] = {}
        self.rows: list[HistoryRow] = []
        self.state_writes = 0
        self.fail_state_reads = False
        self.fail_state_writes = False
        self.fail_history_writes = False
        self.fail_prune = False
        self._next_id = 1

    def read_actor_state(self, key):
        if self.fail_state_reads:
            raise StorageError("state read failed")
        return self.states.get(key)

    def write_actor_state(self, key, payload):
        if self.fail_state_writes:
            raise StorageError("state write failed")
        self.states[key] = payload
        self.state_writes += 1

    def write_history_row(self, row):
        if self.fail_history_writes:
            raise StorageError("history write failed")
        stored = row.model_copy(update={"id": self._next_id})
        self._next_id += 1
        self.rows.append(stored)
        return stored.id

    def read_recent_history(self, limit=5):
        ordered = sorted(self.rows, key=lambda r: (r.timestamp, r.id), reverse=True)
        return ordered[:limit]

    def prune_history(self, keep=HISTORY_RETENTION_LIMIT):
        if self.fail_prune:
            raise StorageError("prune failed")
        kept = self.read_recent_history(limit=keep)
        deleted = len(self.rows) - len(kept)
        self.rows = kept
        return deleted

    def count_history(self):
        return len(self.rows)


class StaticTextGenerator(TextGenerator):
    """Returns a fixed completion and records every prompt."""

    def __init__(self, text: str = "Generated explanation."):
        self.text = text
        self.prompts: list[str] = []

    async def generate(self, prompt):
        self.prompts.append(prompt)
        return self.text


class FailingTextGenerator(TextGenerator):
    """Raises the configured exception on every call."""

    def __init__(self, error: Exception = None):
        self.error = error or InferenceError("endpoint down")
        self.calls = 0

    async def generate(self, prompt):
        self.calls += 1
        raise self.error


class HangingTextGenerator(TextGenerator):
    """Never answers; records whether the pending call was cancelled."""

    def __init__(self):
        self.started = 0
        self.cancelled = 0

    async def generate(self, prompt):
        self.started += 1
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        return "unreachable"


class ManualClock:
    """Controllable epoch-ms clock for actor tests."""

    def __init__(self, now_ms: int = 1_700_000_000_000):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_storage():
    """Fresh MockStorage instance for each test."""
    return MockStorage()


@pytest.fixture
def duckdb_storage(tmp_path):
    """DuckDB storage backed by a per-test database file."""
    return DuckDBStorage(db_path=str(tmp_path / "trafficsim.duckdb"))


@pytest.fixture
def metric_generator():
    """Seeded metric generator for reproducible draws."""
    return MetricGenerator(rng=np.random.default_rng(1234))


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def actor(mock_storage, metric_generator, clock):
    """Simulation actor over MockStorage with fallback explanations."""
    return SimulationActor(
        storage=mock_storage,
        generator=metric_generator,
        explainer=ExplanationProvider(generator=None),
        clock=clock,
    )


@pytest.fixture
def client(duckdb_storage, metric_generator):
    """FastAPI test client over a temporary DuckDB file."""
    from trafficsim.main import create_app

    app = create_app(storage=duckdb_storage, metric_generator=metric_generator)
    with TestClient(app) as c:
        yield c
