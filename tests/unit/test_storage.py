"""
Unit tests for the DuckDB storage backend.

Each test gets its own database file under tmp_path.
"""

import pytest

from trafficsim.models import ActorState, ScenarioType
from trafficsim.storage.base import HISTORY_RETENTION_LIMIT
from trafficsim.storage.duckdb_storage import DuckDBStorage, StorageError
from tests.conftest import make_history_row, make_record


# ============================================================================
# Actor state blob
# ============================================================================


class TestActorStateBlob:
    def test_read_absent_state_returns_none(self, duckdb_storage):
        assert duckdb_storage.read_actor_state("state") is None

    def test_state_roundtrip_is_exact(self, duckdb_storage):
        record = make_record(scenario=ScenarioType.DDOS)
        state = ActorState(current_simulation=record, last_metrics=record.metrics)

        duckdb_storage.write_actor_state("state", state.model_dump(mode="json"))
        restored = ActorState.model_validate(duckdb_storage.read_actor_state("state"))

        assert restored == state

    def test_write_replaces_previous_blob(self, duckdb_storage):
        duckdb_storage.write_actor_state("state", {"version": 1})
        duckdb_storage.write_actor_state("state", {"version": 2})

        assert duckdb_storage.read_actor_state("state") == {"version": 2}

    def test_state_survives_reopen(self, tmp_path):
        path = str(tmp_path / "reopen.duckdb")
        DuckDBStorage(db_path=path).write_actor_state("state", {"kept": True})

        assert DuckDBStorage(db_path=path).read_actor_state("state") == {"kept": True}

    def test_unserializable_payload_raises_storage_error(self, duckdb_storage):
        with pytest.raises(StorageError):
            duckdb_storage.write_actor_state("state", {"bad": object()})


# ============================================================================
# Simulation history
# ============================================================================


class TestSimulationHistory:
    def test_write_assigns_increasing_ids(self, duckdb_storage):
        first = duckdb_storage.write_history_row(make_history_row(1_000))
        second = duckdb_storage.write_history_row(make_history_row(2_000))
        assert second > first

    def test_recent_history_is_newest_first_and_bounded(self, duckdb_storage):
        for ts in (1_000, 3_000, 2_000, 4_000):
            duckdb_storage.write_history_row(make_history_row(ts))

        rows = duckdb_storage.read_recent_history(limit=3)

        assert [row.timestamp for row in rows] == [4_000, 3_000, 2_000]
        assert all(row.id is not None for row in rows)

    def test_recent_history_preserves_row_fields(self, duckdb_storage):
        original = make_history_row(5_000, simulation_id="sim-fields")
        duckdb_storage.write_history_row(original)

        (stored,) = duckdb_storage.read_recent_history(limit=1)

        assert stored.model_dump(exclude={"id"}) == original.model_dump(exclude={"id"})
        assert stored.scenario == ScenarioType.SPIKE

    def test_retention_keeps_newest_rows(self, duckdb_storage):
        total = HISTORY_RETENTION_LIMIT + 10
        for ts in range(1, total + 1):
            duckdb_storage.write_history_row(make_history_row(ts))
            duckdb_storage.prune_history(HISTORY_RETENTION_LIMIT)

        assert duckdb_storage.count_history() == HISTORY_RETENTION_LIMIT
        remaining = duckdb_storage.read_recent_history(limit=total)
        timestamps = sorted(row.timestamp for row in remaining)
        assert timestamps == list(range(11, total + 1))

    def test_prune_reports_deleted_count(self, duckdb_storage):
        for ts in range(1, 8):
            duckdb_storage.write_history_row(make_history_row(ts))

        assert duckdb_storage.prune_history(keep=5) == 2
        assert duckdb_storage.prune_history(keep=5) == 0
        assert duckdb_storage.count_history() == 5

    def test_scenario_check_constraint(self, duckdb_storage):
        with duckdb_storage._get_connection() as conn:
            with pytest.raises(Exception):
                conn.execute(
                    """
                    INSERT INTO simulation_metrics (
                        simulation_id, timestamp, scenario,
                        protected_latency_ms, protected_success_rate,
                        protected_requests_handled, protected_errors,
                        unprotected_latency_ms, unprotected_success_rate,
                        unprotected_requests_handled, unprotected_errors
                    ) VALUES ('sim-x', 1, 'flood', 1, 1.0, 1, 0, 1, 1.0, 1, 0)
                    """
                )

    def test_schema_initialization_is_idempotent(self, tmp_path):
        path = str(tmp_path / "twice.duckdb")
        DuckDBStorage(db_path=path).write_history_row(make_history_row(1))

        again = DuckDBStorage(db_path=path)

        assert again.count_history() == 1
