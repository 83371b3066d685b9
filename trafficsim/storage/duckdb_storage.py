"""
DuckDB storage implementation for the traffic simulator.

Key features:
- Thread-local connections to a single database file
- Idempotent schema creation on first access
- Actor state stored as a JSON blob keyed by a fixed identifier
- Simulation history with a sequence-backed id and oldest-first pruning
"""

import json
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import duckdb
import structlog

from trafficsim.models import HistoryRow, ScenarioType

from .base import HISTORY_RETENTION_LIMIT, StorageBackend

logger = structlog.get_logger(__name__)

_HISTORY_COLUMNS = (
    "id",
    "simulation_id",
    "timestamp",
    "scenario",
    "protected_latency_ms",
    "protected_success_rate",
    "protected_requests_handled",
    "protected_errors",
    "unprotected_latency_ms",
    "unprotected_success_rate",
    "unprotected_requests_handled",
    "unprotected_errors",
    "explanation",
)


class StorageError(Exception):
    """Base exception for all storage operation failures."""

    pass


class DuckDBStorage(StorageBackend):
    """
    DuckDB implementation of the storage backend.

    Attributes:
        db_path: Path to the DuckDB database file
        _local: Thread-local storage for per-thread connections
        _lock: Thread lock for schema operations
        _initialized: Flag tracking whether schema is initialized
    """

    def __init__(self, db_path: str = "./data/trafficsim.duckdb"):
        """
        Initialize DuckDB storage backend.

        Args:
            db_path: Path to DuckDB database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._local = threading.local()
        self._lock = threading.Lock()
        self._initialized = False

        logger.info("duckdb_storage_initialized", db_path=str(self.db_path))

        self._initialize_schema()

    @contextmanager
    def _get_connection(self):
        """
        Get a thread-local DuckDB connection.

        Yields:
            DuckDB connection instance

        Raises:
            StorageError: If connection cannot be established
        """
        if not hasattr(self._local, "connection"):
            try:
                self._local.connection = duckdb.connect(str(self.db_path))
                logger.debug("duckdb_connection_created", thread_id=threading.get_ident())
            except Exception as e:
                logger.error("duckdb_connection_failed", error=str(e))
                raise StorageError(f"Failed to connect to DuckDB: {e}") from e

        yield self._local.connection

    def _initialize_schema(self) -> None:
        """
        Create tables, sequence and indexes. Idempotent.

        Raises:
            StorageError: If schema creation fails
        """
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return

            scenarios = ", ".join(f"'{value}'" for value in ScenarioType.values())

            try:
                with self._get_connection() as conn:
                    conn.execute("""
                        CREATE TABLE IF NOT EXISTS actor_state (
                            state_key VARCHAR PRIMARY KEY,
                            payload JSON NOT NULL,
                            updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
                        )
                    """)

                    conn.execute("CREATE SEQUENCE IF NOT EXISTS simulation_metrics_id_seq")

                    conn.execute(f"""
                        CREATE TABLE IF NOT EXISTS simulation_metrics (
                            id BIGINT PRIMARY KEY DEFAULT nextval('simulation_metrics_id_seq'),
                            simulation_id VARCHAR NOT NULL,
                            timestamp BIGINT NOT NULL,
                            scenario VARCHAR NOT NULL CHECK (scenario IN ({scenarios})),
                            protected_latency_ms INTEGER NOT NULL,
                            protected_success_rate DOUBLE NOT NULL,
                            protected_requests_handled INTEGER NOT NULL,
                            protected_errors INTEGER NOT NULL DEFAULT 0,
                            unprotected_latency_ms INTEGER NOT NULL,
                            unprotected_success_rate DOUBLE NOT NULL,
                            unprotected_requests_handled INTEGER NOT NULL,
                            unprotected_errors INTEGER NOT NULL DEFAULT 0,
                            explanation VARCHAR,
                            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
                        )
                    """)

                    conn.execute("""
                        CREATE INDEX IF NOT EXISTS idx_simulation_metrics_simulation_id
                        ON simulation_metrics(simulation_id)
                    """)

                    conn.execute("""
                        CREATE INDEX IF NOT EXISTS idx_simulation_metrics_timestamp
                        ON simulation_metrics(timestamp)
                    """)

                    conn.execute("""
                        CREATE INDEX IF NOT EXISTS idx_simulation_metrics_scenario_timestamp
                        ON simulation_metrics(scenario, timestamp)
                    """)

                    self._initialized = True
                    logger.info("duckdb_schema_initialized")

            except StorageError:
                raise
            except Exception as e:
                logger.error("duckdb_schema_initialization_failed", error=str(e))
                raise StorageError(f"Failed to initialize schema: {e}") from e

    # =========================================================================
    # Actor State Implementation
    # =========================================================================

    def read_actor_state(self, key: str) -> Optional[dict]:
        """Read the actor state blob stored under key."""
        try:
            with self._get_connection() as conn:
                result = conn.execute(
                    "SELECT payload FROM actor_state WHERE state_key = ? LIMIT 1",
                    [key],
                ).fetchone()

            if not result:
                logger.debug("actor_state_absent", key=key)
                return None

            return json.loads(result[0])

        except StorageError:
            raise
        except Exception as e:
            logger.error("read_actor_state_failed", key=key, error=str(e))
            raise StorageError(f"Failed to read actor state: {e}") from e

    def write_actor_state(self, key: str, payload: dict) -> None:
        """Replace the actor state blob stored under key."""
        try:
            with self._get_connection() as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO actor_state (state_key, payload, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    """,
                    [key, json.dumps(payload)],
                )
            logger.debug("actor_state_written", key=key)

        except StorageError:
            raise
        except Exception as e:
            logger.error("write_actor_state_failed", key=key, error=str(e))
            raise StorageError(f"Failed to write actor state: {e}") from e

    # =========================================================================
    # Simulation History Implementation
    # =========================================================================

    def write_history_row(self, row: HistoryRow) -> int:
        """Append a flattened simulation row and return its id."""
        try:
            with self._get_connection() as conn:
                result = conn.execute(
                    """
                    INSERT INTO simulation_metrics (
                        simulation_id, timestamp, scenario,
                        protected_latency_ms, protected_success_rate,
                        protected_requests_handled, protected_errors,
                        unprotected_latency_ms, unprotected_success_rate,
                        unprotected_requests_handled, unprotected_errors,
                        explanation
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    RETURNING id
                    """,
                    [
                        row.simulation_id,
                        row.timestamp,
                        row.scenario.value,
                        row.protected_latency_ms,
                        row.protected_success_rate,
                        row.protected_requests_handled,
                        row.protected_errors,
                        row.unprotected_latency_ms,
                        row.unprotected_success_rate,
                        row.unprotected_requests_handled,
                        row.unprotected_errors,
                        row.explanation,
                    ],
                ).fetchone()

            row_id = int(result[0])
            logger.info(
                "history_row_written",
                row_id=row_id,
                simulation_id=row.simulation_id,
                scenario=row.scenario.value,
            )
            return row_id

        except StorageError:
            raise
        except Exception as e:
            logger.error(
                "write_history_row_failed",
                simulation_id=row.simulation_id,
                error=str(e),
            )
            raise StorageError(f"Failed to write history row: {e}") from e

    def read_recent_history(self, limit: int = 5) -> list[HistoryRow]:
        """Read the newest history rows first."""
        try:
            with self._get_connection() as conn:
                results = conn.execute(
                    f"""
                    SELECT {", ".join(_HISTORY_COLUMNS)}
                    FROM simulation_metrics
                    ORDER BY timestamp DESC, id DESC
                    LIMIT ?
                    """,
                    [limit],
                ).fetchall()

            rows = [HistoryRow(**dict(zip(_HISTORY_COLUMNS, record))) for record in results]
            logger.debug("history_read", count=len(rows), limit=limit)
            return rows

        except StorageError:
            raise
        except Exception as e:
            logger.error("read_recent_history_failed", error=str(e))
            raise StorageError(f"Failed to read history: {e}") from e

    def prune_history(self, keep: int = HISTORY_RETENTION_LIMIT) -> int:
        """Delete every row older than the newest ``keep`` rows."""
        try:
            with self._get_connection() as conn:
                result = conn.execute(
                    """
                    DELETE FROM simulation_metrics
                    WHERE id NOT IN (
                        SELECT id FROM simulation_metrics
                        ORDER BY timestamp DESC, id DESC
                        LIMIT ?
                    )
                    RETURNING id
                    """,
                    [keep],
                ).fetchall()

            deleted = len(result)
            if deleted:
                logger.info("history_pruned", deleted=deleted, keep=keep)
            return deleted

        except StorageError:
            raise
        except Exception as e:
            logger.error("prune_history_failed", keep=keep, error=str(e))
            raise StorageError(f"Failed to prune history: {e}") from e

    def count_history(self) -> int:
        try:
            with self._get_connection() as conn:
                result = conn.execute("SELECT COUNT(*) FROM simulation_metrics").fetchone()
            return int(result[0])
        except StorageError:
            raise
        except Exception as e:
            logger.error("count_history_failed", error=str(e))
            raise StorageError(f"Failed to count history: {e}") from e
