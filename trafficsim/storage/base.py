"""
Abstract storage interface for the traffic simulator.

Two concerns live behind one backend:
- Actor state: a single opaque JSON blob under a fixed key, owned by the
  simulation actor and rewritten after every successful simulation
- Simulation history: append-only flattened rows with a retention cap,
  owned by the request layer
"""

from abc import ABC, abstractmethod
from typing import Optional

from trafficsim.models import HistoryRow

HISTORY_RETENTION_LIMIT = 500


class StorageBackend(ABC):
    """
    Abstract base class for all storage implementations.

    Implementations must raise StorageError on any failed operation and must
    never return partially written state.
    """

    # =========================================================================
    # Actor State
    # =========================================================================

    @abstractmethod
    def read_actor_state(self, key: str) -> Optional[dict]:
        """
        Read the persisted actor state blob.

        Args:
            key: Fixed state identifier

        Returns:
            Decoded state payload, or None if nothing was ever written

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    def write_actor_state(self, key: str, payload: dict) -> None:
        """
        Replace the persisted actor state blob.

        Args:
            key: Fixed state identifier
            payload: JSON-serializable state payload

        Raises:
            StorageError: If the write fails
        """
        pass

    # =========================================================================
    # Simulation History
    # =========================================================================

    @abstractmethod
    def write_history_row(self, row: HistoryRow) -> int:
        """
        Append a history row.

        Returns:
            Store-assigned row id

        Raises:
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    def read_recent_history(self, limit: int = 5) -> list[HistoryRow]:
        """
        Read the most recent history rows, newest first.

        Raises:
            StorageError: If the query fails
        """
        pass

    @abstractmethod
    def prune_history(self, keep: int = HISTORY_RETENTION_LIMIT) -> int:
        """
        Delete the oldest history rows beyond ``keep``.

        Returns:
            Number of rows deleted

        Raises:
            StorageError: If the delete fails
        """
        pass

    @abstractmethod
    def count_history(self) -> int:
        """Return the number of stored history rows."""
        pass
