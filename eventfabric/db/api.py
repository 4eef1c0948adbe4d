"""Shared key-value store contract.

The aggregator and the table monitors only need these operations. Values are
JSON-serializable objects; each driver decides how to persist them.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict


class DbApi(ABC):
    """Key-value store contract. Each operation is individually atomic."""

    @abstractmethod
    def create_key(self, table: str, key: str, value: Any) -> None:
        """Create (or overwrite) a row."""

    @abstractmethod
    def get_key(self, table: str, key: str) -> Any:
        """Read a row.

        Raises:
            NotFoundError: If the row does not exist.
        """

    @abstractmethod
    def set_key(self, table: str, key: str, value: Any) -> None:
        """Write a row."""

    @abstractmethod
    def delete_key(self, table: str, key: str) -> None:
        """Delete a row. Deleting a missing row is a no-op."""

    @abstractmethod
    def get_all_entries(self, table: str) -> Dict[str, Any]:
        """Return every row of a table as a key to value mapping."""

    def close(self) -> None:
        """Release store resources."""
