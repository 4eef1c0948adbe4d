"""In-process key-value store."""

import copy
import threading
from collections import defaultdict
from typing import Any, Dict

from ..exceptions import NotFoundError
from .api import DbApi


class MemoryDbDriver(DbApi):
    """Thread-safe dictionary store. Values are copied in and out."""

    def __init__(self) -> None:
        self._tables: Dict[str, Dict[str, Any]] = defaultdict(dict)
        self._lock = threading.Lock()

    def create_key(self, table: str, key: str, value: Any) -> None:
        with self._lock:
            self._tables[table][key] = copy.deepcopy(value)

    def get_key(self, table: str, key: str) -> Any:
        with self._lock:
            try:
                return copy.deepcopy(self._tables[table][key])
            except KeyError:
                raise NotFoundError(table, key) from None

    def set_key(self, table: str, key: str, value: Any) -> None:
        with self._lock:
            self._tables[table][key] = copy.deepcopy(value)

    def delete_key(self, table: str, key: str) -> None:
        with self._lock:
            self._tables[table].pop(key, None)

    def get_all_entries(self, table: str) -> Dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._tables.get(table, {}))
