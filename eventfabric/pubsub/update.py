"""Update data structure."""

import functools
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .. import constants


@functools.total_ordering
@dataclass(eq=False)
class Update:
    """A single mutation or control event.

    Updates order by priority (lower first), then timestamp, then key.
    Equality uses the same three fields, so two updates that differ only in
    table, action, value or topic are equivalent for ordering.
    """

    table: Optional[str]
    key: Optional[str]
    action: str
    value: Any = None
    topic: Optional[str] = None
    priority: int = constants.PRIORITY_DEFAULT
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        if self.action not in constants.ALL_ACTIONS:
            raise ValueError(f"Unknown action: {self.action!r}")

    def sort_key(self) -> Tuple[int, float, str]:
        return (self.priority, self.timestamp, self.key or "")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Update):
            return NotImplemented
        return self.sort_key() == other.sort_key()

    def __lt__(self, other: "Update") -> bool:
        if not isinstance(other, Update):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    @property
    def is_control(self) -> bool:
        return self.action in constants.CONTROL_ACTIONS

    def to_dict(self) -> Dict[str, Any]:
        """Convert update to the wire field map."""
        return {
            "table": self.table,
            "key": self.key,
            "action": self.action,
            "value": self.value,
            "topic": self.topic,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Update":
        """Create update from a wire field map."""
        return cls(
            table=data.get("table"),
            key=data.get("key"),
            action=data["action"],
            value=data.get("value"),
            topic=data.get("topic"),
        )

    @classmethod
    def sync(cls) -> "Update":
        """The resynchronization hint."""
        return cls(table=None, key=None, action=constants.ACTION_SYNC)

    def __str__(self) -> str:
        return (
            f"Update(action={self.action}, table={self.table}, key={self.key}, "
            f"topic={self.topic}, priority={self.priority})"
        )
