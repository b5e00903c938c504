"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Dict, Optional


class _Unset:
    """Marker for a patch field the caller did not provide."""

    _instance: Optional["_Unset"] = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass(slots=True)
class ReadingPatch:
    """A partial update to a reading.

    Fields left as ``UNSET`` are not touched. ``notes`` may be set to ``None``
    to clear it, a ``None`` timestamp is ignored and a ``None`` level is
    rejected by the store.
    """

    level: Optional[float] = UNSET
    timestamp: Optional[datetime] = UNSET
    notes: Optional[str] = UNSET

    @classmethod
    def from_mapping(cls, values: Dict[str, Any]) -> "ReadingPatch":
        known = {field.name for field in fields(cls)}
        return cls(**{key: value for key, value in values.items() if key in known})

    @property
    def changes_level(self) -> bool:
        return self.level is not UNSET
