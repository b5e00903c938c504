"""Storage for water level readings and their alert flags."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Iterable, Optional, Tuple
from uuid import uuid4

from app.schemas import NOTES_MAX_LENGTH, Reading
from datastore.mock_dynamodb import MockDynamoDBTable
from models.records import UNSET, ReadingPatch
from services.errors import NotFoundError, ValidationError
from services.threshold_store import ThresholdStore

logger = logging.getLogger(__name__)


def is_alert_level(level: float, threshold: float) -> bool:
    """Strictly above the threshold; equal is not an alert."""
    return level > threshold


def _validate_level(level: Optional[float]) -> float:
    if level is None:
        raise ValidationError("Water level is required")
    if not math.isfinite(level):
        raise ValidationError("Water level must be a finite number")
    if level < 0:
        raise ValidationError("Water level cannot be negative")
    return float(level)


def _validate_notes(notes: Optional[str]) -> Optional[str]:
    if notes is not None and len(notes) > NOTES_MAX_LENGTH:
        raise ValidationError(f"Notes cannot exceed {NOTES_MAX_LENGTH} characters")
    return notes


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _newest_first(readings: Iterable[Reading]) -> list[Reading]:
    return sorted(
        readings,
        key=lambda reading: (reading.timestamp, reading.created_at),
        reverse=True,
    )


class ReadingStore:
    """CRUD over readings; stamps ``is_alert`` from the current threshold."""

    def __init__(self, table: MockDynamoDBTable[Reading], thresholds: ThresholdStore) -> None:
        self.table = table
        self.thresholds = thresholds

    def create(
        self,
        level: Optional[float],
        timestamp: Optional[datetime],
        actor_id: Optional[str],
        notes: Optional[str] = None,
    ) -> Reading:
        checked_level = _validate_level(level)
        checked_notes = _validate_notes(notes)
        if not actor_id:
            raise ValidationError("Recording actor is required")

        threshold = self.thresholds.get_or_create()
        now = datetime.now(timezone.utc)
        reading = Reading(
            id=str(uuid4()),
            level=checked_level,
            timestamp=_as_utc(timestamp) if timestamp else now,
            recorded_by=actor_id,
            notes=checked_notes,
            is_alert=is_alert_level(checked_level, threshold.value),
            created_at=now,
            updated_at=now,
        )
        self.table.put_item(reading)
        logger.info(
            "Recorded water level",
            extra={
                "reading_id": reading.id,
                "actor_id": actor_id,
                "level": reading.level,
                "threshold": threshold.value,
                "is_alert": reading.is_alert,
            },
        )
        settled = self._settle(reading.id, threshold.version)
        return settled or reading

    def get(self, reading_id: str) -> Reading:
        reading = self.table.get_item(reading_id)
        if reading is None:
            raise NotFoundError(reading_id)
        return reading

    def update(self, reading_id: str, patch: ReadingPatch) -> Reading:
        self.get(reading_id)

        new_level = _validate_level(patch.level) if patch.changes_level else None
        if patch.notes is not UNSET:
            _validate_notes(patch.notes)

        threshold = self.thresholds.get_or_create() if patch.changes_level else None

        def _apply(current: Reading) -> Reading:
            changes: dict = {"updated_at": datetime.now(timezone.utc)}
            if new_level is not None and threshold is not None:
                changes["level"] = new_level
                changes["is_alert"] = is_alert_level(new_level, threshold.value)
            if patch.timestamp is not UNSET and patch.timestamp is not None:
                changes["timestamp"] = _as_utc(patch.timestamp)
            if patch.notes is not UNSET:
                changes["notes"] = patch.notes
            return current.model_copy(update=changes)

        stored = self.table.update_item(reading_id, _apply)
        if stored is None:
            raise NotFoundError(reading_id)
        logger.info(
            "Updated water level",
            extra={
                "reading_id": reading_id,
                "level": stored.level,
                "is_alert": stored.is_alert,
            },
        )
        if threshold is not None:
            stored = self._settle(reading_id, threshold.version) or stored
        return stored

    def delete(self, reading_id: str) -> None:
        if not self.table.delete_item(reading_id):
            raise NotFoundError(reading_id)
        logger.info("Deleted water level", extra={"reading_id": reading_id})

    def list_all(self) -> list[Reading]:
        return _newest_first(self.table.scan())

    def list_alerts(self) -> list[Reading]:
        return _newest_first(reading for reading in self.table.scan() if reading.is_alert)

    def restamp(self, reading_id: str, threshold: float) -> Tuple[Optional[Reading], bool]:
        """Compare-and-write the alert flag of one reading.

        The flag is evaluated against the level stored at write time, and the
        record is only written when the flag actually flips. Returns the
        stored reading (``None`` if it was deleted) and whether it changed.
        """

        changed = False

        def _flip(current: Reading) -> Optional[Reading]:
            nonlocal changed
            expected = is_alert_level(current.level, threshold)
            if expected == current.is_alert:
                return None
            changed = True
            return current.model_copy(
                update={"is_alert": expected, "updated_at": datetime.now(timezone.utc)}
            )

        stored = self.table.update_item(reading_id, _flip)
        return stored, changed

    def _settle(self, reading_id: str, seen_version: int) -> Optional[Reading]:
        # A threshold change may have landed between reading the threshold and
        # writing the reading; keep restamping until the version holds still.
        stored = self.table.get_item(reading_id)
        while stored is not None:
            current = self.thresholds.get_or_create()
            if current.version == seen_version:
                return stored
            stored, _ = self.restamp(reading_id, current.value)
            seen_version = current.version
        return None
