"""Entry points for threshold and reading operations."""

from __future__ import annotations

from datetime import datetime
from functools import lru_cache
from typing import Optional

from app.schemas import Reading, Threshold
from datastore.mock_dynamodb import MockDynamoDBTable, build_default_table, build_settings_table
from models.records import ReadingPatch
from services.reading_store import ReadingStore
from services.reconciler import AlertReconciler, ReconciliationReport
from services.threshold_store import ThresholdStore
from settings import get_settings


class MonitorService:
    """Coordinates the threshold store, reading store and reconciler.

    Callers are assumed to be authenticated and authorized already; the actor
    id is recorded as given.
    """

    def __init__(
        self,
        readings_table: MockDynamoDBTable[Reading],
        settings_table: MockDynamoDBTable[Threshold],
        default_threshold: Optional[float] = None,
    ) -> None:
        if default_threshold is None:
            self.thresholds = ThresholdStore(settings_table)
        else:
            self.thresholds = ThresholdStore(settings_table, default_value=default_threshold)
        self.readings = ReadingStore(readings_table, self.thresholds)
        self.reconciler = AlertReconciler(self.thresholds, self.readings)

    def initialize(self) -> Threshold:
        """Create the threshold singleton up front, before requests arrive."""
        return self.thresholds.get_or_create()

    def get_threshold(self) -> Threshold:
        return self.thresholds.get_or_create()

    def set_threshold(self, value: Optional[float], actor_id: Optional[str]) -> ReconciliationReport:
        return self.reconciler.set_threshold(value, actor_id)

    def reconcile(self) -> ReconciliationReport:
        return self.reconciler.reconcile()

    def record_reading(
        self,
        level: Optional[float],
        actor_id: Optional[str],
        timestamp: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> Reading:
        return self.readings.create(level, timestamp, actor_id, notes)

    def update_reading(self, reading_id: str, patch: ReadingPatch) -> Reading:
        return self.readings.update(reading_id, patch)

    def delete_reading(self, reading_id: str) -> None:
        self.readings.delete(reading_id)

    def list_readings(self) -> list[Reading]:
        return self.readings.list_all()

    def list_alert_readings(self) -> list[Reading]:
        return self.readings.list_alerts()


@lru_cache
def build_default_service() -> MonitorService:
    """Factory that wires the service with the default tables."""
    settings = get_settings()
    return MonitorService(
        readings_table=build_default_table(),
        settings_table=build_settings_table(),
        default_threshold=settings.default_threshold,
    )
