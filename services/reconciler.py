"""Alert flag reconciliation against the critical threshold."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from threading import Lock
from typing import List, Optional

from app.schemas import Threshold
from services.errors import ReconciliationFailure, StorageError
from services.reading_store import ReadingStore
from services.threshold_store import ThresholdStore

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationReport:
    """Outcome of one pass over the reading collection."""

    threshold: Threshold
    visited: int = 0
    changed_ids: List[str] = field(default_factory=list)
    failed_ids: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed_ids


class AlertReconciler:
    """Keeps every reading's ``is_alert`` in line with the stored threshold.

    Threshold updates and reconciliation passes run one at a time so the last
    threshold written is the one the readings end up reconciled against.
    """

    def __init__(self, thresholds: ThresholdStore, readings: ReadingStore) -> None:
        self.thresholds = thresholds
        self.readings = readings
        self._writer_lock = Lock()

    def set_threshold(self, value: Optional[float], actor_id: Optional[str]) -> ReconciliationReport:
        with self._writer_lock:
            threshold = self.thresholds.set(value, actor_id)
            report = self._reconcile(threshold)
        self._raise_if_incomplete(report)
        return report

    def reconcile(self) -> ReconciliationReport:
        """Re-run the pass against the stored threshold. Safe to repeat."""
        with self._writer_lock:
            report = self._reconcile(self.thresholds.get_or_create())
        self._raise_if_incomplete(report)
        return report

    def _reconcile(self, threshold: Threshold) -> ReconciliationReport:
        report = ReconciliationReport(threshold=threshold)
        try:
            with self.readings.table.batch_writer():
                self._restamp_all(threshold, report)
        except StorageError as exc:
            # The batch was rolled back, so every flag flipped in this pass is stale again.
            logger.warning(
                "Failed to persist reconciled flags",
                extra={"threshold": threshold.value, "changed": len(report.changed_ids), "reason": str(exc)},
            )
            report.failed_ids.extend(report.changed_ids)
            report.changed_ids = []

        logger.info(
            "Reconciled alert flags",
            extra={
                "threshold": threshold.value,
                "version": threshold.version,
                "visited": report.visited,
                "changed": len(report.changed_ids),
                "failed": len(report.failed_ids),
            },
        )
        return report

    def _restamp_all(self, threshold: Threshold, report: ReconciliationReport) -> None:
        for reading in self.readings.table.scan():
            report.visited += 1
            try:
                _, changed = self.readings.restamp(reading.id, threshold.value)
            except StorageError as exc:
                report.failed_ids.append(reading.id)
                logger.warning(
                    "Failed to reconcile reading",
                    extra={"reading_id": reading.id, "threshold": threshold.value, "reason": str(exc)},
                )
                continue
            if changed:
                report.changed_ids.append(reading.id)

    @staticmethod
    def _raise_if_incomplete(report: ReconciliationReport) -> None:
        if report.complete:
            return
        logger.error(
            "Reconciliation incomplete; stored threshold kept",
            extra={"threshold": report.threshold.value, "failed": len(report.failed_ids)},
        )
        raise ReconciliationFailure(
            threshold=report.threshold.value,
            failed_ids=report.failed_ids,
            changed_ids=report.changed_ids,
        )
