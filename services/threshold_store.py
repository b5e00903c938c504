"""Storage for the singleton critical threshold."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Optional

from app.schemas import Threshold
from datastore.mock_dynamodb import MockDynamoDBTable
from services.errors import ConditionalCheckFailedError, ValidationError
from settings import DEFAULT_CRITICAL_THRESHOLD

logger = logging.getLogger(__name__)

THRESHOLD_KEY = "critical_threshold"


def validate_threshold(value: Optional[float]) -> float:
    if value is None:
        raise ValidationError("Critical threshold is required")
    if not math.isfinite(value):
        raise ValidationError("Critical threshold must be a finite number")
    if value < 0:
        raise ValidationError("Critical threshold cannot be negative")
    return float(value)


class ThresholdStore:
    """Get/set access to the one threshold record.

    Consumers always go through :meth:`get_or_create` instead of caching the
    value, since a stale threshold breaks the alert flags.
    """

    def __init__(
        self,
        table: MockDynamoDBTable[Threshold],
        default_value: float = DEFAULT_CRITICAL_THRESHOLD,
    ) -> None:
        self.table = table
        self.default_value = validate_threshold(default_value)

    def get_or_create(self) -> Threshold:
        existing = self.table.get_item(THRESHOLD_KEY)
        if existing is not None:
            return existing

        candidate = Threshold(
            key=THRESHOLD_KEY,
            value=self.default_value,
            updated_by=None,
            updated_at=datetime.now(timezone.utc),
        )
        try:
            self.table.put_item_if_absent(candidate)
        except ConditionalCheckFailedError:
            # Another caller created it first; theirs is the singleton.
            winner = self.table.get_item(THRESHOLD_KEY)
            if winner is not None:
                return winner
            raise
        logger.info(
            "Initialized default critical threshold",
            extra={"threshold": candidate.value, "version": candidate.version},
        )
        return candidate

    def set(self, value: Optional[float], actor_id: Optional[str]) -> Threshold:
        new_value = validate_threshold(value)
        self.get_or_create()

        def _apply(current: Threshold) -> Threshold:
            return current.model_copy(
                update={
                    "value": new_value,
                    "updated_by": actor_id,
                    "updated_at": datetime.now(timezone.utc),
                    "version": current.version + 1,
                }
            )

        stored = self.table.update_item(THRESHOLD_KEY, _apply)
        if stored is None:  # pragma: no cover - the record is never deleted
            raise LookupError("Threshold record disappeared during update.")
        logger.info(
            "Critical threshold updated",
            extra={"threshold": stored.value, "version": stored.version, "actor_id": actor_id},
        )
        return stored
