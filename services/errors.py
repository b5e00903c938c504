"""Error taxonomy for the threshold and reading stores."""

from __future__ import annotations

from typing import Sequence


class ValidationError(ValueError):
    """Input rejected before any persistence happened."""


class NotFoundError(LookupError):
    """The targeted reading does not exist."""

    def __init__(self, reading_id: str) -> None:
        super().__init__(f"Water level record {reading_id!r} not found.")
        self.reading_id = reading_id


class StorageError(RuntimeError):
    """Infrastructure fault raised by the datastore layer."""


class ConditionalCheckFailedError(StorageError):
    """A conditional write found the key already present."""

    def __init__(self, table: str, key: str) -> None:
        super().__init__(f"Item {key!r} already exists in table {table!r}.")
        self.table = table
        self.key = key


class ReconciliationFailure(RuntimeError):
    """The threshold was stored but some readings could not be re-evaluated.

    Retrying reconciliation against the stored threshold repairs the stale
    readings listed in ``failed_ids``.
    """

    def __init__(
        self,
        threshold: float,
        failed_ids: Sequence[str],
        changed_ids: Sequence[str] = (),
    ) -> None:
        super().__init__(
            f"Threshold {threshold} stored but {len(failed_ids)} reading(s) "
            "could not be reconciled."
        )
        self.threshold = threshold
        self.failed_ids = list(failed_ids)
        self.changed_ids = list(changed_ids)
