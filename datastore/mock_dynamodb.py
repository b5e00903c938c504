from __future__ import annotations
import json
from contextlib import contextmanager
from functools import lru_cache
from pathlib import Path
from threading import RLock
from typing import Callable, Dict, Generic, Iterator, Optional, Type, TypeVar

from pydantic import BaseModel

from app.schemas import Reading, Threshold
from services.errors import ConditionalCheckFailedError, StorageError
from settings import get_settings

ItemT = TypeVar("ItemT", bound=BaseModel)


class MockDynamoDBTable(Generic[ItemT]):

    def __init__(
        self,
        name: str,
        model: Type[ItemT],
        key_attribute: str = "id",
        persistence_path: Optional[Path] = None,
    ) -> None:
        self.name = name
        self.model = model
        self.key_attribute = key_attribute
        self._items: Dict[str, ItemT] = {}
        self.persistence_path = persistence_path
        self._lock = RLock()
        # Keys touched inside an open batch, mapped to their value before it.
        self._batch: Optional[Dict[str, Optional[ItemT]]] = None
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def put_item(self, item: ItemT) -> None:
        with self._lock:
            self._commit(self._key_of(item), item.model_copy(deep=True))

    def put_item_if_absent(self, item: ItemT) -> None:
        """Conditional put; raises when the key is already taken."""

        key = self._key_of(item)
        with self._lock:
            if key in self._items:
                raise ConditionalCheckFailedError(self.name, key)
            self._commit(key, item.model_copy(deep=True))

    def get_item(self, key: str) -> Optional[ItemT]:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            return item.model_copy(deep=True)

    def update_item(
        self, key: str, mutate: Callable[[ItemT], Optional[ItemT]]
    ) -> Optional[ItemT]:
        """Atomic read-modify-write of a single item.

        ``mutate`` receives a copy of the stored item and returns the
        replacement, or ``None`` to leave the item untouched. Returns the
        item as stored after the call, or ``None`` if the key is missing.
        """

        with self._lock:
            current = self._items.get(key)
            if current is None:
                return None
            replacement = mutate(current.model_copy(deep=True))
            if replacement is None:
                return current.model_copy(deep=True)
            self._commit(key, replacement.model_copy(deep=True))
            return replacement.model_copy(deep=True)

    def delete_item(self, key: str) -> bool:
        with self._lock:
            if key not in self._items:
                return False
            self._commit(key, None)
            return True

    def scan(self) -> list[ItemT]:
        """Return deep copies of all stored items."""

        with self._lock:
            return [item.model_copy(deep=True) for item in self._items.values()]

    def _key_of(self, item: ItemT) -> str:
        return str(getattr(item, self.key_attribute))

    @contextmanager
    def batch_writer(self) -> Iterator[None]:
        """Defer persistence until the block exits, then write the file once.

        The table lock is held for the whole block, so other writers wait
        for the batch to finish. If the final write fails every change made
        inside the block is rolled back and :class:`StorageError` is raised.
        Nested batches join the outermost one.
        """

        with self._lock:
            if self._batch is not None:
                yield
                return
            self._batch = {}
            try:
                yield
            finally:
                touched, self._batch = self._batch, None
                if touched:
                    self._flush(touched)

    def _commit(self, key: str, item: Optional[ItemT]) -> None:
        # Caller holds the lock. Memory is rolled back if the disk write fails.
        previous = self._items.get(key)
        self._place(key, item)
        if self._batch is not None:
            self._batch.setdefault(key, previous)
            return
        try:
            self._persist()
        except StorageError:
            self._place(key, previous)
            raise

    def _flush(self, touched: Dict[str, Optional[ItemT]]) -> None:
        try:
            self._persist()
        except StorageError:
            for key, previous in touched.items():
                self._place(key, previous)
            raise

    def _place(self, key: str, item: Optional[ItemT]) -> None:
        if item is None:
            self._items.pop(key, None)
        else:
            self._items[key] = item

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {key: item.model_dump(mode="json") for key, item in self._items.items()}
        try:
            self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))
        except OSError as exc:
            raise StorageError(
                f"Failed to persist table {self.name!r} to {self.persistence_path}."
            ) from exc

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = {}

        for key, payload in data.items():
            self._items[key] = self.model.model_validate(payload)


@lru_cache
def build_default_table(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> MockDynamoDBTable[Reading]:
    settings = get_settings()
    table_name = settings.readings_table_name if name is None else name
    table_path = settings.readings_persistence_path if path is None else path
    persistence = Path(table_path) if table_path else None
    return MockDynamoDBTable(
        name=table_name, model=Reading, key_attribute="id", persistence_path=persistence
    )


@lru_cache
def build_settings_table(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> MockDynamoDBTable[Threshold]:
    settings = get_settings()
    table_name = settings.settings_table_name if name is None else name
    table_path = settings.settings_persistence_path if path is None else path
    persistence = Path(table_path) if table_path else None
    return MockDynamoDBTable(
        name=table_name, model=Threshold, key_attribute="key", persistence_path=persistence
    )
