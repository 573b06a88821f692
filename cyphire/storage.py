"""
JSON document storage.

Each collection is one JSON file under the data directory holding a list of
serialized documents. Collections are loaded and saved whole. A single
re-entrant lock per data directory serializes read-modify-write cycles, so a
workflow that touches several collections can hold it across all of them.
"""

import json
import threading
from pathlib import Path
from typing import Callable, Generic, Iterator, Optional, Type, TypeVar
from contextlib import contextmanager

from .models import (
    BlockedIp,
    HelpQuestion,
    HelpTicket,
    IntellectualApplication,
    PaymentLog,
    Task,
    User,
    WorkroomThread,
)


T = TypeVar("T")

_locks: dict[str, threading.RLock] = {}
_locks_guard = threading.Lock()


def _lock_for(data_dir: Path) -> threading.RLock:
    key = str(Path(data_dir).resolve())
    with _locks_guard:
        if key not in _locks:
            _locks[key] = threading.RLock()
        return _locks[key]


class Collection(Generic[T]):
    """A list of model documents persisted as one JSON file."""

    def __init__(self, path: Path, model: Type[T], lock: threading.RLock):
        self.path = path
        self.model = model
        self.lock = lock
        with self.lock:
            if not self.path.exists():
                self._save([])

    def _load(self) -> list[T]:
        """Load all documents from storage."""
        with open(self.path, "r") as f:
            data = json.load(f)
        return [self.model.from_dict(d) for d in data]

    def _save(self, items: list[T]) -> None:
        """Save all documents to storage."""
        with open(self.path, "w") as f:
            json.dump([i.to_dict() for i in items], f, indent=2)

    def all(self) -> list[T]:
        with self.lock:
            return self._load()

    def get(self, key: str) -> Optional[T]:
        for item in self.all():
            if item.id == key:
                return item
        return None

    def filter(self, predicate: Callable[[T], bool]) -> list[T]:
        return [item for item in self.all() if predicate(item)]

    def first(self, predicate: Callable[[T], bool]) -> Optional[T]:
        for item in self.all():
            if predicate(item):
                return item
        return None

    def count(self, predicate: Optional[Callable[[T], bool]] = None) -> int:
        items = self.all()
        if predicate is None:
            return len(items)
        return sum(1 for item in items if predicate(item))

    def put(self, item: T) -> T:
        """Insert or replace a document by id."""
        with self.lock:
            items = self._load()
            for i, existing in enumerate(items):
                if existing.id == item.id:
                    items[i] = item
                    break
            else:
                items.append(item)
            self._save(items)
        return item

    def remove(self, key: str) -> bool:
        return self.remove_where(lambda item: item.id == key) > 0

    def remove_where(self, predicate: Callable[[T], bool]) -> int:
        with self.lock:
            items = self._load()
            kept = [item for item in items if not predicate(item)]
            removed = len(items) - len(kept)
            if removed:
                self._save(kept)
        return removed

    def __iter__(self) -> Iterator[T]:
        return iter(self.all())


class DocumentStore:
    """All collections of one data directory."""

    WORKROOM_COUNTER = "workroom_id"
    WORKROOM_START = 1000000000

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.lock = _lock_for(self.data_dir)

        self.users: Collection[User] = self._collection("users.json", User)
        self.blocked_ips: Collection[BlockedIp] = self._collection("blocked_ips.json", BlockedIp)
        self.tasks: Collection[Task] = self._collection("tasks.json", Task)
        self.workrooms: Collection[WorkroomThread] = self._collection("workrooms.json", WorkroomThread)
        self.payment_logs: Collection[PaymentLog] = self._collection("payment_logs.json", PaymentLog)
        self.tickets: Collection[HelpTicket] = self._collection("tickets.json", HelpTicket)
        self.questions: Collection[HelpQuestion] = self._collection("questions.json", HelpQuestion)
        self.applications: Collection[IntellectualApplication] = self._collection(
            "applications.json", IntellectualApplication
        )
        self.counters_file = self.data_dir / "counters.json"

    def _collection(self, filename: str, model: Type[T]) -> Collection[T]:
        return Collection(self.data_dir / filename, model, self.lock)

    @contextmanager
    def transaction(self):
        """Hold the store lock across several collection operations."""
        with self.lock:
            yield self

    def next_sequence(self, name: str, start: int = 0) -> int:
        """Increment and return a named counter seeded at ``start``."""
        with self.lock:
            counters = {}
            if self.counters_file.exists():
                with open(self.counters_file, "r") as f:
                    counters = json.load(f)
            value = int(counters.get(name, start)) + 1
            counters[name] = value
            with open(self.counters_file, "w") as f:
                json.dump(counters, f, indent=2)
        return value

    def next_workroom_id(self) -> str:
        """Allocate the next workroom id as a 10-digit string."""
        value = self.next_sequence(self.WORKROOM_COUNTER, start=self.WORKROOM_START)
        return str(value).zfill(10)
