"""
In-memory subscription repository.

All records live in one dict guarded by one reader/writer lock: reads share
the lock, writes hold it exclusively. Every operation is a short in-memory
step, so nothing here suspends or blocks for long.
"""
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple

import structlog

from .models import Subscription, utcnow

logger = structlog.get_logger(__name__)

IdGenerator = Callable[[], str]
Clock = Callable[[], datetime]


def generate_subscription_id() -> str:
    """Default identifier strategy."""
    return f"sub_{uuid.uuid4().hex}"


class ReadWriteLock:
    """
    Many readers or one writer.

    Writers are preferred: once a writer is waiting, new readers queue behind
    it so a steady read load cannot starve updates.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class SubscriptionRepository:
    """
    Authoritative, concurrency-safe store of subscriptions.

    Absence is reported through the ``found`` flag of the returned tuple,
    never by raising.

    Every issued ID is remembered, including IDs of deleted and compensated
    records, so the ID set grows with the total number of creates over the
    store's lifetime, not with its current size.
    """

    def __init__(
        self,
        id_generator: Optional[IdGenerator] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        """
        Initialize repository.

        Args:
            id_generator: Produces candidate identifiers (default: ``sub_<uuid4>``)
            clock: Source of the current time for start dates
        """
        self._id_generator = id_generator or generate_subscription_id
        self._clock = clock or utcnow
        self._lock = ReadWriteLock()
        self._subscriptions: Dict[str, Subscription] = {}
        self._issued_ids: Set[str] = set()

    def _next_id(self) -> str:
        # Caller holds the write lock.
        while True:
            candidate = self._id_generator()
            if candidate not in self._issued_ids:
                self._issued_ids.add(candidate)
                return candidate
            logger.warning("subscription_id_collision", subscription_id=candidate)

    def create(self, user_id: str, plan: str) -> Subscription:
        """Insert a new subscription starting now and valid for one year."""
        with self._lock.write_locked():
            subscription = Subscription.start(self._next_id(), user_id, plan, self._clock())
            self._subscriptions[subscription.id] = subscription
        return subscription

    def get_all(self) -> List[Subscription]:
        """Snapshot of every subscription, in no particular order."""
        with self._lock.read_locked():
            return list(self._subscriptions.values())

    def get_by_id(self, subscription_id: str) -> Tuple[Optional[Subscription], bool]:
        with self._lock.read_locked():
            subscription = self._subscriptions.get(subscription_id)
        return subscription, subscription is not None

    def update(
        self, subscription_id: str, user_id: str, plan: str
    ) -> Tuple[Optional[Subscription], bool]:
        """Replace owner and plan; id and validity window are left untouched."""
        with self._lock.write_locked():
            current = self._subscriptions.get(subscription_id)
            if current is None:
                return None, False
            updated = current.model_copy(update={"user_id": user_id, "plan": plan})
            self._subscriptions[subscription_id] = updated
        return updated, True

    def delete(self, subscription_id: str) -> Tuple[Optional[Subscription], bool]:
        with self._lock.write_locked():
            removed = self._subscriptions.pop(subscription_id, None)
        return removed, removed is not None

    def count(self) -> int:
        with self._lock.read_locked():
            return len(self._subscriptions)
