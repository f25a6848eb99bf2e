"""
Subscription and usage storage for the entitlement gate.

UsageStore is the persistence port the gate depends on. Two backends
are provided:

- InMemoryUsageStore: thread-safe dict/list store for tests and the CLI
- SQLUsageStore: SQLAlchemy Core tables (user_subscriptions,
  usage_tracking) for any SQLAlchemy database URL

The usage ledger is append-only; no operation updates or deletes a
usage row. Concurrent writers need no coordination because counts are
derived by COUNT(*) at read time.
"""

import logging
import threading
from collections import Counter
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Dict, Iterator, List, Optional, Protocol, Tuple, runtime_checkable

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from devsmentor.core.models import Subscription, Tier, UsageRecord, as_utc, utc_now
from devsmentor.utils.errors import ConfigurationError, StorageError


@runtime_checkable
class UsageStore(Protocol):
    """
    Persistence port for subscriptions and the usage ledger.

    Any key-value or relational store suffices; no transactions are
    required. Implementations raise StorageError on backend failures.
    """

    def get_subscription(self, subscriber_id: str) -> Optional[Subscription]:
        """Point lookup of a subscriber's tier and expiry."""
        ...

    def create_subscription(
        self, subscriber_id: str, tier: Tier = Tier.FREE
    ) -> Subscription:
        """Insert a tier row with a default value."""
        ...

    def count_usage(self, subscriber_id: str, feature: str, day: date) -> int:
        """Count usage rows matching (subscriber, feature, day)."""
        ...

    def insert_usage(self, record: UsageRecord) -> None:
        """Append one usage row."""
        ...


class InMemoryUsageStore:
    """
    Thread-safe in-memory store.

    Keeps subscriptions in a dict and the ledger as an append-only list.
    Counts per (subscriber, feature, day) are maintained alongside so
    count_usage stays O(1).
    """

    def __init__(self):
        self._subscriptions: Dict[str, Subscription] = {}
        self._ledger: List[UsageRecord] = []
        self._counts: Counter = Counter()
        self._lock = threading.RLock()
        self.logger = logging.getLogger("store.memory")

    def get_subscription(self, subscriber_id: str) -> Optional[Subscription]:
        with self._lock:
            return self._subscriptions.get(subscriber_id)

    def create_subscription(
        self, subscriber_id: str, tier: Tier = Tier.FREE
    ) -> Subscription:
        with self._lock:
            existing = self._subscriptions.get(subscriber_id)
            if existing is not None:
                return existing
            subscription = Subscription(subscriber_id=subscriber_id, tier=tier)
            self._subscriptions[subscriber_id] = subscription
            self.logger.debug(f"Created {tier.value} subscription for {subscriber_id}")
            return subscription

    def upsert_subscription(
        self,
        subscriber_id: str,
        tier: Tier,
        expires_at: Optional[datetime] = None,
    ) -> Subscription:
        """Billing hook: set a subscriber's tier and expiry."""
        subscription = Subscription(
            subscriber_id=subscriber_id, tier=tier, expires_at=expires_at
        )
        with self._lock:
            self._subscriptions[subscriber_id] = subscription
        return subscription

    def count_usage(self, subscriber_id: str, feature: str, day: date) -> int:
        with self._lock:
            return self._counts[(subscriber_id, feature, day)]

    def insert_usage(self, record: UsageRecord) -> None:
        with self._lock:
            self._ledger.append(record)
            self._counts[(record.subscriber_id, record.feature, record.day)] += 1

    def records(self) -> Tuple[UsageRecord, ...]:
        """Snapshot of the ledger, oldest first."""
        with self._lock:
            return tuple(self._ledger)

    def __len__(self) -> int:
        with self._lock:
            return len(self._ledger)


metadata = MetaData()

user_subscriptions = Table(
    "user_subscriptions",
    metadata,
    Column("user_id", String(255), primary_key=True),
    Column("tier", String(20), nullable=False, default=Tier.FREE.value),
    Column("expires_at", DateTime(timezone=True), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

usage_tracking = Table(
    "usage_tracking",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(255), nullable=False),
    Column("feature", String(100), nullable=False),
    Column("date_bucket", Date, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    # Count queries filter on all three columns
    Index("idx_usage_tracking_user_feature_day", "user_id", "feature", "date_bucket"),
)


class SQLUsageStore:
    """
    SQLAlchemy-backed store.

    Usage:
        store = SQLUsageStore("sqlite:///devsmentor.db")
        store.create_subscription("user-1")
    """

    def __init__(self, url: str, create_tables: bool = True, **engine_kwargs: Any):
        try:
            self._engine = create_engine(url, **engine_kwargs)
            self._session_factory = sessionmaker(bind=self._engine)
            if create_tables:
                metadata.create_all(self._engine)
        except SQLAlchemyError as e:
            raise StorageError(
                f"Failed to initialise usage store: {e}",
                operation="connect",
                original_error=e,
            ) from e
        self.logger = logging.getLogger("store.sql")

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        """Session scope that commits on success and maps errors to StorageError."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            self.logger.error(f"Storage operation '{operation}' failed: {e}")
            raise StorageError(
                f"Storage operation '{operation}' failed",
                operation=operation,
                original_error=e,
            ) from e
        finally:
            session.close()

    def get_subscription(self, subscriber_id: str) -> Optional[Subscription]:
        with self._session("get_subscription") as session:
            row = session.execute(
                select(user_subscriptions).where(
                    user_subscriptions.c.user_id == subscriber_id
                )
            ).first()
        if row is None:
            return None
        return Subscription(
            subscriber_id=row.user_id,
            tier=Tier.parse(row.tier),
            expires_at=as_utc(row.expires_at) if row.expires_at else None,
        )

    def create_subscription(
        self, subscriber_id: str, tier: Tier = Tier.FREE
    ) -> Subscription:
        try:
            with self._session("create_subscription") as session:
                session.execute(
                    insert(user_subscriptions).values(
                        user_id=subscriber_id,
                        tier=tier.value,
                        expires_at=None,
                        created_at=utc_now(),
                    )
                )
        except StorageError as e:
            # Another request created the row first
            if not isinstance(e.original_error, IntegrityError):
                raise
            existing = self.get_subscription(subscriber_id)
            if existing is None:
                raise
            return existing
        return Subscription(subscriber_id=subscriber_id, tier=tier)

    def upsert_subscription(
        self,
        subscriber_id: str,
        tier: Tier,
        expires_at: Optional[datetime] = None,
    ) -> Subscription:
        """Billing hook: set a subscriber's tier and expiry."""
        stored_expiry = as_utc(expires_at) if expires_at else None
        with self._session("upsert_subscription") as session:
            result = session.execute(
                update(user_subscriptions)
                .where(user_subscriptions.c.user_id == subscriber_id)
                .values(tier=tier.value, expires_at=stored_expiry)
            )
            if result.rowcount == 0:
                session.execute(
                    insert(user_subscriptions).values(
                        user_id=subscriber_id,
                        tier=tier.value,
                        expires_at=stored_expiry,
                        created_at=utc_now(),
                    )
                )
        return Subscription(
            subscriber_id=subscriber_id, tier=tier, expires_at=stored_expiry
        )

    def count_usage(self, subscriber_id: str, feature: str, day: date) -> int:
        with self._session("count_usage") as session:
            count = session.execute(
                select(func.count())
                .select_from(usage_tracking)
                .where(
                    usage_tracking.c.user_id == subscriber_id,
                    usage_tracking.c.feature == feature,
                    usage_tracking.c.date_bucket == day,
                )
            ).scalar_one()
        return int(count or 0)

    def insert_usage(self, record: UsageRecord) -> None:
        with self._session("insert_usage") as session:
            session.execute(
                insert(usage_tracking).values(
                    user_id=record.subscriber_id,
                    feature=record.feature,
                    date_bucket=record.day,
                    created_at=as_utc(record.created_at),
                )
            )

    def dispose(self) -> None:
        """Release pooled connections."""
        self._engine.dispose()


def create_usage_store(config: Optional[Dict[str, Any]] = None):
    """
    Factory function to create a UsageStore from the 'storage' config section.

    Args:
        config: {"backend": "memory" | "sql", "url": "<sqlalchemy url>"}
    """
    if config is None:
        config = {}

    backend = config.get("backend", "memory")
    if backend == "memory":
        return InMemoryUsageStore()
    if backend == "sql":
        url = config.get("url")
        if not url:
            raise ConfigurationError(
                "storage.url is required for the sql backend",
                config_key="storage.url",
            )
        return SQLUsageStore(url)
    raise ConfigurationError(
        f"Unknown storage backend: {backend}", config_key="storage.backend"
    )
