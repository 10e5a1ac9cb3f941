"""Dedupe guard — suppresses repeat notifications inside a time window.

The guard is the single consistency point of the engine: the fingerprint is
the primary key of ``notification_dedupe_records``, so when two workers race
on the same (event, recipient) the database lets exactly one insert win.
An expired record is deleted in the same transaction as the insert, which
turns "is there a live record?" and "record this one" into one atomic step.
"""

import hashlib
import threading
from datetime import UTC, datetime, timedelta

import structlog
from sqlalchemy import Column, DateTime, MetaData, String, Table, create_engine, delete, func, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool

logger = structlog.get_logger(__name__)

metadata = MetaData()

dedupe_records = Table(
    "notification_dedupe_records",
    metadata,
    Column("fingerprint", String(64), primary_key=True),
    Column("created_at", DateTime, nullable=False),
    Column("expires_at", DateTime, nullable=False, index=True),
)


def fingerprint(event_type, resource_id, recipient_id, dedupe_key=None) -> str:
    """Stable SHA-256 identity of a notification for one recipient.

    An explicit ``dedupe_key`` replaces (event type, resource) so callers can
    collapse different events into one notification.
    """
    if dedupe_key:
        parts = ("key", dedupe_key, recipient_id)
    else:
        parts = ("event", event_type, resource_id, recipient_id)
    raw = "\x1f".join("" if p is None else str(p) for p in parts)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def create_dedupe_engine(database_uri: str):
    """SQLAlchemy engine for the dedupe store.

    In-memory SQLite needs a single shared connection to be visible across
    worker threads.
    """
    if database_uri.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_uri in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_uri, **kwargs)
    return create_engine(database_uri, pool_pre_ping=True)


def _utc(value):
    # Stored naive, always UTC
    if value.tzinfo is not None:
        value = value.astimezone(UTC).replace(tzinfo=None)
    return value


class DedupeGuard:
    def __init__(self, engine):
        self.engine = engine
        # SQLite has a single writer; serialize in-process to avoid lock errors
        self._lock = threading.Lock() if engine.dialect.name == "sqlite" else None
        metadata.create_all(engine)

    @classmethod
    def from_uri(cls, database_uri: str) -> "DedupeGuard":
        return cls(create_dedupe_engine(database_uri))

    def should_deliver(self, fingerprint: str, window_minutes: int, now: datetime | None = None) -> bool:
        """Record ``fingerprint`` and return True, or False if a live record exists.

        A window of zero or less disables dedupe: nothing is recorded and
        the call always returns True.
        """
        if window_minutes is None or window_minutes <= 0:
            return True

        now = _utc(now or datetime.now(UTC))
        expires_at = now + timedelta(minutes=window_minutes)

        if self._lock is None:
            return self._claim(fingerprint, now, expires_at)
        with self._lock:
            return self._claim(fingerprint, now, expires_at)

    def _claim(self, fingerprint, now, expires_at):
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    delete(dedupe_records).where(
                        dedupe_records.c.fingerprint == fingerprint,
                        dedupe_records.c.expires_at <= now,
                    )
                )
                conn.execute(
                    insert(dedupe_records).values(
                        fingerprint=fingerprint,
                        created_at=now,
                        expires_at=expires_at,
                    )
                )
        except IntegrityError:
            logger.debug("Duplicate notification suppressed", fingerprint=fingerprint)
            return False
        return True

    def release(self, fingerprint: str) -> None:
        """Drop the record for ``fingerprint`` so the next attempt is not a duplicate."""
        if self._lock is None:
            self._release(fingerprint)
            return
        with self._lock:
            self._release(fingerprint)

    def _release(self, fingerprint):
        with self.engine.begin() as conn:
            conn.execute(delete(dedupe_records).where(dedupe_records.c.fingerprint == fingerprint))
        logger.debug("Dedupe claim released", fingerprint=fingerprint)

    def purge_expired(self, now: datetime | None = None) -> int:
        """Delete records whose window has passed. Returns the number removed."""
        now = _utc(now or datetime.now(UTC))
        with self.engine.begin() as conn:
            result = conn.execute(delete(dedupe_records).where(dedupe_records.c.expires_at <= now))
        return result.rowcount

    def count(self) -> int:
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(dedupe_records)).scalar_one()

    def clear(self):
        with self.engine.begin() as conn:
            conn.execute(delete(dedupe_records))
