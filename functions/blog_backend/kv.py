"""
Key-value store abstraction: SQLAlchemy (Postgres), Redis, and in-memory.

The store maps opaque string keys to JSON values and supports prefix scans.
Only single-key operations are atomic; there are no multi-key transactions
and no compare-and-swap.
"""

from __future__ import annotations

import copy
import json
import logging
import re
from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Protocol

import redis
from sqlalchemy import JSON, Column, String, create_engine, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from blog_backend.errors import StorageError

logger = logging.getLogger(__name__)

_REDIS_GLOB_CHARS = re.compile(r"([*?\[\]\\])")

# Dialects with INSERT ... ON CONFLICT DO UPDATE, so `set` is one statement.
_UPSERT_INSERTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


class KvStore(Protocol):
    """Interface for the key-value namespace."""

    def get(self, key: str) -> Optional[dict]:
        ...

    def set(self, key: str, value: dict) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def get_by_prefix(self, prefix: str) -> list[dict]:
        ...


@contextmanager
def _translate_errors(operation: str, key: str) -> Iterator[None]:
    try:
        yield
    except (SQLAlchemyError, redis.RedisError) as exc:
        logger.error("KV %s failed for %r: %s", operation, key, exc)
        raise StorageError(str(exc)) from exc


class InMemoryKvStore:
    """Simple in-memory store for development and tests.

    Values are deep-copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self):
        self.items: Dict[str, dict] = {}

    def get(self, key: str) -> Optional[dict]:
        value = self.items.get(key)
        return copy.deepcopy(value) if value is not None else None

    def set(self, key: str, value: dict) -> None:
        self.items[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self.items.pop(key, None)

    def get_by_prefix(self, prefix: str) -> list[dict]:
        return [
            copy.deepcopy(value)
            for key, value in sorted(self.items.items())
            if key.startswith(prefix)
        ]

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.items.clear()


class SqlKvStore:
    """
    SQLAlchemy-backed implementation storing every record in one key/value
    table. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlKvStore")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def get(self, key: str) -> Optional[dict]:
        with _translate_errors("get", key), self.Session() as session:
            row = session.get(KvRow, key)
            return row.value if row else None

    def set(self, key: str, value: dict) -> None:
        with _translate_errors("set", key), self.Session() as session:
            insert = _UPSERT_INSERTS.get(self.engine.dialect.name)
            if insert is None:
                # Other dialects: select-then-write, not atomic.
                session.merge(KvRow(key=key, value=value))
            else:
                stmt = insert(KvRow).values(key=key, value=value)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[KvRow.key], set_={"value": stmt.excluded.value}
                )
                session.execute(stmt)
            session.commit()

    def delete(self, key: str) -> None:
        with _translate_errors("delete", key), self.Session() as session:
            row = session.get(KvRow, key)
            if row:
                session.delete(row)
                session.commit()

    def get_by_prefix(self, prefix: str) -> list[dict]:
        with _translate_errors("prefix scan", prefix), self.Session() as session:
            stmt = (
                select(KvRow)
                .where(KvRow.key.startswith(prefix, autoescape=True))
                .order_by(KvRow.key.asc())
            )
            return [row.value for row in session.execute(stmt).scalars()]


class RedisKvStore:
    """Redis-backed store holding each value as a JSON string."""

    def __init__(self, url: str, key_prefix: str = "blog:"):
        self.url = url
        self.key_prefix = key_prefix
        self.client = redis.Redis.from_url(url)

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def get(self, key: str) -> Optional[dict]:
        with _translate_errors("get", key):
            raw = self.client.get(self._key(key))
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: dict) -> None:
        with _translate_errors("set", key):
            self.client.set(self._key(key), json.dumps(value, default=str))

    def delete(self, key: str) -> None:
        with _translate_errors("delete", key):
            self.client.delete(self._key(key))

    def get_by_prefix(self, prefix: str) -> list[dict]:
        pattern = _REDIS_GLOB_CHARS.sub(r"\\\1", self._key(prefix)) + "*"
        with _translate_errors("prefix scan", prefix):
            keys = sorted(self.client.scan_iter(match=pattern))
            if not keys:
                return []
            # Keys deleted between SCAN and MGET come back as None.
            raws = self.client.mget(keys)
        return [json.loads(raw) for raw in raws if raw is not None]


Base = declarative_base()


class KvRow(Base):
    __tablename__ = "kv_store"

    key = Column(String, primary_key=True)
    value = Column(JSON, nullable=False)
