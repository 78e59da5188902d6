from __future__ import annotations

import logging
from contextlib import contextmanager
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase


logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


@lru_cache(maxsize=4)
def get_engine(dsn: str):
    return create_engine(dsn, future=True, pool_pre_ping=True)


def init_schema(engine) -> None:
    from pagent.infrastructure.db.models import pagent as _models  # noqa: F401

    with engine.begin() as conn:
        conn.exec_driver_sql("CREATE SCHEMA IF NOT EXISTS public")
    Base.metadata.create_all(engine)
    logger.info("db: schema ensured tables=%s", len(Base.metadata.tables))


class ConnectionScope:
    """Engine stand-in that hands out one already-open connection.

    Repositories use ``connect()``/``begin()`` the same way on either, so a
    repository bound to a scope runs every statement in the caller's
    transaction.
    """

    def __init__(self, conn):
        self._conn = conn

    @contextmanager
    def connect(self):
        yield self._conn

    @contextmanager
    def begin(self):
        yield self._conn


def run_in_transaction(engine, build_repository, fn):
    if isinstance(engine, ConnectionScope):
        return fn(build_repository(engine))
    with engine.begin() as conn:
        return fn(build_repository(ConnectionScope(conn)))
