"""Shared plumbing for the SQL-backed stores."""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fiyofeed.errors import StoreUnavailable

logger = logging.getLogger(__name__)


class SqlStore:
    name = "sql-store"

    def __init__(self, session_factory: async_sessionmaker) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def session(self, operation: str) -> AsyncIterator[AsyncSession]:
        """One session per query; driver errors surface as StoreUnavailable."""
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error("%s.%s failed: %s", self.name, operation, exc)
            raise StoreUnavailable(self.name, operation) from exc


def cutoff(since: Optional[timedelta]) -> Optional[datetime]:
    """Lower bound for created_at, as naive UTC to match the DATETIME columns."""
    if since is None:
        return None
    return datetime.now(timezone.utc).replace(tzinfo=None) - since
