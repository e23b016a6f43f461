"""
Ordered Query Utility

One way to fetch rows in a given order, whatever the store supports.

Ordering in the store may be unavailable (for the document store this
ledger was written against, a descending/ascending query needs a matching
secondary index). ``OrderedFetcher`` therefore has two strategies:

* ``server_ordered``: ORDER BY (and LIMIT) executed by the store.
* ``client_sorted``: unordered fetch, stable sort and slice in Python.

Both strategies place NULL values last whichever the direction, so they
return rows in the same order.

``auto`` tries the server first. A ``DBAPIError`` from the ordered query is
treated as a missing capability: the session is rolled back, the capability
is remembered as unavailable for the rest of the process and the same call
is served by client sorting.
"""

from enum import Enum
from typing import Any, ClassVar, List, Optional, Sequence, Set

from sqlalchemy import Select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from app.config.config import settings
from app.core.utils import LoggerMixin


class QueryStrategy(str, Enum):
    AUTO = "auto"
    SERVER_ORDERED = "server_ordered"
    CLIENT_SORTED = "client_sorted"


class OrderedFetcher(LoggerMixin):
    """Fetch ORM rows in order using the configured strategy."""

    # Capability keys whose ordered query failed in this process
    _unavailable: ClassVar[Set[str]] = set()

    def __init__(self, db: AsyncSession, strategy: Optional[str] = None):
        super().__init__()
        self.db = db
        self.strategy = QueryStrategy(strategy or settings.QUERY_STRATEGY)

    @classmethod
    def reset_capabilities(cls) -> None:
        """Forget remembered capability failures (e.g. after an index is created)."""
        cls._unavailable.clear()

    @classmethod
    def unavailable_capabilities(cls) -> Set[str]:
        return set(cls._unavailable)

    @classmethod
    def is_ordering_available(cls, capability: str) -> bool:
        return capability not in cls._unavailable

    async def fetch(
        self,
        stmt: Select,
        order_by: Sequence[InstrumentedAttribute],
        *,
        capability: str,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Any]:
        """
        Execute ``stmt`` and return its rows ordered by ``order_by``.

        Args:
            stmt: Filtered select of a single ORM entity, without ORDER BY
            order_by: Columns to order by, most significant first
            capability: Name of the ordered query, used to remember
                that the store cannot serve it
            descending: Order all columns descending
            limit: Maximum number of rows to return

        Returns:
            List of ORM instances
        """
        if self.strategy == QueryStrategy.CLIENT_SORTED or (
            self.strategy == QueryStrategy.AUTO and capability in self._unavailable
        ):
            return await self._fetch_client_sorted(stmt, order_by, descending, limit)

        try:
            return await self._fetch_server_ordered(stmt, order_by, descending, limit)
        except DBAPIError as e:
            if self.strategy == QueryStrategy.SERVER_ORDERED:
                raise
            await self.db.rollback()
            self._unavailable.add(capability)
            self.log_warning(
                {
                    "event": "ordered_query_unavailable",
                    "capability": capability,
                    "fallback": QueryStrategy.CLIENT_SORTED.value,
                    "error": str(e.orig) if e.orig is not None else str(e),
                }
            )
            return await self._fetch_client_sorted(stmt, order_by, descending, limit)

    async def _fetch_server_ordered(
        self,
        stmt: Select,
        order_by: Sequence[InstrumentedAttribute],
        descending: bool,
        limit: Optional[int],
    ) -> List[Any]:
        clauses = [
            (col.desc() if descending else col.asc()).nulls_last() for col in order_by
        ]
        query = stmt.order_by(*clauses)
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def _fetch_client_sorted(
        self,
        stmt: Select,
        order_by: Sequence[InstrumentedAttribute],
        descending: bool,
        limit: Optional[int],
    ) -> List[Any]:
        result = await self.db.execute(stmt)
        rows = list(result.scalars().all())
        # Missing values sort last in either direction, column by column
        for col in reversed(order_by):
            present = [row for row in rows if getattr(row, col.key) is not None]
            missing = [row for row in rows if getattr(row, col.key) is None]
            present.sort(key=lambda row: getattr(row, col.key), reverse=descending)
            rows = present + missing
        if limit is not None:
            rows = rows[:limit]
        return rows

