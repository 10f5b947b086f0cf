"""
Query execution collaborator.

The orchestrator only needs two questions answered about a built statement:
how many rows match, and which rows a limited statement returns.
``SessionExecutor`` answers them with a synchronous SQLAlchemy ``Session``;
anything else satisfying ``QueryExecutor`` can stand in (a remote service,
a cached reader, a test double).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from sqlalchemy import func, select

if TYPE_CHECKING:
    from sqlalchemy import Select
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


@runtime_checkable
class QueryExecutor(Protocol):
    def count(self, stmt: Select[Any]) -> int:
        """Total rows matched by *stmt*, ignoring ordering and limits."""
        ...

    def fetch(self, stmt: Select[Any]) -> list[Any]:
        """Execute *stmt* and return its result rows (``Row`` tuples)."""
        ...


class SessionExecutor:
    """
    ``QueryExecutor`` backed by a SQLAlchemy ``Session``.

    Usage::

        with Session(engine) as session:
            executor = SessionExecutor(session)
            result = QueryOrchestrator(executor).build_and_execute(User, query)
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def count(self, stmt: Select[Any]) -> int:
        subquery = stmt.order_by(None).limit(None).offset(None).subquery()
        total = self.session.execute(select(func.count()).select_from(subquery)).scalar()
        return int(total or 0)

    def fetch(self, stmt: Select[Any]) -> list[Any]:
        rows = list(self.session.execute(stmt).all())
        logger.debug("Fetched %d rows", len(rows))
        return rows
