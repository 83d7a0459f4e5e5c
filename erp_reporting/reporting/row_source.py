"""Row sources feeding the report executor."""

from typing import Any, AsyncIterator, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple
import logging
import threading

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import ReportCancelledError, RowSourceError
from ..models import Customer, Lead, Order, Product, User
from .fields import FieldRegistry

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


class CancellationToken:
    """Cooperative cancellation flag shared between a caller and a running report."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ReportCancelledError()


class RowSource(Protocol):
    """Supplies the denormalized rows for the tables a report references."""

    def fetch(self, tables: Sequence[str], cancel_token: CancellationToken) -> AsyncIterator[Row]:
        ...


class InMemoryRowSource:
    """
    Row source over an in-memory snapshot.

    Args:
        rows: Denormalized rows keyed by field id
        tables: Tables the snapshot covers; None accepts any request
    """

    def __init__(self, rows: Iterable[Mapping[str, Any]], tables: Optional[Iterable[str]] = None):
        self._rows: Tuple[Mapping[str, Any], ...] = tuple(rows)
        self.tables = frozenset(tables) if tables is not None else None

    async def fetch(self, tables: Sequence[str], cancel_token: CancellationToken) -> AsyncIterator[Row]:
        if self.tables is not None:
            missing = [t for t in tables if t not in self.tables]
            if missing:
                raise RowSourceError(f"tables not available in snapshot: {', '.join(missing)}")
        for row in self._rows:
            cancel_token.raise_if_cancelled()
            yield dict(row)


TABLE_MODELS = {
    "users": User,
    "products": Product,
    "customers": Customer,
    "leads": Lead,
    "orders": Order,
}

# (primary, secondary) -> join condition
JOIN_PATHS = {
    ("orders", "customers"): Order.customer_id == Customer.id,
    ("leads", "users"): Lead.assigned_to_id == User.id,
}


class SqlRowSource:
    """
    Row source reading the ERP tables through a SQLAlchemy session.

    A single table is selected directly. Several tables are combined along
    the known foreign keys in JOIN_PATHS; any other combination fails.
    """

    def __init__(self, db: Session, registry: FieldRegistry, batch_size: int = 500):
        self.db = db
        self.registry = registry
        self.batch_size = batch_size

    def build_statement(self, tables: Sequence[str]):
        unknown = [t for t in tables if t not in TABLE_MODELS]
        if unknown:
            raise RowSourceError(f"unknown tables: {', '.join(unknown)}")

        primary, joins = self._plan(list(tables))
        columns = []
        for table in [primary] + [t for t, _ in joins]:
            model = TABLE_MODELS[table]
            for field in self.registry.by_table().get(table, []):
                columns.append(getattr(model, field.source_column).label(field.id))

        stmt = select(*columns).select_from(TABLE_MODELS[primary])
        for table, condition in joins:
            stmt = stmt.outerjoin(TABLE_MODELS[table], condition)
        return stmt.order_by(TABLE_MODELS[primary].id)

    def _plan(self, tables: List[str]) -> Tuple[str, List[Tuple[str, Any]]]:
        if len(tables) == 1:
            return tables[0], []
        for primary in tables:
            others = [t for t in tables if t != primary]
            if all((primary, other) in JOIN_PATHS for other in others):
                return primary, [(other, JOIN_PATHS[(primary, other)]) for other in others]
        raise RowSourceError(f"no join path between tables: {', '.join(tables)}")

    async def fetch(self, tables: Sequence[str], cancel_token: CancellationToken) -> AsyncIterator[Row]:
        stmt = self.build_statement(tables)
        logger.debug(f"Fetching report rows for tables={list(tables)}")
        try:
            result = await run_in_threadpool(self.db.execute, stmt.execution_options(yield_per=self.batch_size))
        except SQLAlchemyError as e:
            logger.error(f"Report row query failed: {e}")
            raise RowSourceError(str(e))

        # Batches are pulled off the event loop; the token is checked between rows
        partitions = result.mappings().partitions(self.batch_size)
        try:
            while True:
                cancel_token.raise_if_cancelled()
                batch = await run_in_threadpool(next, partitions, None)
                if batch is None:
                    break
                for row in batch:
                    cancel_token.raise_if_cancelled()
                    yield dict(row)
        except SQLAlchemyError as e:
            logger.error(f"Reading report rows failed: {e}")
            raise RowSourceError(str(e))
        finally:
            result.close()
