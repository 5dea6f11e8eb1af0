"""
Transaction store: the single source of truth for payment status.

Every mutation is one conditional upsert, so concurrent webhook deliveries
for the same id converge without a lost update:

    INSERT ... ON CONFLICT (id) DO UPDATE SET ...
    WHERE status NOT IN ('COMPLETED', 'FAILED') AND status <> excluded.status
      AND NOT (status = 'EXPIRED' AND excluded.status = 'PENDING')
    RETURNING id

A row is returned only when the write was applied, which tells callers
whether a delivery changed anything.
"""
import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

import structlog
from sqlalchemy import and_, case, func, not_, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from payment_confirmation.core.exceptions import DependencyError, NotFoundError
from payment_confirmation.database.models import (
    TERMINAL_STATUSES,
    Transaction,
    TransactionStatus,
)
from payment_confirmation.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)

_INSERT_BY_DIALECT = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}

_TERMINAL_VALUES = [status.value for status in TERMINAL_STATUSES]


@dataclass(frozen=True)
class UpsertResult:
    """Outcome of an upsert: the current row and whether this call changed it."""

    transaction: Transaction
    applied: bool


class TransactionStore:
    """
    Durable record of payment attempts keyed by provider identifier.

    Built once per process around the shared engine. Each call uses its own
    session and is bounded by ``timeout_seconds``; writes run shielded so a
    caller timeout or disconnect never aborts a started upsert.
    """

    def __init__(self, engine: AsyncEngine, timeout_seconds: float = 5.0) -> None:
        """
        Initialize the store.

        Args:
            engine: Process-wide async engine
            timeout_seconds: Upper bound for a single store call

        Raises:
            ValueError: If the engine's dialect has no atomic upsert support here
        """
        dialect = engine.dialect.name
        if dialect not in _INSERT_BY_DIALECT:
            raise ValueError(f"Unsupported database dialect for upserts: {dialect}")

        self._insert = _INSERT_BY_DIALECT[dialect]
        self._session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        self.timeout_seconds = timeout_seconds
        self._inflight: Set[asyncio.Task] = set()

        logger.info("transaction_store_initialized", dialect=dialect)

    async def get(self, transaction_id: str) -> Transaction:
        """
        Look up a transaction by id.

        Args:
            transaction_id: Provider- or system-assigned identifier

        Returns:
            Transaction: Current stored row

        Raises:
            NotFoundError: If no row exists for the id
            DependencyError: If the database is unavailable or too slow
        """
        start_time = time.perf_counter()
        try:
            transaction = await asyncio.wait_for(
                self._get(transaction_id), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError as e:
            logger.error("store_get_timeout", transaction_id=transaction_id)
            raise DependencyError("Transaction lookup timed out") from e
        finally:
            metrics.record_store_read(time.perf_counter() - start_time)

        if transaction is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return transaction

    async def _get(self, transaction_id: str) -> Optional[Transaction]:
        try:
            async with self._session_factory() as session:
                return await session.get(Transaction, transaction_id)
        except (SQLAlchemyError, OSError) as e:
            logger.error("store_get_failed", transaction_id=transaction_id, error=str(e))
            raise DependencyError(f"Transaction lookup failed: {str(e)}") from e

    async def upsert(
        self,
        transaction_id: str,
        status: TransactionStatus | str,
        *,
        user_id: str,
        package_id: str,
        provider: str,
        amount: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        expiry_time: Optional[datetime] = None,
    ) -> UpsertResult:
        """
        Create the transaction if absent, otherwise move it to ``status``.

        ``user_id``, ``package_id`` and ``provider`` are only written on
        creation. A terminal row is left untouched, as is a row already in
        ``status`` and an expired row asked to go back to PENDING; the
        result reports ``applied=False`` in each case.

        Args:
            transaction_id: Provider-assigned identifier
            status: Target status
            user_id: Application user reference
            package_id: Purchased offering
            provider: Payment channel identifier
            amount: Optional charged amount
            details: Optional provider metadata, merged over the stored value
            expiry_time: Optional provider expiry, informational only

        Returns:
            UpsertResult: Current row and whether this call changed it

        Raises:
            DependencyError: If the database is unavailable or too slow
        """
        status = TransactionStatus(status)
        now = datetime.now(timezone.utc)
        values = {
            "id": transaction_id,
            "user_id": user_id,
            "package_id": package_id,
            "provider": provider,
            "amount": amount,
            "status": status.value,
            "metadata": details,
            "expiry_time": expiry_time,
            "created_at": now,
            "updated_at": now,
        }

        start_time = time.perf_counter()
        task = asyncio.ensure_future(self._upsert(values))
        self._inflight.add(task)
        task.add_done_callback(self._on_upsert_done)

        try:
            result = await asyncio.wait_for(asyncio.shield(task), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            logger.error(
                "store_upsert_timeout",
                transaction_id=transaction_id,
                timeout_seconds=self.timeout_seconds,
            )
            raise DependencyError("Transaction update timed out") from e

        metrics.record_upsert(result.applied, time.perf_counter() - start_time)

        current = result.transaction
        if result.applied:
            logger.info(
                "transaction_upserted",
                transaction_id=transaction_id,
                status=current.status,
            )
        elif current.status != status:
            logger.warning(
                "transaction_transition_rejected",
                transaction_id=transaction_id,
                current_status=current.status,
                requested_status=status.value,
            )
        else:
            logger.info(
                "transaction_upsert_noop",
                transaction_id=transaction_id,
                status=current.status,
            )

        return result

    async def _upsert(self, values: Dict[str, Any]) -> UpsertResult:
        table = Transaction.__table__
        stmt = self._insert(table).values(values)
        excluded = stmt.excluded
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.id],
            set_={
                "status": excluded.status,
                "amount": func.coalesce(excluded.amount, table.c.amount),
                "metadata": func.coalesce(excluded["metadata"], table.c["metadata"]),
                "expiry_time": func.coalesce(excluded.expiry_time, table.c.expiry_time),
                # updated_at never moves backwards
                "updated_at": case(
                    (excluded.updated_at > table.c.updated_at, excluded.updated_at),
                    else_=table.c.updated_at,
                ),
            },
            where=and_(
                table.c.status.notin_(_TERMINAL_VALUES),
                table.c.status != excluded.status,
                # An expired code can still be paid but never reissued
                not_(
                    and_(
                        table.c.status == TransactionStatus.EXPIRED.value,
                        excluded.status == TransactionStatus.PENDING.value,
                    )
                ),
            ),
        ).returning(table.c.id)

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(stmt)
                    applied = result.scalar_one_or_none() is not None
                    transaction = await session.get(
                        Transaction, values["id"], populate_existing=True
                    )
        except (SQLAlchemyError, OSError) as e:
            logger.error("store_upsert_failed", transaction_id=values["id"], error=str(e))
            raise DependencyError(f"Transaction update failed: {str(e)}") from e

        return UpsertResult(transaction=transaction, applied=applied)

    def _on_upsert_done(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        # Writes that outlive a caller timeout are never awaited; mark their error retrieved
        if not task.cancelled():
            task.exception()

    async def ping(self) -> None:
        """Run a trivial query; raises DependencyError if the database is unreachable."""
        try:
            async with self._session_factory() as session:
                result = await asyncio.wait_for(
                    session.execute(text("SELECT 1")), timeout=self.timeout_seconds
                )
                result.scalar()
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            raise DependencyError(f"Database unreachable: {str(e)}") from e

    async def close(self) -> None:
        """Wait for in-flight writes to finish."""
        if self._inflight:
            logger.info("transaction_store_draining", inflight=len(self._inflight))
            await asyncio.gather(*self._inflight, return_exceptions=True)
