"""
PokeLend Backend — Lending Store (Transactional Storage Adapter)
==================================================================

What:  The only place lending writes touch the database. `LendingStore`
       runs a transaction body inside exactly one transaction;
       `LendingTransaction` is the handle the body uses to read and write.
How:   Each `transaction()` call opens a fresh AsyncSession from the injected
       session factory, begins a transaction, awaits the body, and guarantees
       rollback on every exit path that is not a normal return.
Who:   Used by GroupCoordinator and LendingService.
When:  Once per lending operation (reserve, return, favorite-list borrow).

Transaction States:
    pending ──begin()──▶ open ──commit()───▶ committed
                           │
                           ├──rollback()─▶ rolled_back
                           └──abort()────▶ aborted

    State is tracked on the handle itself, so the runner never has to guess
    whether the body already rolled back.

Retry Policy (tenacity):
    A body that fails with `sqlalchemy.exc.OperationalError` (lock timeout,
    serialization failure, dropped connection) is re-run from scratch in a
    NEW transaction, with exponential backoff and jitter. Domain errors
    (LendingError subclasses) are never retried. Commit failures surface as
    InternalError and are never retried either: the outcome of a failed
    COMMIT is unknown, and re-running the body could double-apply it.

Error Translation:
    SQLAlchemyError never escapes this module. It becomes InternalError with
    the driver exception type in `context["error_type"]` (logged only).
"""

import enum
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, TypeVar

from sqlalchemy import Table, select, update
from sqlalchemy.engine import Row
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)
from tenacity.wait import wait_base

from pokelend.config import settings
from pokelend.exceptions import InternalError, LendingError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TransactionState(str, enum.Enum):
    PENDING = "pending"
    OPEN = "open"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    ABORTED = "aborted"


def _table_of(target: Any) -> Table:
    """Accepts an ORM model class or a Core Table."""
    return target if isinstance(target, Table) else target.__table__


class LendingTransaction:
    """
    Transaction-scoped storage handle.

    Reads return Core `Row` objects (attribute access by column name), not ORM
    instances: the lending engine works on snapshots and never relies on
    identity-map state. Writes are conditional UPDATEs whose rowcount tells
    the caller whether the guard matched.

    Every method must be awaited before the next one is issued; a session is
    not safe for concurrent use.
    """

    def __init__(self, session: AsyncSession, label: str = "transaction"):
        self._session = session
        self.label = label
        self.state = TransactionState.PENDING

    @property
    def is_open(self) -> bool:
        return self.state is TransactionState.OPEN

    def _require_open(self, operation: str) -> None:
        if not self.is_open:
            raise RuntimeError(
                f"Cannot {operation}: transaction '{self.label}' is {self.state.value}"
            )

    async def begin(self) -> None:
        if self.state is not TransactionState.PENDING:
            raise RuntimeError(f"Transaction '{self.label}' was already started")
        await self._session.begin()
        self.state = TransactionState.OPEN

    # ── Reads ─────────────────────────────────────────────────────────────

    async def get(self, model: Any, row_id: Any) -> Optional[Row]:
        """Fetches one row by primary key `id`, or None."""
        self._require_open("read")
        table = _table_of(model)
        result = await self._session.execute(select(table).where(table.c.id == row_id))
        return result.first()

    async def query(
        self,
        target: Any,
        *criteria: Any,
        order_by: Iterable[Any] = (),
    ) -> list[Row]:
        """Selects every row of `target` matching all criteria."""
        self._require_open("read")
        stmt = select(_table_of(target))
        if criteria:
            stmt = stmt.where(*criteria)
        order = list(order_by)
        if order:
            stmt = stmt.order_by(*order)
        result = await self._session.execute(stmt)
        return list(result.all())

    # ── Writes ────────────────────────────────────────────────────────────

    async def execute_conditional(
        self,
        model: Any,
        row_id: Any,
        values: Dict[str, Any],
        conditions: Iterable[Any] = (),
    ) -> int:
        """
        UPDATE one row by id, only if every condition still holds.

        Returns the number of rows affected (0 or 1). Zero means the row is
        missing or a condition no longer matches; the caller decides whether
        that is fatal.
        """
        self._require_open("write")
        stmt = (
            update(model)
            .where(model.id == row_id, *conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def update_where(self, model: Any, values: Dict[str, Any], *criteria: Any) -> int:
        """UPDATE every row matching the criteria; returns the affected count."""
        self._require_open("write")
        stmt = (
            update(model)
            .where(*criteria)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def insert(self, obj: T) -> T:
        """Adds an ORM instance and flushes so its generated id is available."""
        self._require_open("write")
        self._session.add(obj)
        await self._session.flush()
        return obj

    # ── Termination ───────────────────────────────────────────────────────

    async def commit(self) -> None:
        """
        Commits the transaction.

        On failure the transaction is rolled back (best effort) and
        InternalError is raised. The original driver error is chained.
        """
        self._require_open("commit")
        try:
            await self._session.commit()
        except SQLAlchemyError as exc:
            logger.error(
                "Commit of transaction '%s' failed: %s",
                self.label,
                type(exc).__name__,
                exc_info=True,
            )
            self.state = TransactionState.ROLLED_BACK
            try:
                await self._session.rollback()
            except SQLAlchemyError:
                logger.error(
                    "Rollback after failed commit of '%s' also failed",
                    self.label,
                    exc_info=True,
                )
            raise InternalError(
                context={"error_type": type(exc).__name__, "transaction": self.label}
            ) from exc
        self.state = TransactionState.COMMITTED

    async def rollback(self, cause: Optional[BaseException] = None) -> None:
        """
        Rolls back if still open; no-op otherwise.

        A failing rollback is logged together with `cause` and escalates to
        InternalError, replacing whatever error triggered it.
        """
        if not self.is_open:
            return
        self.state = TransactionState.ROLLED_BACK
        try:
            await self._session.rollback()
        except SQLAlchemyError as exc:
            logger.error(
                "Rollback of transaction '%s' failed (%s); original cause: %r",
                self.label,
                type(exc).__name__,
                cause,
                exc_info=True,
            )
            raise InternalError(
                context={
                    "error_type": type(exc).__name__,
                    "transaction": self.label,
                    "cause": type(cause).__name__ if cause else None,
                }
            ) from exc

    async def abort(self, reason: str) -> None:
        """Rolls back on purpose, e.g. when a guarded write lost a race."""
        logger.info("Aborting transaction '%s': %s", self.label, reason)
        await self.rollback()
        self.state = TransactionState.ABORTED


class LendingStore:
    """
    Runs transaction bodies against an injected session factory.

    Args:
        session_factory: async_sessionmaker bound to the target engine
        max_attempts:    total tries for a body failing with OperationalError
        wait:            tenacity wait strategy between tries (tests pass
                         `wait_none()`)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        max_attempts: Optional[int] = None,
        wait: Optional[wait_base] = None,
    ):
        self._session_factory = session_factory
        self.max_attempts = max_attempts or settings.retry_max_attempts
        # min_wait * 2^attempt capped at max_wait, plus up to min_wait of jitter
        self._wait = wait if wait is not None else (
            wait_exponential(multiplier=settings.retry_min_wait, max=settings.retry_max_wait)
            + wait_random(0, settings.retry_min_wait)
        )

    @property
    def session_factory(self) -> async_sessionmaker:
        return self._session_factory

    async def transaction(
        self,
        body: Callable[[LendingTransaction], Awaitable[T]],
        *,
        label: str = "transaction",
    ) -> T:
        """
        Awaits `body(tx)` inside one transaction and returns its result.

        The body commits (or aborts) explicitly. If it returns while the
        transaction is still open, the runner commits on its behalf.

        Raises:
            LendingError: whatever the body raised, after rollback
            InternalError: storage failure, including exhausted retries
        """
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(OperationalError),
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    result = await self._run_once(body, label)
        except LendingError:
            raise
        except SQLAlchemyError as exc:
            logger.error(
                "Transaction '%s' failed: %s",
                label,
                type(exc).__name__,
                exc_info=True,
            )
            raise InternalError(
                context={"error_type": type(exc).__name__, "transaction": label}
            ) from exc
        return result

    async def _run_once(
        self,
        body: Callable[[LendingTransaction], Awaitable[T]],
        label: str,
    ) -> T:
        async with self._session_factory() as session:
            tx = LendingTransaction(session, label=label)
            try:
                await tx.begin()
                result = await body(tx)
                if tx.is_open:
                    await tx.commit()
                return result
            except BaseException as exc:
                # Includes CancelledError: the session goes back to the pool clean
                await tx.rollback(cause=exc)
                raise
