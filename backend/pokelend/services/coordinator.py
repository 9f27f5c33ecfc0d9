"""
PokeLend Backend — Group Transaction Coordinator
==================================================

What:  Sequences item mutations and history writes for a whole reservation
       group inside ONE transaction, and turns their individual outcomes into
       a single commit/rollback decision.
How:   Each public method hands a body to LendingStore.transaction(). The body
       reads, mutates (services/mutator.py), writes history rows and commits,
       awaiting every call before issuing the next one.
Who:   Called by LendingService after input validation and authentication.

Policies:
    ┌──────────────────────┬───────────────────────────────────────────────┐
    │ reserve_all          │ strict: one missing/unavailable item or one   │
    │                      │ lost race rolls back the whole group          │
    │ reserve_available    │ inclusive: reserves what it can, reports the  │
    │                      │ rest as skipped (favorite-list borrow)        │
    │ return_entries       │ inclusive: already-returned or foreign ids    │
    │                      │ drop out; the count shrinks, nothing fails    │
    │ return_entry         │ single entry; aborts if the entry was flipped │
    │                      │ by someone else meanwhile                     │
    └──────────────────────┴───────────────────────────────────────────────┘

Read-before-write:
    Reservation reads finish before the first write. The race left between
    that read and the write is caught by the mutator's version guard.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy import false
from sqlalchemy.engine import Row

from pokelend.exceptions import ConflictError, NotFoundError
from pokelend.models.history import HistoryEntry
from pokelend.models.item import Item, ItemStatus
from pokelend.services.mutator import transition_item
from pokelend.services.storage import LendingStore, LendingTransaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReservedItem:
    history_id: int
    item_id: str
    item_name: str


@dataclass(frozen=True)
class SkippedItem:
    item_id: str
    name: Optional[str]
    reason: str  # not_found | borrowed | inactive | conflict


@dataclass(frozen=True)
class GroupReserveOutcome:
    reserved: List[ReservedItem] = field(default_factory=list)
    skipped: List[SkippedItem] = field(default_factory=list)


@dataclass(frozen=True)
class ReturnOutcome:
    requested: int
    flipped: int
    item_ids: List[str] = field(default_factory=list)


class GroupCoordinator:
    """
    Multi-row transaction logic for the lending engine.

    Holds no state besides the injected store; every call is independent.
    """

    def __init__(self, store: LendingStore):
        self.store = store

    # ── Shared steps ──────────────────────────────────────────────────────

    async def _read_candidates(
        self, tx: LendingTransaction, item_ids: Sequence[str]
    ) -> Dict[str, Row]:
        """Snapshot (id, name, status, version) of every requested item."""
        rows = await tx.query(Item, Item.id.in_(list(item_ids)))
        return {row.id: row for row in rows}

    async def _write_history(
        self,
        tx: LendingTransaction,
        items: Sequence[Row],
        borrower_id: str,
        borrowed_at: datetime,
        comment: Optional[str],
        expected_return_at: Optional[datetime],
    ) -> List[ReservedItem]:
        reserved = []
        for row in items:
            entry = await tx.insert(
                HistoryEntry(
                    item_id=row.id,
                    item_name=row.name,
                    borrower_id=borrower_id,
                    borrowed_at=borrowed_at,
                    returned=False,
                    comment=comment,
                    expected_return_at=expected_return_at,
                )
            )
            reserved.append(
                ReservedItem(history_id=entry.id, item_id=row.id, item_name=row.name)
            )
        return reserved

    # ── Reserve ───────────────────────────────────────────────────────────

    async def reserve_all(
        self,
        item_ids: Sequence[str],
        borrower_id: str,
        borrowed_at: datetime,
        comment: Optional[str] = None,
        expected_return_at: Optional[datetime] = None,
    ) -> List[ReservedItem]:
        """
        Reserves every item or none.

        Raises:
            NotFoundError: one or more ids do not exist (all are named)
            ConflictError: one or more items are not available, or a
                concurrent transaction changed one after it was read
            InternalError: storage or commit failure
        """

        async def body(tx: LendingTransaction) -> List[ReservedItem]:
            snapshot = await self._read_candidates(tx, item_ids)

            missing = [i for i in item_ids if i not in snapshot]
            if missing:
                await tx.abort(f"{len(missing)} item(s) not found")
                raise NotFoundError(resource="item", resource_ids=missing)

            unavailable = [
                snapshot[i] for i in item_ids
                if snapshot[i].status != ItemStatus.AVAILABLE.value
            ]
            if unavailable:
                await tx.abort(f"{len(unavailable)} item(s) unavailable")
                described = ", ".join(f"{r.name} ({r.status})" for r in unavailable)
                raise ConflictError(
                    message=f"Items not available: {described}",
                    item_ids=[r.id for r in unavailable],
                )

            contended = []
            for item_id in item_ids:
                row = snapshot[item_id]
                applied = await transition_item(
                    tx, item_id, ItemStatus.AVAILABLE, ItemStatus.BORROWED,
                    expected_version=row.version,
                )
                if not applied:
                    contended.append(row)
                    break

            if contended:
                await tx.abort("lost race on item version")
                names = ", ".join(r.name for r in contended)
                raise ConflictError(
                    message=f"Items were reserved by someone else: {names}",
                    item_ids=[r.id for r in contended],
                )

            reserved = await self._write_history(
                tx,
                [snapshot[i] for i in item_ids],
                borrower_id,
                borrowed_at,
                comment,
                expected_return_at,
            )
            await tx.commit()
            return reserved

        reserved = await self.store.transaction(body, label="reserve")
        logger.info(
            "Borrower %s reserved %d item(s): %s",
            borrower_id,
            len(reserved),
            [r.item_id for r in reserved],
        )
        return reserved

    async def reserve_available(
        self,
        item_ids: Sequence[str],
        borrower_id: str,
        borrowed_at: datetime,
        comment: Optional[str] = None,
        expected_return_at: Optional[datetime] = None,
    ) -> GroupReserveOutcome:
        """
        Reserves the subset of items that is available right now.

        Nothing is written when no item could be reserved; the caller
        decides whether an empty outcome is an error.
        """

        async def body(tx: LendingTransaction) -> GroupReserveOutcome:
            snapshot = await self._read_candidates(tx, item_ids)

            skipped: List[SkippedItem] = []
            candidates: List[Row] = []
            for item_id in item_ids:
                row = snapshot.get(item_id)
                if row is None:
                    skipped.append(SkippedItem(item_id, None, "not_found"))
                elif row.status != ItemStatus.AVAILABLE.value:
                    skipped.append(SkippedItem(item_id, row.name, row.status))
                else:
                    candidates.append(row)

            transitioned: List[Row] = []
            for row in candidates:
                applied = await transition_item(
                    tx, row.id, ItemStatus.AVAILABLE, ItemStatus.BORROWED,
                    expected_version=row.version,
                )
                if applied:
                    transitioned.append(row)
                else:
                    skipped.append(SkippedItem(row.id, row.name, "conflict"))

            if not transitioned:
                await tx.abort("no item of the group was available")
                return GroupReserveOutcome(reserved=[], skipped=skipped)

            reserved = await self._write_history(
                tx, transitioned, borrower_id, borrowed_at, comment, expected_return_at
            )
            await tx.commit()
            return GroupReserveOutcome(reserved=reserved, skipped=skipped)

        outcome = await self.store.transaction(body, label="reserve_group")
        logger.info(
            "Borrower %s group-reserved %d item(s), skipped %d",
            borrower_id,
            len(outcome.reserved),
            len(outcome.skipped),
        )
        return outcome

    # ── Return ────────────────────────────────────────────────────────────

    async def return_entries(
        self,
        history_ids: Sequence[int],
        borrower_id: str,
        returned_at: datetime,
    ) -> ReturnOutcome:
        """
        Returns every still-open entry among `history_ids` owned by the
        borrower. Entries already returned, unknown or owned by someone else
        are left out of the count.
        """
        requested = len(history_ids)

        async def body(tx: LendingTransaction) -> ReturnOutcome:
            open_entries = await tx.query(
                HistoryEntry,
                HistoryEntry.id.in_(list(history_ids)),
                HistoryEntry.returned == false(),
                HistoryEntry.borrower_id == borrower_id,
                order_by=[HistoryEntry.id],
            )
            if not open_entries:
                await tx.abort("nothing left to return")
                return ReturnOutcome(requested=requested, flipped=0)

            item_ids: List[str] = []
            for entry in open_entries:
                if entry.item_id is not None and entry.item_id not in item_ids:
                    item_ids.append(entry.item_id)

            for item_id in item_ids:
                applied = await transition_item(
                    tx, item_id, ItemStatus.BORROWED, ItemStatus.AVAILABLE
                )
                if not applied:
                    logger.warning(
                        "Item %s was not borrowed while returning entries %s",
                        item_id,
                        list(history_ids),
                    )

            flipped = await tx.update_where(
                HistoryEntry,
                {"returned": True, "returned_at": returned_at},
                HistoryEntry.id.in_(list(history_ids)),
                HistoryEntry.returned == false(),
                HistoryEntry.borrower_id == borrower_id,
            )
            if flipped != requested:
                logger.warning(
                    "Returned %d of %d requested history entries for borrower %s",
                    flipped,
                    requested,
                    borrower_id,
                )
            await tx.commit()
            return ReturnOutcome(requested=requested, flipped=flipped, item_ids=item_ids)

        outcome = await self.store.transaction(body, label="return_many")
        logger.info(
            "Borrower %s returned %d entr(ies), %d item(s) restored",
            borrower_id,
            outcome.flipped,
            len(outcome.item_ids),
        )
        return outcome

    async def return_entry(
        self,
        history_id: int,
        borrower_id: str,
        returned_at: datetime,
    ) -> ReturnOutcome:
        """
        Returns a single entry.

        `flipped == 0` means the entry was already returned, possibly by a
        concurrent call; in that case nothing was written.

        Raises:
            NotFoundError: the entry no longer exists
        """

        async def body(tx: LendingTransaction) -> ReturnOutcome:
            entry = await tx.get(HistoryEntry, history_id)
            if entry is None:
                await tx.abort("history entry vanished")
                raise NotFoundError(resource="history entry", resource_id=str(history_id))
            if entry.returned:
                await tx.abort("history entry already returned")
                return ReturnOutcome(requested=1, flipped=0)

            if entry.item_id is not None:
                applied = await transition_item(
                    tx, entry.item_id, ItemStatus.BORROWED, ItemStatus.AVAILABLE
                )
                if not applied:
                    logger.warning(
                        "Item %s was not borrowed while returning entry %s",
                        entry.item_id,
                        history_id,
                    )

            flipped = await tx.update_where(
                HistoryEntry,
                {"returned": True, "returned_at": returned_at},
                HistoryEntry.id == history_id,
                HistoryEntry.returned == false(),
                HistoryEntry.borrower_id == borrower_id,
            )
            if flipped == 0:
                await tx.abort("history entry was returned concurrently")
                return ReturnOutcome(requested=1, flipped=0)

            await tx.commit()
            item_ids = [entry.item_id] if entry.item_id is not None else []
            return ReturnOutcome(requested=1, flipped=flipped, item_ids=item_ids)

        outcome = await self.store.transaction(body, label="return_one")
        if outcome.flipped:
            logger.info("Borrower %s returned entry %s", borrower_id, history_id)
        return outcome
