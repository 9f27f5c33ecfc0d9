"""
PokeLend Backend — Catalog Service (Read Side)
================================================

What:  Read-only queries behind the item, clan and history endpoints.
How:   Plain SELECTs on the request-scoped session from get_db_session().
       Nothing here writes; item status is only ever changed by the lending
       engine.
Who:   Called by routes/catalog.py and routes/history.py.

Query Patterns:
    - Active loans: history_entries WHERE returned = false, joined to
      borrowers, grouped in Python by (borrower_id, borrowed_at)
    - History listing: ORDER BY id DESC with an id cursor
"""

import logging
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import desc, false, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pokelend.exceptions import InternalError, NotFoundError
from pokelend.models.borrower import Borrower
from pokelend.models.history import HistoryEntry
from pokelend.models.item import Clan, Item, clan_items
from pokelend.schemas.catalog import (
    ActiveGroupResponse,
    ActiveGroupsResponse,
    ActiveItemResponse,
    ClanItemsResponse,
    HistoryEntryResponse,
    HistoryListResponse,
    ItemResponse,
)

logger = logging.getLogger(__name__)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CatalogService:
    """
    Responsibilities:
        - get_item(): single item with its clan names
        - list_clan_items(): members of a clan, case-insensitive clan name
        - list_history(): cursor-paginated history, newest first
        - list_active_groups(): open loans grouped into reservation groups
    """

    async def _clan_names(self, db: AsyncSession, item_ids: List[str]) -> Dict[str, List[str]]:
        if not item_ids:
            return {}
        result = await db.execute(
            select(clan_items.c.item_id, Clan.name)
            .join(Clan, Clan.id == clan_items.c.clan_id)
            .where(clan_items.c.item_id.in_(item_ids))
            .order_by(Clan.name)
        )
        names: Dict[str, List[str]] = {}
        for item_id, clan_name in result.all():
            names.setdefault(item_id, []).append(clan_name)
        return names

    async def get_item(self, db: AsyncSession, item_id: str) -> ItemResponse:
        try:
            result = await db.execute(select(Item).where(Item.id == item_id))
            item = result.scalar_one_or_none()
            if item is None:
                raise NotFoundError(resource="item", resource_id=item_id)
            clans = await self._clan_names(db, [item.id])
        except NotFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error fetching item %s: %s", item_id, str(e))
            raise InternalError(
                message="Could not retrieve the item. Please try again.",
                context={"error_type": type(e).__name__},
            )

        return ItemResponse(
            id=item.id,
            type=item.type,
            name=item.name,
            held_item=item.held_item,
            status=item.status,
            version=item.version,
            clans=clans.get(item.id, []),
        )

    async def list_clan_items(self, db: AsyncSession, clan_name: str) -> ClanItemsResponse:
        try:
            result = await db.execute(
                select(Clan).where(func.lower(Clan.name) == clan_name.strip().lower())
            )
            clan = result.scalar_one_or_none()
            if clan is None:
                raise NotFoundError(resource="clan", resource_id=clan_name)

            result = await db.execute(
                select(Item)
                .join(clan_items, clan_items.c.item_id == Item.id)
                .where(clan_items.c.clan_id == clan.id)
                .order_by(Item.name)
            )
            items = list(result.scalars().all())
            clans = await self._clan_names(db, [i.id for i in items])
        except NotFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error listing clan %s: %s", clan_name, str(e))
            raise InternalError(
                message="Could not retrieve the clan. Please try again.",
                context={"error_type": type(e).__name__},
            )

        return ClanItemsResponse(
            clan=clan.name,
            elements=clan.elements,
            color=clan.color,
            items=[
                ItemResponse(
                    id=i.id,
                    type=i.type,
                    name=i.name,
                    held_item=i.held_item,
                    status=i.status,
                    version=i.version,
                    clans=clans.get(i.id, []),
                )
                for i in items
            ],
        )

    async def list_history(
        self,
        db: AsyncSession,
        limit: int = 20,
        cursor: Optional[int] = None,
        borrower_id: Optional[str] = None,
    ) -> HistoryListResponse:
        """
        History entries, newest first.

        Fetches limit + 1 rows to learn whether another page exists without a
        second paginated query.
        """
        try:
            query = (
                select(HistoryEntry, Borrower.name)
                .outerjoin(Borrower, Borrower.id == HistoryEntry.borrower_id)
            )
            count_query = select(func.count(HistoryEntry.id))
            if borrower_id:
                query = query.where(HistoryEntry.borrower_id == borrower_id)
                count_query = count_query.where(HistoryEntry.borrower_id == borrower_id)
            if cursor is not None:
                query = query.where(HistoryEntry.id < cursor)

            query = query.order_by(desc(HistoryEntry.id)).limit(limit + 1)
            rows = list((await db.execute(query)).all())
            total_count = (await db.execute(count_query)).scalar() or 0
        except SQLAlchemyError as e:
            logger.error("Database error listing history: %s", str(e), exc_info=True)
            raise InternalError(
                message="Could not retrieve history. Please try again.",
                context={"error_type": type(e).__name__},
            )

        has_more = len(rows) > limit
        rows = rows[:limit]
        next_cursor = rows[-1][0].id if has_more and rows else None

        return HistoryListResponse(
            entries=[
                HistoryEntryResponse(
                    id=entry.id,
                    item_id=entry.item_id,
                    item_name=entry.item_name,
                    borrower_id=entry.borrower_id,
                    borrower_name=borrower_name,
                    borrowed_at=_as_utc(entry.borrowed_at),
                    returned=entry.returned,
                    returned_at=_as_utc(entry.returned_at),
                    comment=entry.comment,
                    expected_return_at=_as_utc(entry.expected_return_at),
                )
                for entry, borrower_name in rows
            ],
            total_count=total_count,
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def list_active_groups(
        self,
        db: AsyncSession,
        now: Optional[datetime] = None,
    ) -> ActiveGroupsResponse:
        """
        Open loans grouped by (borrower, borrowed_at), newest group first.

        A group is overdue once its expected_return_at lies before `now`.
        """
        now = now or datetime.now(timezone.utc)
        try:
            result = await db.execute(
                select(HistoryEntry, Borrower.name)
                .join(Borrower, Borrower.id == HistoryEntry.borrower_id)
                .where(HistoryEntry.returned == false())
                .order_by(desc(HistoryEntry.borrowed_at), HistoryEntry.id)
            )
            rows = list(result.all())
            clans = await self._clan_names(
                db, [entry.item_id for entry, _ in rows if entry.item_id]
            )
        except SQLAlchemyError as e:
            logger.error("Database error listing active loans: %s", str(e), exc_info=True)
            raise InternalError(
                message="Could not retrieve active loans. Please try again.",
                context={"error_type": type(e).__name__},
            )

        groups: "OrderedDict[tuple, ActiveGroupResponse]" = OrderedDict()
        for entry, borrower_name in rows:
            borrowed_at = _as_utc(entry.borrowed_at)
            expected = _as_utc(entry.expected_return_at)
            key = (entry.borrower_id, borrowed_at)
            group = groups.get(key)
            if group is None:
                group = ActiveGroupResponse(
                    borrower_id=entry.borrower_id,
                    borrower_name=borrower_name,
                    borrowed_at=borrowed_at,
                    expected_return_at=expected,
                    overdue=expected is not None and expected < now,
                    comment=entry.comment,
                    history_ids=[],
                    items=[],
                )
                groups[key] = group
            group.history_ids.append(entry.id)
            group.items.append(
                ActiveItemResponse(
                    history_id=entry.id,
                    item_id=entry.item_id,
                    item_name=entry.item_name,
                    clans=clans.get(entry.item_id, []),
                )
            )

        return ActiveGroupsResponse(groups=list(groups.values()), total_items=len(rows))


catalog_service = CatalogService()
