"""
PokeLend Backend — Catalog Service Tests
==========================================

What we test:
    ✅ Item lookup with clan names, 404 for unknown ids
    ✅ Clan listing is case-insensitive
    ✅ History pagination by id cursor
    ✅ Active loans grouped by (borrower, borrowed_at) with overdue flag
"""

from datetime import timedelta

import pytest

from pokelend.exceptions import NotFoundError
from pokelend.services.catalog_service import CatalogService


class TestItems:

    def setup_method(self):
        self.catalog = CatalogService()

    @pytest.mark.asyncio
    async def test_get_item_includes_clans(self, session_factory, seed):
        async with session_factory() as db:
            item = await self.catalog.get_item(db, seed.pikachu)

        assert item.name == "Pikachu"
        assert item.held_item == "Light Ball"
        assert item.status == "available"
        assert item.version == 1
        assert item.clans == ["raibolt"]

    @pytest.mark.asyncio
    async def test_get_unknown_item(self, session_factory, seed):
        async with session_factory() as db:
            with pytest.raises(NotFoundError):
                await self.catalog.get_item(db, "missing")

    @pytest.mark.asyncio
    async def test_clan_lookup_ignores_case(self, session_factory, seed):
        async with session_factory() as db:
            result = await self.catalog.list_clan_items(db, "VOLCANIC")

        assert result.clan == "volcanic"
        assert result.color == "#dc2626"
        assert [i.name for i in result.items] == ["Charmander"]

    @pytest.mark.asyncio
    async def test_unknown_clan(self, session_factory, seed):
        async with session_factory() as db:
            with pytest.raises(NotFoundError):
                await self.catalog.list_clan_items(db, "nope")


class TestHistory:

    def setup_method(self):
        self.catalog = CatalogService()

    @pytest.mark.asyncio
    async def test_paginates_newest_first(self, service, session_factory, seed):
        reserved = await service.reserve(
            [seed.pikachu, seed.charmander, seed.squirtle], seed.ash_credential
        )
        ids = sorted(reserved.history_ids, reverse=True)

        async with session_factory() as db:
            page1 = await self.catalog.list_history(db, limit=2)
            page2 = await self.catalog.list_history(db, limit=2, cursor=page1.next_cursor)

        assert [e.id for e in page1.entries] == ids[:2]
        assert page1.has_more is True
        assert page1.total_count == 3
        assert page1.entries[0].borrower_name == "Ash"
        assert [e.id for e in page2.entries] == ids[2:]
        assert page2.has_more is False
        assert page2.next_cursor is None

    @pytest.mark.asyncio
    async def test_filters_by_borrower(self, service, session_factory, seed):
        await service.reserve([seed.pikachu], seed.ash_credential)
        await service.reserve([seed.squirtle], seed.misty_credential)

        async with session_factory() as db:
            result = await self.catalog.list_history(db, borrower_id=seed.misty)

        assert [e.item_name for e in result.entries] == ["Squirtle"]
        assert result.total_count == 1


class TestActiveGroups:

    def setup_method(self):
        self.catalog = CatalogService()

    @pytest.mark.asyncio
    async def test_groups_open_loans(self, service, session_factory, seed, frozen_now):
        ash = await service.reserve(
            [seed.pikachu, seed.charmander], seed.ash_credential, duration_hours=2
        )
        misty = await service.reserve([seed.squirtle], seed.misty_credential)
        await service.return_one(ash.history_ids[1], seed.ash_credential)

        async with session_factory() as db:
            result = await self.catalog.list_active_groups(
                db, now=frozen_now + timedelta(hours=3)
            )

        assert result.total_items == 2
        by_borrower = {g.borrower_name: g for g in result.groups}
        assert by_borrower["Ash"].history_ids == [ash.history_ids[0]]
        assert by_borrower["Ash"].items[0].clans == ["raibolt"]
        assert by_borrower["Ash"].overdue is True
        assert by_borrower["Misty"].history_ids == misty.history_ids
        assert by_borrower["Misty"].overdue is False

    @pytest.mark.asyncio
    async def test_not_overdue_before_deadline(self, service, session_factory, seed, frozen_now):
        await service.reserve([seed.pikachu], seed.ash_credential, duration_hours=5)

        async with session_factory() as db:
            result = await self.catalog.list_active_groups(db, now=frozen_now + timedelta(hours=1))

        assert result.groups[0].overdue is False
        assert result.groups[0].expected_return_at == frozen_now + timedelta(hours=5)
