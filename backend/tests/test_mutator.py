"""
PokeLend Backend — Version-Guarded Mutator Tests
==================================================

What we test:
    ✅ available → borrowed applies and bumps the version by one
    ✅ Stale version, wrong status and unknown id report a miss (no raise)
    ✅ Transitions outside available ↔ borrowed raise before any storage call
"""

import uuid
from unittest.mock import AsyncMock

import pytest

from pokelend.models.item import Item, ItemStatus
from pokelend.services.mutator import transition_item


class TestTransitionItem:

    @pytest.mark.asyncio
    async def test_applies_and_increments_version(self, store, seed, read_row):
        async def body(tx):
            return await transition_item(
                tx, seed.pikachu, ItemStatus.AVAILABLE, ItemStatus.BORROWED, expected_version=1
            )

        assert await store.transaction(body) is True

        item = await read_row(Item, seed.pikachu)
        assert item.status == "borrowed"
        assert item.version == 2

    @pytest.mark.asyncio
    async def test_without_version_guard_checks_status_only(self, store, seed, read_row):
        async def body(tx):
            return await transition_item(tx, seed.charmander, "available", "borrowed")

        assert await store.transaction(body) is True
        assert (await read_row(Item, seed.charmander)).version == 2

    @pytest.mark.asyncio
    async def test_stale_version_is_a_miss(self, store, seed, read_row):
        async def body(tx):
            return await transition_item(
                tx, seed.pikachu, ItemStatus.AVAILABLE, ItemStatus.BORROWED, expected_version=7
            )

        assert await store.transaction(body) is False

        item = await read_row(Item, seed.pikachu)
        assert item.status == "available"
        assert item.version == 1

    @pytest.mark.asyncio
    async def test_wrong_status_is_a_miss(self, store, seed, read_row):
        async def body(tx):
            return await transition_item(tx, seed.pikachu, ItemStatus.BORROWED, ItemStatus.AVAILABLE)

        assert await store.transaction(body) is False
        assert (await read_row(Item, seed.pikachu)).version == 1

    @pytest.mark.asyncio
    async def test_unknown_item_is_a_miss(self, store, seed):
        async def body(tx):
            return await transition_item(
                tx, str(uuid.uuid4()), ItemStatus.AVAILABLE, ItemStatus.BORROWED
            )

        assert await store.transaction(body) is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "expected, target",
        [
            (ItemStatus.AVAILABLE, ItemStatus.INACTIVE),
            (ItemStatus.INACTIVE, ItemStatus.AVAILABLE),
            (ItemStatus.BORROWED, ItemStatus.BORROWED),
        ],
    )
    async def test_illegal_transition_raises_before_storage(self, expected, target):
        tx = AsyncMock()

        with pytest.raises(ValueError, match="Illegal item transition"):
            await transition_item(tx, "any-id", expected, target)

        tx.execute_conditional.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_round_trip_moves_version_twice(self, store, seed, read_row):
        async def reserve(tx):
            return await transition_item(
                tx, seed.squirtle, ItemStatus.AVAILABLE, ItemStatus.BORROWED, expected_version=1
            )

        async def give_back(tx):
            return await transition_item(
                tx, seed.squirtle, ItemStatus.BORROWED, ItemStatus.AVAILABLE, expected_version=2
            )

        assert await store.transaction(reserve)
        assert await store.transaction(give_back)

        item = await read_row(Item, seed.squirtle)
        assert item.status == "available"
        assert item.version == 3
