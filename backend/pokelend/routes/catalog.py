"""
PokeLend Backend — Catalog Route Handlers
===========================================

What:  GET /api/items/{item_id} and GET /api/clans/{clan_name}/items.
Why:   Lets clients check an item's status and version before reserving.

Caching:
    No cache headers: item status changes with every reservation.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pokelend.database import get_db_session
from pokelend.schemas.catalog import ClanItemsResponse, ErrorResponse, ItemResponse
from pokelend.services.catalog_service import catalog_service

router = APIRouter(prefix="/api", tags=["Catalog"])


@router.get(
    "/items/{item_id}",
    response_model=ItemResponse,
    responses={404: {"description": "Item not found", "model": ErrorResponse}},
    summary="Get one item",
)
async def get_item(item_id: str, db: AsyncSession = Depends(get_db_session)) -> ItemResponse:
    return await catalog_service.get_item(db=db, item_id=item_id)


@router.get(
    "/clans/{clan_name}/items",
    response_model=ClanItemsResponse,
    responses={404: {"description": "Clan not found", "model": ErrorResponse}},
    summary="List the items of a clan",
    description="Clan names are matched case-insensitively.",
)
async def list_clan_items(
    clan_name: str,
    db: AsyncSession = Depends(get_db_session),
) -> ClanItemsResponse:
    return await catalog_service.list_clan_items(db=db, clan_name=clan_name)
