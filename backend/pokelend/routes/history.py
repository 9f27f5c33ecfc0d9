"""
PokeLend Backend — History Route Handlers
===========================================

What:  Listing of history entries, active reservation groups, and the two
       return endpoints.
How:   Reads go through CatalogService on a request-scoped session; returns
       go through LendingService, which runs its own transactions.

Route order matters: /history/active and /history/return-multiple are
declared before the /history/{history_id} patterns.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from pokelend.database import get_db_session
from pokelend.schemas.catalog import ActiveGroupsResponse, ErrorResponse, HistoryListResponse
from pokelend.schemas.lending import ReturnManyRequest, ReturnRequest, ReturnResponse
from pokelend.services.catalog_service import catalog_service
from pokelend.services.lending_service import LendingService, get_lending_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["History"])


@router.get(
    "/history",
    response_model=HistoryListResponse,
    responses={500: {"description": "Server error", "model": ErrorResponse}},
    summary="List history entries, newest first",
)
async def list_history(
    response: Response,
    limit: int = Query(default=20, ge=1, le=100, description="Entries per page (max 100)"),
    cursor: Optional[int] = Query(
        default=None,
        ge=1,
        description="next_cursor from the previous page; omit for the first page",
    ),
    borrower_id: Optional[str] = Query(default=None, description="Only this borrower's entries"),
    db: AsyncSession = Depends(get_db_session),
) -> HistoryListResponse:
    result = await catalog_service.list_history(
        db=db, limit=limit, cursor=cursor, borrower_id=borrower_id
    )
    response.headers["X-Total-Count"] = str(result.total_count)
    return result


@router.get(
    "/history/active",
    response_model=ActiveGroupsResponse,
    responses={500: {"description": "Server error", "model": ErrorResponse}},
    summary="Open loans grouped by reservation",
)
async def list_active(db: AsyncSession = Depends(get_db_session)) -> ActiveGroupsResponse:
    return await catalog_service.list_active_groups(db=db)


@router.put(
    "/history/return-multiple",
    response_model=ReturnResponse,
    responses={
        400: {"description": "Invalid input", "model": ErrorResponse},
        401: {"description": "Invalid credential", "model": ErrorResponse},
        404: {"description": "First entry not found", "model": ErrorResponse},
        500: {"description": "Storage error", "model": ErrorResponse},
    },
    summary="Return several history entries at once",
    description=(
        "Returns every listed entry that is still open and belongs to the borrower of "
        "the first entry. Entries already returned only reduce the reported count."
    ),
)
async def return_many(
    body: ReturnManyRequest,
    service: LendingService = Depends(get_lending_service),
) -> ReturnResponse:
    return await service.return_many(history_ids=body.history_ids, credential=body.credential)


@router.put(
    "/history/{history_id}/return",
    response_model=ReturnResponse,
    responses={
        400: {"description": "Invalid input", "model": ErrorResponse},
        401: {"description": "Invalid credential", "model": ErrorResponse},
        404: {"description": "Entry not found", "model": ErrorResponse},
        500: {"description": "Storage error", "model": ErrorResponse},
    },
    summary="Return one history entry",
    description="Idempotent: returning an entry twice succeeds with count 0.",
)
async def return_one(
    history_id: int,
    body: ReturnRequest,
    service: LendingService = Depends(get_lending_service),
) -> ReturnResponse:
    return await service.return_one(history_id=history_id, credential=body.credential)
