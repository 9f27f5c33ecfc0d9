"""
PokeLend Backend — Reservation Route Handlers
===============================================

What:  POST /api/loans (strict reservation of a list of items) and
       POST /api/favorites/{list_id}/borrow (inclusive favorite-list borrow).
How:   Parses the JSON body, hands raw values to LendingService, returns the
       response model with 201 Created.

Error responses (via global handlers):
    400 validation_error  · 401 invalid_credential · 404 not_found
    409 conflict          · 500 server_error
"""

import logging

from fastapi import APIRouter, Depends, status

from pokelend.schemas.catalog import ErrorResponse
from pokelend.schemas.lending import (
    GroupReserveRequest,
    GroupReserveResponse,
    ReserveRequest,
    ReserveResponse,
)
from pokelend.services.lending_service import LendingService, get_lending_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Lending"])

_ERRORS = {
    400: {"description": "Invalid input", "model": ErrorResponse},
    401: {"description": "Invalid credential", "model": ErrorResponse},
    404: {"description": "Unknown item or list", "model": ErrorResponse},
    409: {"description": "Item unavailable", "model": ErrorResponse},
    500: {"description": "Storage error", "model": ErrorResponse},
}


@router.post(
    "/loans",
    response_model=ReserveResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_ERRORS,
    summary="Reserve one or more items",
    description=(
        "Reserves every listed item for the borrower owning the credential. "
        "All-or-nothing: if any item is unknown or unavailable, nothing is reserved."
    ),
)
async def reserve_items(
    body: ReserveRequest,
    service: LendingService = Depends(get_lending_service),
) -> ReserveResponse:
    return await service.reserve(
        item_ids=body.item_ids,
        credential=body.credential,
        duration_hours=body.duration_hours,
        comment=body.comment,
    )


@router.post(
    "/favorites/{list_id}/borrow",
    response_model=GroupReserveResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_ERRORS,
    summary="Borrow the available items of a favorite list",
    description=(
        "Reserves the members of a favorite list that are available right now and "
        "reports the rest as skipped. Fails with 409 only if nothing could be reserved."
    ),
)
async def borrow_favorite_list(
    list_id: str,
    body: GroupReserveRequest,
    service: LendingService = Depends(get_lending_service),
) -> GroupReserveResponse:
    result = await service.reserve_from_group(
        group_id=list_id,
        credential=body.credential,
        comment=body.comment,
    )
    if result.skipped:
        logger.info(
            "Favorite list %s borrowed partially: %d skipped",
            list_id,
            len(result.skipped),
        )
    return result
