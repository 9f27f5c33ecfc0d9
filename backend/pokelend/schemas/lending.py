"""
PokeLend Backend — Lending Request/Response Schemas
=====================================================

What:  Pydantic models for the write endpoints (reserve, return, favorite-list
       borrow).
How:   Request fields are deliberately loose (`Any`/Optional): the lending
       engine owns input validation so every caller, HTTP or not, gets the
       same rules and the same ValidationError (400) instead of FastAPI's
       generic 422.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class ReserveRequest(BaseModel):
    """Body of POST /api/loans."""
    item_ids: Any = Field(default=None, description="Non-empty list of item ids (UUID strings)")
    credential: Optional[str] = Field(default=None, description="Borrower credential")
    duration_hours: Any = Field(default=None, description="Declared loan duration, 1-10 hours")
    comment: Any = Field(default=None, description="Optional free-text comment")


class ReturnRequest(BaseModel):
    """Body of PUT /api/history/{history_id}/return."""
    credential: Optional[str] = Field(default=None)


class ReturnManyRequest(BaseModel):
    """Body of PUT /api/history/return-multiple."""
    history_ids: Any = Field(default=None, description="Non-empty list of history entry ids")
    credential: Optional[str] = Field(default=None)


class GroupReserveRequest(BaseModel):
    """Body of POST /api/favorites/{list_id}/borrow."""
    credential: Optional[str] = Field(default=None)
    comment: Any = Field(default=None)


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class ReserveResponse(BaseModel):
    """
    What:  Result of a successful strict reservation.
    Who:   Returned by POST /api/loans with HTTP 201 Created.

    All history entries of the reservation share `borrowed_at`.
    """
    message: str = Field(description="Human-readable success message")
    borrower_id: str
    borrower_name: str
    history_ids: List[int] = Field(description="One history entry per reserved item")
    borrowed_at: datetime
    expected_return_at: Optional[datetime] = Field(
        default=None,
        description="borrowed_at + duration_hours; null when no duration was declared",
    )


class ReturnResponse(BaseModel):
    """
    Returned by both return endpoints. `count` is the number of history
    entries actually flipped; 0 means everything was already returned.
    """
    message: str
    count: int = Field(ge=0)


class SkippedItemResponse(BaseModel):
    item_id: str
    name: Optional[str] = None
    reason: str = Field(description="not_found, borrowed, inactive or conflict")


class GroupReserveResponse(BaseModel):
    """
    What:  Result of a favorite-list borrow.
    Why:   Group borrowing succeeds partially; `skipped` tells the client
           which members stayed behind and why.
    """
    message: str
    list_id: str
    reserved_count: int = Field(ge=0)
    history_ids: List[int] = Field(default_factory=list)
    skipped: List[SkippedItemResponse] = Field(default_factory=list)
