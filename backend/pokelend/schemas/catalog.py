"""
PokeLend Backend — Catalog & History Read Schemas
===================================================

What:  Response models for the read-only endpoints (item lookup, clan
       listing, history listing, active loans) plus the shared error and
       health shapes.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Items & Clans
# ══════════════════════════════════════════════════════════════════════════


class ItemResponse(BaseModel):
    id: str = Field(description="Item identifier (UUID string)")
    type: Optional[str] = None
    name: str
    held_item: Optional[str] = None
    status: str = Field(description="available, borrowed or inactive")
    version: int = Field(description="Optimistic concurrency counter")
    clans: List[str] = Field(default_factory=list, description="Names of the clans the item belongs to")

    model_config = {"from_attributes": True}


class ClanItemsResponse(BaseModel):
    clan: str
    elements: str
    color: str
    items: List[ItemResponse]


# ══════════════════════════════════════════════════════════════════════════
# History
# ══════════════════════════════════════════════════════════════════════════


class HistoryEntryResponse(BaseModel):
    """One row of GET /api/history."""
    id: int
    item_id: Optional[str] = None
    item_name: str
    borrower_id: str
    borrower_name: Optional[str] = None
    borrowed_at: datetime
    returned: bool
    returned_at: Optional[datetime] = None
    comment: Optional[str] = None
    expected_return_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class HistoryListResponse(BaseModel):
    """
    Cursor-paginated history, newest first.

    How cursor works:
        - next_cursor is the id of the last entry on this page
        - the next page is WHERE id < :cursor ORDER BY id DESC
        Autoincrement ids are the only stable ordering of history entries.
    """
    entries: List[HistoryEntryResponse]
    total_count: int
    next_cursor: Optional[int] = Field(default=None, description="Null when there are no more pages")
    has_more: bool


class ActiveItemResponse(BaseModel):
    history_id: int
    item_id: Optional[str] = None
    item_name: str
    clans: List[str] = Field(default_factory=list)


class ActiveGroupResponse(BaseModel):
    """
    A reservation group that still has open entries: every entry a borrower
    reserved in one action (same borrower, same `borrowed_at`).
    """
    borrower_id: str
    borrower_name: str
    borrowed_at: datetime
    expected_return_at: Optional[datetime] = None
    overdue: bool = Field(description="True once expected_return_at has passed")
    comment: Optional[str] = None
    history_ids: List[int]
    items: List[ActiveItemResponse]


class ActiveGroupsResponse(BaseModel):
    groups: List[ActiveGroupResponse]
    total_items: int


# ══════════════════════════════════════════════════════════════════════════
# Error & Health
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Error body shared by every endpoint.

    Example:
        {
            "error": "conflict",
            "message": "Items not available: Pikachu (borrowed)",
            "details": {"item_ids": ["0d6c..."]},
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Offending ids, field name, retry hints")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="healthy or unhealthy")
    version: str
    database: str = Field(description="connected or disconnected")
    uptime_seconds: float
