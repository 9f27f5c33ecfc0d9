"""
PokeLend Backend — HistoryEntry SQLAlchemy Model
==================================================

What:  One item's reservation-to-return record (`history_entries`).

Lifecycle:
    1. Inserted by a successful reservation (returned = false). Every entry
       written by the same reserve call shares one `borrowed_at`, which,
       together with `borrower_id`, identifies the reservation group.
    2. Flipped exactly once on return: returned = true, returned_at stamped.
    3. Never deleted by the lending engine.

`item_name` is copied from the item at borrow time and never updated, so
renaming or deleting an item does not rewrite history.

Query Patterns:
    - Open entries of a borrower: WHERE returned = false AND borrower_id = :b
      → idx_history_open_borrower
    - Newest first listing: ORDER BY id DESC (autoincrement order)
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from pokelend.database import Base


class HistoryEntry(Base):
    __tablename__ = "history_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    item_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("items.id", ondelete="SET NULL"),
        nullable=True,
    )

    item_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Item name captured at borrow time (immutable)",
    )

    borrower_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("borrowers.id", ondelete="CASCADE"),
        nullable=False,
    )

    borrowed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    returned: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )

    returned_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    # borrowed_at + declared duration; NULL when no duration was given
    expected_return_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        Index("idx_history_open_borrower", "returned", "borrower_id"),
        Index("idx_history_borrowed_at", "borrowed_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<HistoryEntry(id={self.id}, item='{self.item_name}', "
            f"returned={self.returned})>"
        )
