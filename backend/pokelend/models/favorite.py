"""
PokeLend Backend — Favorite List SQLAlchemy Model
===================================================

What:  A shared, named, predefined set of items (`favorite_lists`) that can
       be borrowed in one action through the favorite-list borrow endpoint.
       Membership lives in `favorite_list_items`.

The list itself never changes state when borrowed; only its member items do.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String, Table, text
from sqlalchemy.orm import Mapped, mapped_column

from pokelend.database import Base


favorite_list_items = Table(
    "favorite_list_items",
    Base.metadata,
    Column("list_id", String(36), ForeignKey("favorite_lists.id", ondelete="CASCADE"), primary_key=True),
    Column("item_id", String(36), ForeignKey("items.id", ondelete="CASCADE"), primary_key=True),
)


class FavoriteList(Base):
    __tablename__ = "favorite_lists"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return f"<FavoriteList(id={self.id}, name='{self.name}')>"
