"""
PokeLend Backend — Item & Clan SQLAlchemy Models
==================================================

What:  ORM models for the lendable collection (`items`), the named groups
       items belong to (`clans`), and their many-to-many link (`clan_items`).
How:   Inherit from the shared DeclarativeBase; Alembic mirrors them in
       alembic/versions/001_create_lending_tables.py.

Item State Machine:
    available ──reserve──▶ borrowed ──return──▶ available
    inactive: administrative terminal state, never entered or left by the
              lending engine

    `version` starts at 1 and is incremented by exactly one on every
    accepted status transition (see services/mutator.py). A writer must
    present the version it read; a stale version makes the update miss.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pokelend.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ItemStatus(str, enum.Enum):
    """Values stored in items.status."""

    AVAILABLE = "available"
    BORROWED = "borrowed"
    INACTIVE = "inactive"


# ── Clan membership (many-to-many) ────────────────────────────────────────
clan_items = Table(
    "clan_items",
    Base.metadata,
    Column("clan_id", String(36), ForeignKey("clans.id", ondelete="CASCADE"), primary_key=True),
    Column("item_id", String(36), ForeignKey("items.id", ondelete="CASCADE"), primary_key=True),
    UniqueConstraint("clan_id", "item_id", name="uq_clan_items_clan_item"),
)


class Item(Base):
    """
    A unit of the lendable collection.

    Lifecycle:
        1. Created by an administrator with status 'available', version 1
        2. Reserved: status 'borrowed', version + 1
        3. Returned: status 'available', version + 1
        4. Deleted or set 'inactive' only by administrative tooling
    """

    __tablename__ = "items"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        comment="Opaque unique token (UUID string)",
    )

    type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    held_item: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        comment="Optional held accessory",
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ItemStatus.AVAILABLE.value,
        server_default=text("'available'"),
        comment="Lending state: available, borrowed, inactive",
    )

    # Optimistic concurrency counter; only services/mutator.py writes it
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        server_default=text("1"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    clans: Mapped[list["Clan"]] = relationship(
        secondary=clan_items,
        back_populates="items",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('available', 'borrowed', 'inactive')",
            name="ck_items_status",
        ),
        Index("idx_items_status", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Item(id={self.id}, name='{self.name}', "
            f"status='{self.status}', version={self.version})>"
        )


class Clan(Base):
    """A named collection of items (e.g. 'volcanic' for Fire types)."""

    __tablename__ = "clans"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    elements: Mapped[str] = mapped_column(String(100), nullable=False)
    color: Mapped[str] = mapped_column(String(7), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    items: Mapped[list[Item]] = relationship(
        secondary=clan_items,
        back_populates="clans",
    )

    def __repr__(self) -> str:
        return f"<Clan(name='{self.name}')>"
