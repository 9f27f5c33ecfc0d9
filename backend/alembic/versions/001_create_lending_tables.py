"""Create lending tables and seed clans

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Creates items, clans, clan_items, borrowers, history_entries,
       favorite_lists and favorite_list_items, then seeds the ten clans.
How:   Portable column types (String ids, DateTime(timezone=True)) so the same
       migration runs on PostgreSQL and SQLite.

Rollback: downgrade() drops every table (destructive).
"""

import uuid
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# (name, elements, color)
DEFAULT_CLANS = [
    ("malefic", "Dark, Ghost, Venom", "#6b21a8"),
    ("wingeon", "Flying, Dragon", "#0284c7"),
    ("ironhard", "Metal, Crystal", "#64748b"),
    ("volcanic", "Fire", "#dc2626"),
    ("seavell", "Water, Ice", "#0891b2"),
    ("gardestrike", "Fighting, Normal", "#b45309"),
    ("orebound", "Rock, Earth", "#92400e"),
    ("naturia", "Grass, Bug", "#16a34a"),
    ("psycraft", "Psychic, Fairy", "#d946ef"),
    ("raibolt", "Electric", "#facc15"),
]


def _clan_id(name: str) -> str:
    # Stable across databases, so seeds can be referenced by fixtures
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"pokelend:clan:{name}"))


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP"),
        nullable=False,
    )


def upgrade() -> None:
    # ── items ─────────────────────────────────────────────────────────────
    op.create_table(
        "items",
        sa.Column("id", sa.String(36), nullable=False, comment="Opaque unique token (UUID string)"),
        sa.Column("type", sa.String(50), nullable=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("held_item", sa.String(100), nullable=True, comment="Optional held accessory"),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'available'"),
            comment="Lending state: available, borrowed, inactive",
        ),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('available', 'borrowed', 'inactive')",
            name="ck_items_status",
        ),
    )
    op.create_index("idx_items_status", "items", ["status"])

    # ── clans ─────────────────────────────────────────────────────────────
    clans = op.create_table(
        "clans",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("elements", sa.String(100), nullable=False),
        sa.Column("color", sa.String(7), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "clan_items",
        sa.Column("clan_id", sa.String(36), sa.ForeignKey("clans.id", ondelete="CASCADE"), nullable=False),
        sa.Column("item_id", sa.String(36), sa.ForeignKey("items.id", ondelete="CASCADE"), nullable=False),
        sa.PrimaryKeyConstraint("clan_id", "item_id"),
        sa.UniqueConstraint("clan_id", "item_id", name="uq_clan_items_clan_item"),
    )

    # ── borrowers ─────────────────────────────────────────────────────────
    op.create_table(
        "borrowers",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("credential", sa.String(255), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("idx_borrowers_credential", "borrowers", ["credential"])

    # ── history_entries ───────────────────────────────────────────────────
    op.create_table(
        "history_entries",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("item_id", sa.String(36), sa.ForeignKey("items.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "item_name",
            sa.String(100),
            nullable=False,
            comment="Item name captured at borrow time (immutable)",
        ),
        sa.Column(
            "borrower_id",
            sa.String(36),
            sa.ForeignKey("borrowers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("borrowed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("returned", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("returned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("expected_return_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_history_open_borrower", "history_entries", ["returned", "borrower_id"])
    op.create_index("idx_history_borrowed_at", "history_entries", ["borrowed_at"])

    # ── favorite lists ────────────────────────────────────────────────────
    op.create_table(
        "favorite_lists",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_table(
        "favorite_list_items",
        sa.Column(
            "list_id",
            sa.String(36),
            sa.ForeignKey("favorite_lists.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("item_id", sa.String(36), sa.ForeignKey("items.id", ondelete="CASCADE"), nullable=False),
        sa.PrimaryKeyConstraint("list_id", "item_id"),
    )

    # ── seeds ─────────────────────────────────────────────────────────────
    op.bulk_insert(
        clans,
        [
            {"id": _clan_id(name), "name": name, "elements": elements, "color": color}
            for name, elements, color in DEFAULT_CLANS
        ],
    )


def downgrade() -> None:
    op.drop_table("favorite_list_items")
    op.drop_table("favorite_lists")
    op.drop_index("idx_history_borrowed_at", table_name="history_entries")
    op.drop_index("idx_history_open_borrower", table_name="history_entries")
    op.drop_table("history_entries")
    op.drop_index("idx_borrowers_credential", table_name="borrowers")
    op.drop_table("borrowers")
    op.drop_table("clan_items")
    op.drop_table("clans")
    op.drop_index("idx_items_status", table_name="items")
    op.drop_table("items")
