"""
PokeLend Backend — Borrower SQLAlchemy Model
==============================================

What:  A registered trainer who may reserve items.

Known defect:
    `credential` is stored exactly as the trainer registered it and compared
    by equality (services/credentials.py). Existing rows hold plaintext, so
    the column is kept as-is; a hashed verifier can replace the comparison
    without changing the lending engine's interface.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from pokelend.database import Base


class Borrower(Base):
    __tablename__ = "borrowers"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    credential: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (Index("idx_borrowers_credential", "credential"),)

    def __repr__(self) -> str:
        # credential deliberately left out
        return f"<Borrower(id={self.id}, name='{self.name}')>"
