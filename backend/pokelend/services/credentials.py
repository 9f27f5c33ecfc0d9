"""
PokeLend Backend — Borrower Credential Verification
=====================================================

What:  Turns a credential presented by a caller into a borrower (or a
       rejection).
How:   `CredentialVerifier` is the interface the lending engine depends on;
       `PlaintextCredentialVerifier` is the only implementation.

Known defect:
    Borrower credentials are stored in plaintext and compared by equality,
    because that is what the existing `borrowers` rows contain. identify()
    filters by the indexed column in SQL; verify() compares in constant time.
    The storage itself is not safe. A hashed verifier (e.g. argon2/bcrypt)
    should be added behind this same interface together with a data
    migration; until then the semantics of stored data are left untouched.
"""

import hmac
import logging
from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy import select
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import async_sessionmaker

from pokelend.models.borrower import Borrower

logger = logging.getLogger(__name__)


class CredentialVerifier(ABC):
    """
    Contract:
        - identify() maps a credential to a borrower or None
        - verify() checks a credential against one known borrower
        - Neither method raises for a wrong credential; the engine turns
          None/False into AuthError
    """

    @abstractmethod
    async def identify(self, credential: str) -> Optional[Row]:
        """Returns the (id, name) row of the borrower owning `credential`."""
        ...

    @abstractmethod
    async def verify(self, borrower_id: str, credential: str) -> bool:
        """True if `credential` belongs to the borrower `borrower_id`."""
        ...


class PlaintextCredentialVerifier(CredentialVerifier):
    """Compares against the plaintext `borrowers.credential` column."""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    @staticmethod
    def _matches(stored: str, presented: str) -> bool:
        return hmac.compare_digest(stored.encode("utf-8"), presented.encode("utf-8"))

    async def identify(self, credential: str) -> Optional[Row]:
        # Two rows are enough to detect a shared credential
        async with self._session_factory() as session:
            result = await session.execute(
                select(Borrower.id, Borrower.name)
                .where(Borrower.credential == credential)
                .order_by(Borrower.created_at, Borrower.id)
                .limit(2)
            )
            matches = result.all()

        if not matches:
            return None
        if len(matches) > 1:
            logger.warning("Credential shared by several borrowers; using %s", matches[0].id)
        return matches[0]

    async def verify(self, borrower_id: str, credential: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Borrower.credential).where(Borrower.id == borrower_id)
            )
            stored = result.scalar_one_or_none()
        return stored is not None and self._matches(stored, credential)
