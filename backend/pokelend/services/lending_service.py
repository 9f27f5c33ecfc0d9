"""
PokeLend Backend — Lending Service (Engine API)
=================================================

What:  The four lending operations exposed to the HTTP layer: reserve,
       return_one, return_many and reserve_from_group.
Why:   Keeps validation, authentication and orchestration in one place,
       independent of HTTP concerns.
How:   Validates input, resolves the borrower through a CredentialVerifier,
       then delegates the multi-row work to GroupCoordinator.
Who:   Called by route handlers in routes/lending.py and routes/history.py.

Orchestration Flow (POST /api/loans):
    ┌───────────┐    ┌──────────────┐    ┌──────────────────┐    ┌──────────┐
    │ Validate  │───▶│ Authenticate │───▶│ Coordinator      │───▶│ Response │
    │ (no I/O)  │    │ (credential) │    │ (one transaction)│    │          │
    └───────────┘    └──────────────┘    └──────────────────┘    └──────────┘

    ValidationError and AuthError are raised before any write transaction
    opens, so a rejected call never changes state.

Policy Divergence:
    `reserve` is strict (all-or-nothing); `reserve_from_group` is inclusive
    (reserves whatever part of the favorite list is available). Returns are
    always inclusive: already-returned entries only shrink the count.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional

from pokelend.config import settings
from pokelend.database import async_session_factory
from pokelend.exceptions import AuthError, ConflictError, NotFoundError, ValidationError
from pokelend.models.favorite import FavoriteList, favorite_list_items
from pokelend.models.history import HistoryEntry
from pokelend.schemas.lending import (
    GroupReserveResponse,
    ReserveResponse,
    ReturnResponse,
    SkippedItemResponse,
)
from pokelend.services.coordinator import GroupCoordinator
from pokelend.services.credentials import CredentialVerifier, PlaintextCredentialVerifier
from pokelend.services.storage import LendingStore, LendingTransaction

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LendingService:
    """
    Lending engine entry points.

    Dependencies are injected at construction; the module-level
    `lending_service` instance is built once from the application's session
    factory.

    Args:
        store:       transactional storage adapter
        coordinator: group transaction logic (defaults to one over `store`)
        clock:       returns the current UTC time (tests freeze it)
        verifier:    credential check (defaults to the plaintext verifier)
    """

    def __init__(
        self,
        store: LendingStore,
        coordinator: Optional[GroupCoordinator] = None,
        clock: Optional[Callable[[], datetime]] = None,
        verifier: Optional[CredentialVerifier] = None,
    ):
        self.store = store
        self.coordinator = coordinator or GroupCoordinator(store)
        self.clock = clock or _utcnow
        self.verifier = verifier or PlaintextCredentialVerifier(store.session_factory)

    # ── Validation (pure, no I/O) ─────────────────────────────────────────

    @staticmethod
    def _validate_item_ids(item_ids: Any) -> List[str]:
        """Non-empty list of UUID strings; duplicates collapsed in order."""
        if not isinstance(item_ids, (list, tuple)) or not item_ids:
            raise ValidationError("Select at least one item to reserve", field="item_ids")

        malformed = []
        cleaned = []
        for raw in item_ids:
            value = raw.strip() if isinstance(raw, str) else raw
            try:
                # Canonical form, so case and brace variants of one id collapse
                cleaned.append(str(uuid.UUID(value)))
            except (TypeError, ValueError, AttributeError):
                malformed.append(str(raw))

        if malformed:
            raise ValidationError(
                f"Invalid item id(s): {', '.join(malformed)}",
                field="item_ids",
                context={"item_ids": malformed},
            )
        return list(dict.fromkeys(cleaned))

    @staticmethod
    def _validate_duration(duration_hours: Any) -> Optional[int]:
        if duration_hours is None:
            return None
        if isinstance(duration_hours, bool) or not isinstance(duration_hours, int):
            raise ValidationError("Loan duration must be a whole number of hours", field="duration_hours")
        if not settings.loan_min_hours <= duration_hours <= settings.loan_max_hours:
            raise ValidationError(
                f"Loan duration must be between {settings.loan_min_hours} and "
                f"{settings.loan_max_hours} hours",
                field="duration_hours",
            )
        return duration_hours

    @staticmethod
    def _validate_comment(comment: Any) -> Optional[str]:
        if comment is None:
            return None
        if not isinstance(comment, str):
            raise ValidationError("Comment must be text", field="comment")
        comment = comment.strip()
        if not comment:
            return None
        if len(comment) > settings.comment_max_length:
            raise ValidationError(
                f"Comment must be at most {settings.comment_max_length} characters",
                field="comment",
            )
        return comment

    @staticmethod
    def _validate_credential(credential: Any) -> str:
        if not isinstance(credential, str) or not credential.strip():
            raise ValidationError("A borrower credential is required", field="credential")
        return credential

    @staticmethod
    def _validate_history_id(history_id: Any) -> int:
        if isinstance(history_id, bool) or not isinstance(history_id, int) or history_id <= 0:
            raise ValidationError(
                f"Invalid history entry id: {history_id}", field="history_id"
            )
        return history_id

    @classmethod
    def _validate_history_ids(cls, history_ids: Any) -> List[int]:
        if not isinstance(history_ids, (list, tuple)) or not history_ids:
            raise ValidationError("Select at least one entry to return", field="history_ids")
        invalid = [
            h for h in history_ids
            if isinstance(h, bool) or not isinstance(h, int) or h <= 0
        ]
        if invalid:
            raise ValidationError(
                f"Invalid history entry id(s): {', '.join(str(h) for h in invalid)}",
                field="history_ids",
                context={"history_ids": [str(h) for h in invalid]},
            )
        return list(dict.fromkeys(history_ids))

    # ── Lookups ───────────────────────────────────────────────────────────

    async def _authenticate(self, credential: str):
        borrower = await self.verifier.identify(credential)
        if borrower is None:
            logger.info("Rejected reservation: unknown credential")
            raise AuthError()
        return borrower

    async def _load_entry(self, history_id: int):
        async def body(tx: LendingTransaction):
            return await tx.get(HistoryEntry, history_id)

        entry = await self.store.transaction(body, label="load_history_entry")
        if entry is None:
            raise NotFoundError(resource="history entry", resource_id=str(history_id))
        return entry

    async def _load_favorite_members(self, list_id: str):
        async def body(tx: LendingTransaction):
            favorite = await tx.get(FavoriteList, list_id)
            if favorite is None:
                return None, []
            members = await tx.query(
                favorite_list_items,
                favorite_list_items.c.list_id == list_id,
                order_by=[favorite_list_items.c.item_id],
            )
            return favorite, [m.item_id for m in members]

        favorite, member_ids = await self.store.transaction(body, label="load_favorite_list")
        if favorite is None:
            raise NotFoundError(resource="favorite list", resource_id=list_id)
        return favorite, member_ids

    # ── Operations ────────────────────────────────────────────────────────

    async def reserve(
        self,
        item_ids: Any,
        credential: Any,
        duration_hours: Any = None,
        comment: Any = None,
    ) -> ReserveResponse:
        """
        Reserves every listed item for the borrower owning `credential`.

        Raises:
            ValidationError: empty/malformed ids, bad duration, comment too
                long, missing credential (no storage call made)
            AuthError: credential matches no borrower
            NotFoundError: one or more items do not exist
            ConflictError: one or more items are unavailable or were taken
                concurrently; nothing was reserved
            InternalError: storage failure
        """
        ids = self._validate_item_ids(item_ids)
        duration = self._validate_duration(duration_hours)
        comment = self._validate_comment(comment)
        credential = self._validate_credential(credential)

        borrower = await self._authenticate(credential)

        borrowed_at = self.clock()
        expected_return_at = borrowed_at + timedelta(hours=duration) if duration else None

        reserved = await self.coordinator.reserve_all(
            ids,
            borrower_id=borrower.id,
            borrowed_at=borrowed_at,
            comment=comment,
            expected_return_at=expected_return_at,
        )

        return ReserveResponse(
            message=f"{len(reserved)} item(s) reserved by {borrower.name}",
            borrower_id=borrower.id,
            borrower_name=borrower.name,
            history_ids=[r.history_id for r in reserved],
            borrowed_at=borrowed_at,
            expected_return_at=expected_return_at,
        )

    async def return_one(self, history_id: Any, credential: Any) -> ReturnResponse:
        """
        Returns one history entry. Returning an entry twice is a success with
        count 0.

        Raises:
            ValidationError, NotFoundError, AuthError
        """
        history_id = self._validate_history_id(history_id)
        credential = self._validate_credential(credential)

        entry = await self._load_entry(history_id)
        if not await self.verifier.verify(entry.borrower_id, credential):
            raise AuthError()

        if entry.returned:
            return ReturnResponse(message=f"{entry.item_name} was already returned", count=0)

        outcome = await self.coordinator.return_entry(
            history_id, entry.borrower_id, self.clock()
        )
        if not outcome.flipped:
            return ReturnResponse(message=f"{entry.item_name} was already returned", count=0)
        return ReturnResponse(message=f"{entry.item_name} returned successfully", count=1)

    async def return_many(self, history_ids: Any, credential: Any) -> ReturnResponse:
        """
        Returns a batch of history entries owned by one borrower.

        The first id decides the borrower: it must exist and the credential
        must belong to its borrower. Other ids that are unknown, already
        returned or owned by someone else are skipped and reduce the count.
        """
        ids = self._validate_history_ids(history_ids)
        credential = self._validate_credential(credential)

        first = await self._load_entry(ids[0])
        if not await self.verifier.verify(first.borrower_id, credential):
            raise AuthError()

        outcome = await self.coordinator.return_entries(
            ids, first.borrower_id, self.clock()
        )
        if outcome.flipped == 0:
            message = "All selected entries were already returned"
        else:
            message = f"{outcome.flipped} item(s) returned successfully"
        return ReturnResponse(message=message, count=outcome.flipped)

    async def reserve_from_group(
        self,
        group_id: Any,
        credential: Any,
        comment: Any = None,
    ) -> GroupReserveResponse:
        """
        Borrows the currently available members of a favorite list.

        Raises:
            ValidationError: malformed list id, empty list, bad comment or
                missing credential
            AuthError: credential matches no borrower
            NotFoundError: unknown favorite list
            ConflictError: no member could be reserved (skipped ids listed)
        """
        if not isinstance(group_id, str) or not group_id.strip():
            raise ValidationError("A favorite list id is required", field="list_id")
        group_id = group_id.strip()
        comment = self._validate_comment(comment)
        credential = self._validate_credential(credential)

        borrower = await self._authenticate(credential)
        favorite, member_ids = await self._load_favorite_members(group_id)
        if not member_ids:
            raise ValidationError(
                f"Favorite list '{favorite.name}' has no items", field="list_id"
            )

        outcome = await self.coordinator.reserve_available(
            member_ids,
            borrower_id=borrower.id,
            borrowed_at=self.clock(),
            comment=comment,
        )
        if not outcome.reserved:
            raise ConflictError(
                message=f"No item of favorite list '{favorite.name}' is available",
                item_ids=[s.item_id for s in outcome.skipped],
            )

        return GroupReserveResponse(
            message=(
                f"{len(outcome.reserved)} of {len(member_ids)} item(s) from "
                f"'{favorite.name}' reserved by {borrower.name}"
            ),
            list_id=group_id,
            reserved_count=len(outcome.reserved),
            history_ids=[r.history_id for r in outcome.reserved],
            skipped=[
                SkippedItemResponse(item_id=s.item_id, name=s.name, reason=s.reason)
                for s in outcome.skipped
            ],
        )


# ── Singleton Instance ────────────────────────────────────────────────────
lending_service = LendingService(LendingStore(async_session_factory))


def get_lending_service() -> LendingService:
    """FastAPI dependency; tests override it with a service bound to their engine."""
    return lending_service
