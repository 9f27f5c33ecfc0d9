"""
PokeLend Backend — Version-Guarded Item Mutator
=================================================

What:  The single code path that changes an item's status.
How:   One conditional UPDATE:

           UPDATE items
              SET status = :target, version = version + 1
            WHERE id = :id AND status = :expected [AND version = :seen]

       The rowcount says whether the guard matched. A miss (0 rows) means the
       item is gone or another transaction got there first; it is reported as
       `False`, never raised, so the coordinator decides what a miss means.
Who:   Called only by GroupCoordinator, inside an open LendingTransaction.
"""

import logging
from typing import Optional

from pokelend.models.item import Item, ItemStatus
from pokelend.services.storage import LendingTransaction

logger = logging.getLogger(__name__)

# The only transitions the lending engine may perform
ALLOWED_TRANSITIONS = frozenset({
    (ItemStatus.AVAILABLE, ItemStatus.BORROWED),
    (ItemStatus.BORROWED, ItemStatus.AVAILABLE),
})


async def transition_item(
    tx: LendingTransaction,
    item_id: str,
    expected: ItemStatus,
    target: ItemStatus,
    expected_version: Optional[int] = None,
) -> bool:
    """
    Moves one item from `expected` to `target` status.

    Args:
        tx: open transaction the write belongs to
        item_id: item to update
        expected: status the item must currently have
        target: status to set
        expected_version: version observed at read time; when given, the write
            only applies if nobody has changed the item since

    Returns:
        True if exactly one row was updated.

    Raises:
        ValueError: the (expected, target) pair is not a lending transition.
            Checked before any storage call.
    """
    expected = ItemStatus(expected)
    target = ItemStatus(target)
    if (expected, target) not in ALLOWED_TRANSITIONS:
        raise ValueError(
            f"Illegal item transition {expected.value} -> {target.value}"
        )

    conditions = [Item.status == expected.value]
    if expected_version is not None:
        conditions.append(Item.version == expected_version)

    rowcount = await tx.execute_conditional(
        Item,
        item_id,
        {"status": target.value, "version": Item.version + 1},
        conditions,
    )
    applied = rowcount == 1
    if not applied:
        logger.debug(
            "Transition %s -> %s missed for item %s (version %s)",
            expected.value,
            target.value,
            item_id,
            expected_version,
        )
    return applied
