"""
Item state machine.

An item's status is the processing folder it physically sits in.

    TODO -> IN_PROGRESS -> DONE
                        -> ERROR
                        -> TODO   (a task reported WAIT)
    TODO -> ERROR                 (item could not be initialized)

ERROR is terminal for the inbox. An operator moves the item folder back
to TODO manually.
"""

from typing import Dict, FrozenSet

from .errors import InvalidStatusTransitionError
from .models import ItemStatus


VALID_TRANSITIONS: Dict[ItemStatus, FrozenSet[ItemStatus]] = {
    ItemStatus.TODO: frozenset({ItemStatus.IN_PROGRESS, ItemStatus.ERROR}),
    ItemStatus.IN_PROGRESS: frozenset({ItemStatus.TODO, ItemStatus.DONE, ItemStatus.ERROR}),
    ItemStatus.DONE: frozenset(),
    ItemStatus.ERROR: frozenset(),
}


def can_transition(current: ItemStatus, target: ItemStatus) -> bool:
    return ItemStatus(target) in VALID_TRANSITIONS.get(ItemStatus(current), frozenset())


def validate_transition(item_id: str, current: ItemStatus, target: ItemStatus) -> None:
    """
    Raises:
        InvalidStatusTransitionError: If the transition is not allowed
    """
    if not can_transition(current, target):
        raise InvalidStatusTransitionError(
            item_id, ItemStatus(current).value, ItemStatus(target).value
        )
