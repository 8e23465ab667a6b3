# src/services/shopping_lists.py

"""Copy-on-write shopping list operations on an AccountSnapshot.

These are the user-authored writes: names are validated and the list
and item caps are enforced, raising ``InputRejectedError`` instead of
truncating.
"""

import dataclasses
import logging
import time
import uuid

from src.filters.input_validator import (
    FieldKind,
    ValidationResult,
    check_items_per_list,
    check_shopping_list_limits,
    validate,
)
from src.models.errors import (
    InputRejectedError,
    ItemNotFoundError,
    ListNotFoundError,
)
from src.models.shopping_list import (
    AccountSnapshot,
    ShoppingList,
    ShoppingListItem,
)

logger = logging.getLogger("grocery_scout.lists")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _require(result: ValidationResult, field: str) -> str:
    """Return the sanitised value or raise InputRejectedError."""
    if not result.valid:
        reason = result.error or f"{field} rejected"
        logger.warning("Rejected %s: %s", field, reason)
        raise InputRejectedError(field, reason)
    return result.sanitized or ""


def find_list(snapshot: AccountSnapshot, list_ref: str) -> ShoppingList:
    """Look a list up by id, then by case-insensitive name."""
    for sl in snapshot.lists:
        if sl.id == list_ref:
            return sl
    wanted = list_ref.strip().lower()
    for sl in snapshot.lists:
        if sl.name.strip().lower() == wanted:
            return sl
    raise ListNotFoundError(f"No shopping list named '{list_ref}'")


def find_item(
    shopping_list: ShoppingList, item_ref: str,
) -> ShoppingListItem:
    """Look an item up by id, then by case-insensitive name."""
    for item in shopping_list.items:
        if item.id == item_ref:
            return item
    wanted = item_ref.strip().lower()
    for item in shopping_list.items:
        if item.name.strip().lower() == wanted:
            return item
    raise ItemNotFoundError(
        f"No item '{item_ref}' on list '{shopping_list.name}'"
    )


def replace_list(
    snapshot: AccountSnapshot, updated: ShoppingList,
) -> AccountSnapshot:
    """Return a snapshot with the list of the same id swapped in."""
    lists = tuple(
        updated if sl.id == updated.id else sl
        for sl in snapshot.lists
    )
    return dataclasses.replace(snapshot, lists=lists)


def create_list(
    snapshot: AccountSnapshot,
    name: str,
    item_names: list[str] | None = None,
) -> tuple[AccountSnapshot, ShoppingList]:
    """Create a new list, optionally pre-filled with items."""
    names = item_names or []
    _require(
        check_shopping_list_limits(len(snapshot.lists), len(names)),
        FieldKind.LIST_NAME.value,
    )
    clean_name = _require(
        validate(name, FieldKind.LIST_NAME), FieldKind.LIST_NAME.value,
    )

    created_at = _now_ms()
    items = tuple(
        ShoppingListItem(
            id=uuid.uuid4().hex,
            name=_require(
                validate(item, FieldKind.ITEM_NAME),
                FieldKind.ITEM_NAME.value,
            ),
            added_at=created_at,
        )
        for item in names
    )
    new_list = ShoppingList(
        id=uuid.uuid4().hex,
        name=clean_name,
        items=items,
        created_at=created_at,
    )
    logger.info(
        "Created list '%s' with %d items", clean_name, len(items),
    )
    return (
        dataclasses.replace(snapshot, lists=(*snapshot.lists, new_list)),
        new_list,
    )


def add_item(
    snapshot: AccountSnapshot,
    list_ref: str,
    item_name: str,
    best_price: float | None = None,
    best_store: str | None = None,
) -> AccountSnapshot:
    """Append an item to a list."""
    target = find_list(snapshot, list_ref)
    _require(
        check_items_per_list(len(target.items)),
        FieldKind.ITEM_NAME.value,
    )
    clean_name = _require(
        validate(item_name, FieldKind.ITEM_NAME),
        FieldKind.ITEM_NAME.value,
    )
    item = ShoppingListItem(
        id=uuid.uuid4().hex,
        name=clean_name,
        added_at=_now_ms(),
        best_price=best_price,
        best_store=best_store,
    )
    logger.info("Added '%s' to list '%s'", clean_name, target.name)
    return replace_list(
        snapshot,
        dataclasses.replace(target, items=(*target.items, item)),
    )


def toggle_item(
    snapshot: AccountSnapshot, list_ref: str, item_id: str,
) -> AccountSnapshot:
    """Flip the checked flag of one item."""
    target = find_list(snapshot, list_ref)
    items = tuple(
        dataclasses.replace(item, checked=not item.checked)
        if item.id == item_id
        else item
        for item in target.items
    )
    return replace_list(snapshot, dataclasses.replace(target, items=items))


def remove_item(
    snapshot: AccountSnapshot, list_ref: str, item_id: str,
) -> AccountSnapshot:
    """Drop one item from a list."""
    target = find_list(snapshot, list_ref)
    items = tuple(item for item in target.items if item.id != item_id)
    return replace_list(snapshot, dataclasses.replace(target, items=items))


def delete_list(
    snapshot: AccountSnapshot, list_ref: str,
) -> AccountSnapshot:
    """Drop a whole list."""
    target = find_list(snapshot, list_ref)
    logger.info("Deleted list '%s'", target.name)
    return dataclasses.replace(
        snapshot,
        lists=tuple(sl for sl in snapshot.lists if sl.id != target.id),
    )
