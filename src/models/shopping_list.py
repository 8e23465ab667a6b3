# src/models/shopping_list.py

"""Shopping list models and the account snapshot the core operates on."""

from dataclasses import dataclass, field
from typing import Any

from src.models.price_history import (
    HistoryIndex,
    history_from_dict,
    history_to_dict,
)


@dataclass(frozen=True)
class ShoppingListItem:
    """One free-text entry on a shopping list.

    ``best_price`` / ``best_store`` cache the best known quote for
    display only; the price history is authoritative.
    """

    id: str
    name: str
    checked: bool = False
    added_at: int = 0
    best_price: float | None = None
    best_store: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialise using the persisted camelCase field names."""
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "checked": self.checked,
            "addedAt": self.added_at,
        }
        if self.best_price is not None:
            data["bestPrice"] = self.best_price
        if self.best_store is not None:
            data["bestStore"] = self.best_store
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ShoppingListItem":
        """Build an item from its persisted form."""
        best_price = data.get("bestPrice")
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            checked=bool(data.get("checked", False)),
            added_at=int(data.get("addedAt", 0)),
            best_price=(
                float(best_price) if best_price is not None else None
            ),
            best_store=data.get("bestStore"),
        )


@dataclass(frozen=True)
class ShoppingList:
    """A named collection of shopping list items."""

    id: str
    name: str
    items: tuple[ShoppingListItem, ...] = ()
    created_at: int = 0

    @property
    def total(self) -> float:
        """Sum of the cached best prices (unpriced items count as 0)."""
        return round(
            sum(item.best_price or 0.0 for item in self.items), 2,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise using the persisted camelCase field names."""
        return {
            "id": self.id,
            "name": self.name,
            "items": [item.to_dict() for item in self.items],
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ShoppingList":
        """Build a list from its persisted form."""
        raw_items = data.get("items") or []
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            items=tuple(
                ShoppingListItem.from_dict(i)
                for i in raw_items
                if isinstance(i, dict)
            ),
            created_at=int(data.get("createdAt", 0)),
        )


@dataclass(frozen=True)
class AccountSnapshot:
    """Everything the core reads and writes for one account.

    Operations never mutate a snapshot; they return a new one and the
    caller decides when to commit it to the store.
    """

    lists: tuple[ShoppingList, ...] = ()
    history: HistoryIndex = field(default_factory=dict)

    def lists_document(self) -> dict[str, Any]:
        """Return the whole-document form of the shopping lists."""
        return {"lists": [sl.to_dict() for sl in self.lists]}

    def history_document(self) -> dict[str, Any]:
        """Return the whole-document form of the price history."""
        return {"history": history_to_dict(self.history)}

    @classmethod
    def from_documents(
        cls,
        lists_doc: dict[str, Any] | None,
        history_doc: dict[str, Any] | None,
    ) -> "AccountSnapshot":
        """Rebuild a snapshot from the two persisted documents."""
        raw_lists = (lists_doc or {}).get("lists") or []
        lists = tuple(
            ShoppingList.from_dict(sl)
            for sl in raw_lists
            if isinstance(sl, dict)
        )
        history = history_from_dict((history_doc or {}).get("history"))
        return cls(lists=lists, history=history)
