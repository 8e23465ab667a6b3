# src/models/errors.py

"""Exception hierarchy for grocery_scout."""


class GroceryScoutError(Exception):
    """Base class for all grocery_scout errors."""


class InputRejectedError(GroceryScoutError, ValueError):
    """A user-supplied value failed validation before use."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(reason)
        self.field = field
        self.reason = reason


class ProviderUnavailableError(GroceryScoutError):
    """The search provider call failed or timed out."""


class ProductNotIdentifiedError(GroceryScoutError):
    """A barcode could not be resolved to a product name."""


class ListNotFoundError(GroceryScoutError, LookupError):
    """No shopping list matched the requested id or name."""


class ItemNotFoundError(GroceryScoutError, LookupError):
    """No item on the list matched the requested id or name."""
