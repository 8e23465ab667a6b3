# tests/test_list_matcher.py

"""Tests for tiered list reconciliation."""

import unittest

from src.filters.list_matcher import (
    MATCH_TIERS,
    find_best_quote,
    match_quotes_to_list_items,
)
from src.filters.quote_parser import parse_price_data
from src.models.price_quote import PriceQuote
from src.models.shopping_list import ShoppingListItem


def _item(name: str, item_id: str = "1") -> ShoppingListItem:
    """Create a minimal list item."""
    return ShoppingListItem(id=item_id, name=name, added_at=1)


class TestMatchTiers(unittest.TestCase):
    """Tier policy in isolation."""

    def test_tier_order(self) -> None:
        """Tiers are evaluated exact, containment, resolved."""
        self.assertEqual(
            [name for name, _ in MATCH_TIERS],
            ["exact_query", "query_containment", "resolved_containment"],
        )

    def test_exact_beats_cheaper_resolved(self) -> None:
        """An exact query match wins over a cheaper resolved match."""
        quotes = [
            PriceQuote(
                store="Farm Stand",
                price=2.00,
                resolved_product_name="Farm Eggs 12ct",
            ),
            PriceQuote(
                store="Safeway",
                price=5.99,
                resolved_product_name="Lucerne Eggs",
                originating_query="Eggs",
            ),
        ]
        found = find_best_quote("Eggs", quotes)
        assert found is not None
        tier, quote = found
        self.assertEqual(tier, "exact_query")
        self.assertEqual(quote.store, "Safeway")

    def test_case_insensitive_exact(self) -> None:
        """Case differences do not matter."""
        quote = PriceQuote(store="A", price=1.0, originating_query="EGGS")
        found = find_best_quote("eggs", [quote])
        assert found is not None
        self.assertEqual(found[0], "exact_query")

    def test_containment_either_direction(self) -> None:
        """Query inside item and item inside query both match."""
        shorter = PriceQuote(store="A", price=1.0, originating_query="Egg")
        longer = PriceQuote(
            store="B", price=1.0, originating_query="Brown Eggs Dozen",
        )
        for quote in (shorter, longer):
            with self.subTest(query=quote.originating_query):
                found = find_best_quote("Brown Eggs", [quote])
                assert found is not None
                self.assertEqual(found[0], "query_containment")

    def test_resolved_containment(self) -> None:
        """Without a query, the resolved name must contain the item."""
        quote = PriceQuote(
            store="A", price=1.0,
            resolved_product_name="Organic Whole Milk 1gal",
        )
        found = find_best_quote("whole milk", [quote])
        assert found is not None
        self.assertEqual(found[0], "resolved_containment")

    def test_resolved_containment_is_one_way(self) -> None:
        """A resolved name inside the item name does not match."""
        quote = PriceQuote(
            store="A", price=1.0, resolved_product_name="Milk",
        )
        self.assertIsNone(find_best_quote("Whole Milk 1gal", [quote]))

    def test_first_in_order_wins_within_tier(self) -> None:
        """Ties within a tier resolve to input order."""
        quotes = [
            PriceQuote(store="First", price=9.0, originating_query="Eggs"),
            PriceQuote(store="Second", price=1.0, originating_query="Eggs"),
        ]
        found = find_best_quote("Eggs", quotes)
        assert found is not None
        self.assertEqual(found[1].store, "First")

    def test_blank_item_never_matches(self) -> None:
        """An empty item name matches nothing."""
        quote = PriceQuote(store="A", price=1.0, originating_query="Eggs")
        self.assertIsNone(find_best_quote("  ", [quote]))


class TestMatchQuotesToListItems(unittest.TestCase):
    """match_quotes_to_list_items unit tests."""

    def test_scenario_first_quote_and_rename(self) -> None:
        """The Safeway line wins and renames the item."""
        quotes = parse_price_data(
            "...---PRICE_DATA---\n"
            "Safeway|5.99|Lucerne Large Eggs 12ct|Eggs\n"
            "Trader Joe's|4.49|TJ Eggs|Eggs"
        )
        [updated] = match_quotes_to_list_items([_item("Eggs")], quotes)
        self.assertEqual(updated.name, "Lucerne Large Eggs 12ct")
        self.assertEqual(updated.best_price, 5.99)
        self.assertEqual(updated.best_store, "Safeway")
        self.assertEqual(updated.id, "1")

    def test_keeps_name_without_resolved_product(self) -> None:
        """No resolved name means no rename."""
        quote = PriceQuote(store="A", price=2.5, originating_query="Milk")
        [updated] = match_quotes_to_list_items([_item("Milk")], [quote])
        self.assertEqual(updated.name, "Milk")
        self.assertEqual(updated.best_price, 2.5)

    def test_keeps_name_when_resolved_name_is_not_a_valid_item(self) -> None:
        """A resolved name with % or / is not adopted; price still is."""
        quotes = parse_price_data(
            "---PRICE_DATA---\n"
            "Safeway|3.99|Lucerne 2% Reduced Fat Milk, 1/2 Gal|Milk"
        )
        [updated] = match_quotes_to_list_items([_item("Milk")], quotes)
        self.assertEqual(updated.name, "Milk")
        self.assertEqual(updated.best_price, 3.99)
        self.assertEqual(updated.best_store, "Safeway")

    def test_keeps_name_when_resolved_name_too_long(self) -> None:
        """Overlong resolved names are not adopted."""
        quote = PriceQuote(
            store="A",
            price=2.5,
            resolved_product_name="Eggs " + "x" * 120,
            originating_query="Eggs",
        )
        [updated] = match_quotes_to_list_items([_item("Eggs")], [quote])
        self.assertEqual(updated.name, "Eggs")
        self.assertEqual(updated.best_price, 2.5)

    def test_unmatched_items_keep_identity(self) -> None:
        """Untouched items are the very same objects."""
        bread = _item("Bread", "b")
        eggs = _item("Eggs", "e")
        quote = PriceQuote(store="A", price=2.5, originating_query="Eggs")
        updated = match_quotes_to_list_items([bread, eggs], [quote])
        self.assertIs(updated[0], bread)
        self.assertIsNot(updated[1], eggs)

    def test_input_not_mutated(self) -> None:
        """The input list and items are left as they were."""
        items = [_item("Eggs")]
        quote = PriceQuote(store="A", price=2.5, originating_query="Eggs")
        updated = match_quotes_to_list_items(items, [quote])
        self.assertIsNot(updated, items)
        self.assertIsNone(items[0].best_price)

    def test_no_quotes(self) -> None:
        """No quotes returns an equal copy."""
        items = [_item("Eggs")]
        updated = match_quotes_to_list_items(items, [])
        self.assertEqual(updated, items)
        self.assertIs(updated[0], items[0])


if __name__ == "__main__":
    unittest.main()
