"""
Unit Tests for the keyword Category Classifier.
"""
import pytest

from finsync.core.classifier import (
    CATEGORIES,
    CATEGORY_RULES,
    categorization_coverage,
    classify,
    classify_transaction,
)
from tests.conftest import make_tx


class TestClassify:

    @pytest.mark.parametrize("description,counterparty,expected", [
        ("Kartenzahlung", "REWE Markt GmbH", "Groceries"),
        ("Miete Januar", "Hausverwaltung", "Rent & Housing"),
        ("Shell Tankstelle", "", "Transport"),
        ("Abschlag", "Vattenfall Europe", "Utilities"),
        ("Bestellung", "Lieferando.de", "Dining & Restaurants"),
        ("Monatsabo", "Netflix International", "Entertainment"),
        ("Bestellung 123", "Zalando SE", "Shopping"),
        ("Beitrag", "Techniker Krankenkasse", "Health & Insurance"),
        ("Mitgliedschaft Verein", "", "Subscriptions"),
        ("Gehalt Januar", "Arbeitgeber AG", "Income"),
        ("Umbuchung", "", "Transfer"),
        ("Geldautomat Sparkasse", "", "Cash"),
    ])
    def test_known_keywords(self, description, counterparty, expected):
        assert classify(description, counterparty) == expected

    def test_unmatched_debit_is_other(self):
        assert classify("XYZ 123", "Unbekannt", "debit") == "Other"

    def test_unmatched_credit_is_income(self):
        assert classify("XYZ 123", "Unbekannt", "credit") == "Income"

    def test_case_insensitive(self):
        assert classify("EDEKA CENTER", "") == "Groceries"

    def test_first_rule_wins(self):
        # "rewe" (Groceries) is listed before "uber" (Transport)
        assert classify("rewe uber", "") == "Groceries"

    def test_total_on_empty_input(self):
        assert classify("", "") in CATEGORIES
        assert classify(None, None) == "Other"

    def test_idempotent(self):
        assert classify("Spotify", "Spotify AB") == classify("Spotify", "Spotify AB")

    def test_rule_order_matches_category_set(self):
        assert [category for category, _ in CATEGORY_RULES] == list(CATEGORIES[:-1])
        assert CATEGORIES[-1] == "Other"


class TestClassifyTransaction:

    def test_uses_direction(self):
        tx = make_tx("2025-01-01", 20.0, "Unbekannt", "Person")
        assert classify_transaction(tx) == "Income"


class TestCoverage:

    def test_counts_other_as_uncategorized(self):
        txs = [
            make_tx("2025-01-01", -1.0, "a", category="Groceries"),
            make_tx("2025-01-02", -2.0, "b", category="Other"),
            make_tx("2025-01-03", -3.0, "c"),
            make_tx("2025-01-04", -4.0, "d", category="Transport"),
        ]
        result = categorization_coverage(txs)
        assert result == {'total': 4, 'categorized': 2, 'uncategorized': 2, 'coverage': 0.5}

    def test_empty(self):
        assert categorization_coverage([])['coverage'] == 0.0
