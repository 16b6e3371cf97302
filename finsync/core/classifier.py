"""
Category Classifier

Keyword rules mapping a transaction's description/counterparty to a
spending category. German keywords are included for DKB and Deutsche Bank
data.

Rules are evaluated in list order and the first match wins, so a text that
mentions both a supermarket and "uber" is Groceries, not Transport.
"""
from typing import Dict, Iterable, List, Optional, Tuple

from finsync.common.models import Transaction

GROCERIES = "Groceries"
RENT = "Rent & Housing"
UTILITIES = "Utilities"
TRANSPORT = "Transport"
DINING = "Dining & Restaurants"
ENTERTAINMENT = "Entertainment"
SHOPPING = "Shopping"
HEALTH = "Health & Insurance"
SUBSCRIPTIONS = "Subscriptions"
INCOME = "Income"
TRANSFER = "Transfer"
CASH = "Cash"
OTHER = "Other"

CATEGORY_RULES: List[Tuple[str, List[str]]] = [
    (GROCERIES, [
        "rewe", "edeka", "aldi", "lidl", "netto", "penny", "kaufland",
        "dm-drogerie", "rossmann", "supermarkt", "lebensmittel",
    ]),
    (RENT, [
        "miete", "rent", "wohnung", "hausgeld", "nebenkosten", "immobilien",
    ]),
    (UTILITIES, [
        "strom", "gas", "wasser", "stadtwerke", "vattenfall", "eon", "enpal",
        "telekom", "vodafone", "o2", "internet", "rundfunk", "gez",
    ]),
    (TRANSPORT, [
        "db ", "bahn", "bvg", "mvg", "tankstelle", "shell", "aral", "uber",
        "bolt", "tier", "lime", "flixbus", "car2go", "sixt",
    ]),
    (DINING, [
        "restaurant", "gastronomie", "lieferando", "delivery hero",
        "mcdonalds", "burger king", "starbucks", "cafe", "bistro", "pizza",
        "sushi",
    ]),
    (ENTERTAINMENT, [
        "kino", "cinema", "theater", "spotify", "netflix", "disney",
        "amazon prime", "youtube", "gaming", "playstation", "steam",
    ]),
    (SHOPPING, [
        "amazon", "zalando", "h&m", "zara", "mediamarkt", "saturn", "ikea",
        "ebay", "otto", "about you",
    ]),
    (HEALTH, [
        "apotheke", "arzt", "krankenhaus", "versicherung", "insurance",
        "krankenkasse", "aok", "tk ", "barmer", "fitnessstudio", "gym",
    ]),
    (SUBSCRIPTIONS, [
        "abo", "subscription", "mitgliedschaft", "membership", "patreon",
        "cloud", "icloud", "google storage",
    ]),
    (INCOME, [
        "gehalt", "salary", "lohn", "wage", "einnahme", "gutschrift",
        "erstattung", "refund", "dividende",
    ]),
    (TRANSFER, [
        "umbuchung", "transfer", "überweisung eigen", "sparplan",
        "dauerauftrag eigen",
    ]),
    (CASH, [
        "bargeld", "geldautomat", "atm", "cash", "abhebung", "withdrawal",
    ]),
]

CATEGORIES: Tuple[str, ...] = tuple(category for category, _ in CATEGORY_RULES) + (OTHER,)


def classify(description: str, counterparty: str, direction: Optional[str] = None) -> str:
    """
    Classify a transaction into one of CATEGORIES.

    Credits without a keyword match are Income rather than Other.
    """
    search_text = f"{description or ''} {counterparty or ''}".lower()

    for category, keywords in CATEGORY_RULES:
        if any(keyword in search_text for keyword in keywords):
            return category

    if direction == 'credit':
        return INCOME
    return OTHER


def classify_transaction(tx: Transaction) -> str:
    return classify(tx.description, tx.counterparty, tx.direction)


def categorization_coverage(transactions: Iterable[Transaction]) -> Dict[str, float]:
    """Share of transactions carrying a category other than Other."""
    transactions = list(transactions)
    total = len(transactions)
    categorized = sum(1 for t in transactions if t.category and t.category != OTHER)
    return {
        'total': total,
        'categorized': categorized,
        'uncategorized': total - categorized,
        'coverage': categorized / total if total else 0.0,
    }
