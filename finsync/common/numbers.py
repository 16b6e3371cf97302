"""
Number helpers shared by the statistics engine and the CSV parsers.
"""
import re
from decimal import ROUND_HALF_UP, Decimal


def round_half_away_from_zero(value: float, places: int = 2) -> float:
    """
    Round the decimal form of value with halves going away from zero.

    Python's round() rounds halves to even and works on the binary value:
        round_half_away_from_zero(0.125) -> 0.13
        round_half_away_from_zero(-0.125) -> -0.13
        round_half_away_from_zero(1.005) -> 1.01
    """
    if value is None or value == 0:
        return 0.0
    # str() of a float is its shortest round-trip form, e.g. '1.005'
    exact = Decimal(str(float(value)))
    rounded = exact.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    return float(rounded) or 0.0


_GERMAN_AMOUNT = re.compile(r"^[+-]?[\d\.]*\d(,\d{1,2})?$")


def parse_german_amount_cents(amount_str: str) -> int:
    """
    Parse a German formatted amount into signed integer cents.

    Examples:
        "1.234,56" -> 123456
        "-12,99"   -> -1299
        "-1.234,56 €" -> -123456
    """
    if amount_str is None:
        raise ValueError("Invalid amount: empty")

    cleaned = str(amount_str).replace('€', '').replace('\xa0', '').replace(' ', '').strip()
    if not cleaned or not _GERMAN_AMOUNT.match(cleaned):
        raise ValueError(f"Invalid amount: {amount_str!r}")

    negative = cleaned.startswith('-')
    cleaned = cleaned.lstrip('+-').replace('.', '')
    if ',' in cleaned:
        whole, fraction = cleaned.split(',', 1)
        fraction = fraction.ljust(2, '0')
    else:
        whole, fraction = cleaned, '00'

    cents = int(whole or '0') * 100 + int(fraction)
    return -cents if negative else cents
