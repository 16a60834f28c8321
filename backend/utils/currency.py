"""Currency and amount utilities: rounding, thresholds and code normalization.

Amounts are never converted between currencies; every balance is tracked per
currency code.
"""

import os
from decimal import Decimal, ROUND_HALF_UP


DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "USD")

CENT = Decimal("0.01")

# |amount| below this is shown as settled
DISPLAY_EPSILON = 0.005

# |amount| below this counts as zero when deciding whether a member may leave
SETTLED_EPSILON = 0.01

# Allowed difference between split sums and the expense total
SPLIT_TOLERANCE = 0.02


def round2(amount: float) -> float:
    """
    Round to 2 decimal places, half away from zero on the cent boundary.

    Goes through the shortest repr of the float so that 2.675 rounds to 2.68
    instead of the binary-float 2.67.
    """
    return float(Decimal(repr(float(amount))).quantize(CENT, rounding=ROUND_HALF_UP))


def normalize_currency(code: str | None) -> str:
    """Upper-case and trim a currency code, falling back to the default."""
    if not code or not code.strip():
        return DEFAULT_CURRENCY
    return code.strip().upper()
