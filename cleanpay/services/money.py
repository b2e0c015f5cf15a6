"""Monetary rounding.

Totals are kept as binary floats and rounded to cents after every addition,
so results match the totals already stored by earlier versions of the system.
"""

from __future__ import annotations

import math
import sys

EPSILON = sys.float_info.epsilon


def _round_half_up(value: float) -> float:
    """Round to the nearest integer, ties toward +infinity (JavaScript ``Math.round``)."""
    floor = math.floor(value)
    return floor + 1 if value - floor >= 0.5 else floor


def round2(value: float) -> float:
    """Round to cents, nudged by one epsilon against representation error.

    ``round2(1.005) == 1.01`` even though ``1.005`` is stored as 1.00499999...
    """
    return _round_half_up((value + EPSILON) * 100) / 100


def accumulate(total: float, amount: float) -> float:
    """Add ``amount`` to a running total, rounding the result to cents."""
    return round2(total + amount)
