"""
Match evaluator. For each index, divides the primary series by the reference
series, rounds to 3 decimals and reports every ratio strictly inside the
current bounds.

A zero in the reference series yields an infinite (or NaN for 0/0) ratio.
Neither can sit inside a finite open interval, so such indices never match.
"""

from __future__ import annotations

import logging
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Sequence

from matching.models import Bounds, Confirmation, MatchContext, SeriesLengthMismatch

logger = logging.getLogger(__name__)

RATIO_DECIMALS = 3
_QUANTUM = Decimal(1).scaleb(-RATIO_DECIMALS)  # 0.001


def divide(numerator: float, denominator: float) -> float:
    """Float division that returns inf/NaN instead of raising on zero."""
    if denominator == 0:
        if numerator == 0 or math.isnan(numerator):
            return math.nan
        return math.copysign(math.inf, numerator) * math.copysign(1.0, denominator)
    return numerator / denominator


def round_ratio(value: float) -> float:
    """Round half away from zero to RATIO_DECIMALS places. Non-finite values pass through."""
    if not math.isfinite(value):
        return value
    # str() gives the shortest repr, so 1.1115 rounds up as written
    return float(Decimal(str(value)).quantize(_QUANTUM, rounding=ROUND_HALF_UP))


def evaluate(
    primary: Sequence[float],
    reference: Sequence[float],
    bounds: Bounds,
    context: MatchContext,
) -> list[Confirmation]:
    """
    Check every index of primary/reference against bounds.

    Returns one Confirmation per qualifying index, in index order. Every index
    is checked; there is no early exit.

    Raises:
        SeriesLengthMismatch: if the two series differ in length.
    """
    if len(primary) != len(reference):
        raise SeriesLengthMismatch(
            f"{context.event_id}/{context.set_label}: "
            f"{len(primary)} primary values vs {len(reference)} reference values"
        )

    hits: list[Confirmation] = []
    for i, (a, b) in enumerate(zip(primary, reference)):
        ratio = round_ratio(divide(a, b))
        if bounds.contains(ratio):
            hits.append(Confirmation(
                event_id=context.event_id,
                set_label=context.set_label,
                index=i,
                ratio=ratio,
            ))

    if hits:
        logger.debug(
            "Event %s %s: %d/%d ratios inside (%s, %s)",
            context.event_id, context.set_label, len(hits), len(primary),
            bounds.min_div, bounds.max_div,
        )
    return hits
