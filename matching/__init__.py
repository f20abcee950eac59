"""
Match pipeline: paired-series ratio evaluation.

Usage:
    from matching import evaluate_pair
    confirmations = evaluate_pair(event_id, pair, bounds)
"""

from __future__ import annotations

from matching.evaluator import evaluate
from matching.models import SET1, SET2, Bounds, Confirmation, DataSetPair, MatchContext


def evaluate_pair(event_id: str, pair: DataSetPair, bounds: Bounds) -> list[Confirmation]:
    """Evaluate set1 against set2, then set2 against set1."""
    hits = evaluate(pair.set1, pair.set2, bounds, MatchContext(event_id, SET1))
    hits.extend(evaluate(pair.set2, pair.set1, bounds, MatchContext(event_id, SET2)))
    return hits
