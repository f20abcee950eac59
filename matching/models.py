"""
Data models for the match pipeline. Pure data, no I/O.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

SET1 = "set1"
SET2 = "set2"
SET_LABELS = (SET1, SET2)


class SeriesLengthMismatch(ValueError):
    """Raised when paired series are not the same length."""
    pass


@dataclass(frozen=True)
class Bounds:
    """Open interval (min_div, max_div). Both ends are exclusive."""
    min_div: float
    max_div: float

    def contains(self, value: float) -> bool:
        return self.min_div < value < self.max_div


@dataclass(frozen=True)
class MatchContext:
    event_id: str
    set_label: str


@dataclass(frozen=True)
class Confirmation:
    """A single index of one series that fell strictly inside the bounds."""
    event_id: str
    set_label: str
    index: int
    ratio: float


@dataclass(frozen=True)
class DataSetPair:
    set1: tuple[float, ...]
    set2: tuple[float, ...]

    @classmethod
    def from_payload(cls, data: dict) -> DataSetPair:
        """
        Build from a data response's ``data`` object.

        Raises ValueError on missing series, non-numeric values or unequal
        lengths (SeriesLengthMismatch).
        """
        set1 = _as_series(data, SET1)
        set2 = _as_series(data, SET2)
        if len(set1) != len(set2):
            raise SeriesLengthMismatch(
                f"set1 has {len(set1)} values, set2 has {len(set2)}"
            )
        return cls(set1=set1, set2=set2)


def _to_float(name: str, v: int | float) -> float:
    try:
        return float(v)
    except OverflowError as e:
        # JSON integers are unbounded; floats are not
        raise ValueError(f"{name} value out of float range") from e


def _as_series(data: dict, key: str) -> tuple[float, ...]:
    raw = data.get(key)
    if not isinstance(raw, list):
        raise ValueError(f"{key} missing or not a list")
    values = []
    for v in raw:
        # bool is an int subclass; the wire never sends it as a number
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError(f"{key} contains non-numeric value {v!r}")
        values.append(_to_float(key, v))
    return tuple(values)


def parse_bounds(message: dict) -> Bounds:
    """Read minDiv/maxDiv from an events update. Both must be finite numbers."""
    lo = message.get("minDiv")
    hi = message.get("maxDiv")
    if isinstance(lo, bool) or not isinstance(lo, (int, float)):
        raise ValueError(f"minDiv missing or not a number: {lo!r}")
    if isinstance(hi, bool) or not isinstance(hi, (int, float)):
        raise ValueError(f"maxDiv missing or not a number: {hi!r}")
    min_div = _to_float("minDiv", lo)
    max_div = _to_float("maxDiv", hi)
    for name, v in (("minDiv", min_div), ("maxDiv", max_div)):
        if not math.isfinite(v):
            raise ValueError(f"{name} is not finite: {v!r}")
    return Bounds(min_div=min_div, max_div=max_div)


@dataclass
class SessionStats:
    polls_sent: int = 0
    event_updates: int = 0
    data_responses: int = 0
    stale_responses: int = 0
    confirmations_sent: int = 0
    malformed_messages: int = 0
    ignored_messages: int = 0

    def summary(self) -> str:
        return (
            f"polls={self.polls_sent} updates={self.event_updates} "
            f"data={self.data_responses} stale={self.stale_responses} "
            f"confirms={self.confirmations_sent} malformed={self.malformed_messages} "
            f"ignored={self.ignored_messages}"
        )
