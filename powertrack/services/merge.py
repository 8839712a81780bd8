"""
Series-merge engine for two independently sampled bucket series.

Aligns two series on the union of their bucket timestamps and derives one
value per timestamp with ``combine(a, b)``. A timestamp present in only one
series takes the other series' last known value strictly before it
(forward-fill). The initial "last known" value is the caller-supplied seed,
the most recent raw sample before the query range; if a series has neither
a value nor a seed yet, the timestamp is skipped.

CHANGELOG:
- 2026-04-08: Initial creation (STORY-009)

TODO:
- None
"""

from collections.abc import Callable, Sequence
from datetime import datetime

SeriesPoint = tuple[datetime, float]


def profit(selling: float, spot: float) -> float:
    """Retail margin for one bucket."""
    return selling - spot


def spend(consumption_kwh: float, price: float) -> float:
    """Consumer spend for one bucket."""
    return consumption_kwh * price


def merge_series(
    series_a: Sequence[SeriesPoint],
    series_b: Sequence[SeriesPoint],
    combine: Callable[[float, float], float],
    seed_a: float | None = None,
    seed_b: float | None = None,
) -> list[SeriesPoint]:
    """Merge two bucket series with forward-fill.

    Args:
        series_a: ``(timestamp, value)`` pairs, one per bucket.
        series_b: ``(timestamp, value)`` pairs at the same granularity.
        combine: Called as ``combine(a_value, b_value)``.
        seed_a: Value of series A before its first bucket, if known.
        seed_b: Value of series B before its first bucket, if known.

    Returns:
        list[SeriesPoint]: Ascending ``(timestamp, combined)`` pairs.
    """
    if not series_a and not series_b:
        return []

    values_a = dict(series_a)
    values_b = dict(series_b)

    last_a = seed_a
    last_b = seed_b
    merged: list[SeriesPoint] = []
    for ts in sorted(values_a.keys() | values_b.keys()):
        if ts in values_a:
            last_a = values_a[ts]
        if ts in values_b:
            last_b = values_b[ts]
        if last_a is None or last_b is None:
            continue
        merged.append((ts, combine(last_a, last_b)))
    return merged


def needs_seed(
    series: Sequence[SeriesPoint], other: Sequence[SeriesPoint]
) -> bool:
    """Whether ``series`` lacks a value at the first combined timestamp.

    Both series empty never needs a seed: the merge is empty anyway and the
    seed lookup would scan the whole table.
    """
    if not series and not other:
        return False
    if not series:
        return True
    if not other:
        return False
    return series[0][0] > other[0][0]
