"""Analytics over transaction sets."""

from pocketledger.analytics.aggregator import (
    category_breakdown,
    range_start,
    summarize,
    time_series,
)

__all__ = [
    "category_breakdown",
    "range_start",
    "summarize",
    "time_series",
]
