"""Helper utilities."""
from __future__ import annotations

from datetime import datetime
from typing import Union

import pandas as pd

DateLike = Union[str, datetime, pd.Timestamp]

THURSDAY = 3


def to_timestamp(value: DateLike) -> pd.Timestamp:
    return pd.Timestamp(value).normalize()


def days_between(start: DateLike, end: DateLike) -> int:
    return (to_timestamp(end) - to_timestamp(start)).days


def next_weekday(date: DateLike, weekday: int = THURSDAY) -> pd.Timestamp:
    """Roll ``date`` forward to the given weekday (unchanged if it already is one)."""
    ts = to_timestamp(date)
    return ts + pd.Timedelta(days=(weekday - ts.weekday()) % 7)


def round_value(value: float, places: int = 2) -> float:
    """Presentation rounding. Internal calculations keep full precision."""
    return round(float(value), places)


__all__ = ["DateLike", "THURSDAY", "to_timestamp", "days_between", "next_weekday", "round_value"]
