from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Any

from config import settings


RANGE_MAP = {
    "1d": 1,
    "7d": 7,
    "10d": 10,
    "15d": 15,
    "30d": 30,
}


@dataclass(frozen=True)
class Window:
    start: dt.datetime
    end: dt.datetime

    def contains(self, value: dt.datetime | None) -> bool:
        if value is None:
            return False
        return self.start <= value <= self.end

    @property
    def days(self) -> int:
        return (self.end.date() - self.start.date()).days + 1


def build_window(range_days: int, offset_days: int = 0, *, now: dt.datetime | None = None) -> Window:
    """
    Inclusive window aligned to day boundaries so every widget queries the same slice:
    end = today 23:59:59.999 (shifted back by offset_days), start = 00:00:00.000 of the
    first of `range_days` days. Both inputs are clamped to the configured ceilings.
    """
    max_range = max(settings.max_lookback_days, settings.max_trend_window_days)
    safe_range = min(max_range, max(1, int(range_days or 1)))
    safe_offset = min(settings.max_offset_days, max(0, int(offset_days or 0)))
    today = (now or dt.datetime.now()).date()
    end_day = today - dt.timedelta(days=safe_offset)
    end = dt.datetime.combine(end_day, dt.time(23, 59, 59, 999000))
    start = dt.datetime.combine(end_day - dt.timedelta(days=safe_range - 1), dt.time.min)
    return Window(start=start, end=end)


def clamp_number(value: Any, *, min_value: int, max_value: int, fallback: int) -> int:
    if value is None or isinstance(value, bool):
        return fallback
    try:
        parsed = float(str(value).strip())
    except ValueError:
        return fallback
    if parsed != parsed or parsed in (float("inf"), float("-inf")):
        return fallback
    if parsed < min_value:
        return min_value
    if parsed > max_value:
        return max_value
    return int(parsed)


def sanitize_range_days(value: Any, fallback: int | None = None) -> int:
    fb = settings.default_lookback_days if fallback is None else fallback
    return clamp_number(value, min_value=1, max_value=settings.max_lookback_days, fallback=fb)


def sanitize_trend_days(value: Any, fallback: int | None = None) -> int:
    fb = settings.default_trend_days if fallback is None else fallback
    return clamp_number(value, min_value=1, max_value=settings.max_trend_window_days, fallback=fb)


def sanitize_offset_days(value: Any) -> int:
    return clamp_number(value, min_value=0, max_value=settings.max_offset_days, fallback=0)


def sanitize_cases_range(value: Any) -> int:
    return clamp_number(value, min_value=1, max_value=settings.max_cases_range_days, fallback=1)


def previous_offset(range_days: int, offset_days: int = 0) -> int:
    # The previous window ends the day before the current one starts.
    return sanitize_offset_days(offset_days + range_days)


def parse_range_token(value: str | None) -> int:
    token = (value or "7d").strip().lower()
    if token in RANGE_MAP:
        return sanitize_range_days(RANGE_MAP[token])
    return sanitize_range_days(token)


def iter_days(window: Window) -> list[dt.date]:
    first = window.start.date()
    return [first + dt.timedelta(days=i) for i in range(window.days)]
