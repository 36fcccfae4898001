"""Month bucketing and the half-split trend comparison shared by every calculator."""

import calendar
import math
import statistics
from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Sequence, Tuple

from ..schemas.forecasting import MonetaryEvent

TREND_LABELS = ("increasing", "decreasing", "stable")


def get_month_key(d: date) -> str:
    """Return YYYY-MM format."""
    return f"{d.year}-{d.month:02d}"


def aggregate_by_month(events: Iterable[MonetaryEvent]) -> Dict[str, float]:
    """Sum event amounts per calendar month. Empty input gives an empty bucket."""
    monthly_totals: Dict[str, float] = defaultdict(float)
    for event in events:
        monthly_totals[get_month_key(event.date)] += float(event.amount)
    return dict(monthly_totals)


def chronological_values(monthly_totals: Dict[str, float]) -> List[float]:
    """Monthly totals ordered oldest month first."""
    return [monthly_totals[key] for key in sorted(monthly_totals)]


def mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def population_stddev(values: Sequence[float]) -> float:
    return statistics.pstdev(values) if values else 0.0


def round_half_up(value: float, digits: int = 0) -> float:
    """Round with halves going up, so 150.5 becomes 151 rather than 150."""
    if digits == 0:
        return math.floor(value + 0.5)
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def classify_change(
    baseline: float,
    current: float,
    up: float,
    down: float,
    labels: Tuple[str, str, str] = TREND_LABELS,
) -> str:
    """Label `current` against `baseline` using multiplicative thresholds."""
    if current > baseline * up:
        return labels[0]
    if current < baseline * down:
        return labels[1]
    return labels[2]


def half_split_trend(
    values: Sequence[float],
    up: float,
    down: float,
    labels: Tuple[str, str, str] = TREND_LABELS,
) -> str:
    """Compare the mean of the later half of a chronological series to the earlier half.

    The split point is floor(n/2). Fewer than two values is always stable.
    """
    if len(values) < 2:
        return labels[2]
    midpoint = len(values) // 2
    return classify_change(mean(values[:midpoint]), mean(values[midpoint:]), up, down, labels)


def month_diff(start: date, end: date) -> int:
    """Calendar-month distance, ignoring the day of month."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def months_until(today: date, target: date) -> int:
    """Months left until `target`, never less than one."""
    return max(1, month_diff(today, target))


def add_months(d: date, months: int) -> date:
    """Shift a date by whole months, clamping the day to the end of the target month."""
    total = d.year * 12 + (d.month - 1) + months
    year, month = total // 12, (total % 12) + 1
    _, last_day = calendar.monthrange(year, month)
    return date(year, month, min(d.day, last_day))
