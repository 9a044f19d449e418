"""
Trend computation over metric series.

Pure functions summarizing whether a series went up, down or stayed flat
between its first and last point. A change of more than 5% either way
counts as a trend.
"""
import logging
from typing import Any, Dict, Mapping, Sequence

from models.trend import TrendDirection, TrendResult
from core.exceptions import InvalidInputError

logger = logging.getLogger(__name__)

# Percent change beyond which a series is no longer stable
TREND_THRESHOLD_PERCENT = 5

# Series name -> key holding the trended value
VITALS_TREND_KEYS = {
    "bloodPressure": "systolic",
    "heartRate": "value",
    "temperature": "value",
    "oxygenSaturation": "value",
    "weight": "value",
    "bmi": "value",
}


def compute_trend(series: Sequence[Mapping[str, Any]], value_key: str) -> TrendResult:
    """
    Compare the first and last value of a series.

    Points without ``value_key`` (or with a null value) are skipped.

    Args:
        series: Points in chronological order.
        value_key: Key of the value to compare in each point.

    Returns:
        TrendResult. Series with fewer than two values are stable with no
        percent change.

    Raises:
        InvalidInputError: If the first value is zero, since the percent
            change is undefined.

    Example:
        >>> compute_trend([{"value": 120}, {"value": 100}], "value").percent_change
        -16.67
    """
    values = [point[value_key] for point in series if point.get(value_key) is not None]

    if len(values) < 2:
        return TrendResult(trend=TrendDirection.STABLE, change=0)

    first, last = values[0], values[-1]
    if first == 0:
        raise InvalidInputError(
            detail=f"Cannot compute percent change of '{value_key}' from a zero baseline",
            value_key=value_key
        )

    change = last - first
    percent_change = round(change / first * 100, 2)

    if percent_change > TREND_THRESHOLD_PERCENT:
        trend = TrendDirection.INCREASING
    elif percent_change < -TREND_THRESHOLD_PERCENT:
        trend = TrendDirection.DECREASING
    else:
        trend = TrendDirection.STABLE

    return TrendResult(
        trend=trend,
        change=change,
        percent_change=percent_change,
        first_value=first,
        last_value=last,
    )


def compute_vitals_trends(chart_data: Mapping[str, Sequence[Mapping[str, Any]]]) -> Dict[str, TrendResult]:
    """
    Trend every vitals series of a chart.

    Blood pressure is trended on systolic, everything else on ``value``.
    Missing series are treated as empty. A series whose trend is undefined
    (zero baseline) is left out; the others are still reported.
    """
    trends = {}
    for name, value_key in VITALS_TREND_KEYS.items():
        try:
            trends[name] = compute_trend(chart_data.get(name) or [], value_key)
        except InvalidInputError as e:
            logger.warning(
                f"Skipping {name} trend: {e.detail}",
                extra={"series": name, "value_key": value_key}
            )
    logger.debug(
        "Computed vitals trends",
        extra={"trends": {name: result.trend.value for name, result in trends.items()}}
    )
    return trends
