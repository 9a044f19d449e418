"""
Domain model for trend summaries.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class TrendDirection(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


@dataclass(frozen=True)
class TrendResult:
    """Directional summary of a metric series, computed at query time."""

    trend: TrendDirection
    change: float
    percent_change: Optional[float] = None
    first_value: Optional[float] = None
    last_value: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"trend": self.trend.value, "change": self.change}
        if self.percent_change is not None:
            result["percentChange"] = self.percent_change
            result["firstValue"] = self.first_value
            result["lastValue"] = self.last_value
        return result
