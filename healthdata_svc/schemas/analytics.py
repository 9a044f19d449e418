"""
Pydantic schemas for vitals history and trend responses.
"""
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import Field

from schemas.health_record import CamelModel, HealthRecordResponse


class BloodPressurePoint(CamelModel):
    date: datetime
    systolic: Optional[float] = None
    diastolic: Optional[float] = None


class MetricPoint(CamelModel):
    date: datetime
    value: float


class VitalsChartData(CamelModel):
    """Time series per vital sign, oldest first."""

    blood_pressure: List[BloodPressurePoint] = Field(default_factory=list)
    heart_rate: List[MetricPoint] = Field(default_factory=list)
    temperature: List[MetricPoint] = Field(default_factory=list)
    oxygen_saturation: List[MetricPoint] = Field(default_factory=list)
    weight: List[MetricPoint] = Field(default_factory=list)
    bmi: List[MetricPoint] = Field(default_factory=list)


class HistoryPeriod(CamelModel):
    start_date: datetime
    end_date: datetime


class VitalsSummary(CamelModel):
    total_records: int
    abnormal_records: int
    latest_record: Optional[HealthRecordResponse] = None


class VitalsHistoryResponse(CamelModel):
    period: HistoryPeriod
    records: List[HealthRecordResponse]
    chart_data: VitalsChartData
    summary: VitalsSummary


class TrendResponse(CamelModel):
    trend: Literal["increasing", "decreasing", "stable"]
    change: float
    percent_change: Optional[float] = None
    first_value: Optional[float] = None
    last_value: Optional[float] = None


class VitalsTrendsResponse(CamelModel):
    """Trend of every vital sign series over a window."""

    period: HistoryPeriod
    trends: Dict[str, TrendResponse]
    summary: VitalsSummary
