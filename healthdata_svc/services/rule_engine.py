"""
Reference range rule engine.

Classifies the measurements of a health record against the reference range
table and derives the fields that are never accepted from clients (BMI and
the abnormality status).

Everything here is pure: no I/O, no clock, no logging of patient values.
The Lifecycle Manager calls apply_derived_fields() before every persist so
that derived fields always reflect the stored measurements.

Usage:
    from services.rule_engine import apply_derived_fields

    derived = apply_derived_fields(body)
    repository.create(..., body=derived.data, is_abnormal=derived.is_abnormal,
                      abnormal_values=derived.abnormal_values)
"""
import copy
from dataclasses import dataclass, field
from numbers import Real
from typing import Any, Dict, List, Optional

from core.reference_ranges import list_reference_ranges
from models.health_record import AbnormalValue


@dataclass(frozen=True)
class DerivedFields:
    """Result of recomputing the derived part of a record."""

    data: Dict[str, Any]
    abnormal_values: List[AbnormalValue] = field(default_factory=list)

    @property
    def is_abnormal(self) -> bool:
        return len(self.abnormal_values) > 0


def _lookup(data: Dict[str, Any], path) -> Optional[Any]:
    current: Any = data
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
        if current is None:
            return None
    return current


def _is_number(value: Any) -> bool:
    # bool is a subclass of int but never a measurement
    return isinstance(value, Real) and not isinstance(value, bool)


def evaluate_abnormalities(data: Dict[str, Any]) -> List[AbnormalValue]:
    """
    Evaluate every reference range against the record data.

    Args:
        data: Record body with camelCase groups (vitals, labResults, ...).

    Returns:
        Abnormal values in reference table order. Fields that are absent or
        not numeric produce no entry.
    """
    abnormal_values = []
    for reference in list_reference_ranges():
        value = _lookup(data, reference.path)
        if not _is_number(value):
            continue

        severity = reference.classify(value)
        if severity is not None:
            abnormal_values.append(AbnormalValue(
                field=reference.field,
                value=value,
                normal_range=reference.normal_range,
                severity=severity,
            ))
    return abnormal_values


def calculate_bmi(height_cm: Optional[float], weight_kg: Optional[float]) -> Optional[float]:
    """
    Body mass index rounded to two decimals.

    Returns None when either value is missing or the height is not positive.

    Example:
        >>> calculate_bmi(175, 70)
        22.86
    """
    if not _is_number(height_cm) or not _is_number(weight_kg) or height_cm <= 0:
        return None
    height_m = height_cm / 100
    return round(weight_kg / (height_m ** 2), 2)


def apply_derived_fields(data: Dict[str, Any]) -> DerivedFields:
    """
    Recompute BMI and the full abnormality set for a record body.

    The input is not modified. Any ``measurements.bmi`` already present is
    discarded and replaced by the computed value, or dropped when it cannot
    be computed.
    """
    result = copy.deepcopy(data)

    measurements = result.get("measurements")
    if isinstance(measurements, dict):
        measurements.pop("bmi", None)
        bmi = calculate_bmi(
            _lookup(measurements, ("height", "value")),
            _lookup(measurements, ("weight", "value")),
        )
        if bmi is not None:
            measurements["bmi"] = bmi

    return DerivedFields(data=result, abnormal_values=evaluate_abnormalities(result))
