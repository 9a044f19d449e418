"""
Unit tests for the reference range table and the rule engine.

Tests cover:
- Reference range loading and boundary classification
- evaluate_abnormalities: field detection, ordering, skipped values
- calculate_bmi: formula and missing inputs
- apply_derived_fields: BMI replacement and abnormality flag

These tests are pure: no database, no app.
"""
import pytest

from core.reference_ranges import (
    ReferenceRange,
    Severity,
    get_reference_range,
    list_reference_ranges,
)
from services.rule_engine import apply_derived_fields, calculate_bmi, evaluate_abnormalities


def _systolic(value):
    return {"vitals": {"bloodPressure": {"systolic": value}}}


# =============================================================================
# TESTS: reference range table
# =============================================================================

class TestReferenceRanges:
    """Tests for the packaged reference range table."""

    def test_table_order(self):
        fields = [reference.field for reference in list_reference_ranges()]
        assert fields == [
            "bloodPressure.systolic",
            "bloodPressure.diastolic",
            "heartRate",
            "temperature",
            "oxygenSaturation",
            "labResults.bloodSugar.fasting",
            "labResults.bloodSugar.postprandial",
            "labResults.cholesterol.total",
            "labResults.hemoglobin",
            "labResults.creatinine",
        ]

    def test_lookup_by_field(self):
        reference = get_reference_range("heartRate")
        assert reference.path == ("vitals", "heartRate", "value")
        assert reference.normal_range == "60–100 bpm"
        assert (reference.low, reference.high) == (60, 100)

    def test_unknown_field(self):
        assert get_reference_range("pulsePressure") is None

    def test_table_is_immutable(self):
        reference = get_reference_range("temperature")
        with pytest.raises(Exception):
            reference.high = 40

    def test_one_sided_range(self):
        reference = get_reference_range("oxygenSaturation")
        assert reference.high is None
        assert reference.classify(100) is None
        assert reference.classify(92) == Severity.LOW
        assert reference.classify(89) == Severity.CRITICAL

    @pytest.mark.parametrize("value,expected", [
        (140, None),
        (140.01, Severity.HIGH),
        (141, Severity.HIGH),
        (180, Severity.HIGH),
        (181, Severity.CRITICAL),
        (90, None),
        (89, Severity.LOW),
        (70, Severity.LOW),
        (69, Severity.CRITICAL),
    ])
    def test_systolic_boundaries(self, value, expected):
        assert get_reference_range("bloodPressure.systolic").classify(value) == expected

    @pytest.mark.parametrize("field,value,expected", [
        ("bloodPressure.diastolic", 90, None),
        ("bloodPressure.diastolic", 91, Severity.HIGH),
        ("bloodPressure.diastolic", 110, Severity.HIGH),
        ("bloodPressure.diastolic", 111, Severity.CRITICAL),
        ("bloodPressure.diastolic", 40, Severity.LOW),
        ("bloodPressure.diastolic", 39, Severity.CRITICAL),
        ("heartRate", 50, Severity.LOW),
        ("heartRate", 49, Severity.CRITICAL),
        ("heartRate", 120, Severity.HIGH),
        ("heartRate", 121, Severity.CRITICAL),
        ("temperature", 35, Severity.LOW),
        ("temperature", 34.9, Severity.CRITICAL),
        ("temperature", 38, Severity.HIGH),
        ("temperature", 38.1, Severity.CRITICAL),
        ("oxygenSaturation", 95, None),
        ("oxygenSaturation", 94, Severity.LOW),
        ("oxygenSaturation", 90, Severity.LOW),
        ("oxygenSaturation", 89, Severity.CRITICAL),
        ("labResults.bloodSugar.fasting", 70, None),
        ("labResults.bloodSugar.fasting", 69, Severity.LOW),
        ("labResults.bloodSugar.fasting", 125, Severity.HIGH),
        ("labResults.bloodSugar.fasting", 126, Severity.CRITICAL),
        ("labResults.bloodSugar.postprandial", 200, Severity.HIGH),
        ("labResults.bloodSugar.postprandial", 201, Severity.CRITICAL),
        ("labResults.cholesterol.total", 240, Severity.HIGH),
        ("labResults.cholesterol.total", 241, Severity.CRITICAL),
        ("labResults.hemoglobin", 10, Severity.LOW),
        ("labResults.hemoglobin", 9.9, Severity.CRITICAL),
        ("labResults.hemoglobin", 19, Severity.HIGH),
        ("labResults.hemoglobin", 19.1, Severity.CRITICAL),
        ("labResults.creatinine", 0.1, Severity.LOW),
        ("labResults.creatinine", 2.0, Severity.HIGH),
        ("labResults.creatinine", 2.1, Severity.CRITICAL),
    ])
    def test_range_boundaries(self, field, value, expected):
        assert get_reference_range(field).classify(value) == expected

    def test_critical_without_critical_low(self):
        reference = ReferenceRange(field="x", path=("x",), normal_range="1–2", low=1, high=2)
        assert reference.classify(0) == Severity.LOW
        assert reference.classify(100) == Severity.HIGH


# =============================================================================
# TESTS: evaluate_abnormalities
# =============================================================================

class TestEvaluateAbnormalities:
    """Tests for abnormality detection over a record body."""

    def test_empty_record(self):
        assert evaluate_abnormalities({}) == []

    def test_normal_values(self):
        data = {
            "vitals": {
                "bloodPressure": {"systolic": 120, "diastolic": 80},
                "heartRate": {"value": 72},
                "temperature": {"value": 36.8},
                "oxygenSaturation": {"value": 98},
            },
            "labResults": {"bloodSugar": {"fasting": 90}},
        }
        assert evaluate_abnormalities(data) == []

    def test_mixed_vitals(self):
        data = {
            "vitals": {
                "bloodPressure": {"systolic": 150, "diastolic": 85},
                "heartRate": {"value": 45},
            }
        }
        result = evaluate_abnormalities(data)

        assert [(v.field, v.severity) for v in result] == [
            ("bloodPressure.systolic", Severity.HIGH),
            ("heartRate", Severity.CRITICAL),
        ]
        assert result[0].value == 150
        assert result[0].normal_range == "90–140 mmHg"

    def test_lab_results(self):
        data = {
            "labResults": {
                "bloodSugar": {"fasting": 130, "postprandial": 150},
                "cholesterol": {"total": 210},
                "hemoglobin": {"value": 9.5},
                "creatinine": {"value": 1.5},
            }
        }
        result = {v.field: v.severity for v in evaluate_abnormalities(data)}

        assert result == {
            "labResults.bloodSugar.fasting": Severity.CRITICAL,
            "labResults.bloodSugar.postprandial": Severity.HIGH,
            "labResults.cholesterol.total": Severity.HIGH,
            "labResults.hemoglobin": Severity.CRITICAL,
            "labResults.creatinine": Severity.HIGH,
        }

    def test_output_follows_table_order(self):
        data = {
            "labResults": {"creatinine": {"value": 3}},
            "vitals": {"temperature": {"value": 39}, "bloodPressure": {"diastolic": 30}},
        }
        fields = [v.field for v in evaluate_abnormalities(data)]
        assert fields == ["bloodPressure.diastolic", "temperature", "labResults.creatinine"]

    @pytest.mark.parametrize("value", [None, "150", True])
    def test_non_numeric_values_are_skipped(self, value):
        assert evaluate_abnormalities(_systolic(value)) == []

    def test_malformed_group_is_skipped(self):
        assert evaluate_abnormalities({"vitals": {"heartRate": 45}}) == []

    def test_deterministic(self):
        data = _systolic(200)
        assert evaluate_abnormalities(data) == evaluate_abnormalities(data)


# =============================================================================
# TESTS: calculate_bmi
# =============================================================================

class TestCalculateBmi:
    """Tests for BMI derivation."""

    def test_known_value(self):
        assert calculate_bmi(175, 70) == 22.86

    def test_rounding(self):
        assert calculate_bmi(180, 81) == 25.0

    @pytest.mark.parametrize("height,weight", [
        (None, 70),
        (175, None),
        (0, 70),
        (-170, 70),
    ])
    def test_not_computable(self, height, weight):
        assert calculate_bmi(height, weight) is None


# =============================================================================
# TESTS: apply_derived_fields
# =============================================================================

class TestApplyDerivedFields:
    """Tests for the recompute step run before every persist."""

    def test_sets_bmi(self):
        derived = apply_derived_fields({"measurements": {"height": {"value": 175}, "weight": {"value": 70}}})
        assert derived.data["measurements"]["bmi"] == 22.86

    def test_client_bmi_is_replaced(self):
        derived = apply_derived_fields({
            "measurements": {"height": {"value": 175}, "weight": {"value": 70}, "bmi": 99}
        })
        assert derived.data["measurements"]["bmi"] == 22.86

    def test_client_bmi_is_dropped_without_height(self):
        derived = apply_derived_fields({"measurements": {"weight": {"value": 70}, "bmi": 30}})
        assert "bmi" not in derived.data["measurements"]

    def test_input_is_not_modified(self):
        data = {"measurements": {"height": {"value": 175}, "weight": {"value": 70}}}
        apply_derived_fields(data)
        assert "bmi" not in data["measurements"]

    def test_flag_matches_values(self):
        normal = apply_derived_fields(_systolic(120))
        abnormal = apply_derived_fields(_systolic(150))

        assert normal.is_abnormal is False
        assert normal.abnormal_values == []
        assert abnormal.is_abnormal is True
        assert len(abnormal.abnormal_values) == 1
