"""
Pydantic schemas for health record API operations.

JSON bodies use camelCase keys (``labResults``, ``isAbnormal``); Python
attributes stay snake_case. Both spellings are accepted on input.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

RecordSource = Literal["manual", "device", "lab", "doctor"]


class CamelModel(BaseModel):
    """Base model serializing to camelCase. NaN and infinity are rejected."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, allow_inf_nan=False)


# =============================================================================
# VITALS
# =============================================================================

class BloodPressure(CamelModel):
    systolic: Optional[float] = Field(None, description="Systolic pressure", examples=[120])
    diastolic: Optional[float] = Field(None, description="Diastolic pressure", examples=[80])
    unit: Optional[str] = "mmHg"


class HeartRate(CamelModel):
    value: Optional[float] = Field(None, examples=[72])
    unit: Optional[str] = "bpm"


class Temperature(CamelModel):
    value: Optional[float] = Field(None, examples=[36.8])
    unit: Optional[str] = "°C"


class OxygenSaturation(CamelModel):
    value: Optional[float] = Field(None, examples=[98])
    unit: Optional[str] = "%"


class RespiratoryRate(CamelModel):
    value: Optional[float] = Field(None, examples=[16])
    unit: Optional[str] = "breaths/min"


class Vitals(CamelModel):
    blood_pressure: Optional[BloodPressure] = None
    heart_rate: Optional[HeartRate] = None
    temperature: Optional[Temperature] = None
    oxygen_saturation: Optional[OxygenSaturation] = None
    respiratory_rate: Optional[RespiratoryRate] = None


# =============================================================================
# BODY MEASUREMENTS
# =============================================================================

class LengthMeasurement(CamelModel):
    value: Optional[float] = Field(None, examples=[175])
    unit: Optional[str] = "cm"


class WeightMeasurement(CamelModel):
    value: Optional[float] = Field(None, examples=[70])
    unit: Optional[str] = "kg"


class Measurements(CamelModel):
    height: Optional[LengthMeasurement] = None
    weight: Optional[WeightMeasurement] = None
    bmi: Optional[float] = Field(
        None,
        description="Derived from height and weight; values sent by clients are ignored",
        examples=[22.86]
    )
    waist_circumference: Optional[LengthMeasurement] = None
    hip_circumference: Optional[LengthMeasurement] = None


# =============================================================================
# LAB RESULTS
# =============================================================================

class BloodSugar(CamelModel):
    fasting: Optional[float] = Field(None, examples=[92])
    postprandial: Optional[float] = Field(None, examples=[130])
    unit: Optional[str] = "mg/dL"


class Cholesterol(CamelModel):
    total: Optional[float] = Field(None, examples=[180])
    hdl: Optional[float] = None
    ldl: Optional[float] = None
    triglycerides: Optional[float] = None
    unit: Optional[str] = "mg/dL"


class Hemoglobin(CamelModel):
    value: Optional[float] = Field(None, examples=[14.2])
    unit: Optional[str] = "g/dL"


class Creatinine(CamelModel):
    value: Optional[float] = Field(None, examples=[0.9])
    unit: Optional[str] = "mg/dL"


class LabResults(CamelModel):
    blood_sugar: Optional[BloodSugar] = None
    cholesterol: Optional[Cholesterol] = None
    hemoglobin: Optional[Hemoglobin] = None
    creatinine: Optional[Creatinine] = None


# =============================================================================
# SYMPTOMS, MEDICATIONS, LIFESTYLE
# =============================================================================

class Symptom(CamelModel):
    name: Optional[str] = Field(None, max_length=200, examples=["Headache"])
    severity: Optional[Literal["mild", "moderate", "severe"]] = None
    duration: Optional[str] = Field(None, max_length=100, examples=["2 days"])
    notes: Optional[str] = None


class Medication(CamelModel):
    name: Optional[str] = Field(None, max_length=200, examples=["Metformin"])
    dosage: Optional[str] = Field(None, max_length=100, examples=["500 mg"])
    frequency: Optional[str] = Field(None, max_length=100, examples=["twice daily"])
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = True


class WaterIntake(CamelModel):
    value: Optional[float] = Field(None, examples=[2.0])
    unit: Optional[str] = "liters"


class Lifestyle(CamelModel):
    sleep_hours: Optional[float] = Field(None, ge=0, le=24)
    exercise_minutes: Optional[float] = Field(None, ge=0)
    water_intake: Optional[WaterIntake] = None
    smoking_status: Optional[Literal["never", "former", "current"]] = None
    alcohol_consumption: Optional[Literal["none", "occasional", "moderate", "heavy"]] = None


# =============================================================================
# REQUESTS
# =============================================================================

class HealthRecordBody(CamelModel):
    """Groups shared by create and update payloads."""

    vitals: Optional[Vitals] = None
    measurements: Optional[Measurements] = None
    lab_results: Optional[LabResults] = None
    symptoms: Optional[List[Symptom]] = None
    medications: Optional[List[Medication]] = None
    lifestyle: Optional[Lifestyle] = None
    notes: Optional[str] = Field(None, max_length=5000)


class HealthRecordCreate(HealthRecordBody):
    """Schema for creating a new health record.

    Patients always record for themselves. Clinicians and admins must name
    the patient through ``patientId``.
    """

    patient_id: Optional[int] = Field(
        None,
        description="Target patient; required when a clinician or admin records",
        examples=[3]
    )
    source: RecordSource = Field("manual", description="Where the measurements came from")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "patientId": 3,
                "vitals": {
                    "bloodPressure": {"systolic": 150, "diastolic": 85},
                    "heartRate": {"value": 45}
                },
                "measurements": {"height": {"value": 175}, "weight": {"value": 70}},
                "source": "doctor"
            }
        }
    )


class HealthRecordUpdate(HealthRecordBody):
    """Schema for updating a health record.

    Only the fields sent are changed; nested groups merge key by key and an
    explicit ``null`` clears a value. Ownership fields are not accepted.
    """

    source: Optional[RecordSource] = None


# =============================================================================
# RESPONSES
# =============================================================================

class AbnormalValueResponse(CamelModel):
    field: str = Field(..., examples=["bloodPressure.systolic"])
    value: float = Field(..., examples=[150])
    normal_range: str = Field(..., examples=["90–140 mmHg"])
    severity: Literal["low", "high", "critical"]


class HealthRecordResponse(HealthRecordBody):
    """A stored health record including its derived abnormality status."""

    id: int
    patient_id: int
    recorded_by_id: int
    created_at: datetime
    updated_at: datetime
    source: RecordSource
    is_abnormal: bool
    abnormal_values: List[AbnormalValueResponse] = Field(default_factory=list)
    version: int

    model_config = ConfigDict(from_attributes=True)


class PaginationInfo(CamelModel):
    current_page: int
    total_pages: int
    total_records: int
    has_next_page: bool
    has_prev_page: bool


class PaginatedRecordsResponse(CamelModel):
    records: List[HealthRecordResponse]
    pagination: PaginationInfo
