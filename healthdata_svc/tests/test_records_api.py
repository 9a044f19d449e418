"""
Tests for the health data and analytics endpoints.

Exercise routing, camelCase serialization, requester resolution and the
mapping of domain errors to HTTP responses.
"""
import pytest


VITALS_PAYLOAD = {
    "vitals": {
        "bloodPressure": {"systolic": 150, "diastolic": 85},
        "heartRate": {"value": 45},
    },
    "measurements": {"height": {"value": 175}, "weight": {"value": 70}},
}


@pytest.fixture
def post_record(client, as_user, people, clock):
    """POST a record as the seeded patient (or another requester)."""
    def _post(payload=None, requester=None):
        clock.advance(minutes=5)
        return client.post(
            "/api/v1/health-data",
            json=payload if payload is not None else VITALS_PAYLOAD,
            headers=as_user(requester or people.patient)
        )
    return _post


# =============================================================================
# CREATE
# =============================================================================

class TestCreateRecordEndpoint:
    """Tests for POST /api/v1/health-data."""

    def test_create_returns_camel_case(self, post_record, people):
        response = post_record()

        assert response.status_code == 201
        data = response.json()
        assert data["patientId"] == people.patient.id
        assert data["recordedById"] == people.patient.id
        assert data["isAbnormal"] is True
        assert data["measurements"]["bmi"] == 22.86
        assert data["vitals"]["bloodPressure"]["unit"] == "mmHg"
        assert data["abnormalValues"] == [
            {"field": "bloodPressure.systolic", "value": 150, "normalRange": "90–140 mmHg", "severity": "high"},
            {"field": "heartRate", "value": 45, "normalRange": "60–100 bpm", "severity": "critical"},
        ]
        assert data["source"] == "manual"
        assert data["version"] == 1
        assert "createdAt" in data

    def test_absent_groups_are_omitted(self, post_record):
        data = post_record({"notes": "feeling fine"}).json()

        assert data["notes"] == "feeling fine"
        assert "vitals" not in data
        assert data["abnormalValues"] == []
        assert data["isAbnormal"] is False

    def test_schema_validation_error(self, post_record):
        response = post_record({"symptoms": [{"name": "Cough", "severity": "unbearable"}]})
        assert response.status_code == 422

    @pytest.mark.parametrize("raw", [
        '{"vitals": {"bloodPressure": {"systolic": NaN}}}',
        '{"vitals": {"heartRate": {"value": Infinity}}}',
        '{"labResults": {"creatinine": {"value": -Infinity}}}',
    ])
    def test_non_finite_readings_rejected(self, client, as_user, people, record_repo, raw):
        response = client.post(
            "/api/v1/health-data",
            content=raw,
            headers={**as_user(people.patient), "Content-Type": "application/json"}
        )

        assert response.status_code == 422
        assert record_repo.count_by_patient(people.patient.id) == 0

    def test_clinician_without_patient_id(self, post_record, people):
        response = post_record(VITALS_PAYLOAD, requester=people.clinician)

        assert response.status_code == 400
        assert response.json()["kind"] == "validation_error"

    def test_clinician_for_unrelated_patient(self, post_record, people):
        response = post_record({"patientId": people.other_patient.id}, requester=people.clinician)

        assert response.status_code == 403
        body = response.json()
        assert body["kind"] == "access_denied"
        assert body["context"]["reason"] == "no_treatment_relationship"

    def test_clinician_for_treated_patient(self, post_record, people):
        response = post_record({"patientId": people.patient.id, "source": "doctor"}, requester=people.clinician)

        assert response.status_code == 201
        assert response.json()["recordedById"] == people.clinician.id


# =============================================================================
# READ / UPDATE / DELETE
# =============================================================================

class TestRecordEndpoints:
    """Tests for /api/v1/health-data/records/{record_id}."""

    def test_get(self, client, as_user, post_record, people):
        record_id = post_record().json()["id"]

        response = client.get(f"/api/v1/health-data/records/{record_id}", headers=as_user(people.clinician))
        assert response.status_code == 200
        assert response.json()["id"] == record_id

    def test_get_missing(self, client, as_user, people):
        response = client.get("/api/v1/health-data/records/999", headers=as_user(people.admin))

        assert response.status_code == 404
        assert response.json()["kind"] == "not_found"

    def test_get_denied(self, client, as_user, post_record, people):
        record_id = post_record().json()["id"]

        response = client.get(f"/api/v1/health-data/records/{record_id}", headers=as_user(people.stranger_clinician))
        assert response.status_code == 403

    def test_update_merges_and_recomputes(self, client, as_user, post_record, people):
        record_id = post_record().json()["id"]

        response = client.put(
            f"/api/v1/health-data/records/{record_id}",
            json={
                "vitals": {"bloodPressure": {"systolic": 120}, "heartRate": None},
                "patientId": people.other_patient.id,
            },
            headers=as_user(people.patient)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["vitals"]["bloodPressure"] == {"systolic": 120, "diastolic": 85, "unit": "mmHg"}
        assert "heartRate" not in data["vitals"]
        assert data["isAbnormal"] is False
        assert data["abnormalValues"] == []
        assert data["patientId"] == people.patient.id
        assert data["version"] == 2

    def test_update_denied_for_unrelated_clinician(self, client, as_user, post_record, people):
        record_id = post_record().json()["id"]

        response = client.put(
            f"/api/v1/health-data/records/{record_id}",
            json={"notes": "x"},
            headers=as_user(people.stranger_clinician)
        )
        assert response.status_code == 403

    def test_delete_by_owner(self, client, as_user, post_record, people):
        record_id = post_record().json()["id"]

        response = client.delete(f"/api/v1/health-data/records/{record_id}", headers=as_user(people.patient))
        assert response.status_code == 204

        response = client.get(f"/api/v1/health-data/records/{record_id}", headers=as_user(people.patient))
        assert response.status_code == 404

    def test_delete_by_clinician_forbidden(self, client, as_user, post_record, people):
        record_id = post_record().json()["id"]

        response = client.delete(f"/api/v1/health-data/records/{record_id}", headers=as_user(people.clinician))
        assert response.status_code == 403
        assert response.json()["context"]["reason"] == "clinician_delete_forbidden"


# =============================================================================
# HISTORY
# =============================================================================

class TestHistoryEndpoints:
    """Tests for /api/v1/health-data/patients/{patient_id}/..."""

    def test_list_with_pagination(self, client, as_user, post_record, people):
        ids = [post_record({"notes": str(i)}).json()["id"] for i in range(3)]

        response = client.get(
            f"/api/v1/health-data/patients/{people.patient.id}",
            params={"page": 1, "limit": 2},
            headers=as_user(people.patient)
        )

        assert response.status_code == 200
        data = response.json()
        assert [r["id"] for r in data["records"]] == [ids[2], ids[1]]
        assert data["pagination"] == {
            "currentPage": 1,
            "totalPages": 2,
            "totalRecords": 3,
            "hasNextPage": True,
            "hasPrevPage": False,
        }

    def test_list_with_date_range(self, client, as_user, post_record, people):
        records = [post_record({"notes": str(i)}).json() for i in range(3)]

        response = client.get(
            f"/api/v1/health-data/patients/{people.patient.id}",
            params={"startDate": records[1]["createdAt"], "endDate": records[1]["createdAt"]},
            headers=as_user(people.patient)
        )
        assert [r["id"] for r in response.json()["records"]] == [records[1]["id"]]

    @pytest.mark.parametrize("params", [{"page": 0}, {"limit": 0}, {"limit": 1000}])
    def test_invalid_paging_is_400(self, client, as_user, people, params):
        response = client.get(
            f"/api/v1/health-data/patients/{people.patient.id}",
            params=params,
            headers=as_user(people.patient)
        )
        assert response.status_code == 400
        assert response.json()["kind"] == "validation_error"

    def test_other_patient_denied(self, client, as_user, people):
        response = client.get(
            f"/api/v1/health-data/patients/{people.patient.id}",
            headers=as_user(people.other_patient)
        )
        assert response.status_code == 403
        assert response.json()["context"]["reason"] == "not_own_record"

    def test_unknown_role_denied(self, client, as_user, people):
        response = client.get(
            f"/api/v1/health-data/patients/{people.patient.id}",
            headers=as_user(people.nurse)
        )
        assert response.status_code == 403
        assert response.json()["context"]["reason"] == "role_not_permitted"

    def test_unknown_patient_is_404(self, client, as_user, people):
        response = client.get("/api/v1/health-data/patients/9999", headers=as_user(people.admin))

        assert response.status_code == 404
        body = response.json()
        assert body["kind"] == "not_found"
        assert body["detail"] == "Patient 9999 not found"

    def test_latest(self, client, as_user, post_record, people):
        post_record({"notes": "old"})
        newest = post_record({"notes": "new"}).json()

        response = client.get(
            f"/api/v1/health-data/patients/{people.patient.id}/latest",
            headers=as_user(people.admin)
        )
        assert response.json()["id"] == newest["id"]

    def test_latest_without_records(self, client, as_user, people):
        response = client.get(
            f"/api/v1/health-data/patients/{people.other_patient.id}/latest",
            headers=as_user(people.other_patient)
        )
        assert response.status_code == 404

    def test_abnormal(self, client, as_user, post_record, people):
        post_record({"vitals": {"heartRate": {"value": 70}}})
        abnormal = post_record().json()
        post_record({"vitals": {"temperature": {"value": 36.6}}})

        response = client.get(
            f"/api/v1/health-data/patients/{people.patient.id}/abnormal",
            params={"page": 1, "limit": 10},
            headers=as_user(people.patient)
        )

        data = response.json()
        assert [r["id"] for r in data["records"]] == [abnormal["id"]]
        assert data["pagination"]["totalPages"] == 1
        assert data["pagination"]["hasNextPage"] is False

    def test_vitals_history(self, client, as_user, post_record, people):
        post_record()
        post_record({"vitals": {"heartRate": {"value": 72}, "oxygenSaturation": {"value": 97}}})

        response = client.get(
            f"/api/v1/health-data/patients/{people.patient.id}/vitals-history",
            params={"days": 7},
            headers=as_user(people.patient)
        )

        assert response.status_code == 200
        data = response.json()
        assert set(data["period"]) == {"startDate", "endDate"}
        assert len(data["records"]) == 2
        chart = data["chartData"]
        assert [p["value"] for p in chart["heartRate"]] == [45, 72]
        assert [p["value"] for p in chart["oxygenSaturation"]] == [97]
        assert [p["systolic"] for p in chart["bloodPressure"]] == [150]
        assert chart["bmi"][0]["value"] == 22.86
        assert data["summary"]["totalRecords"] == 2
        assert data["summary"]["abnormalRecords"] == 1
        assert data["summary"]["latestRecord"]["id"] == data["records"][-1]["id"]

    def test_vitals_history_invalid_days(self, client, as_user, people):
        response = client.get(
            f"/api/v1/health-data/patients/{people.patient.id}/vitals-history",
            params={"days": 0},
            headers=as_user(people.patient)
        )
        assert response.status_code == 400


# =============================================================================
# ANALYTICS
# =============================================================================

class TestVitalsTrendsEndpoint:
    """Tests for GET /api/v1/analytics/patients/{patient_id}/vitals-trends."""

    def test_trends(self, client, as_user, post_record, people):
        post_record({"vitals": {"bloodPressure": {"systolic": 120}, "heartRate": {"value": 70}}})
        post_record({"vitals": {"bloodPressure": {"systolic": 100}, "heartRate": {"value": 71}}})

        response = client.get(
            f"/api/v1/analytics/patients/{people.patient.id}/vitals-trends",
            params={"days": 30},
            headers=as_user(people.clinician)
        )

        assert response.status_code == 200
        trends = response.json()["trends"]
        assert trends["bloodPressure"] == {
            "trend": "decreasing",
            "change": -20,
            "percentChange": -16.67,
            "firstValue": 120,
            "lastValue": 100,
        }
        assert trends["heartRate"]["trend"] == "stable"
        assert trends["weight"] == {"trend": "stable", "change": 0}

    def test_zero_baseline_leaves_out_only_that_series(self, client, as_user, post_record, people):
        post_record({
            "vitals": {"bloodPressure": {"systolic": 120}},
            "measurements": {"height": {"value": 175}, "weight": {"value": 0}},
        })
        post_record({
            "vitals": {"bloodPressure": {"systolic": 160}},
            "measurements": {"height": {"value": 175}, "weight": {"value": 70}},
        })

        response = client.get(
            f"/api/v1/analytics/patients/{people.patient.id}/vitals-trends",
            headers=as_user(people.patient)
        )

        assert response.status_code == 200
        trends = response.json()["trends"]
        assert "weight" not in trends
        assert "bmi" not in trends
        assert trends["bloodPressure"]["trend"] == "increasing"
        assert trends["bloodPressure"]["change"] == 40

    def test_denied_without_relationship(self, client, as_user, people):
        response = client.get(
            f"/api/v1/analytics/patients/{people.patient.id}/vitals-trends",
            headers=as_user(people.stranger_clinician)
        )
        assert response.status_code == 403
