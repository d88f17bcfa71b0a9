import io

import pytest

from conftest import PASSWORD, make_leave, make_transcript, make_user
from extensions import db
from models import TranscriptRequest
from permissions.matrix import ROLE_FACULTY, ROLE_HOD, ROLE_PRINCIPAL, ROLE_STUDENT


@pytest.fixture
def seeded(app):
    with app.app_context():
        make_user("hod@college.test", ROLE_HOD, erp_id="H1", department_id=1, name="Dr. Hod")
        make_user("principal@college.test", ROLE_PRINCIPAL, erp_id="P1")
        make_user("s1@college.test", ROLE_FACULTY, erp_id="S1", department_id=1)
        make_user("student@college.test", ROLE_STUDENT, erp_id="ERP1001", department_id=1)
        make_leave("S1")
        req = make_transcript()
        return {"transcript_id": req.id}


def login(client, email):
    resp = client.post("/auth/login", json={"email": email, "password": PASSWORD})
    assert resp.status_code == 200, resp.get_json()
    return resp


def test_login_rejects_bad_password(client, seeded):
    resp = client.post("/auth/login", json={"email": "hod@college.test", "password": "nope"})
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "invalid_credentials"


def test_endpoints_require_login(client, seeded):
    assert client.get("/leave/requests").status_code == 401
    resp = client.patch(f"/transcripts/requests/{seeded['transcript_id']}/approve")
    assert resp.status_code == 401


def test_leave_flow_over_http(client, seeded):
    login(client, "hod@college.test")

    resp = client.put("/leave/requests/S1/hod", json={"decision": "Approved"})
    assert resp.status_code == 200
    leave = resp.get_json()["leave"]
    assert leave["hod_decision"] == "Approved"
    assert leave["final_status"] == "Pending"

    resp = client.put("/leave/requests/S1/hod", json={"decision": "Rejected"})
    assert resp.status_code == 409
    body = resp.get_json()
    assert body["error"] == "conflict"
    assert body["decision"] == "Approved"

    resp = client.put("/leave/requests/S1/principal", json={"decision": "Rejected"})
    assert resp.status_code == 403

    resp = client.get("/leave/recent-actions")
    assert [a["action"] for a in resp.get_json()] == ["LEAVE_HOD_APPROVED"]

    client.post("/auth/logout")
    login(client, "principal@college.test")

    resp = client.put("/leave/requests/S1/principal", json={"decision": "Rejected"})
    assert resp.status_code == 200
    assert resp.get_json()["leave"]["final_status"] == "Rejected"

    resp = client.get("/leave/requests?status=Rejected")
    assert [r["staff_id"] for r in resp.get_json()] == ["S1"]


def test_leave_validation_and_not_found(client, seeded):
    login(client, "hod@college.test")

    resp = client.put("/leave/requests/S1/hod", json={"decision": "Later"})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "validation_error"

    resp = client.put("/leave/requests/S404/hod", json={"decision": "Approved"})
    assert resp.status_code == 404


def test_faculty_submits_leave(client, app):
    with app.app_context():
        make_user("s5@college.test", ROLE_FACULTY, erp_id="S5", department_id=1)
    login(client, "s5@college.test")

    resp = client.post("/leave/requests", json={
        "leave_type": "casual",
        "start_date": "2026-11-10",
        "end_date": "2026-11-11",
        "reason": "Wedding",
    })
    assert resp.status_code == 201
    assert resp.get_json()["leave"]["staff_id"] == "S5"


def test_transcript_approval_and_verification_over_http(client, seeded, app):
    req_id = seeded["transcript_id"]
    login(client, "hod@college.test")

    resp = client.patch(f"/transcripts/requests/{req_id}/approve")
    assert resp.status_code == 200
    first = resp.get_json()
    assert first["created"] is True
    assert first["document_status"] == "issued"
    secret, random_code = first["verificationCode"], first["randomCode"]
    assert secret and random_code

    resp = client.patch(f"/transcripts/requests/{req_id}/approve")
    second = resp.get_json()
    assert second["created"] is False
    assert (second["verificationCode"], second["randomCode"]) == (secret, random_code)

    client.post("/auth/logout")

    # Phase one: name only
    resp = client.get(f"/api/verify/{random_code}")
    assert resp.status_code == 200
    assert resp.get_json() == {"name": "Neha Patil"}

    # Wrong secret: generic error
    resp = client.post(f"/api/verify/{random_code}", json={"verification_code": "9999"})
    assert resp.status_code == 404
    assert resp.get_json() == {"error": "invalid_code", "message": "Invalid verification code."}

    # Unknown code: same response
    resp = client.post("/api/verify/unknown", json={"verification_code": secret})
    assert resp.get_json() == {"error": "invalid_code", "message": "Invalid verification code."}

    # Phase two
    resp = client.post(f"/api/verify/{random_code}", json={"verification_code": secret})
    assert resp.status_code == 200
    record = resp.get_json()["result"]
    assert len(record["semesters"]) == 3

    # Stored document is downloadable
    path = record["transcript_url"].split("http://portal.test", 1)[1]
    resp = client.get(path)
    assert resp.status_code == 200
    assert resp.data.startswith(b"%PDF")


def test_verification_page_two_phases(client, seeded, app):
    with app.app_context():
        from services import transcript_service
        from conftest import FixedGenerator
        from models import User

        hod = User.query.filter_by(email="hod@college.test").one()
        transcript_service.approve_transcript(
            hod, seeded["transcript_id"], generator=FixedGenerator(("8841", "a1b2c3"))
        )

    resp = client.get("/verify/a1b2c3")
    assert resp.status_code == 200
    page = resp.get_data(as_text=True)
    assert "Neha Patil" in page
    assert "Semester Results" not in page

    resp = client.post("/verify/a1b2c3", data={"verification_code": "9999"})
    page = resp.get_data(as_text=True)
    assert "Invalid verification code." in page
    assert "Semester Results" not in page

    resp = client.post("/verify/a1b2c3", data={"verification_code": "8841"})
    page = resp.get_data(as_text=True)
    assert "Semester Results" in page
    assert "PRN2020001" in page

    resp = client.get("/verify/nothing")
    assert resp.status_code == 404
    assert "Neha" not in resp.get_data(as_text=True)


def test_student_sees_own_credentials(client, seeded, app):
    login(client, "hod@college.test")
    approved = client.patch(f"/transcripts/requests/{seeded['transcript_id']}/approve").get_json()
    client.post("/auth/logout")

    login(client, "student@college.test")
    rows = client.get("/transcripts/mine").get_json()["result"]
    assert rows[0]["verification_code"] == approved["verificationCode"]
    assert rows[0]["random_code"] == approved["randomCode"]

    assert client.get("/transcripts/requests").status_code == 403


def test_upload_and_reissue_document(client, seeded, app):
    req_id = seeded["transcript_id"]
    login(client, "hod@college.test")

    resp = client.post(f"/transcripts/requests/{req_id}/document")
    assert resp.status_code == 400

    client.patch(f"/transcripts/requests/{req_id}/approve")

    resp = client.post(
        f"/transcripts/requests/{req_id}/upload-pdf",
        data={"pdf": (io.BytesIO(b"%PDF-1.4 test"), "t.pdf")},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 200
    uploaded_url = resp.get_json()["pdfUrl"]

    resp = client.post(f"/transcripts/requests/{req_id}/document")
    assert resp.status_code == 200
    assert resp.get_json()["transcript_url"] != uploaded_url

    with app.app_context():
        assert db.session.get(TranscriptRequest, req_id).transcript_url == resp.get_json()["transcript_url"]


def test_non_object_json_body_is_a_validation_error(client, seeded):
    expected = {"error": "validation_error", "message": "Request body must be a JSON object."}

    resp = client.post("/api/verify/a1b2c3", json=["8841"])
    assert resp.status_code == 400
    assert resp.get_json() == expected

    resp = client.post("/auth/login", json=["hod@college.test", PASSWORD])
    assert resp.status_code == 400

    login(client, "hod@college.test")
    resp = client.put("/leave/requests/S1/hod", json="Approved")
    assert resp.status_code == 400
    assert resp.get_json() == expected

    resp = client.post("/transcripts/requests", json=[1, 2])
    assert resp.status_code == 400
