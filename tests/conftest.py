"""
Test configuration and fixtures
"""
from datetime import date, datetime, timedelta

import pytest

from app import create_app
from extensions import db
from models import (
    User,
    LeaveRequest,
    TranscriptRequest,
    TranscriptSemester,
)
from permissions.matrix import (
    ROLE_STUDENT,
    ROLE_FACULTY,
    ROLE_HOD,
    ROLE_PRINCIPAL,
    ROLE_REGISTRAR,
)
from utils.storage import DocumentStore

PASSWORD = "testpassword123"
BASE_URL = "http://portal.test"


@pytest.fixture
def app(tmp_path):
    app = create_app("config.TestConfig")
    app.config["PUBLIC_BASE_URL"] = BASE_URL
    app.extensions["transcript_store"] = DocumentStore(str(tmp_path / "transcripts"), BASE_URL)

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    """Application context for calling services directly."""
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(email, role, erp_id=None, department_id=None, name=None):
    user = User(
        email=email,
        name=name or email.split("@")[0],
        role=role,
        erp_id=erp_id,
        department_id=department_id,
    )
    user.set_password(PASSWORD)
    db.session.add(user)
    db.session.commit()
    return user


def make_leave(staff_id, department_id=1, staff_name=None, applied_at=None, **kwargs):
    start = kwargs.pop("start_date", date(2026, 11, 2))
    leave = LeaveRequest(
        staff_id=staff_id,
        staff_name=staff_name or f"Staff {staff_id}",
        department_id=department_id,
        leave_type=kwargs.pop("leave_type", "CASUAL"),
        start_date=start,
        end_date=kwargs.pop("end_date", start + timedelta(days=1)),
        reason=kwargs.pop("reason", "Personal work"),
        applied_at=applied_at or datetime.utcnow(),
        **kwargs,
    )
    db.session.add(leave)
    db.session.commit()
    return leave


def make_transcript(department_id=1, semesters=3, **kwargs):
    req = TranscriptRequest(
        student_erp_id=kwargs.pop("student_erp_id", "ERP1001"),
        first_name=kwargs.pop("first_name", "Neha"),
        last_name=kwargs.pop("last_name", "Patil"),
        prn=kwargs.pop("prn", "PRN2020001"),
        course=kwargs.pop("course", "B.E. Computer Engineering"),
        email=kwargs.pop("email", "neha@college.test"),
        department_id=department_id,
        fee_status=kwargs.pop("fee_status", "paid"),
        **kwargs,
    )
    req.semesters = [
        TranscriptSemester(semester=i, cgpa=8.0 + i / 10, percentage=70.0 + i)
        for i in range(1, semesters + 1)
    ]
    db.session.add(req)
    db.session.commit()
    return req


@pytest.fixture
def people(ctx):
    """One user per role, HOD and staff in department 1."""
    return {
        "hod": make_user("hod@college.test", ROLE_HOD, erp_id="H1", department_id=1, name="Dr. Hod"),
        "other_hod": make_user("hod2@college.test", ROLE_HOD, erp_id="H2", department_id=2),
        "principal": make_user("principal@college.test", ROLE_PRINCIPAL, erp_id="P1"),
        "registrar": make_user("registrar@college.test", ROLE_REGISTRAR, erp_id="R1"),
        "faculty": make_user("s1@college.test", ROLE_FACULTY, erp_id="S1", department_id=1, name="Asha"),
        "student": make_user("student@college.test", ROLE_STUDENT, erp_id="ERP1001", department_id=1),
    }


class FixedGenerator:
    """Credential generator returning queued pairs, counting calls."""

    def __init__(self, *pairs):
        from services.credential_service import CredentialPair

        self._pairs = [CredentialPair(v, r) for v, r in pairs]
        self.calls = 0

    def generate(self):
        self.calls += 1
        return self._pairs.pop(0)
