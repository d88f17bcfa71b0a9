"""
init_db.py
----------
Initialize the database and seed demo users and requests.
DEVELOPMENT USE ONLY
"""

import os
from datetime import date, timedelta

from app import create_app
from extensions import db
from models import User, LeaveRequest, TranscriptRequest, TranscriptSemester
from permissions.matrix import (
    ROLE_STUDENT,
    ROLE_FACULTY,
    ROLE_HOD,
    ROLE_PRINCIPAL,
    ROLE_REGISTRAR,
    ROLE_ADMIN,
)

DEFAULT_PASSWORD = os.getenv("SEED_PASSWORD", "123")

SEED_USERS = [
    # email, name, role, erp_id, department_id
    ("admin@college.local", "Portal Admin", ROLE_ADMIN, None, None),
    ("principal@college.local", "Principal", ROLE_PRINCIPAL, "P001", None),
    ("registrar@college.local", "Registrar", ROLE_REGISTRAR, "R001", None),
    ("hod.cs@college.local", "HOD Computer Science", ROLE_HOD, "H001", 1),
    ("faculty1@college.local", "Asha Kulkarni", ROLE_FACULTY, "S1", 1),
    ("faculty2@college.local", "Rohan Deshmukh", ROLE_FACULTY, "S2", 1),
    ("student1@college.local", "Neha Patil", ROLE_STUDENT, "ERP1001", 1),
]


def seed_users():
    created = 0
    for email, name, role, erp_id, dept in SEED_USERS:
        if User.query.filter_by(email=email).first():
            continue
        u = User(email=email, name=name, role=role, erp_id=erp_id, department_id=dept)
        u.set_password(DEFAULT_PASSWORD)
        db.session.add(u)
        created += 1
    db.session.commit()
    print(f"Users created: {created}")


def seed_requests():
    if LeaveRequest.query.count() == 0:
        start = date.today() + timedelta(days=7)
        for staff_id, name in (("S1", "Asha Kulkarni"), ("S2", "Rohan Deshmukh")):
            db.session.add(LeaveRequest(
                staff_id=staff_id,
                staff_name=name,
                department_id=1,
                leave_type="CASUAL",
                start_date=start,
                end_date=start + timedelta(days=1),
                reason="Family function",
            ))

    if TranscriptRequest.query.count() == 0:
        req = TranscriptRequest(
            student_erp_id="ERP1001",
            first_name="Neha",
            last_name="Patil",
            prn="PRN2020001",
            course="B.E. Computer Engineering",
            email="student1@college.local",
            department_id=1,
            fee_status="paid",
        )
        req.semesters = [
            TranscriptSemester(semester=i, cgpa=8.0 + i / 10, percentage=75.0 + i)
            for i in range(1, 9)
        ]
        db.session.add(req)

    db.session.commit()
    print("Demo requests ready")


if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        db.create_all()
        seed_users()
        seed_requests()
        print("Database initialized")
