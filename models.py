from datetime import datetime

from extensions import db
from werkzeug.security import generate_password_hash, check_password_hash
from flask_login import UserMixin
from sqlalchemy import and_, case, or_
from sqlalchemy.ext.hybrid import hybrid_property


# ======================
# Workflow constants
# ======================
DECISION_PENDING = "Pending"
DECISION_APPROVED = "Approved"
DECISION_REJECTED = "Rejected"
LEAVE_DECISIONS = (DECISION_PENDING, DECISION_APPROVED, DECISION_REJECTED)

LEAVE_TYPES = ("CASUAL", "SICK", "EARNED", "DUTY", "MATERNITY", "OTHER")

TRANSCRIPT_PENDING = "pending"
TRANSCRIPT_APPROVED = "approved"

FEE_PAID = "paid"
FEE_UNPAID = "unpaid"

MAX_SEMESTERS = 8


def derive_final_status(hod_decision, principal_decision):
    """Final leave outcome from the two independent decisions.

    Rejected if either gate rejected, Approved only when both approved,
    Pending otherwise.
    """
    if DECISION_REJECTED in (hod_decision, principal_decision):
        return DECISION_REJECTED
    if hod_decision == DECISION_APPROVED and principal_decision == DECISION_APPROVED:
        return DECISION_APPROVED
    return DECISION_PENDING


# ======================
# Users
# ======================
class User(db.Model, UserMixin):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, index=True, nullable=False)
    name = db.Column(db.String(200), nullable=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(50), index=True, nullable=False)

    # ERP identifier (staff id for faculty, student id for students)
    erp_id = db.Column(db.String(50), unique=True, index=True, nullable=True)
    department_id = db.Column(db.Integer, nullable=True, index=True)

    is_active_account = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password or "")

    def has_role(self, role: str) -> bool:
        mine = (self.role or "").strip().upper().replace("-", "_").replace(" ", "_")
        return bool(role) and mine == str(role).strip().upper()

    @property
    def is_active(self):
        return bool(self.is_active_account)

    @property
    def label(self):
        return (self.name or self.email or f"User#{self.id}").strip()

    def __repr__(self) -> str:
        return f"<User id={self.id} role={self.role}>"


# ======================
# Leave requests
# ======================
class LeaveRequest(db.Model):
    """Staff leave request gated by HOD and Principal.

    The two decision columns are independent; the final status is derived,
    never stored.
    """

    __tablename__ = "leave_requests"

    id = db.Column(db.Integer, primary_key=True)

    staff_id = db.Column(db.String(50), nullable=False, index=True)
    staff_name = db.Column(db.String(200), nullable=False)
    department_id = db.Column(db.Integer, nullable=True, index=True)

    leave_type = db.Column(db.String(20), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    reason = db.Column(db.Text, nullable=False)
    applied_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    hod_decision = db.Column(db.String(20), default=DECISION_PENDING, nullable=False)
    hod_decided_at = db.Column(db.DateTime, nullable=True)
    hod_decided_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    principal_decision = db.Column(db.String(20), default=DECISION_PENDING, nullable=False)
    principal_decided_at = db.Column(db.DateTime, nullable=True)
    principal_decided_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    hod_decided_by = db.relationship("User", foreign_keys=[hod_decided_by_id], lazy="joined")
    principal_decided_by = db.relationship("User", foreign_keys=[principal_decided_by_id], lazy="joined")

    __table_args__ = (
        db.Index("ix_leave_req_staff_applied", "staff_id", "applied_at"),
    )

    @hybrid_property
    def final_status(self):
        return derive_final_status(self.hod_decision, self.principal_decision)

    @final_status.expression
    def final_status(cls):
        return case(
            (
                or_(cls.hod_decision == DECISION_REJECTED, cls.principal_decision == DECISION_REJECTED),
                DECISION_REJECTED,
            ),
            (
                and_(cls.hod_decision == DECISION_APPROVED, cls.principal_decision == DECISION_APPROVED),
                DECISION_APPROVED,
            ),
            else_=DECISION_PENDING,
        )

    @property
    def days(self):
        return (self.end_date - self.start_date).days + 1

    def to_dict(self):
        return {
            "id": self.id,
            "staff_id": self.staff_id,
            "staff_name": self.staff_name,
            "department_id": self.department_id,
            "leave_type": self.leave_type,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "days": self.days,
            "reason": self.reason,
            "applied_at": self.applied_at.isoformat() if self.applied_at else None,
            "hod_decision": self.hod_decision,
            "principal_decision": self.principal_decision,
            "final_status": self.final_status,
        }


# ======================
# Transcript requests
# ======================
class TranscriptRequest(db.Model):
    __tablename__ = "transcript_requests"

    id = db.Column(db.Integer, primary_key=True)

    student_erp_id = db.Column(db.String(50), nullable=False, index=True)
    first_name = db.Column(db.String(120), nullable=False)
    last_name = db.Column(db.String(120), nullable=False)
    prn = db.Column(db.String(50), nullable=False)
    course = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    department_id = db.Column(db.Integer, nullable=True, index=True)

    source_document_url = db.Column(db.String(500), nullable=True)
    fee_status = db.Column(db.String(20), default=FEE_UNPAID, nullable=False)
    uploaded_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    # pending -> approved (terminal)
    status = db.Column(db.String(20), default=TRANSCRIPT_PENDING, nullable=False, index=True)

    # Written together in one UPDATE on approval
    verification_code = db.Column(db.String(64), nullable=True)
    random_code = db.Column(db.String(64), unique=True, index=True, nullable=True)
    approved_at = db.Column(db.DateTime, nullable=True)
    approved_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    # Filled by the document issuer, may lag behind approval
    transcript_url = db.Column(db.String(500), nullable=True)
    document_sha256 = db.Column(db.String(64), nullable=True)
    document_issued_at = db.Column(db.DateTime, nullable=True)

    approved_by = db.relationship("User", foreign_keys=[approved_by_id], lazy="joined")
    semesters = db.relationship(
        "TranscriptSemester",
        back_populates="request",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="TranscriptSemester.semester",
    )

    @property
    def display_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_approved(self):
        return self.status == TRANSCRIPT_APPROVED

    def semester_rows(self):
        return [s.to_dict() for s in self.semesters]

    def to_dict(self, include_credentials=False):
        data = {
            "id": self.id,
            "student_erp_id": self.student_erp_id,
            "name": self.display_name,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "prn": self.prn,
            "course": self.course,
            "email": self.email,
            "department_id": self.department_id,
            "source_document_url": self.source_document_url,
            "fee_status": self.fee_status,
            "uploaded_at": self.uploaded_at.isoformat() if self.uploaded_at else None,
            "status": self.status,
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
            "transcript_url": self.transcript_url,
            "semesters": self.semester_rows(),
        }
        if include_credentials:
            data["verification_code"] = self.verification_code
            data["random_code"] = self.random_code
        return data


class TranscriptSemester(db.Model):
    __tablename__ = "transcript_semesters"

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(
        db.Integer,
        db.ForeignKey("transcript_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    semester = db.Column(db.Integer, nullable=False)
    cgpa = db.Column(db.Float, nullable=True)
    percentage = db.Column(db.Float, nullable=True)

    request = db.relationship("TranscriptRequest", back_populates="semesters")

    __table_args__ = (
        db.UniqueConstraint("request_id", "semester", name="uq_transcript_semester"),
    )

    def to_dict(self):
        return {
            "semester": self.semester,
            "cgpa": self.cgpa,
            "percentage": self.percentage,
        }


# ======================
# Audit / notifications
# ======================
class AuditLog(db.Model):
    __tablename__ = "audit_log"

    id = db.Column(db.Integer, primary_key=True)

    actor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    action = db.Column(db.String(100), nullable=False)
    note = db.Column(db.Text, nullable=True)

    old_status = db.Column(db.String(50))
    new_status = db.Column(db.String(50))

    # LEAVE_REQUEST / TRANSCRIPT_REQUEST
    target_type = db.Column(db.String(50))
    target_id = db.Column(db.Integer)

    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True
    )

    actor = db.relationship("User", foreign_keys=[actor_id])

    def to_dict(self):
        return {
            "id": self.id,
            "actor_id": self.actor_id,
            "action": self.action,
            "note": self.note,
            "old_status": self.old_status,
            "new_status": self.new_status,
            "target_type": self.target_type,
            "target_id": self.target_id,
            "created_at": self.created_at.isoformat(),
        }


class Notification(db.Model):
    # no __tablename__ => default is "notification"
    __table_args__ = (
        db.Index("ix_notification_user_read", "user_id", "is_read"),
        db.Index("ix_notification_created", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    message = db.Column(db.String(255))
    type = db.Column(db.String(50), default="INFO")
    is_read = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    actor_id = db.Column(db.Integer, nullable=True)
