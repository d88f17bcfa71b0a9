# services/transcript_service.py
"""Transcript approval: pending -> approved, once.

Approval and credential issuance are one conditional UPDATE; whoever flips
the status first owns the credentials, every later caller gets that same
pair back. Document issuance follows as a separate, retryable step.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from extensions import db
from models import (
    TranscriptRequest,
    TranscriptSemester,
    TRANSCRIPT_PENDING,
    TRANSCRIPT_APPROVED,
    FEE_PAID,
    FEE_UNPAID,
    MAX_SEMESTERS,
)
from permissions import has_permission
from services.credential_service import CredentialGenerator, CredentialPair
from services.document_service import (
    IssuedDocument,
    issue_document,
    store_uploaded_document,
)
from services.errors import (
    Forbidden,
    IssuanceFailure,
    NotFound,
    ValidationError,
    WorkflowError,
)
from utils.audit_helpers import record_audit
from utils.events import emit_event

logger = logging.getLogger(__name__)

TARGET_TYPE = "TRANSCRIPT_REQUEST"


@dataclass
class ApprovalResult:
    request: TranscriptRequest
    credentials: CredentialPair
    created: bool
    document: Optional[IssuedDocument] = None
    document_error: Optional[IssuanceFailure] = field(default=None)

    @property
    def document_status(self):
        if self.request.transcript_url:
            return "issued"
        return "pending"

    def to_dict(self):
        data = {
            "message": "Transcript approved successfully." if self.created else "Transcript already approved.",
            "created": self.created,
            "data": self.request.to_dict(include_credentials=True),
            "verificationCode": self.credentials.verification_code,
            "randomCode": self.credentials.random_code,
            "document_status": self.document_status,
            "transcript_url": self.request.transcript_url,
        }
        if self.document_error is not None:
            data["document_error"] = self.document_error.message
        return data


# =========================
# Helpers
# =========================
def _in_department(actor, req):
    return actor.department_id is not None and req.department_id == actor.department_id


def _load_for_approver(actor, request_id):
    try:
        request_id = int(request_id)
    except (TypeError, ValueError):
        raise ValidationError("request_id must be an integer.")

    req = db.session.get(TranscriptRequest, request_id)
    # Out-of-department requests are indistinguishable from missing ones.
    if req is None or not _in_department(actor, req):
        raise NotFound("Transcript request not found or not in your department.")
    return req


def _stored_pair(req):
    return CredentialPair(
        verification_code=req.verification_code,
        random_code=req.random_code,
    )


def _claim_approval(req_id, pair, actor_id):
    """Flip pending -> approved with credentials. True when this call won."""
    result = db.session.execute(
        update(TranscriptRequest)
        .where(
            TranscriptRequest.id == req_id,
            TranscriptRequest.status == TRANSCRIPT_PENDING,
        )
        .values(
            status=TRANSCRIPT_APPROVED,
            verification_code=pair.verification_code,
            random_code=pair.random_code,
            approved_at=datetime.utcnow(),
            approved_by_id=actor_id,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _grant_credentials(actor, req, generator):
    """Returns (pair, created). Leaves the request pending if every attempt fails."""
    max_attempts = int(current_app.config.get("CREDENTIAL_MAX_ATTEMPTS", 5))
    req_id = req.id
    student_erp_id = req.student_erp_id

    for attempt in range(1, max_attempts + 1):
        pair = generator.generate()
        try:
            won = _claim_approval(req_id, pair, actor.id)
            if won:
                record_audit(
                    actor_id=actor.id,
                    action="TRANSCRIPT_APPROVED",
                    target_type=TARGET_TYPE,
                    target_id=req_id,
                    old_status=TRANSCRIPT_PENDING,
                    new_status=TRANSCRIPT_APPROVED,
                )
                emit_event(
                    actor_id=actor.id,
                    message=f"Your transcript request #{req_id} was approved.",
                    notify_erp_id=student_erp_id,
                )
            db.session.commit()
        except IntegrityError:
            # random_code collided with an existing one
            db.session.rollback()
            logger.warning(
                "Random code collision | request_id=%s attempt=%s/%s",
                req_id, attempt, max_attempts,
            )
            continue

        current = db.session.get(TranscriptRequest, req_id)
        if won:
            logger.info("Transcript approved | request_id=%s actor=%s", req_id, actor.id)
            return pair, True

        logger.info(
            "Transcript approval lost race; returning existing credentials | request_id=%s",
            req_id,
        )
        return _stored_pair(current), False

    raise WorkflowError(
        "Could not issue unique credentials; the request is still pending.",
        payload={"request_id": req_id},
    )


# =========================
# Engine API
# =========================
def approve_transcript(actor, request_id, generator=None, issue=True):
    """Approve a transcript request and issue its credentials and document.

    Idempotent: an already approved request returns its stored credential
    pair with ``created=False`` and is never re-issued. A document failure is
    reported on the result, not raised.
    """
    if not has_permission(actor, "TRANSCRIPT_APPROVE"):
        raise Forbidden("Only the HOD can approve transcript requests.")

    req = _load_for_approver(actor, request_id)

    if req.status == TRANSCRIPT_APPROVED:
        result = ApprovalResult(request=req, credentials=_stored_pair(req), created=False)
    else:
        generator = generator or CredentialGenerator.from_config()
        pair, created = _grant_credentials(actor, req, generator)
        req = db.session.get(TranscriptRequest, req.id)
        result = ApprovalResult(request=req, credentials=pair, created=created)

    if issue and result.created:
        try:
            result.document = issue_document(
                req, actor_id=actor.id, issued_by=actor.label,
            )
        except IssuanceFailure as exc:
            result.document_error = exc
        req = db.session.get(TranscriptRequest, req.id)
        result.request = req

    return result


def issue_transcript_document(actor, request_id):
    """Retry document generation for an approved request."""
    if not has_permission(actor, "TRANSCRIPT_ISSUE_DOCUMENT"):
        raise Forbidden()

    req = _load_for_approver(actor, request_id)
    approver = req.approved_by.label if req.approved_by else actor.label
    return issue_document(req, actor_id=actor.id, issued_by=approver)


def attach_uploaded_document(actor, request_id, data):
    if not has_permission(actor, "TRANSCRIPT_ISSUE_DOCUMENT"):
        raise Forbidden()

    req = _load_for_approver(actor, request_id)
    return store_uploaded_document(req, data, actor_id=actor.id)


# =========================
# Queries
# =========================
def list_transcript_requests(actor, status=None):
    q = TranscriptRequest.query

    if has_permission(actor, "TRANSCRIPT_VIEW_ALL"):
        pass
    elif has_permission(actor, "TRANSCRIPT_VIEW_DEPARTMENT"):
        q = q.filter(TranscriptRequest.department_id == actor.department_id)
    else:
        raise Forbidden()

    if status:
        status = str(status).strip().lower()
        if status not in (TRANSCRIPT_PENDING, TRANSCRIPT_APPROVED):
            raise ValidationError("Invalid status filter.")
        q = q.filter(TranscriptRequest.status == status)

    return q.order_by(TranscriptRequest.uploaded_at.desc(), TranscriptRequest.id.desc()).all()


def student_transcripts(actor):
    """The acting student's own requests (credentials included once approved)."""
    if not has_permission(actor, "TRANSCRIPT_VIEW_OWN"):
        raise Forbidden()

    return (
        TranscriptRequest.query
        .filter(TranscriptRequest.student_erp_id == (actor.erp_id or ""))
        .order_by(TranscriptRequest.uploaded_at.desc(), TranscriptRequest.id.desc())
        .all()
    )


# =========================
# Submission
# =========================
def _parse_semesters(rows):
    parsed = []
    seen = set()
    for row in rows or []:
        try:
            sem = int(row.get("semester"))
        except (TypeError, ValueError, AttributeError):
            raise ValidationError("Each semester row needs a semester number.")
        if not 1 <= sem <= MAX_SEMESTERS:
            raise ValidationError(f"Semester number must be between 1 and {MAX_SEMESTERS}.")
        if sem in seen:
            raise ValidationError(f"Semester {sem} is listed twice.")
        seen.add(sem)

        try:
            cgpa = float(row.get("cgpa"))
            percentage = float(row.get("percentage"))
        except (TypeError, ValueError):
            raise ValidationError(f"Semester {sem} needs both CGPA and percentage.")
        if not 0 <= cgpa <= 10:
            raise ValidationError(f"Semester {sem}: CGPA must be between 0 and 10.")
        if not 0 <= percentage <= 100:
            raise ValidationError(f"Semester {sem}: percentage must be between 0 and 100.")

        parsed.append(TranscriptSemester(semester=sem, cgpa=cgpa, percentage=percentage))
    return parsed


def submit_transcript_request(
    actor,
    first_name,
    last_name,
    prn,
    course,
    email,
    semesters,
    source_document_url=None,
    fee_status=FEE_UNPAID,
):
    if not has_permission(actor, "TRANSCRIPT_SUBMIT"):
        raise Forbidden()

    if not (actor.erp_id or "").strip():
        raise ValidationError("Your account has no student id.")

    fields = {
        "first_name": first_name,
        "last_name": last_name,
        "prn": prn,
        "course": course,
        "email": email,
    }
    missing = [k for k, v in fields.items() if not str(v or "").strip()]
    if missing:
        raise ValidationError("Missing required fields.", payload={"missing": missing})

    fee_status = str(fee_status or FEE_UNPAID).strip().lower()
    if fee_status not in (FEE_PAID, FEE_UNPAID):
        raise ValidationError("fee_status must be 'paid' or 'unpaid'.")

    req = TranscriptRequest(
        student_erp_id=actor.erp_id.strip(),
        first_name=str(first_name).strip(),
        last_name=str(last_name).strip(),
        prn=str(prn).strip(),
        course=str(course).strip(),
        email=str(email).strip(),
        department_id=actor.department_id,
        source_document_url=source_document_url,
        fee_status=fee_status,
        status=TRANSCRIPT_PENDING,
    )
    req.semesters = _parse_semesters(semesters)
    db.session.add(req)
    db.session.flush()

    record_audit(
        actor_id=actor.id,
        action="TRANSCRIPT_SUBMITTED",
        target_type=TARGET_TYPE,
        target_id=req.id,
        new_status=TRANSCRIPT_PENDING,
    )
    db.session.commit()

    logger.info("Transcript request submitted | request_id=%s student=%s", req.id, req.student_erp_id)
    return req
