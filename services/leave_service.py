# services/leave_service.py
"""Two-gate leave approval.

A leave request carries two independent decisions, one per authority
(HOD, Principal). Each moves once from Pending to Approved/Rejected through a
conditional UPDATE on its own column, so the two authorities never contend
with each other and a second write to the same column cannot overwrite the
first. The final status is derived (see ``models.derive_final_status``).
"""

import logging
from datetime import date, datetime

from flask import current_app
from sqlalchemy import update

from extensions import db
from models import (
    LeaveRequest,
    LEAVE_DECISIONS,
    LEAVE_TYPES,
    DECISION_PENDING,
    DECISION_APPROVED,
    DECISION_REJECTED,
)
from permissions import has_permission
from services.errors import Conflict, Forbidden, NotFound, ValidationError
from utils.audit_helpers import record_audit, recent_audit_entries
from utils.events import emit_event

logger = logging.getLogger(__name__)

TARGET_TYPE = "LEAVE_REQUEST"

GATE_HOD = "hod"
GATE_PRINCIPAL = "principal"

_GATES = {
    GATE_HOD: {
        "label": "HOD",
        "permission": "LEAVE_HOD_DECIDE",
        "field": "hod_decision",
        "decided_at": "hod_decided_at",
        "decided_by": "hod_decided_by_id",
    },
    GATE_PRINCIPAL: {
        "label": "Principal",
        "permission": "LEAVE_PRINCIPAL_DECIDE",
        "field": "principal_decision",
        "decided_at": "principal_decided_at",
        "decided_by": "principal_decided_by_id",
    },
}


# =========================
# Helpers
# =========================
def normalize_decision(value):
    raw = (value or "").strip().capitalize()
    if raw not in (DECISION_APPROVED, DECISION_REJECTED):
        raise ValidationError(
            "Invalid decision (must be Approved or Rejected).",
            payload={"allowed": [DECISION_APPROVED, DECISION_REJECTED]},
        )
    return raw


def _parse_date(value, field):
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value or "").strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"{field} must be a date in YYYY-MM-DD format.")


def _in_department(actor, leave):
    return actor.department_id is not None and leave.department_id == actor.department_id


def _current_request_for_staff(staff_id):
    return (
        LeaveRequest.query
        .filter(LeaveRequest.staff_id == staff_id)
        .order_by(LeaveRequest.applied_at.desc(), LeaveRequest.id.desc())
        .first()
    )


# =========================
# Decisions
# =========================
def _decide(actor, gate_key, staff_id, decision, note=""):
    gate = _GATES[gate_key]

    # Role check happens before anything is read.
    if not has_permission(actor, gate["permission"]):
        raise Forbidden(f"Only the {gate['label']} can record this decision.")

    decision = normalize_decision(decision)
    staff_id = str(staff_id or "").strip()
    if not staff_id:
        raise ValidationError("staff_id is required.")

    leave = _current_request_for_staff(staff_id)
    if leave is None or (gate_key == GATE_HOD and not _in_department(actor, leave)):
        raise NotFound(f"No leave request found for staff {staff_id}.")

    leave_id = leave.id
    if actor.erp_id and leave.staff_id == actor.erp_id:
        raise Forbidden("You cannot decide your own leave request.")

    old_final = leave.final_status

    column = getattr(LeaveRequest, gate["field"])
    result = db.session.execute(
        update(LeaveRequest)
        .where(LeaveRequest.id == leave_id, column == DECISION_PENDING)
        .values({
            gate["field"]: decision,
            gate["decided_at"]: datetime.utcnow(),
            gate["decided_by"]: actor.id,
        })
        .execution_options(synchronize_session=False)
    )

    if result.rowcount != 1:
        db.session.rollback()
        current = db.session.get(LeaveRequest, leave_id)
        stored = getattr(current, gate["field"])
        logger.warning(
            "Leave decision conflict | gate=%s staff=%s actor=%s stored=%s attempted=%s",
            gate_key, staff_id, actor.id, stored, decision,
        )
        raise Conflict(
            f"Already decided by {gate['label']}: {stored}.",
            payload={"decision": stored, "leave": current.to_dict()},
        )

    # Re-read so the audit reflects the other gate as stored now.
    db.session.refresh(leave)
    new_final = leave.final_status

    record_audit(
        actor_id=actor.id,
        action=f"LEAVE_{gate['label'].upper()}_{decision.upper()}",
        target_type=TARGET_TYPE,
        target_id=leave_id,
        old_status=old_final,
        new_status=new_final,
        note=note or f"{leave.staff_name} ({staff_id})",
    )

    msg = f"{gate['label']} {decision.lower()} your leave from {leave.start_date.isoformat()} to {leave.end_date.isoformat()}"
    if note:
        msg += f" | Note: {note}"
    emit_event(actor_id=actor.id, message=msg, notify_erp_id=staff_id)

    db.session.commit()

    logger.info(
        "Leave decision | gate=%s staff=%s leave_id=%s decision=%s actor=%s",
        gate_key, staff_id, leave_id, decision, actor.id,
    )
    return db.session.get(LeaveRequest, leave_id)


def decide_as_hod(actor, staff_id, decision, note=""):
    return _decide(actor, GATE_HOD, staff_id, decision, note=note)


def decide_as_principal(actor, staff_id, decision, note=""):
    return _decide(actor, GATE_PRINCIPAL, staff_id, decision, note=note)


# =========================
# Queries
# =========================
def list_leave_requests(actor, status=None):
    """Requests visible to ``actor``, newest first.

    HODs see their own department; Principal, Registrar and Admin see all.
    ``status`` filters on the derived final status.
    """
    q = LeaveRequest.query

    if has_permission(actor, "LEAVE_VIEW_ALL"):
        pass
    elif has_permission(actor, "LEAVE_VIEW_DEPARTMENT"):
        q = q.filter(LeaveRequest.department_id == actor.department_id)
    else:
        raise Forbidden()

    if status:
        wanted = str(status).strip().capitalize()
        if wanted not in LEAVE_DECISIONS:
            raise ValidationError(
                "Invalid status filter.",
                payload={"allowed": list(LEAVE_DECISIONS)},
            )
        q = q.filter(LeaveRequest.final_status == wanted)

    return q.order_by(LeaveRequest.applied_at.desc(), LeaveRequest.id.desc()).all()


def recent_actions(actor, limit=None):
    """Last few decisions recorded by ``actor`` (display window only)."""
    if not (
        has_permission(actor, "LEAVE_HOD_DECIDE")
        or has_permission(actor, "LEAVE_PRINCIPAL_DECIDE")
    ):
        raise Forbidden()

    cap = int(current_app.config.get("LEAVE_RECENT_ACTIONS_LIMIT", 5))
    if limit is None:
        limit = cap
    limit = max(0, min(int(limit), cap))
    return recent_audit_entries(actor.id, limit, target_type=TARGET_TYPE)


# =========================
# Submission
# =========================
def submit_leave(actor, leave_type, start_date, end_date, reason):
    """Create a Pending/Pending request for the acting staff member."""
    if not has_permission(actor, "LEAVE_SUBMIT"):
        raise Forbidden()

    staff_id = (actor.erp_id or "").strip()
    if not staff_id:
        raise ValidationError("Your account has no staff id.")

    leave_type = str(leave_type or "").strip().upper()
    if leave_type not in LEAVE_TYPES:
        raise ValidationError("Invalid leave type.", payload={"allowed": list(LEAVE_TYPES)})

    start = _parse_date(start_date, "start_date")
    end = _parse_date(end_date, "end_date")
    if end < start:
        raise ValidationError("end_date must not be before start_date.")

    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("reason is required.")

    open_request = (
        LeaveRequest.query
        .filter(
            LeaveRequest.staff_id == staff_id,
            LeaveRequest.final_status == DECISION_PENDING,
        )
        .first()
    )
    if open_request is not None:
        raise Conflict(
            "You already have a pending leave request.",
            payload={"leave": open_request.to_dict()},
        )

    leave = LeaveRequest(
        staff_id=staff_id,
        staff_name=actor.label,
        department_id=actor.department_id,
        leave_type=leave_type,
        start_date=start,
        end_date=end,
        reason=reason,
    )
    db.session.add(leave)
    db.session.flush()

    record_audit(
        actor_id=actor.id,
        action="LEAVE_SUBMITTED",
        target_type=TARGET_TYPE,
        target_id=leave.id,
        new_status=DECISION_PENDING,
        note=f"{leave_type} {start.isoformat()} - {end.isoformat()}",
    )
    db.session.commit()

    logger.info("Leave submitted | staff=%s leave_id=%s", staff_id, leave.id)
    return leave
