from models import AuditLog
from extensions import db


def record_audit(
    actor_id,
    action,
    target_type,
    target_id,
    old_status=None,
    new_status=None,
    note=None,
):
    """Append an audit entry to the current session (caller commits)."""
    entry = AuditLog(
        actor_id=actor_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        old_status=old_status,
        new_status=new_status,
        note=(note or "").strip() or None,
    )
    db.session.add(entry)
    return entry


def recent_audit_entries(actor_id, limit, target_type=None):
    """Latest entries written by ``actor_id``; display window only."""
    q = AuditLog.query.filter(AuditLog.actor_id == actor_id)
    if target_type:
        q = q.filter(AuditLog.target_type == target_type)
    return (
        q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(int(limit))
        .all()
    )
