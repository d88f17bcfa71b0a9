from datetime import datetime
from extensions import db
from models import Notification, User


def emit_event(
    actor_id,
    message,
    notify_user_id=None,
    notify_erp_id=None,
    level="INFO",
):
    """Queue an inbox notification for the user a decision concerns.

    The recipient is resolved from ``notify_user_id`` or, for staff and
    students who are addressed by ERP id, from ``notify_erp_id``. Nothing is
    written when no matching account exists. The caller commits.
    """
    user_ids = set()

    if notify_user_id:
        user_ids.add(int(notify_user_id))

    if notify_erp_id:
        row = (
            db.session.query(User.id)
            .filter(User.erp_id == str(notify_erp_id))
            .first()
        )
        if row:
            user_ids.add(int(row[0]))

    if not user_ids:
        return []

    now = datetime.utcnow()
    notifications = [
        Notification(
            user_id=uid,
            message=message[:255],
            type=level,
            is_read=False,
            created_at=now,
            actor_id=actor_id,
        )
        for uid in user_ids
    ]
    db.session.add_all(notifications)
    return notifications
