# services/verification_service.py
"""Public two-phase disclosure of approved transcripts.

Lookups are keyed only on the public random code. Phase one returns the
student's name; phase two returns the full record once the caller proves
knowledge of the secret verification code. Nothing here writes to the
database.
"""

import hmac
import logging

from models import TranscriptRequest, TRANSCRIPT_APPROVED
from services.errors import SecretMismatch

logger = logging.getLogger(__name__)


def _find_by_random_code(random_code):
    code = str(random_code or "").strip()
    if not code:
        return None
    return (
        TranscriptRequest.query
        .filter(
            TranscriptRequest.random_code == code,
            TranscriptRequest.status == TRANSCRIPT_APPROVED,
        )
        .first()
    )


def secrets_match(stored, candidate):
    """Exact byte comparison in constant time."""
    if stored is None or candidate is None:
        return False
    return hmac.compare_digest(
        str(stored).encode("utf-8"),
        str(candidate).encode("utf-8"),
    )


def preview(random_code):
    req = _find_by_random_code(random_code)
    if req is None:
        raise SecretMismatch()
    return {"name": req.display_name}


def full_record(req):
    return {
        "name": req.display_name,
        "student_erp_id": req.student_erp_id,
        "prn": req.prn,
        "email": req.email,
        "course": req.course,
        "fee_status": req.fee_status,
        "status": req.status,
        "uploaded_at": req.uploaded_at.isoformat() if req.uploaded_at else None,
        "approved_at": req.approved_at.isoformat() if req.approved_at else None,
        "approved_by": req.approved_by.label if req.approved_by else None,
        "semesters": req.semester_rows(),
        "transcript_url": req.transcript_url,
        "document_sha256": req.document_sha256,
    }


def verify(random_code, candidate):
    """Full record when ``candidate`` equals the stored secret.

    An unknown random code and a wrong secret raise the same error.
    """
    req = _find_by_random_code(random_code)
    stored = req.verification_code if req is not None else None

    if not secrets_match(stored, candidate):
        # No throttling; failed attempts are only logged.
        logger.warning("Transcript verification failed | random_code=%s", random_code)
        raise SecretMismatch()

    logger.info("Transcript verified | request_id=%s", req.id)
    return full_record(req)
