# services/document_service.py
"""Transcript PDF generation and storage.

Issuance is the secondary step of a transcript approval: it may fail or time
out without touching the approval, and it can be re-run at any time with the
same inputs. Only the document columns are written here.
"""

import hashlib
import logging
import secrets
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
from xml.sax.saxutils import escape

from flask import current_app
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.platypus import (
    SimpleDocTemplate, Paragraph,
    Spacer, Table, TableStyle
)
from sqlalchemy import update

from extensions import db
from models import TranscriptRequest, TRANSCRIPT_APPROVED, MAX_SEMESTERS
from services.errors import IssuanceFailure, ValidationError
from utils.audit_helpers import record_audit
from utils.storage import get_document_store

logger = logging.getLogger(__name__)

_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="transcript-pdf")


@dataclass(frozen=True)
class IssuedDocument:
    url: str
    sha256: str


def verification_url(random_code, base_url=None):
    base = base_url if base_url is not None else current_app.config.get("PUBLIC_BASE_URL", "")
    return f"{(base or '').rstrip('/')}/verify/{random_code}"


def validate_semesters(semesters):
    if not semesters:
        raise ValidationError("At least one semester result is required to build a transcript.")

    seen = set()
    for row in semesters:
        sem = row.get("semester")
        if not isinstance(sem, int) or not 1 <= sem <= MAX_SEMESTERS:
            raise ValidationError(f"Semester number must be between 1 and {MAX_SEMESTERS}.")
        if sem in seen:
            raise ValidationError(f"Semester {sem} is listed twice.")
        seen.add(sem)
        if row.get("cgpa") is None or row.get("percentage") is None:
            raise ValidationError(f"Semester {sem} is missing CGPA or percentage.")


def _fmt_dt(value):
    if not value:
        return "-"
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return value.strftime("%Y-%m-%d %H:%M") + " UTC"


def build_transcript_pdf(data, verify_url=None, issued_by=None, generated_at=None):
    """Render a transcript request (``TranscriptRequest.to_dict()``) to PDF bytes."""
    semesters = data.get("semesters") or []
    validate_semesters(semesters)

    generated_at = generated_at or datetime.utcnow()
    buffer = BytesIO()

    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=40,
        leftMargin=40,
        topMargin=50,
        bottomMargin=40,
        title=f"Transcript #{data.get('id')}",
    )

    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(
        name="Header",
        fontSize=16,
        leading=20,
        alignment=1,  # center
        spaceAfter=20
    ))
    styles.add(ParagraphStyle(
        name="Small",
        fontSize=9,
        textColor=colors.grey
    ))

    elements = []

    # ===== Header =====
    elements.append(Paragraph(f"Transcript Request #{data.get('id')}", styles["Header"]))

    # ===== Identity =====
    identity = [
        ["Student ERP", data.get("student_erp_id") or "-"],
        ["Name", data.get("name") or "-"],
        ["PRN", data.get("prn") or "-"],
        ["Course", data.get("course") or "-"],
        ["Email", data.get("email") or "-"],
    ]
    elements.append(
        Table(
            identity,
            colWidths=[120, 340],
            style=TableStyle([
                ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                ("BACKGROUND", (0, 0), (0, -1), colors.whitesmoke),
            ])
        )
    )
    elements.append(Spacer(1, 16))

    # ===== Semester results =====
    elements.append(Paragraph("<b>Semester Results</b>", styles["Heading2"]))
    sem_table = [["Semester", "CGPA", "Percentage"]]
    for row in sorted(semesters, key=lambda r: r["semester"]):
        sem_table.append([
            f"Sem {row['semester']}",
            f"{float(row['cgpa']):.2f}",
            f"{float(row['percentage']):.2f}",
        ])
    elements.append(
        Table(
            sem_table,
            colWidths=[120, 120, 120],
            style=TableStyle([
                ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
            ])
        )
    )
    elements.append(Spacer(1, 16))

    # ===== Approval metadata =====
    elements.append(Paragraph(f"<b>Status:</b> {escape(data.get('status') or '-')}", styles["Normal"]))
    elements.append(Paragraph(f"<b>Uploaded at:</b> {_fmt_dt(data.get('uploaded_at'))}", styles["Normal"]))
    elements.append(Paragraph(f"<b>Approved at:</b> {_fmt_dt(data.get('approved_at'))}", styles["Normal"]))

    if verify_url:
        elements.append(Spacer(1, 10))
        elements.append(Paragraph(
            f'<b>Verification link:</b> <a href="{escape(verify_url)}" color="blue"><u>{escape(verify_url)}</u></a>',
            styles["Normal"]
        ))

    # ===== Signed Stamp =====
    if issued_by:
        elements.append(Spacer(1, 20))
        elements.append(Paragraph(
            f"<b>Signed:</b> approved by {escape(issued_by)} on {_fmt_dt(data.get('approved_at'))}",
            styles["Normal"]
        ))

    elements.append(Paragraph(f"Generated at: {_fmt_dt(generated_at)}", styles["Small"]))

    doc.build(elements)
    return buffer.getvalue()


def _document_name(prefix, req_id):
    # Served without login, so names must not be guessable.
    return f"{prefix}_{req_id}_{datetime.utcnow():%Y%m%d%H%M%S}_{secrets.token_urlsafe(16)}.pdf"


def _discard_late_write(store, name):
    """Delete the file a timed-out job stores after its caller gave up."""

    def _callback(future):
        if future.cancelled() or future.exception() is not None:
            return
        try:
            store.delete(name)
            logger.info("Discarded late transcript document | name=%s", name)
        except OSError:
            logger.exception("Could not discard late transcript document | name=%s", name)

    return _callback


def _render_and_store(data, verify_url, issued_by, store, name):
    pdf = build_transcript_pdf(data, verify_url=verify_url, issued_by=issued_by)
    digest = hashlib.sha256(pdf).hexdigest()
    url = store.save(name, pdf)
    return url, digest


def _persist_document(req_id, url, digest, actor_id, action):
    db.session.execute(
        update(TranscriptRequest)
        .where(
            TranscriptRequest.id == req_id,
            TranscriptRequest.status == TRANSCRIPT_APPROVED,
        )
        .values(
            transcript_url=url,
            document_sha256=digest,
            document_issued_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    record_audit(
        actor_id=actor_id,
        action=action,
        target_type="TRANSCRIPT_REQUEST",
        target_id=req_id,
        note=url,
    )
    db.session.commit()


def issue_document(req, actor_id=None, issued_by=None, store=None, timeout=None):
    """Generate, store and record the PDF for an approved request.

    Raises IssuanceFailure on any build/storage error or timeout; the
    approval and credentials are left as they are.
    """
    if req.status != TRANSCRIPT_APPROVED:
        raise ValidationError("Only approved transcripts can be issued.")

    store = store or get_document_store()
    if timeout is None:
        timeout = current_app.config.get("DOCUMENT_ISSUE_TIMEOUT", 10)

    data = req.to_dict()
    verify_url = verification_url(req.random_code) if req.random_code else None
    name = _document_name("transcript", req.id)

    future = _executor.submit(_render_and_store, data, verify_url, issued_by, store, name)
    try:
        url, digest = future.result(timeout=timeout)
    except FuturesTimeout:
        if not future.cancel():
            future.add_done_callback(_discard_late_write(store, name))
        logger.warning("Transcript document timed out | request_id=%s timeout=%ss", req.id, timeout)
        raise IssuanceFailure(
            "Transcript approved; document generation timed out and can be retried.",
            payload={"request_id": req.id},
        )
    except Exception as exc:
        logger.exception("Transcript document failed | request_id=%s", req.id)
        raise IssuanceFailure(
            f"Transcript approved; document generation failed: {exc}",
            payload={"request_id": req.id},
        ) from exc

    _persist_document(req.id, url, digest, actor_id, "TRANSCRIPT_DOCUMENT_ISSUED")
    logger.info("Transcript document issued | request_id=%s url=%s", req.id, url)
    return IssuedDocument(url=url, sha256=digest)


def store_uploaded_document(req, data: bytes, actor_id=None, store=None):
    """Store an approver-supplied PDF for an approved request."""
    if req.status != TRANSCRIPT_APPROVED:
        raise ValidationError("Only approved transcripts can receive a document.")
    if not data or not data.startswith(b"%PDF"):
        raise ValidationError("A PDF file is required.")

    store = store or get_document_store()
    name = _document_name("approved", req.id)
    try:
        url = store.save(name, data)
    except OSError as exc:
        logger.exception("Transcript upload failed | request_id=%s", req.id)
        raise IssuanceFailure(
            f"Storing the uploaded document failed: {exc}",
            payload={"request_id": req.id},
        ) from exc

    digest = hashlib.sha256(data).hexdigest()
    _persist_document(req.id, url, digest, actor_id, "TRANSCRIPT_DOCUMENT_UPLOADED")
    logger.info("Transcript document uploaded | request_id=%s url=%s", req.id, url)
    return IssuedDocument(url=url, sha256=digest)
