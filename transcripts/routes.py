from flask import request, jsonify, send_from_directory
from flask_login import login_required, current_user
from werkzeug.utils import secure_filename

from . import transcripts_bp
from services.errors import ValidationError
from services.transcript_service import (
    approve_transcript,
    attach_uploaded_document,
    issue_transcript_document,
    list_transcript_requests,
    student_transcripts,
    submit_transcript_request,
)
from utils.storage import get_document_store


def _actor():
    return current_user._get_current_object()


@transcripts_bp.route("/requests", methods=["GET"])
@login_required
def list_requests():
    rows = list_transcript_requests(_actor(), status=request.args.get("status"))
    return jsonify({"result": [r.to_dict(include_credentials=True) for r in rows]})


@transcripts_bp.route("/requests", methods=["POST"])
@login_required
def create_request():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    req = submit_transcript_request(
        _actor(),
        first_name=data.get("first_name"),
        last_name=data.get("last_name"),
        prn=data.get("prn"),
        course=data.get("course"),
        email=data.get("email"),
        semesters=data.get("semesters") or [],
        source_document_url=data.get("source_document_url"),
        fee_status=data.get("fee_status") or "unpaid",
    )
    return jsonify({"message": "Transcript request created.", "data": req.to_dict()}), 201


@transcripts_bp.route("/mine", methods=["GET"])
@login_required
def my_requests():
    rows = student_transcripts(_actor())
    return jsonify({"result": [r.to_dict(include_credentials=True) for r in rows]})


@transcripts_bp.route("/requests/<int:request_id>/approve", methods=["PATCH"])
@login_required
def approve(request_id):
    result = approve_transcript(_actor(), request_id)
    return jsonify(result.to_dict())


@transcripts_bp.route("/requests/<int:request_id>/document", methods=["POST"])
@login_required
def reissue_document(request_id):
    doc = issue_transcript_document(_actor(), request_id)
    return jsonify({
        "message": "Transcript document issued.",
        "transcript_url": doc.url,
        "document_sha256": doc.sha256,
    })


@transcripts_bp.route("/requests/<int:request_id>/upload-pdf", methods=["POST"])
@login_required
def upload_pdf(request_id):
    f = request.files.get("pdf")
    if f is None or not f.filename:
        raise ValidationError("PDF file is required.")

    doc = attach_uploaded_document(_actor(), request_id, f.read())
    return jsonify({
        "success": True,
        "message": "Transcript PDF uploaded and URL saved.",
        "pdfUrl": doc.url,
        "document_sha256": doc.sha256,
    })


@transcripts_bp.route("/files/<path:filename>", methods=["GET"])
def stored_file(filename):
    store = get_document_store()
    return send_from_directory(
        store.base_dir,
        secure_filename(filename),
        mimetype="application/pdf",
    )
