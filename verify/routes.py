from flask import request, jsonify, render_template

from . import verify_bp
from .forms import VerificationForm
from extensions import csrf
from services.errors import SecretMismatch, ValidationError
from services.verification_service import preview, verify


@verify_bp.route("/api/verify/<random_code>", methods=["GET"])
def api_preview(random_code):
    return jsonify(preview(random_code))


@verify_bp.route("/api/verify/<random_code>", methods=["POST"])
@csrf.exempt
def api_verify(random_code):
    data = request.get_json(silent=True)
    if data is None:
        data = request.form
    elif not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return jsonify({"verified": True, "result": verify(random_code, data.get("verification_code"))})


@verify_bp.route("/verify/<random_code>", methods=["GET", "POST"])
def verify_page(random_code):
    try:
        summary = preview(random_code)
    except SecretMismatch as exc:
        return render_template("verify/transcript.html", error=exc.message, summary=None, form=None, record=None), 404

    form = VerificationForm()
    record = None
    error = None

    if form.validate_on_submit():
        try:
            record = verify(random_code, form.verification_code.data)
        except SecretMismatch as exc:
            error = exc.message

    return render_template(
        "verify/transcript.html",
        summary=summary,
        form=form,
        record=record,
        error=error,
    )
