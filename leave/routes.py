from flask import request, jsonify
from flask_login import login_required, current_user

from . import leave_bp
from services.errors import ValidationError
from services.leave_service import (
    decide_as_hod,
    decide_as_principal,
    list_leave_requests,
    recent_actions,
    submit_leave,
)


def _actor():
    return current_user._get_current_object()


def _payload():
    data = request.get_json(silent=True)
    if data is None:
        return request.form
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


@leave_bp.route("/requests", methods=["GET"])
@login_required
def list_requests():
    rows = list_leave_requests(_actor(), status=request.args.get("status"))
    return jsonify([r.to_dict() for r in rows])


@leave_bp.route("/requests", methods=["POST"])
@login_required
def create_request():
    data = _payload()
    leave = submit_leave(
        _actor(),
        leave_type=data.get("leave_type"),
        start_date=data.get("start_date"),
        end_date=data.get("end_date"),
        reason=data.get("reason"),
    )
    return jsonify({"message": "Leave application submitted.", "leave": leave.to_dict()}), 201


@leave_bp.route("/requests/<staff_id>/hod", methods=["PUT"])
@login_required
def hod_decision(staff_id):
    data = _payload()
    leave = decide_as_hod(_actor(), staff_id, data.get("decision"), note=data.get("note") or "")
    return jsonify({"message": "Leave decision recorded.", "leave": leave.to_dict()})


@leave_bp.route("/requests/<staff_id>/principal", methods=["PUT"])
@login_required
def principal_decision(staff_id):
    data = _payload()
    leave = decide_as_principal(_actor(), staff_id, data.get("decision"), note=data.get("note") or "")
    return jsonify({"message": "Leave decision recorded.", "leave": leave.to_dict()})


@leave_bp.route("/recent-actions", methods=["GET"])
@login_required
def my_recent_actions():
    limit = request.args.get("limit", type=int)
    return jsonify([a.to_dict() for a in recent_actions(_actor(), limit=limit)])
