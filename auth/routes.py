import logging

from flask import request, jsonify
from flask_login import login_user, logout_user, login_required, current_user

from . import auth_bp
from models import User
from services.errors import ValidationError

logger = logging.getLogger(__name__)


@auth_bp.route("/login", methods=["POST"])
def login():
    payload = request.get_json(silent=True)
    if payload is None:
        payload = request.form
    elif not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""

    logger.info(f"Login attempt for email={email}")

    user = User.query.filter_by(email=email).first()
    if not user:
        logger.warning("Login failed: user not found")
        return jsonify({"error": "invalid_credentials", "message": "Invalid email or password."}), 401

    if not user.check_password(password):
        logger.warning("Login failed: wrong password")
        return jsonify({"error": "invalid_credentials", "message": "Invalid email or password."}), 401

    if not user.is_active:
        logger.warning(f"Login failed: inactive account id={user.id}")
        return jsonify({"error": "inactive", "message": "Account is disabled."}), 403

    login_user(user)
    logger.info(f"Login success | user_id={user.id} role={user.role}")
    return jsonify({
        "id": user.id,
        "name": user.label,
        "role": user.role,
        "department_id": user.department_id,
    })


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logger.info(f"Logout | user_id={current_user.id}")
    logout_user()
    return jsonify({"message": "Logged out."})
