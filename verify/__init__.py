from flask import Blueprint

# Public (unauthenticated) verification page and its JSON twin.
verify_bp = Blueprint("verify", __name__)

# IMPORTANT: import routes after blueprint definition
from . import routes  # noqa: E402,F401
