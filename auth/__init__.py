from flask import Blueprint

auth_bp = Blueprint(
    "auth",
    __name__,
    url_prefix="/auth"
)

# IMPORTANT: import routes after blueprint definition
from . import routes  # noqa: E402,F401
