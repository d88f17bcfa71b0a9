from flask import Blueprint

leave_bp = Blueprint(
    "leave",
    __name__,
    url_prefix="/leave"
)

# IMPORTANT: import routes after blueprint definition
from . import routes  # noqa: E402,F401
