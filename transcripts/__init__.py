from flask import Blueprint

transcripts_bp = Blueprint(
    "transcripts",
    __name__,
    url_prefix="/transcripts"
)

# IMPORTANT: import routes after blueprint definition
from . import routes  # noqa: E402,F401
