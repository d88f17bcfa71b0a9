import logging
import os
from logging.handlers import RotatingFileHandler

from flask import Flask, jsonify, request, g
from flask_wtf.csrf import generate_csrf
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

# ======================
# Extensions
# ======================
from extensions import db, login_manager, migrate, csrf

# ======================
# Models
# ======================
from models import User

# ======================
# Blueprints
# ======================
from auth import auth_bp
from leave import leave_bp
from transcripts import transcripts_bp
from verify import verify_bp

from services.errors import WorkflowError
from utils.storage import init_document_store


logger = logging.getLogger(__name__)


# ======================
# logging
# ======================
def _configure_logging(app):
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s"
    )

    if not app.config.get("LOG_TO_FILE"):
        return

    log_dir = app.config.get("LOG_DIR", "logs")
    os.makedirs(log_dir, exist_ok=True)

    log_path = os.path.join(log_dir, "approvals.log")
    root = logging.getLogger()
    if any(getattr(h, "baseFilename", None) == os.path.abspath(log_path) for h in root.handlers):
        return

    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=1_000_000,   # 1MB
        backupCount=5
    )
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s | %(levelname)s | %(message)s"
    ))

    root.setLevel(logging.INFO)
    root.addHandler(file_handler)


@event.listens_for(Engine, "connect")
def _set_sqlite_pragmas(dbapi_connection, connection_record):
    """Improve SQLite concurrency for concurrent approvers."""
    if type(dbapi_connection).__module__.split(".")[0] not in ("sqlite3", "pysqlite2"):
        return
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.execute("PRAGMA busy_timeout=5000;")
    finally:
        cursor.close()


# ======================
# Error Handlers
# ======================
def _register_error_handlers(app):

    @app.errorhandler(WorkflowError)
    def _handle_workflow_error(err):
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(401)
    def _handle_401(err):
        return jsonify({"error": "unauthorized", "message": "Login required."}), 401

    @app.errorhandler(403)
    def _handle_403(err):
        return jsonify({"error": "forbidden", "message": "You are not allowed to perform this action."}), 403

    @app.errorhandler(404)
    def _handle_404(err):
        return jsonify({"error": "not_found", "message": "Not found."}), 404

    @app.errorhandler(SQLAlchemyError)
    def _handle_db_error(err):
        db.session.rollback()
        logger.exception("Database error on %s %s", request.method, request.path)
        return jsonify({"error": "database_error", "message": "Database error."}), 500


# ======================
# Login Manager
# ======================
@login_manager.user_loader
def load_user(user_id):
    try:
        uid = int(user_id)
    except (TypeError, ValueError):
        logger.warning(f"user_loader invalid user_id: {user_id}")
        return None

    # Return cached user if already loaded in this request
    if hasattr(g, "_current_user"):
        return g._current_user

    try:
        user = db.session.get(User, uid)
        if user is None:
            logger.warning(f"user_loader: user not found (id={uid})")
    except SQLAlchemyError:
        logger.exception(f"user_loader DB error for user_id={uid}")
        return None

    g._current_user = user
    return user


@login_manager.unauthorized_handler
def _unauthorized():
    return jsonify({"error": "unauthorized", "message": "Login required."}), 401


# ======================
# App Init
# ======================
def create_app(config_object="config.DevConfig"):
    app = Flask(__name__)
    app.config.from_object(config_object)

    _configure_logging(app)

    db.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    init_document_store(app)

    app.jinja_env.globals["csrf_token"] = generate_csrf

    # JSON APIs authenticate by session and post JSON bodies
    csrf.exempt(auth_bp)
    csrf.exempt(leave_bp)
    csrf.exempt(transcripts_bp)

    # ======================
    # Register Blueprints
    # ======================
    app.register_blueprint(auth_bp)
    app.register_blueprint(leave_bp)
    app.register_blueprint(transcripts_bp)
    app.register_blueprint(verify_bp)

    _register_error_handlers(app)

    @app.teardown_appcontext
    def shutdown_session(exception=None):
        db.session.remove()

    @app.cli.command("create-db")
    def create_db_command():
        """Create all tables."""
        db.create_all()
        logger.info("Database tables created")

    logger.info("App created | config=%s", config_object)
    return app


if __name__ == "__main__":
    create_app().run()
