import os


def _bool_env(name, default=False):
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class BaseConfig:
    # Security
    SECRET_KEY = os.getenv("SECRET_KEY", "change-me")

    # Database
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///approvals.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Public links embedded in issued transcripts
    PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:5000")

    # Issued documents
    TRANSCRIPT_STORAGE_DIR = os.getenv(
        "TRANSCRIPT_STORAGE_DIR",
        os.path.join(os.getcwd(), "storage", "transcripts")
    )
    DOCUMENT_ISSUE_TIMEOUT = float(os.getenv("DOCUMENT_ISSUE_TIMEOUT", 10))

    # Credentials
    VERIFICATION_CODE_BYTES = int(os.getenv("VERIFICATION_CODE_BYTES", 6))
    RANDOM_CODE_BYTES = int(os.getenv("RANDOM_CODE_BYTES", 6))
    CREDENTIAL_MAX_ATTEMPTS = int(os.getenv("CREDENTIAL_MAX_ATTEMPTS", 5))

    # Leave approvals
    LEAVE_RECENT_ACTIONS_LIMIT = int(os.getenv("LEAVE_RECENT_ACTIONS_LIMIT", 5))

    # Logging
    LOG_TO_FILE = _bool_env("LOG_TO_FILE", True)
    LOG_DIR = os.getenv("LOG_DIR", "logs")


class DevConfig(BaseConfig):
    DEBUG = True


class ProdConfig(BaseConfig):
    DEBUG = False


class TestConfig(BaseConfig):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    WTF_CSRF_ENABLED = False
    LOG_TO_FILE = False
    DOCUMENT_ISSUE_TIMEOUT = 5
