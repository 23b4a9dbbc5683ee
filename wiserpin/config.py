import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "default-secret-key")
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", f"sqlite:///{BASE_DIR / 'wiserpin.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SESSION_TOKEN_TTL_SECONDS = int(os.environ.get("SESSION_TOKEN_TTL_SECONDS", "600"))
    DEFAULT_COLLECTION_COLOR = os.environ.get("DEFAULT_COLLECTION_COLOR", "#6366f1")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"


class ClientConfig:
    API_URL = os.environ.get("WISERPIN_API_URL", "http://localhost:8072/api/v1")
    DB_PATH = os.environ.get(
        "WISERPIN_DB_PATH", str(Path.home() / ".wiserpin" / "local.db")
    )
    USERNAME = os.environ.get("WISERPIN_USERNAME", "")
    PASSWORD = os.environ.get("WISERPIN_PASSWORD", "")
    REQUEST_TIMEOUT = float(os.environ.get("WISERPIN_REQUEST_TIMEOUT", "15"))
    TOKEN_REFRESH_MINUTES = int(os.environ.get("WISERPIN_TOKEN_REFRESH_MINUTES", "5"))
    CONTENT_FETCH_TIMEOUT = float(os.environ.get("CONTENT_FETCH_TIMEOUT", "10"))
    CONTENT_MAX_BYTES = int(os.environ.get("CONTENT_MAX_BYTES", "2500000"))
    SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "1") == "1"


class TestClientConfig(ClientConfig):
    API_URL = "http://wiserpin.test/api/v1"
    DB_PATH = ":memory:"
    USERNAME = ""
    PASSWORD = ""
    SCHEDULER_ENABLED = False
