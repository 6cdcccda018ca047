"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class Settings:
    ENV: str
    DATABASE_URL: str
    STORAGE_BACKEND: str
    STORAGE_DIR: Path
    PUBLIC_BASE_URL: str
    S3_BUCKET: str
    S3_ENDPOINT_URL: str
    S3_ACCESS_KEY_ID: str
    S3_SECRET_ACCESS_KEY: str
    S3_REGION: str
    S3_PUBLIC_BASE_URL: str
    UPLOADS_DIR: Path
    MAX_UPLOAD_BYTES: int
    SITE_TITLE: str
    DOWNLOAD_TIMEOUT_SECONDS: float
    DOWNLOAD_ALLOWED_HOSTS: list
    ALLOW_DEV_CORS: bool

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'catalog.db'}")
        self.STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "local").lower()
        self.STORAGE_DIR = Path(os.getenv("STORAGE_DIR", str(BASE / "storage"))).expanduser()
        self.PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")
        self.S3_BUCKET = os.getenv("S3_BUCKET", "")
        self.S3_ENDPOINT_URL = os.getenv("S3_ENDPOINT_URL", "")
        self.S3_ACCESS_KEY_ID = os.getenv("S3_ACCESS_KEY_ID", "")
        self.S3_SECRET_ACCESS_KEY = os.getenv("S3_SECRET_ACCESS_KEY", "")
        self.S3_REGION = os.getenv("S3_REGION", "auto")
        self.S3_PUBLIC_BASE_URL = os.getenv("S3_PUBLIC_BASE_URL", "").rstrip("/")
        self.UPLOADS_DIR = Path(os.getenv("UPLOADS_DIR", str(BASE / "public" / "uploads"))).expanduser()
        self.MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(300 * 1024 * 1024)))  # 300 MB default
        self.SITE_TITLE = os.getenv("SITE_TITLE", "Krushi Radio")
        self.DOWNLOAD_TIMEOUT_SECONDS = float(os.getenv("DOWNLOAD_TIMEOUT_SECONDS", "60"))
        self.DOWNLOAD_ALLOWED_HOSTS = [
            h.strip().lower() for h in os.getenv("DOWNLOAD_ALLOWED_HOSTS", "").split(",") if h.strip()
        ]
        self.ALLOW_DEV_CORS = _env_bool("ALLOW_DEV_CORS", "true")
        self._validate()

    def _validate(self):
        if self.STORAGE_BACKEND not in ("local", "s3"):
            raise RuntimeError(f"STORAGE_BACKEND must be 'local' or 's3', got {self.STORAGE_BACKEND!r}")
        if self.STORAGE_BACKEND == "s3" and not self.S3_BUCKET:
            raise RuntimeError("S3_BUCKET must be set when STORAGE_BACKEND=s3")
        if self.MAX_UPLOAD_BYTES <= 0:
            raise RuntimeError("MAX_UPLOAD_BYTES must be positive")


settings = Settings()
