import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _resolve_database_url() -> str:
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return database_url

    environment = os.getenv("ENVIRONMENT", "").strip().lower()
    if environment == "development":
        return "postgresql+psycopg://localhost:5432/docman"

    raise ValueError(
        "DATABASE_URL is not set. Set DATABASE_URL for non-development "
        "environments or set ENVIRONMENT=development for local defaults."
    )


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    database_url: str = _resolve_database_url()
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "5"))
    db_max_overflow: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    db_pool_timeout: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    db_pool_recycle: int = int(os.getenv("DB_POOL_RECYCLE", "1800"))

    environment: str = os.getenv("ENVIRONMENT", "production").strip().lower()
    app_version: str = os.getenv("APP_VERSION", "2.2.0")
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_json: bool = _env_bool("LOG_JSON")
    slow_request_threshold_ms: int = int(os.getenv("SLOW_REQUEST_THRESHOLD_MS", "1000"))

    # Auth
    token_key: str = os.getenv("TOKEN_KEY", "CHANGE_ME")
    token_algorithm: str = os.getenv("TOKEN_ALGORITHM", "HS256")
    token_expire_minutes: int = int(os.getenv("TOKEN_EXPIRE_MINUTES", "60"))
    password_reset_expire_minutes: int = int(
        os.getenv("PASSWORD_RESET_EXPIRE_MINUTES", "60")
    )
    frontend_url: str = os.getenv("FRONTEND_URL", "http://localhost:5173")

    # Rate limits (requests per window)
    login_rate_limit: int = int(os.getenv("LOGIN_RATE_LIMIT", "5"))
    login_rate_window: int = int(os.getenv("LOGIN_RATE_WINDOW", "900"))
    register_rate_limit: int = int(os.getenv("REGISTER_RATE_LIMIT", "3"))
    register_rate_window: int = int(os.getenv("REGISTER_RATE_WINDOW", "3600"))
    password_reset_rate_limit: int = int(os.getenv("PASSWORD_RESET_RATE_LIMIT", "3"))
    password_reset_rate_window: int = int(
        os.getenv("PASSWORD_RESET_RATE_WINDOW", "3600")
    )
    # Honour X-Forwarded-For only behind a proxy that overwrites it.
    trust_proxy_headers: bool = _env_bool("TRUST_PROXY_HEADERS")

    # Document uploads
    upload_dir: str = os.getenv("UPLOAD_DIR", "uploads")
    upload_url_prefix: str = os.getenv("UPLOAD_URL_PREFIX", "/uploads")
    upload_max_size_bytes: int = int(
        os.getenv("UPLOAD_MAX_SIZE_BYTES", str(50 * 1024 * 1024))
    )  # 50MB

    # Avatar settings
    avatar_upload_dir: str = os.getenv("AVATAR_UPLOAD_DIR", "static/avatars")
    avatar_max_size_bytes: int = int(
        os.getenv("AVATAR_MAX_SIZE_BYTES", str(2 * 1024 * 1024))
    )  # 2MB
    avatar_allowed_types: str = os.getenv(
        "AVATAR_ALLOWED_TYPES", "image/jpeg,image/png,image/gif,image/webp"
    )
    avatar_url_prefix: str = os.getenv("AVATAR_URL_PREFIX", "/static/avatars")

    # S3 / MinIO settings
    s3_endpoint_url: str = os.getenv("S3_ENDPOINT_URL", "")
    s3_access_key: str = os.getenv("S3_ACCESS_KEY", "")
    s3_secret_key: str = os.getenv("S3_SECRET_KEY", "")
    s3_bucket_name: str = os.getenv("S3_BUCKET_NAME", "docman-documents")
    s3_region: str = os.getenv("S3_REGION", "us-east-1")
    s3_presigned_url_expiry: int = int(os.getenv("S3_PRESIGNED_URL_EXPIRY", "3600"))

    # Mail
    smtp_host: str = os.getenv("SMTP_HOST", "")
    smtp_port: int = int(os.getenv("SMTP_PORT", "587"))
    smtp_username: str = os.getenv("SMTP_USERNAME", "")
    smtp_password: str = os.getenv("SMTP_PASSWORD", "")
    smtp_use_tls: bool = _env_bool("SMTP_USE_TLS", "true")
    mail_from: str = os.getenv("MAIL_FROM", "DocMan <noreply@docman.local>")

    # Celery
    celery_broker_url: str = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    celery_result_backend: str = os.getenv(
        "CELERY_RESULT_BACKEND", "redis://localhost:6379/1"
    )
    celery_always_eager: bool = _env_bool("CELERY_ALWAYS_EAGER")

    # Response cache
    cache_default_ttl_seconds: float = float(os.getenv("CACHE_DEFAULT_TTL", "300"))
    dashboard_cache_ttl_seconds: float = float(os.getenv("DASHBOARD_CACHE_TTL", "120"))
    analytics_cache_ttl_seconds: float = float(os.getenv("ANALYTICS_CACHE_TTL", "600"))
    cache_sweep_threshold: int = int(os.getenv("CACHE_SWEEP_THRESHOLD", "100"))

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


settings = Settings()
