"""Application settings."""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """App config from env."""

    app_name: str = "Choir Portal Library"
    debug: bool = False
    # Structured logging: set LOG_JSON=1 for one-JSON-object-per-line
    log_json: bool = False
    # Metrics: require admin auth (True) or set metrics_secret and send X-Metrics-Secret header
    metrics_require_admin: bool = True
    metrics_secret: str | None = None

    # Session
    secret_key: str = "dev-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7
    cookie_name: str = "choir_session"
    csrf_cookie_name: str = "csrf_token"
    csrf_header_name: str = "X-CSRF-Token"
    cookie_secure: bool = False
    cookie_samesite: str = "lax"  # lax | strict
    # Shared codes handed out to choir members and to the admins. Unset = that role cannot log in.
    member_access_code: str | None = None
    admin_access_code: str | None = None

    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Storage: local (dev disk) or s3 (AWS, R2, MinIO). Default local so no cloud account required.
    storage_backend: str = "local"  # local | s3
    dev_assets_dir: str = "./dev_assets"
    # Base URL the local backend puts into its signed blob URLs
    local_blob_base_url: str = "http://localhost:8000"

    # S3 (only used when storage_backend=s3)
    s3_bucket: str | None = None
    s3_region: str = "auto"
    s3_endpoint_url: str | None = None
    s3_access_key_id: str | None = None
    s3_secret_access_key: str | None = None
    s3_force_path_style: bool = False
    s3_list_page_size: int = 1000

    # Presigned URL TTLs (seconds). Callers may ask for less, never more.
    read_url_ttl_seconds: int = 3600
    upload_url_ttl_seconds: int = 300

    # Upload content types per library category
    audio_content_types: str = "audio/mpeg,audio/mp3,audio/mp4,audio/x-m4a,audio/aac"
    document_content_types: str = "application/pdf"

    # Listing: also run an undelimited query so folders the delimiter API misses still show up
    listing_deep_scan: bool = False

    # Public (anonymous) archive of recorded services
    public_archive_prefix: str = "Ακολουθίες/"

    # Rate limit
    login_rate_limit_per_minute: int = 10

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()
