import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str

    storage_backend: str
    s3_endpoint: str
    s3_region: str
    s3_bucket: str
    s3_access_key_id: str
    s3_secret_access_key: str
    s3_public_url: str

    cors_origin: str
    cookie_domain: str
    jwt_ttl_hours: int
    test_api_key: str
    spa_dist_dir: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///breakroom.db"),
        storage_backend=_getenv("STORAGE_BACKEND", "local"),
        s3_endpoint=_getenv("S3_ENDPOINT", ""),
        s3_region=_getenv("S3_REGION", "us-east-1"),
        s3_bucket=_getenv("S3_BUCKET", ""),
        s3_access_key_id=_getenv("S3_ACCESS_KEY_ID", ""),
        s3_secret_access_key=_getenv("S3_SECRET_ACCESS_KEY", ""),
        s3_public_url=_getenv("S3_PUBLIC_URL", ""),
        cors_origin=_getenv("CORS_ORIGIN", ""),
        cookie_domain=_getenv("COOKIE_DOMAIN", ""),
        jwt_ttl_hours=_getenv_int("JWT_TTL_HOURS", 48),
        test_api_key=_getenv("TEST_API_KEY", ""),
        spa_dist_dir=_getenv("SPA_DIST_DIR", "dist"),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "STORAGE_BACKEND": s.storage_backend,
        "S3_ENDPOINT": s.s3_endpoint,
        "S3_REGION": s.s3_region,
        "S3_BUCKET": s.s3_bucket,
        "S3_ACCESS_KEY_ID": s.s3_access_key_id,
        "S3_SECRET_ACCESS_KEY": s.s3_secret_access_key,
        "S3_PUBLIC_URL": s.s3_public_url,
        "CORS_ORIGIN": s.cors_origin,
        "COOKIE_DOMAIN": s.cookie_domain,
        "JWT_TTL_HOURS": s.jwt_ttl_hours,
        "TEST_API_KEY": s.test_api_key,
        "SPA_DIST_DIR": s.spa_dist_dir,
        # jwt cookie is readable by the SPA (it forwards it to the socket layer)
        "JWT_COOKIE_SECURE": is_production or s.cors_origin.startswith("https"),
        # multipart uploads (artwork limit of 10MB is enforced per route)
        "MAX_CONTENT_LENGTH": 25 * 1024 * 1024,
    }
