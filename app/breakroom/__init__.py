import logging
import os

from flask import Flask, g, request
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from app.breakroom.config import load_config
from app.breakroom.db import init_db, teardown_db_session
from app.breakroom import models as _models  # noqa: F401  (load Base + module models before blueprints)
from app.breakroom.routes import bp as routes_bp
from app.breakroom.auth import bp as auth_bp, load_current_user, refresh_session
from app.breakroom.modules.breakroom.api import bp as breakroom_bp
from app.breakroom.modules.lyrics.api import bp as lyrics_bp
from app.breakroom.modules.gallery.api import bp as gallery_bp
from app.breakroom.modules.shortcuts.api import bp as shortcuts_bp
from app.breakroom.modules.test_results.api import bp as test_results_bp
from app.breakroom.utils import json_error

_ERROR_MESSAGES = {
    400: "Bad request",
    401: "Not authenticated",
    403: "Forbidden",
    404: "Not found",
    405: "Method not allowed",
    413: "File too large",
}


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, static_folder=None)
    app.config.from_mapping(load_config())

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    # Storage health check (log loudly on misconfiguration, keep serving)
    if app.config.get("STORAGE_BACKEND") == "s3":
        missing_s3 = [
            key
            for key in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY")
            if not app.config.get(key)
        ]
        if missing_s3:
            app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing_s3))
        else:
            from botocore.exceptions import BotoCoreError, ClientError

            from app.breakroom.storage import S3Storage, storage_from_config

            try:
                storage = storage_from_config(app.config)
                if isinstance(storage, S3Storage):
                    storage._client().head_bucket(Bucket=storage.bucket)
                    app.logger.info("Storage health check PASSED: S3 bucket '%s' accessible", storage.bucket)
            except (BotoCoreError, ClientError) as e:
                app.logger.error("STORAGE CONFIG ERROR: Cannot access S3 bucket: %s", e)

    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(breakroom_bp, url_prefix="/api/breakroom")
    app.register_blueprint(lyrics_bp, url_prefix="/api/lyrics")
    app.register_blueprint(gallery_bp, url_prefix="/api/gallery")
    app.register_blueprint(shortcuts_bp, url_prefix="/api/shortcuts")
    app.register_blueprint(test_results_bp, url_prefix="/api/test-results")
    app.register_blueprint(routes_bp)

    def _load_user_wrapper():
        if request.path.startswith(("/health", "/healthz")):
            g.current_user = None
            g.token_payload = None
            return None
        return load_current_user()

    app.before_request(_load_user_wrapper)
    app.after_request(refresh_session)
    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(HTTPException)
    def _err_http(e: HTTPException):  # type: ignore[no-redef]
        status = e.code or 500
        if status >= 500:
            return _err_500(e)
        return json_error(_ERROR_MESSAGES.get(status) or e.name, status)

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        rid = getattr(g, "request_id", None)
        app.logger.exception("Unhandled 500 (request_id=%s)", rid)
        return json_error("Internal server error", 500)

    @app.errorhandler(Exception)
    def _err_unhandled(e: Exception):  # type: ignore[no-redef]
        return _err_500(e)

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
