"""oauthbridge application factory and bootstrap."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from flask import Flask

from oauthbridge.config import config_by_name
from oauthbridge.extensions import init_extensions


def create_app(config_name: Optional[str] = None, **overrides) -> Flask:
    """Create and configure the oauthbridge Flask application."""
    env_name = (config_name or os.environ.get("APP_ENV") or "development").lower()
    project_root = Path(__file__).resolve().parent.parent
    instance_root = project_root / "instance"

    app = Flask(__name__, instance_path=str(instance_root), instance_relative_config=True)
    config_cls = config_by_name.get(env_name, config_by_name["development"])
    app.config.from_object(config_cls)
    app.config.update(overrides)

    # Resolve a relative filesystem session dir against the project root
    session_dir = Path(app.config.get("OAUTH_SESSION_DIR") or "instance/oauth_sessions")
    if not session_dir.is_absolute():
        session_dir = project_root / session_dir
    app.config["OAUTH_SESSION_DIR"] = str(session_dir)
    if (app.config.get("OAUTH_SESSION_BACKEND") or "").lower() == "filesystem":
        session_dir.mkdir(parents=True, exist_ok=True)

    init_extensions(app)
    _register_blueprints(app)
    _register_error_handlers(app)

    @app.get("/health")
    def health():
        return {"ok": True}, 200

    from oauthbridge.scripts.sessions import register_commands

    register_commands(app)

    return app


def _register_blueprints(app: Flask) -> None:
    from oauthbridge.core.auth.controllers import auth_bp  # local import to avoid circulars

    app.register_blueprint(auth_bp, url_prefix="/auth")


def _register_error_handlers(app: Flask) -> None:
    """Basic JSON error responses."""
    from werkzeug.exceptions import HTTPException

    from oauthbridge.core.auth.errors import OAuthBridgeError
    from oauthbridge.core.providers.base import ProviderError

    @app.errorhandler(HTTPException)
    def _http_error(exc: HTTPException):
        return {"ok": False, "error": exc.description}, exc.code

    @app.errorhandler(OAuthBridgeError)
    def _bridge_error(exc: OAuthBridgeError):
        return {"ok": False, "error": exc.code}, 400

    @app.errorhandler(ProviderError)
    def _provider_error(exc: ProviderError):
        app.logger.warning("Provider error: %s", exc)
        return {"ok": False, "error": exc.code}, 502

    @app.errorhandler(Exception)
    def _generic_error(exc: Exception):
        app.logger.exception("Unhandled error: %s", exc)
        # In debug/testing, surface the exception message to speed up diagnosis
        if app.debug or app.testing:
            return {"ok": False, "error": str(exc)}, 500
        return {"ok": False, "error": "unexpected_error"}, 500
