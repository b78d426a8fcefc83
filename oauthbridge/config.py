"""Application configuration for oauthbridge."""

from __future__ import annotations

import os
from typing import Dict, Type

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


class BaseConfig:
    """Base configuration loaded for all environments."""

    SECRET_KEY = os.environ.get("SECRET_KEY", "change-me")

    # Key for signing OAuth session records; without it no store is configured.
    SESSION_SECRET = os.environ.get("SESSION_SECRET", "")
    OAUTH_SESSION_NAME = os.environ.get("OAUTH_SESSION_NAME", "_oauthbridge_session")
    OAUTH_SESSION_BACKEND = os.environ.get("OAUTH_SESSION_BACKEND", "cookie")
    OAUTH_SESSION_DIR = os.environ.get("OAUTH_SESSION_DIR", "instance/oauth_sessions")
    OAUTH_SESSION_MAX_AGE = int(os.environ.get("OAUTH_SESSION_MAX_AGE", "0"))
    OAUTH_HTTP_TIMEOUT = int(os.environ.get("OAUTH_HTTP_TIMEOUT", "30"))

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = _env_flag("SESSION_COOKIE_SECURE", "false")
    SESSION_COOKIE_DOMAIN = os.environ.get("SESSION_COOKIE_DOMAIN") or None
    SESSION_COOKIE_PATH = os.environ.get("SESSION_COOKIE_PATH", "/")

    RATELIMIT_DEFAULT = "200/hour"
    RATELIMIT_STORAGE_URI = os.environ.get("REDIS_URL", "memory://")
    RATELIMIT_ENABLED = _env_flag("RATELIMIT_ENABLED", "true")

    # Providers are registered only when their client id is set.
    GITHUB_CLIENT_ID = os.environ.get("GITHUB_CLIENT_ID", "")
    GITHUB_CLIENT_SECRET = os.environ.get("GITHUB_CLIENT_SECRET", "")
    GITHUB_CALLBACK_URL = os.environ.get(
        "GITHUB_CALLBACK_URL",
        "http://localhost:5000/auth/github/callback",
    )
    GITHUB_SCOPES = os.environ.get("GITHUB_SCOPES", "")
    GOOGLE_CLIENT_ID = os.environ.get("GOOGLE_CLIENT_ID", "")
    GOOGLE_CLIENT_SECRET = os.environ.get("GOOGLE_CLIENT_SECRET", "")
    GOOGLE_CALLBACK_URL = os.environ.get(
        "GOOGLE_CALLBACK_URL",
        "http://localhost:5000/auth/google/callback",
    )
    GOOGLE_SCOPES = os.environ.get("GOOGLE_SCOPES", "")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    ENV = "development"


class TestingConfig(BaseConfig):
    TESTING = True
    SESSION_SECRET = "testing-session-secret"
    OAUTH_SESSION_BACKEND = "cookie"
    RATELIMIT_ENABLED = False
    GITHUB_CLIENT_ID = "test-github-client"
    GITHUB_CLIENT_SECRET = "test-github-secret"
    GITHUB_CALLBACK_URL = "http://localhost/auth/github/callback"
    GOOGLE_CLIENT_ID = ""


class ProductionConfig(BaseConfig):
    ENV = "production"
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_SAMESITE = "Lax"


config_by_name: Dict[str, Type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    # CI pipelines set APP_ENV=ci; map to testing defaults.
    "ci": TestingConfig,
}
