"""Shared extensions for the oauthbridge application."""

from flask import Flask
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from oauthbridge.core.auth.bridge import OAuthBridge

limiter = Limiter(key_func=get_remote_address)


def init_extensions(app: Flask) -> OAuthBridge:
    """Bind shared extensions and build the app's own OAuth bridge."""
    limiter.init_app(app)
    return OAuthBridge(app)
