"""OAuth HTTP controllers."""

from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request

from oauthbridge.core.auth.bridge import current_bridge
from oauthbridge.core.auth.errors import OAuthBridgeError
from oauthbridge.core.auth.schemas import serialize_profile
from oauthbridge.core.providers.base import ProviderError
from oauthbridge.extensions import limiter

logger = logging.getLogger(__name__)

auth_bp = Blueprint("oauth", __name__)


def begin_auth_handler():
    """Redirect the user agent to the provider's authorization endpoint.

    The provider comes from the ``provider``/``:provider`` query parameters or
    the ``<provider>`` path variable. Failures answer 400 with the error text.
    """
    response = current_app.response_class(status=307)
    try:
        auth_url = current_bridge().begin_auth(request, response)
    except (OAuthBridgeError, ProviderError) as exc:
        return current_app.response_class(f"{exc}\n", status=400, mimetype="text/plain")
    response.location = auth_url
    return response


@auth_bp.get("/<provider>")
@limiter.limit("30/minute")
def begin(provider: str):
    return begin_auth_handler()


@auth_bp.route("/<provider>/callback", methods=["GET", "POST"])
@limiter.limit("30/minute")
def callback(provider: str):
    response = jsonify({"ok": True})
    try:
        user = current_bridge().complete_auth(request, response)
    except (OAuthBridgeError, ProviderError) as exc:
        logger.info("OAuth callback for %s failed: %s", provider, exc)
        response.set_data(jsonify({"ok": False, "error": exc.code}).get_data())
        response.status_code = 400
        return response
    except Exception as exc:
        # The response already carries the record's expiry cookie; keep it.
        logger.exception("OAuth callback for %s crashed: %s", provider, exc)
        response.set_data(jsonify({"ok": False, "error": "unexpected_error"}).get_data())
        response.status_code = 500
        return response
    response.set_data(jsonify({"ok": True, "user": serialize_profile(user)}).get_data())
    return response


@auth_bp.post("/logout")
def logout():
    response = jsonify({"ok": True})
    try:
        current_bridge().logout(request, response)
    except OAuthBridgeError as exc:
        logger.warning("Logout failed: %s", exc)
        return jsonify({"ok": False, "error": exc.code}), 500
    return response
