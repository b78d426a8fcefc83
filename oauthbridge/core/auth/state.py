"""OAuth ``state`` token helpers used for CSRF protection of the callback."""

from __future__ import annotations

import base64
import logging
import secrets
from typing import Callable
from urllib.parse import parse_qs, urlsplit

from werkzeug.wrappers import Request

from oauthbridge.core.auth.errors import CorruptPayload, RandomnessUnavailable, StateTokenMismatch
from oauthbridge.core.providers.base import ProviderSession

logger = logging.getLogger(__name__)

STATE_PARAM = "state"
NONCE_BYTES = 64

StateExtractor = Callable[[Request], str]


def generate_state(request: Request) -> str:
    """Return the caller's ``state`` query value, or a fresh unguessable nonce."""
    state = request.args.get(STATE_PARAM)
    if state:
        return state
    try:
        nonce = secrets.token_bytes(NONCE_BYTES)
    except (OSError, NotImplementedError) as exc:
        logger.critical("Source of randomness unavailable: %s", exc)
        raise RandomnessUnavailable(f"source of randomness unavailable: {exc}") from exc
    return base64.urlsafe_b64encode(nonce).decode("ascii")


def extract_state(request: Request) -> str:
    """Read the state echoed back by the provider on the callback."""
    if not request.args and request.method == "POST":
        return request.form.get(STATE_PARAM, "")
    return request.args.get(STATE_PARAM, "")


def validate_state(
    request: Request,
    session: ProviderSession,
    extractor: StateExtractor = extract_state,
) -> None:
    """Ensure the callback state matches the one embedded in the original auth URL.

    An authorization URL without a ``state`` parameter means the integration
    opted out of state tokens; nothing is checked in that case.
    """
    try:
        query = parse_qs(urlsplit(session.get_auth_url()).query)
    except ValueError as exc:
        raise CorruptPayload(f"stored authorization url is malformed: {exc}") from exc
    original = (query.get(STATE_PARAM) or [""])[0]
    if not original:
        return
    current = extractor(request)
    if not secrets.compare_digest(original.encode(), current.encode()):
        raise StateTokenMismatch()


__all__ = ["generate_state", "extract_state", "validate_state", "StateExtractor"]
