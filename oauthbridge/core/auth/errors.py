"""Error taxonomy for the OAuth session bridge.

Every bridge failure derives from :class:`OAuthBridgeError` and carries a short
``code`` that controllers put on the wire. Provider failures are not wrapped;
they surface as :class:`oauthbridge.core.providers.base.ProviderError`.
"""

from __future__ import annotations

from typing import Optional


class OAuthBridgeError(Exception):
    """Base exception for session bridge operations."""

    code = "oauth_error"
    default_message = "oauth bridge error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)


class ProviderRequired(OAuthBridgeError):
    """No provider could be resolved from the request."""

    code = "provider_required"
    default_message = "you must select a provider"


class ProviderNotFound(OAuthBridgeError):
    code = "provider_not_found"
    default_message = "no provider exists for this request"

    def __init__(self, name: str):
        self.provider = name
        super().__init__(f"no provider for {name} exists")


class SessionNotFound(OAuthBridgeError):
    code = "session_not_found"
    default_message = "could not find a matching session for this request"


class StateTokenMismatch(OAuthBridgeError):
    code = "state_token_mismatch"
    default_message = "state token mismatch"


class ContextCanceled(OAuthBridgeError):
    """Raised by callers that cancel a flow; the bridge only passes it through."""

    code = "context_canceled"
    default_message = "operation was canceled"


class ContextTimeout(OAuthBridgeError):
    """Raised by callers that impose a deadline; the bridge only passes it through."""

    code = "context_timeout"
    default_message = "operation timed out"


class CorruptPayload(OAuthBridgeError):
    code = "corrupt_payload"
    default_message = "stored session payload is corrupt"


class StoreNotConfigured(OAuthBridgeError):
    code = "store_not_configured"
    default_message = "session store unavailable"


class StoreError(OAuthBridgeError):
    """Backend I/O failure while loading or saving a session record."""

    code = "store_error"
    default_message = "session store failure"


class LogoutError(StoreError):
    code = "logout_failed"
    default_message = "could not delete user session"


class RandomnessUnavailable(RuntimeError):
    """The OS random source failed; not recoverable by retrying the request."""


__all__ = [
    "OAuthBridgeError",
    "ProviderRequired",
    "ProviderNotFound",
    "SessionNotFound",
    "StateTokenMismatch",
    "ContextCanceled",
    "ContextTimeout",
    "CorruptPayload",
    "StoreNotConfigured",
    "StoreError",
    "LogoutError",
    "RandomnessUnavailable",
]
