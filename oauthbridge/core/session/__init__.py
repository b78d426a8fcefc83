"""Session record storage and the codec for values kept in it."""

from oauthbridge.core.session.codec import decode, encode
from oauthbridge.core.session.store import (
    CookieSessionStore,
    FilesystemSessionStore,
    Session,
    SessionOptions,
    SessionStore,
)

__all__ = [
    "decode",
    "encode",
    "CookieSessionStore",
    "FilesystemSessionStore",
    "Session",
    "SessionOptions",
    "SessionStore",
]
