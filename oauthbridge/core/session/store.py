"""Pluggable session record storage (signed cookie or server-side files)."""

from __future__ import annotations

import hashlib
import logging
import os
import re
import secrets
import tempfile
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

from flask.json.tag import TaggedJSONSerializer
from itsdangerous import BadData, URLSafeTimedSerializer
from werkzeug.wrappers import Request, Response

from oauthbridge.core.auth.errors import StoreError

logger = logging.getLogger(__name__)

SESSION_REGISTRY_KEY = "oauthbridge.sessions"
FILE_PREFIX = "session_"
# Browsers drop cookies above 4096 bytes including name and attributes.
MAX_COOKIE_VALUE_LENGTH = 4093

_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass
class SessionOptions:
    """Cookie attributes for a session record.

    ``max_age`` of 0 issues a browser-session cookie; a negative value deletes
    the record on the next save.
    """

    path: str = "/"
    domain: Optional[str] = None
    max_age: int = 0
    secure: bool = False
    http_only: bool = True
    same_site: Optional[str] = "Lax"

    def copy(self) -> "SessionOptions":
        return replace(self)


@dataclass
class Session:
    """One user-agent's session record as seen during a single request."""

    name: str
    store: "SessionStore" = field(repr=False)
    values: Dict[str, Any] = field(default_factory=dict)
    options: SessionOptions = field(default_factory=SessionOptions)
    id: Optional[str] = None
    is_new: bool = True

    def save(self, request: Request, response: Response) -> None:
        self.store.save(request, response, self)


class SessionStore(ABC):
    """Uniform get/new/save/invalidate contract over a session backend."""

    salt = "oauthbridge-session"

    def __init__(self, secret_key: Union[str, bytes], options: Optional[SessionOptions] = None):
        if not secret_key:
            raise ValueError("a secret key is required to sign session records")
        self.options = options or SessionOptions()
        self.serializer = URLSafeTimedSerializer(
            secret_key,
            salt=self.salt,
            serializer=TaggedJSONSerializer(),
            signer_kwargs={"key_derivation": "hmac", "digest_method": hashlib.sha256},
        )

    def get(self, request: Request, name: str) -> Session:
        """Return the cached session for this request, loading it once.

        Never persists anything; an empty record comes back with ``is_new`` set.
        """
        registry = self._registry(request)
        session = registry.get(name)
        if session is None:
            session = self._load(request, name)
            registry[name] = session
        return session

    def new(self, request: Request, name: str) -> Session:
        """Reload the session from the request, replacing any cached copy."""
        session = self._load(request, name)
        self._registry(request)[name] = session
        return session

    @abstractmethod
    def save(self, request: Request, response: Response, session: Session) -> None:
        raise NotImplementedError

    def invalidate(self, request: Request, response: Response, session: Session) -> None:
        session.values.clear()
        session.options.max_age = -1
        self.save(request, response, session)

    @abstractmethod
    def _load(self, request: Request, name: str) -> Session:
        raise NotImplementedError

    def _fresh(self, name: str, session_id: Optional[str] = None) -> Session:
        return Session(name=name, store=self, options=self.options.copy(), id=session_id)

    def _registry(self, request: Request) -> Dict[str, Session]:
        stores = request.environ.setdefault(SESSION_REGISTRY_KEY, {})
        return stores.setdefault(id(self), {})

    def _max_age(self) -> Optional[int]:
        return self.options.max_age if self.options.max_age > 0 else None

    def _write_cookie(self, response: Response, session: Session, value: str) -> None:
        _discard_pending_cookie(response, session.name)
        opts = session.options
        if opts.max_age < 0:
            response.delete_cookie(
                session.name,
                path=opts.path,
                domain=opts.domain,
                secure=opts.secure,
                httponly=opts.http_only,
                samesite=opts.same_site,
            )
            return
        response.set_cookie(
            session.name,
            value,
            max_age=opts.max_age or None,
            path=opts.path,
            domain=opts.domain,
            secure=opts.secure,
            httponly=opts.http_only,
            samesite=opts.same_site,
        )


class CookieSessionStore(SessionStore):
    """Keeps the whole record in a signed, timestamped cookie."""

    salt = "oauthbridge-cookie-session"

    def _load(self, request: Request, name: str) -> Session:
        session = self._fresh(name)
        raw = request.cookies.get(name)
        if not raw:
            return session
        try:
            values = self.serializer.loads(raw, max_age=self._max_age())
        except BadData as exc:
            logger.debug("Discarding unreadable session cookie %s: %s", name, exc)
            return session
        if isinstance(values, dict):
            session.values = values
            session.is_new = False
        return session

    def save(self, request: Request, response: Response, session: Session) -> None:
        if session.options.max_age < 0:
            self._write_cookie(response, session, "")
            return
        encoded = self.serializer.dumps(session.values)
        if len(encoded) > MAX_COOKIE_VALUE_LENGTH:
            raise StoreError(
                f"session cookie {session.name} is too long ({len(encoded)} bytes); "
                "use the filesystem store for large provider sessions"
            )
        self._write_cookie(response, session, encoded)
        session.is_new = False


class FilesystemSessionStore(SessionStore):
    """Keeps values in ``<path>/session_<id>``; the cookie only carries the signed id."""

    salt = "oauthbridge-filesystem-session"

    def __init__(
        self,
        path: Union[str, os.PathLike, None],
        secret_key: Union[str, bytes],
        options: Optional[SessionOptions] = None,
    ):
        super().__init__(secret_key, options)
        self.path = Path(path) if path else Path(tempfile.gettempdir())

    def _load(self, request: Request, name: str) -> Session:
        raw = request.cookies.get(name)
        if not raw:
            return self._fresh(name)
        try:
            session_id = self.serializer.loads(raw, max_age=self._max_age())
        except BadData as exc:
            logger.debug("Discarding unreadable session cookie %s: %s", name, exc)
            return self._fresh(name)
        if not isinstance(session_id, str) or not _SESSION_ID_RE.match(session_id):
            return self._fresh(name)

        session = self._fresh(name, session_id)
        try:
            content = self._file_for(session_id).read_text(encoding="utf-8")
        except FileNotFoundError:
            return session
        except OSError as exc:
            raise StoreError(f"could not read session {session_id}: {exc}") from exc
        try:
            values = self.serializer.loads(content, max_age=self._max_age())
        except BadData as exc:
            logger.debug("Discarding unreadable session file %s: %s", session_id, exc)
            return session
        if isinstance(values, dict):
            session.values = values
            session.is_new = False
        return session

    def save(self, request: Request, response: Response, session: Session) -> None:
        if session.options.max_age < 0:
            if session.id:
                self._erase(session.id)
            self._write_cookie(response, session, "")
            return
        if not session.id:
            session.id = secrets.token_urlsafe(32)
        self._write_file(session)
        self._write_cookie(response, session, self.serializer.dumps(session.id))
        session.is_new = False

    def purge_expired(self, max_age: Optional[int] = None, now: Optional[float] = None) -> int:
        """Delete session files not written within ``max_age`` seconds."""
        max_age = self.options.max_age if max_age is None else max_age
        if max_age <= 0 or not self.path.is_dir():
            return 0
        cutoff = (now if now is not None else time.time()) - max_age
        removed = 0
        for candidate in self.path.glob(f"{FILE_PREFIX}*"):
            try:
                if candidate.stat().st_mtime < cutoff:
                    candidate.unlink()
                    removed += 1
            except FileNotFoundError:
                continue
        return removed

    def _file_for(self, session_id: str) -> Path:
        return self.path / f"{FILE_PREFIX}{session_id}"

    def _write_file(self, session: Session) -> None:
        encoded = self.serializer.dumps(session.values)
        try:
            self.path.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=self.path, prefix=".tmp_", delete=False
            ) as handle:
                handle.write(encoded)
                tmp_name = handle.name
            os.replace(tmp_name, self._file_for(session.id))
        except OSError as exc:
            raise StoreError(f"could not write session {session.id}: {exc}") from exc

    def _erase(self, session_id: str) -> None:
        try:
            self._file_for(session_id).unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise StoreError(f"could not delete session {session_id}: {exc}") from exc


def _discard_pending_cookie(response: Response, name: str) -> None:
    """Drop Set-Cookie headers for ``name`` already queued on this response."""
    pending = response.headers.getlist("Set-Cookie")
    kept = [header for header in pending if not header.startswith(f"{name}=")]
    if len(kept) == len(pending):
        return
    response.headers.remove("Set-Cookie")
    for header in kept:
        response.headers.add("Set-Cookie", header)


__all__ = [
    "SessionOptions",
    "Session",
    "SessionStore",
    "CookieSessionStore",
    "FilesystemSessionStore",
]
