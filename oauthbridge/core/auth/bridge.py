"""Begin/complete OAuth flows and keep provider sessions across the redirect."""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Optional, Union

from flask import Flask, current_app
from werkzeug.wrappers import Request, Response

from oauthbridge.core.auth.errors import LogoutError, SessionNotFound, StoreError, StoreNotConfigured
from oauthbridge.core.auth.resolver import REQUEST_RESOLVERS, Resolver, from_session, resolve_provider_name
from oauthbridge.core.auth.schemas import UserProfile
from oauthbridge.core.auth.state import StateExtractor, extract_state, generate_state, validate_state
from oauthbridge.core.providers.base import Provider, ProviderError, ProviderRegistry
from oauthbridge.core.providers.oauth2 import DEFAULT_TIMEOUT_SECONDS, GitHubProvider, GoogleProvider
from oauthbridge.core.session.codec import decode, encode
from oauthbridge.core.session.store import (
    CookieSessionStore,
    FilesystemSessionStore,
    Session,
    SessionOptions,
    SessionStore,
)

logger = logging.getLogger(__name__)

DEFAULT_SESSION_NAME = "_oauthbridge_session"
EXTENSION_KEY = "oauthbridge"

# Providers registered from <PREFIX>_CLIENT_ID / _CLIENT_SECRET / _CALLBACK_URL config keys.
PROVIDER_PRESETS = {
    "GITHUB": GitHubProvider,
    "GOOGLE": GoogleProvider,
}


class OAuthBridge:
    """Session-state bridge for one deployment: its store, providers and session name.

    Usage::

        bridge = OAuthBridge(app)
        bridge.providers.use(GitHubProvider(client_id, secret, callback_url))

        url = bridge.begin_auth(request, response)        # redirect the user here
        user = bridge.complete_auth(request, response)    # on the callback route
    """

    def __init__(
        self,
        app: Optional[Flask] = None,
        *,
        store: Optional[SessionStore] = None,
        providers: Optional[Iterable[Provider]] = None,
        session_name: str = DEFAULT_SESSION_NAME,
        state_generator=generate_state,
        state_extractor: StateExtractor = extract_state,
        resolvers: Optional[Iterable[Resolver]] = None,
    ):
        self.session_store = store
        self.providers = ProviderRegistry(providers)
        self.session_name = session_name
        self.state_generator = state_generator
        self.state_extractor = state_extractor
        if resolvers is None:
            resolvers = [*REQUEST_RESOLVERS, from_session(self._current_session, self.providers)]
        self.resolvers = list(resolvers)
        self._warned_unconfigured = False
        if app is not None:
            self.init_app(app)

    # ------------------------------------------------------------------ config

    def init_app(self, app: Flask) -> None:
        config = app.config
        self.session_name = config.get("OAUTH_SESSION_NAME") or self.session_name
        secret = config.get("SESSION_SECRET")
        if self.session_store is None and secret:
            options = session_options_from_config(config)
            backend = (config.get("OAUTH_SESSION_BACKEND") or "cookie").lower()
            if backend == "filesystem":
                self.use_filesystem(config.get("OAUTH_SESSION_DIR"), secret, options)
            elif backend == "cookie":
                self.use_cookies(secret, options)
            else:
                raise ValueError(f"unknown OAUTH_SESSION_BACKEND: {backend}")
        self.providers.use(*providers_from_config(config))
        app.extensions[EXTENSION_KEY] = self
        if self.session_store is None:
            self._warn_unconfigured()

    def use_cookies(self, secret_key: Union[str, bytes], options: Optional[SessionOptions] = None) -> None:
        self.use_store(CookieSessionStore(secret_key, options))

    def use_filesystem(
        self,
        path: Optional[str],
        secret_key: Union[str, bytes],
        options: Optional[SessionOptions] = None,
    ) -> None:
        self.use_store(FilesystemSessionStore(path, secret_key, options))

    def use_store(self, store: SessionStore) -> None:
        self.session_store = store
        logger.info("OAuth sessions stored with %s", type(store).__name__)

    @property
    def store(self) -> SessionStore:
        if self.session_store is None:
            self._warn_unconfigured()
            raise StoreNotConfigured()
        return self.session_store

    def _warn_unconfigured(self) -> None:
        if self._warned_unconfigured:
            return
        self._warned_unconfigured = True
        logger.warning(
            "oauthbridge: no SESSION_SECRET is set and no session store was configured; "
            "auth calls will fail until one is. Ignore this if you call use_store() later."
        )

    # ------------------------------------------------------------------- flows

    def get_provider_name(self, request: Request) -> str:
        return resolve_provider_name(request, self.resolvers)

    def begin_auth(self, request: Request, response: Response) -> str:
        """Start a login and return the provider URL to redirect the user to."""
        provider_name = self.get_provider_name(request)
        provider = self.providers.get(provider_name)
        sess = provider.begin_auth(self.state_generator(request))
        auth_url = sess.get_auth_url()
        self.store_in_session(provider_name, sess.marshal(), request, response)
        logger.info("Began %s authorization", provider_name)
        return auth_url

    def complete_auth(self, request: Request, response: Response) -> UserProfile:
        """Finish a login on the callback and return the provider's user profile.

        The session record is invalidated on the way out whether or not the
        flow succeeds, so a callback cannot be replayed.
        """
        provider_name = self.get_provider_name(request)
        provider = self.providers.get(provider_name)
        value = self.get_from_session(provider_name, request)
        try:
            return self._complete(provider, value, request, response)
        finally:
            try:
                self.logout(request, response)
            except StoreError as exc:
                logger.warning("Could not invalidate %s session after callback: %s", provider_name, exc)

    def _complete(self, provider: Provider, value: str, request: Request, response: Response) -> UserProfile:
        sess = provider.unmarshal_session(value)
        validate_state(request, sess, self.state_extractor)

        authorized = sess.is_authorized()
        if authorized:
            return provider.fetch_user(sess)
        if authorized is None:
            try:
                return provider.fetch_user(sess)
            except ProviderError as exc:
                logger.debug("%s session needs a code exchange: %s", provider.name, exc)

        sess.authorize(provider, callback_params(request))
        self.store_in_session(provider.name, sess.marshal(), request, response)
        user = provider.fetch_user(sess)
        logger.info("Completed %s authorization", provider.name)
        return user

    def logout(self, request: Request, response: Response) -> None:
        """Clear every stored provider session and expire the record."""
        store = self.store
        session = store.get(request, self.session_name)
        try:
            store.invalidate(request, response, session)
        except StoreError as exc:
            raise LogoutError() from exc

    # ---------------------------------------------------------------- storage

    def store_in_session(self, key: str, value: str, request: Request, response: Response) -> None:
        store = self.store
        session = store.new(request, self.session_name)
        session.values[key] = encode(value)
        store.save(request, response, session)

    def get_from_session(self, key: str, request: Request) -> str:
        session = self._current_session(request)
        data = session.values.get(key)
        if data is None:
            raise SessionNotFound()
        return decode(data)

    def _current_session(self, request: Request) -> Session:
        return self.store.get(request, self.session_name)


def callback_params(request: Request) -> Mapping[str, str]:
    """Provider callback parameters: the query string, or the form body of a bare POST."""
    if not request.args and request.method == "POST":
        return request.form
    return request.args


def session_options_from_config(config: Mapping) -> SessionOptions:
    return SessionOptions(
        path=config.get("SESSION_COOKIE_PATH") or "/",
        domain=config.get("SESSION_COOKIE_DOMAIN") or None,
        max_age=int(config.get("OAUTH_SESSION_MAX_AGE") or 0),
        secure=bool(config.get("SESSION_COOKIE_SECURE", False)),
        http_only=bool(config.get("SESSION_COOKIE_HTTPONLY", True)),
        same_site=config.get("SESSION_COOKIE_SAMESITE") or None,
    )


def providers_from_config(config: Mapping) -> list[Provider]:
    timeout = int(config.get("OAUTH_HTTP_TIMEOUT") or DEFAULT_TIMEOUT_SECONDS)
    providers: list[Provider] = []
    for prefix, provider_cls in PROVIDER_PRESETS.items():
        client_id = config.get(f"{prefix}_CLIENT_ID")
        if not client_id:
            continue
        providers.append(
            provider_cls(
                client_id,
                config.get(f"{prefix}_CLIENT_SECRET", ""),
                config.get(f"{prefix}_CALLBACK_URL", ""),
                _scopes(config.get(f"{prefix}_SCOPES")),
                timeout=timeout,
            )
        )
    return providers


def _scopes(value) -> Optional[list[str]]:
    """Scopes from config: a space/comma separated string or a list. Empty means preset defaults."""
    if not value:
        return None
    if isinstance(value, str):
        return value.replace(",", " ").split() or None
    return list(value)


def current_bridge() -> OAuthBridge:
    return current_app.extensions[EXTENSION_KEY]


__all__ = [
    "DEFAULT_SESSION_NAME",
    "OAuthBridge",
    "callback_params",
    "current_bridge",
    "providers_from_config",
    "session_options_from_config",
]
