"""Work out which provider a request is for.

Callers wire provider selection through different routing stacks, so the
lookup is an ordered chain of small resolver functions; the first non-empty
answer wins. The last link scans the session record so an in-progress flow
can resume without naming the provider again.
"""

from __future__ import annotations

from typing import Callable, Iterable, Optional

from flask import g, has_app_context
from werkzeug.wrappers import Request

from oauthbridge.core.auth.errors import ProviderRequired
from oauthbridge.core.providers.base import ProviderRegistry
from oauthbridge.core.session.store import Session

PROVIDER_PARAM = "provider"
LEGACY_PROVIDER_PARAM = ":provider"
ROUTING_ARGS_KEY = "wsgiorg.routing_args"
PROVIDER_PARAM_KEY = "oauthbridge.provider"

Resolver = Callable[[Request], Optional[str]]


def from_query(request: Request) -> Optional[str]:
    return request.args.get(PROVIDER_PARAM)


def from_legacy_query(request: Request) -> Optional[str]:
    return request.args.get(LEGACY_PROVIDER_PARAM)


def from_view_args(request: Request) -> Optional[str]:
    """Path variable captured by the Flask/werkzeug URL map."""
    return (getattr(request, "view_args", None) or {}).get(PROVIDER_PARAM)


def from_app_context(request: Request) -> Optional[str]:
    """Value a middleware left on ``flask.g.provider``."""
    if not has_app_context():
        return None
    value = g.get(PROVIDER_PARAM)
    return value if isinstance(value, str) else None


def from_routing_args(request: Request) -> Optional[str]:
    """Keyword captured by a WSGI router publishing ``wsgiorg.routing_args``."""
    routing_args = request.environ.get(ROUTING_ARGS_KEY)
    if not routing_args or len(routing_args) != 2:
        return None
    kwargs = routing_args[1] or {}
    value = kwargs.get(PROVIDER_PARAM)
    return value if isinstance(value, str) else None


def from_provider_key(request: Request) -> Optional[str]:
    """Value set by :func:`context_with_provider`."""
    value = request.environ.get(PROVIDER_PARAM_KEY)
    return value if isinstance(value, str) else None


def from_session(get_session: Callable[[Request], Session], registry: ProviderRegistry) -> Resolver:
    """Build the fallback that picks the first provider with a stored flow."""

    def resolve(request: Request) -> Optional[str]:
        session = get_session(request)
        for provider in registry.list():
            if isinstance(session.values.get(provider.name), (bytes, str)):
                return provider.name
        return None

    return resolve


REQUEST_RESOLVERS = (
    from_query,
    from_legacy_query,
    from_view_args,
    from_app_context,
    from_routing_args,
    from_provider_key,
)


def resolve_provider_name(request: Request, resolvers: Iterable[Resolver]) -> str:
    for resolver in resolvers:
        name = resolver(request)
        if name:
            return name
    raise ProviderRequired()


def context_with_provider(request: Request, provider: str) -> Request:
    """Pin ``provider`` on the request for the resolver chain to find."""
    request.environ[PROVIDER_PARAM_KEY] = provider
    return request


__all__ = [
    "PROVIDER_PARAM_KEY",
    "REQUEST_RESOLVERS",
    "Resolver",
    "context_with_provider",
    "from_app_context",
    "from_legacy_query",
    "from_provider_key",
    "from_query",
    "from_routing_args",
    "from_session",
    "from_view_args",
    "resolve_provider_name",
]
