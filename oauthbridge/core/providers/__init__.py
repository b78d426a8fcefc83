"""Identity providers and the registry the bridge resolves them from."""

from oauthbridge.core.providers.base import (
    Provider,
    ProviderError,
    ProviderRegistry,
    ProviderSession,
)
from oauthbridge.core.providers.oauth2 import (
    GitHubProvider,
    GoogleProvider,
    OAuth2Provider,
    OAuth2Session,
)

__all__ = [
    "Provider",
    "ProviderError",
    "ProviderRegistry",
    "ProviderSession",
    "GitHubProvider",
    "GoogleProvider",
    "OAuth2Provider",
    "OAuth2Session",
]
