"""Provider abstraction consumed by the session bridge."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Mapping, Optional

from oauthbridge.core.auth.errors import ProviderNotFound
from oauthbridge.core.auth.schemas import UserProfile


class ProviderError(Exception):
    """Failure reported by an identity provider (network, protocol or missing token)."""

    code = "provider_error"

    def __init__(self, provider: str, reason: str):
        self.provider = provider
        self.reason = reason
        super().__init__(f"{provider}: {reason}")


class ProviderSession(ABC):
    """In-flight OAuth exchange state, serializable to a string."""

    @abstractmethod
    def marshal(self) -> str:
        raise NotImplementedError

    @abstractmethod
    def get_auth_url(self) -> str:
        """Authorization URL this session was created with."""
        raise NotImplementedError

    @abstractmethod
    def authorize(self, provider: "Provider", params: Mapping[str, str]) -> str:
        """Exchange callback parameters for an access token and keep it on the session."""
        raise NotImplementedError

    def is_authorized(self) -> Optional[bool]:
        """Whether the session already holds a usable token; ``None`` when unknown."""
        return None


class Provider(ABC):
    name: str

    @abstractmethod
    def begin_auth(self, state: str) -> ProviderSession:
        raise NotImplementedError

    @abstractmethod
    def unmarshal_session(self, data: str) -> ProviderSession:
        raise NotImplementedError

    @abstractmethod
    def fetch_user(self, session: ProviderSession) -> UserProfile:
        raise NotImplementedError


class ProviderRegistry:
    """Name-indexed set of providers, kept in registration order."""

    def __init__(self, providers: Optional[Iterable[Provider]] = None):
        self._providers: Dict[str, Provider] = {}
        if providers:
            self.use(*providers)

    def use(self, *providers: Provider) -> None:
        for provider in providers:
            self._providers[provider.name] = provider

    def get(self, name: str) -> Provider:
        try:
            return self._providers[name]
        except KeyError:
            raise ProviderNotFound(name) from None

    def list(self) -> List[Provider]:
        return list(self._providers.values())

    def clear(self) -> None:
        self._providers.clear()

    def __contains__(self, name: object) -> bool:
        return name in self._providers

    def __len__(self) -> int:
        return len(self._providers)


__all__ = ["ProviderError", "ProviderSession", "Provider", "ProviderRegistry"]
