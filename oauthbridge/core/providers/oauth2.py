"""Generic OAuth2 authorization-code provider plus GitHub and Google presets."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional, Sequence
from urllib.parse import urlencode

import requests

from oauthbridge.core.auth.schemas import UserProfile
from oauthbridge.core.providers.base import Provider, ProviderError, ProviderSession

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30


@dataclass
class OAuth2Session(ProviderSession):
    """Authorization URL and, once exchanged, the token set for one login attempt."""

    provider: str
    auth_url: str = ""
    access_token: str = ""
    refresh_token: str = ""
    id_token: str = ""
    expires_at: Optional[str] = None  # ISO-8601, UTC

    def marshal(self) -> str:
        return json.dumps(asdict(self), separators=(",", ":"))

    def get_auth_url(self) -> str:
        if not self.auth_url:
            raise ProviderError(self.provider, "an authorization URL has not been set")
        return self.auth_url

    def authorize(self, provider: Provider, params: Mapping[str, str]) -> str:
        if not isinstance(provider, OAuth2Provider):
            raise ProviderError(self.provider, f"cannot authorize with provider {provider.name}")
        error = params.get("error")
        if error:
            raise ProviderError(self.provider, f"authorization denied: {error}")
        code = params.get("code")
        if not code:
            raise ProviderError(self.provider, "callback is missing the authorization code")

        token_data = provider.exchange_code(code)
        self.access_token = token_data["access_token"]
        self.refresh_token = token_data.get("refresh_token") or self.refresh_token
        self.id_token = token_data.get("id_token") or ""
        expires_in = token_data.get("expires_in")
        if expires_in:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))
            self.expires_at = expires_at.isoformat()
        return self.access_token

    def is_authorized(self) -> Optional[bool]:
        if not self.access_token:
            return False
        expires_at = self.expiry()
        return expires_at is None or expires_at > datetime.now(timezone.utc)

    def expiry(self) -> Optional[datetime]:
        return datetime.fromisoformat(self.expires_at) if self.expires_at else None


class OAuth2Provider(Provider):
    """Authorization-code flow against configurable endpoints.

    Subclasses set the endpoint attributes and override
    :meth:`profile_from_payload` to map the provider's user document.
    """

    name = "oauth2"
    auth_endpoint = ""
    token_endpoint = ""
    profile_endpoint = ""
    default_scopes: Sequence[str] = ()

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        callback_url: str,
        scopes: Optional[Sequence[str]] = None,
        *,
        name: Optional[str] = None,
        auth_endpoint: Optional[str] = None,
        token_endpoint: Optional[str] = None,
        profile_endpoint: Optional[str] = None,
        timeout: int = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.callback_url = callback_url
        self.scopes = list(scopes) if scopes is not None else list(self.default_scopes)
        self.name = name or self.name
        self.auth_endpoint = auth_endpoint or self.auth_endpoint
        self.token_endpoint = token_endpoint or self.token_endpoint
        self.profile_endpoint = profile_endpoint or self.profile_endpoint
        self.timeout = timeout

    def extra_auth_params(self) -> Dict[str, str]:
        return {}

    def begin_auth(self, state: str) -> OAuth2Session:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.callback_url,
            "response_type": "code",
        }
        if self.scopes:
            params["scope"] = " ".join(self.scopes)
        if state:
            params["state"] = state
        params.update(self.extra_auth_params())
        return OAuth2Session(provider=self.name, auth_url=f"{self.auth_endpoint}?{urlencode(params)}")

    def unmarshal_session(self, data: str) -> OAuth2Session:
        try:
            payload = json.loads(data)
            return OAuth2Session(**payload)
        except (TypeError, ValueError) as exc:
            raise ProviderError(self.name, f"could not unmarshal session: {exc}") from exc

    def exchange_code(self, code: str) -> Dict[str, Any]:
        """Exchange an authorization code for a token response."""
        payload = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "redirect_uri": self.callback_url,
            "grant_type": "authorization_code",
            "code": code,
        }
        try:
            resp = requests.post(
                self.token_endpoint,
                data=payload,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Token exchange failed for {self.name}: {e}")
            raise ProviderError(self.name, f"failed to exchange code: {e}") from e

        if data.get("error"):
            raise ProviderError(self.name, data.get("error_description") or data["error"])
        if not data.get("access_token"):
            raise ProviderError(self.name, "token response did not include an access token")
        return data

    def fetch_user(self, session: ProviderSession) -> UserProfile:
        if not isinstance(session, OAuth2Session) or not session.access_token:
            raise ProviderError(self.name, "cannot get user information without an access token")
        try:
            resp = requests.get(
                self.profile_endpoint,
                headers={
                    "Authorization": f"Bearer {session.access_token}",
                    "Accept": "application/json",
                },
                timeout=self.timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Profile fetch failed for {self.name}: {e}")
            raise ProviderError(self.name, f"failed to fetch user: {e}") from e

        profile = self.profile_from_payload(data)
        return profile.model_copy(
            update={
                "provider": self.name,
                "access_token": session.access_token,
                "refresh_token": session.refresh_token,
                "id_token": session.id_token,
                "expires_at": session.expiry(),
                "raw_data": data,
            }
        )

    def profile_from_payload(self, data: Dict[str, Any]) -> UserProfile:
        return UserProfile(
            provider=self.name,
            user_id=str(data.get("id") or data.get("sub") or ""),
            email=data.get("email") or "",
            name=data.get("name") or "",
        )


class GitHubProvider(OAuth2Provider):
    name = "github"
    auth_endpoint = "https://github.com/login/oauth/authorize"
    token_endpoint = "https://github.com/login/oauth/access_token"
    profile_endpoint = "https://api.github.com/user"
    default_scopes = ("read:user", "user:email")

    def profile_from_payload(self, data: Dict[str, Any]) -> UserProfile:
        return UserProfile(
            provider=self.name,
            user_id=str(data.get("id") or ""),
            email=data.get("email") or "",
            name=data.get("name") or "",
            nick_name=data.get("login") or "",
            description=data.get("bio") or "",
            avatar_url=data.get("avatar_url") or "",
            location=data.get("location") or "",
        )


class GoogleProvider(OAuth2Provider):
    name = "google"
    auth_endpoint = "https://accounts.google.com/o/oauth2/v2/auth"
    token_endpoint = "https://oauth2.googleapis.com/token"
    profile_endpoint = "https://openidconnect.googleapis.com/v1/userinfo"
    default_scopes = ("openid", "email", "profile")

    def extra_auth_params(self) -> Dict[str, str]:
        return {"access_type": "offline"}  # Get refresh token

    def profile_from_payload(self, data: Dict[str, Any]) -> UserProfile:
        return UserProfile(
            provider=self.name,
            user_id=str(data.get("sub") or ""),
            email=data.get("email") or "",
            name=data.get("name") or "",
            first_name=data.get("given_name") or "",
            last_name=data.get("family_name") or "",
            avatar_url=data.get("picture") or "",
        )


__all__ = ["OAuth2Session", "OAuth2Provider", "GitHubProvider", "GoogleProvider"]
