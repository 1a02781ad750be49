"""GitHub App authentication: app assertions and installation tokens."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

import httpx
from jose import jwt

from .config import Settings
from .exceptions import ConfigurationError, UpstreamApiError, UpstreamAuthError
from .github_client import DEFAULT_API_URL, DEFAULT_TIMEOUT, GitHubClient

logger = logging.getLogger(__name__)

# Backdated to tolerate clock skew between us and GitHub.
ASSERTION_BACKDATE_SECONDS = 60
ASSERTION_LIFETIME_SECONDS = 9 * 60
# Cached installation tokens are dropped this long before GitHub expires them.
TOKEN_CACHE_MARGIN_SECONDS = 60


def load_private_key(raw: Optional[str]) -> str:
    """Load private key from string or file path."""
    if not raw or not raw.strip():
        raise ConfigurationError("GitHub App private key is not configured")
    if "PRIVATE KEY" in raw:
        return raw.replace("\\n", "\n")
    path = Path(raw.strip().strip('"')).expanduser()
    try:
        pem = path.read_text()
    except OSError as exc:
        raise ConfigurationError(
            f"GitHub App private key file {path} could not be read"
        ) from exc
    if "PRIVATE KEY" not in pem:
        raise ConfigurationError(f"GitHub App private key file {path} is not a PEM key")
    return pem


def _token_cache_key(installation_id: int) -> str:
    return f"github_installation_token:{installation_id}"


class TokenBroker:
    """Mints app assertions and exchanges them for installation tokens.

    Tokens are cached in Redis when a client is given, keyed by installation
    id and expiring ``TOKEN_CACHE_MARGIN_SECONDS`` before GitHub's own expiry.
    Without a Redis client every call mints a fresh token.
    """

    def __init__(
        self,
        app_id: Optional[str],
        private_key: Optional[str],
        api_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        redis_client: Any = None,
        transport: Optional[httpx.BaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._app_id = str(app_id) if app_id else None
        self._private_key_source = private_key
        self._signing_key: Optional[str] = None
        self.api_url = api_url
        self.timeout = timeout
        self._redis = redis_client
        self._transport = transport
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, redis_client: Any = None) -> "TokenBroker":
        return cls(
            app_id=settings.github.app_id,
            private_key=settings.github.private_key,
            api_url=settings.github.api_url,
            timeout=settings.github.request_timeout,
            redis_client=redis_client if settings.github.cache_installation_tokens else None,
        )

    def _load_signing_key(self) -> str:
        if self._signing_key is None:
            self._signing_key = load_private_key(self._private_key_source)
        return self._signing_key

    def client(self, token: Optional[str]) -> GitHubClient:
        return GitHubClient(
            token=token,
            api_url=self.api_url,
            timeout=self.timeout,
            transport=self._transport,
        )

    def mint_app_assertion(self) -> str:
        """Sign a short-lived JWT identifying the GitHub App."""
        if not self._app_id:
            raise ConfigurationError("GitHub App id is not configured")
        pem = self._load_signing_key()
        now = int(self._clock())
        payload = {
            "iat": now - ASSERTION_BACKDATE_SECONDS,
            "exp": now + ASSERTION_LIFETIME_SECONDS,
            "iss": self._app_id,
        }
        try:
            return jwt.encode(payload, pem, algorithm="RS256")
        except Exception as exc:
            # jose surfaces bad key material as assorted backend errors
            raise ConfigurationError("GitHub App private key could not be used for signing") from exc

    def request_installation_token(self, installation_id: int) -> Tuple[str, datetime]:
        """Exchange a fresh app assertion for an installation access token."""
        assertion = self.mint_app_assertion()
        with self.client(assertion) as gh:
            try:
                data = gh.create_installation_access_token(installation_id)
            except UpstreamApiError as exc:
                if exc.status_code is None:
                    raise
                raise UpstreamAuthError(
                    f"Installation token request for {installation_id} failed "
                    f"with status {exc.status_code}"
                ) from exc

        token = data.get("token")
        expires_at_raw = data.get("expires_at")
        if not token or not expires_at_raw:
            raise UpstreamAuthError(
                "GitHub installation token response missing token or expires_at"
            )
        expires_at = datetime.fromisoformat(expires_at_raw.replace("Z", "+00:00"))
        return token, expires_at

    def get_installation_token(self, installation_id: int) -> str:
        if not installation_id:
            raise ConfigurationError(
                "Installation id is required to generate a GitHub App token"
            )

        cache_key = _token_cache_key(installation_id)
        if self._redis is not None:
            cached = self._redis.get(cache_key)
            if cached:
                if isinstance(cached, bytes):
                    return cached.decode("utf-8")
                return cached

        token, expires_at = self.request_installation_token(installation_id)
        logger.info(
            "Issued installation token %s... for installation %s",
            token[:4],
            installation_id,
        )

        if self._redis is not None:
            now = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
            ttl = int((expires_at - now).total_seconds() - TOKEN_CACHE_MARGIN_SECONDS)
            if ttl > 0:
                self._redis.set(cache_key, token, ex=ttl)

        return token

    def get_installation_details(self, installation_id: int) -> Dict[str, Any]:
        """Fetch installation metadata (account login/type) as the app."""
        if not installation_id:
            raise ConfigurationError("Installation id is required")
        with self.client(self.mint_app_assertion()) as gh:
            return gh.get_app_installation(installation_id)

    def clear_installation_token(self, installation_id: int) -> None:
        """Remove cached installation token when app is uninstalled or suspended."""
        if self._redis is not None:
            self._redis.delete(_token_cache_key(installation_id))

    def installation_client(self, installation_id: int) -> GitHubClient:
        return self.client(self.get_installation_token(installation_id))
