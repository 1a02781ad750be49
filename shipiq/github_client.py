"""Lightweight GitHub REST client with rate-limit handling."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

import httpx

from .exceptions import RateLimitError, UpstreamApiError, UpstreamAuthError

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_TIMEOUT = 30.0

API_HEADERS = {
    "Accept": "application/vnd.github+json",
    "X-GitHub-Api-Version": "2022-11-28",
}
RAW_MEDIA_TYPE = "application/vnd.github.raw+json"


def _next_link(link_header: Optional[str]) -> Optional[str]:
    if not link_header:
        return None
    for part in link_header.split(","):
        segment = part.strip()
        if segment.endswith('rel="next"'):
            return segment[segment.find("<") + 1 : segment.find(">")]
    return None


class GitHubClient:
    """Thin wrapper over ``httpx.Client``.

    ``token`` may be an installation token, an app assertion (JWT) or None for
    anonymous reads of public repositories. Every request is bounded by
    ``timeout`` seconds.
    """

    def __init__(
        self,
        token: str | None = None,
        api_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._token = token
        self._api_url = api_url.rstrip("/")
        if transport is None:
            transport = httpx.HTTPTransport(retries=3)
        self._rest = httpx.Client(
            base_url=self._api_url, timeout=timeout, transport=transport
        )

    def _headers(self) -> Dict[str, str]:
        headers = dict(API_HEADERS)
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        if response.is_success:
            return response
        method = response.request.method
        path = response.request.url.path
        message = f"GitHub {method} {path} returned {response.status_code}"
        if response.status_code == 401:
            raise UpstreamAuthError(message)
        if response.status_code in (403, 429) and (
            "rate limit" in response.text.lower()
            or response.headers.get("X-RateLimit-Remaining") == "0"
        ):
            raise RateLimitError(
                message,
                status_code=response.status_code,
                body=response.text,
                retry_after=self._retry_after(response),
            )
        raise UpstreamApiError(message, status_code=response.status_code, body=response.text)

    @staticmethod
    def _retry_after(response: httpx.Response) -> float:
        reset_header = response.headers.get("X-RateLimit-Reset")
        retry_after_header = response.headers.get("Retry-After")
        wait_seconds = 60.0

        if retry_after_header:
            try:
                wait_seconds = float(retry_after_header)
            except ValueError:
                pass
        elif reset_header:
            try:
                reset_epoch = float(reset_header)
                now_epoch = datetime.now(timezone.utc).timestamp()
                wait_seconds = max(reset_epoch - now_epoch, 1.0)
            except ValueError:
                pass
        return wait_seconds

    def _request(
        self, method: str, path: str, accept: Optional[str] = None, **kwargs: Any
    ) -> httpx.Response:
        headers = self._headers()
        if accept:
            headers["Accept"] = accept
        try:
            response = self._rest.request(method, path, headers=headers, **kwargs)
        except httpx.TimeoutException as exc:
            raise UpstreamApiError(
                f"GitHub {method} {path} timed out", status_code=None
            ) from exc
        except httpx.RequestError as exc:
            raise UpstreamApiError(
                f"GitHub {method} {path} failed: {exc}", status_code=None
            ) from exc
        return self._handle_response(response)

    def _rest_request(self, method: str, path: str, **kwargs: Any) -> Any:
        return self._request(method, path, **kwargs).json()

    # App endpoints (token must be an app assertion)
    def create_installation_access_token(self, installation_id: int) -> Dict[str, Any]:
        return self._rest_request(
            "POST", f"/app/installations/{installation_id}/access_tokens", json={}
        )

    def get_app_installation(self, installation_id: int) -> Dict[str, Any]:
        return self._rest_request("GET", f"/app/installations/{installation_id}")

    # Installation endpoints
    def iter_installation_repositories(self, per_page: int = 100) -> Iterator[Dict[str, Any]]:
        url: Optional[str] = "/installation/repositories"
        params: Optional[Dict[str, Any]] = {"per_page": per_page}
        while url:
            response = self._request("GET", url, params=params)
            data = response.json()
            yield from data.get("repositories", []) if isinstance(data, dict) else []
            url = _next_link(response.headers.get("Link"))
            params = None

    # Repository endpoints
    def get_tree(self, owner: str, repo: str, ref: str) -> Dict[str, Any]:
        return self._rest_request(
            "GET", f"/repos/{owner}/{repo}/git/trees/{ref}", params={"recursive": "1"}
        )

    def get_contents(self, owner: str, repo: str, path: str, ref: str) -> Any:
        """Return the contents payload; JSON when GitHub sends JSON, text otherwise."""
        response = self._request(
            "GET", f"/repos/{owner}/{repo}/contents/{path}", params={"ref": ref}
        )
        if "json" in response.headers.get("Content-Type", ""):
            return response.json()
        return response.text

    def get_raw_contents(self, owner: str, repo: str, path: str, ref: str) -> str:
        """Return a file's bytes as text, without the base64 envelope."""
        response = self._request(
            "GET",
            f"/repos/{owner}/{repo}/contents/{path}",
            accept=RAW_MEDIA_TYPE,
            params={"ref": ref},
        )
        return response.text

    def get_actions_public_key(self, owner: str, repo: str) -> Dict[str, Any]:
        return self._rest_request(
            "GET", f"/repos/{owner}/{repo}/actions/secrets/public-key"
        )

    def put_actions_secret(
        self, owner: str, repo: str, name: str, encrypted_value: str, key_id: str
    ) -> int:
        """Create or update a repository secret. Returns 201 (created) or 204 (updated)."""
        response = self._request(
            "PUT",
            f"/repos/{owner}/{repo}/actions/secrets/{name}",
            json={"encrypted_value": encrypted_value, "key_id": key_id},
        )
        return response.status_code

    def close(self) -> None:
        self._rest.close()

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
