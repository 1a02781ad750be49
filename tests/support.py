"""Shared test doubles: a routed GitHub transport, RSA keys and a Redis stub."""

import json
from typing import Any, Callable, Dict, List, Tuple, Union
from unittest.mock import MagicMock

import httpx
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from shipiq.github_client import GitHubClient

TEST_ENCRYPTION_KEY = "00112233445566778899aabbccddeeff" * 2

Responder = Union[Tuple[int, Any], Callable[[httpx.Request], httpx.Response]]


class FakeGitHub:
    """Routes (method, path) to canned responses and records every request."""

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], Responder] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, responder: Responder) -> "FakeGitHub":
        self.routes[(method.upper(), path)] = responder
        return self

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responder = self.routes.get((request.method, request.url.path))
        if responder is None:
            return httpx.Response(404, json={"message": "Not Found"})
        if callable(responder):
            return responder(request)
        status, body = responder
        if isinstance(body, (dict, list)):
            return httpx.Response(status, json=body)
        return httpx.Response(status, text=body or "")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    def client(self, token: str = "ghs_test") -> GitHubClient:
        return GitHubClient(token=token, transport=self.transport)

    def paths(self, method: str = "GET") -> List[str]:
        return [r.url.path for r in self.requests if r.method == method]

    def json_bodies(self, method: str) -> List[Dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests if r.method == method]


def rsa_key_pair() -> Tuple[str, str]:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


def redis_stub(lock_acquired: bool = True) -> MagicMock:
    client = MagicMock()
    client.get.return_value = None
    client.lock.return_value.acquire.return_value = lock_acquired
    return client
