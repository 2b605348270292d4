"""Shared fixtures: a scripted fake origin for httpx."""
from typing import Callable, Dict, List

import httpx
import pytest

Handler = Callable[[httpx.Request], httpx.Response]


class FakeOrigin:
    """Maps absolute URLs to canned responses and records every request."""

    def __init__(self) -> None:
        self.routes: Dict[str, Handler] = {}
        self.requests: List[httpx.Request] = []

    def add(self, url: str, status_code: int = 200, **kwargs) -> None:
        self.routes[url] = lambda request: httpx.Response(status_code, **kwargs)

    def add_handler(self, url: str, handler: Handler) -> None:
        self.routes[url] = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get(str(request.url))
        if handler is None:
            return httpx.Response(404, text="not found")
        return handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport)


@pytest.fixture
def origin():
    return FakeOrigin()
