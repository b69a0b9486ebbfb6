"""Shared fixtures: a scripted fake of the training service."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from urllib.parse import parse_qsl

import httpx
import pytest

from mlwizard.core.client import WizardClient

BASE_URL = "http://service.test/api"

Route = dict[str, Any] | list[Any] | httpx.Response | Callable[[httpx.Request], Any]


class FakeService:
    """Answers requests from canned routes and records every request.

    A route may be a JSON body, an ``httpx.Response``, a callable taking the
    request, or a list of those consumed one per request (the last repeats).
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], Route] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, response: Route) -> None:
        self.routes[(method, path)] = response

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.method == method and _local_path(r) == path
        ]

    def last_form(self, method: str, path: str) -> dict[str, str]:
        return form_of(self.calls(method, path)[-1])

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, _local_path(request))
        if key not in self.routes:
            return httpx.Response(404, json={"detail": f"No route for {key}"})

        route = self.routes[key]
        if isinstance(route, list):
            route = route.pop(0) if len(route) > 1 else route[0]
        if callable(route) and not isinstance(route, httpx.Response):
            route = route(request)
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, json=route)


def _local_path(request: httpx.Request) -> str:
    return request.url.path.removeprefix("/api")


def form_of(request: httpx.Request) -> dict[str, str]:
    """Decode a urlencoded request body."""
    return dict(parse_qsl(request.content.decode()))


@pytest.fixture
def service() -> FakeService:
    return FakeService()


@pytest.fixture
def transport(service: FakeService) -> httpx.MockTransport:
    return httpx.MockTransport(service.handler)


@pytest.fixture
def client(transport: httpx.MockTransport) -> WizardClient:
    return WizardClient(BASE_URL, token="test-token", transport=transport)
