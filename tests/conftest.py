"""
Streetwise - Test Configuration and Fixtures

The backend is faked with httpx.MockTransport so the real client, cookie
jar and status handling are exercised without a server.
"""
import asyncio
import io
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional, Tuple

import httpx
import pytest
from faker import Faker
from rich.console import Console

from streetwise.api_client import StreetwiseAPIClient
from streetwise.config import StreetwiseConfig
from streetwise.notifications import Notifier
from streetwise.session import SessionManager
from streetwise.view import StreetwiseView

fake = Faker()

SESSION_COOKIE = "test-session-cookie"


class FakeBackend:
    """
    Programmable Campus Pulse+ backend.

    Routes are keyed by (method, path). A route is either a fixed
    (status, payload, delay) answer, a queue of such answers consumed one
    per request, or an async handler receiving the httpx.Request.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Any] = {}
        self.requests: List[httpx.Request] = []
        self.user: Optional[Dict[str, Any]] = {
            "id": 1,
            "email": fake.email(),
            "name": fake.name(),
            "role": "student",
        }
        self.set("GET", "/api/security-reports", json=[])
        self.set("GET", "/api/escort-requests", json=[])
        self.set("GET", "/api/university-settings", json={})

    def set(self, method: str, path: str, status: int = 200, json: Any = None, delay: float = 0.0):
        self.routes[(method, path)] = (status, json, delay)

    def queue(self, method: str, path: str, answers: List[Tuple[float, Any]]):
        """Answer successive requests with (delay, payload) pairs"""
        self.routes[(method, path)] = list(answers)

    def handler(self, method: str, path: str, func: Callable):
        self.routes[(method, path)] = func

    def fail(self, method: str, path: str):
        """Simulate a connection failure"""
        async def _raise(request: httpx.Request):
            raise httpx.ConnectError("connection refused", request=request)
        self.handler(method, path, _raise)

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)

        if key == ("GET", "/auth/current_user") and key not in self.routes:
            return httpx.Response(200, json=self.user)

        route = self.routes.get(key)
        if route is None:
            return httpx.Response(404, json={"error": "Not found"})
        if callable(route):
            return await route(request)
        if isinstance(route, list):
            delay, payload = route.pop(0) if len(route) > 1 else route[0]
            if delay:
                await asyncio.sleep(delay)
            return httpx.Response(200, json=payload)

        status, payload, delay = route
        if delay:
            await asyncio.sleep(delay)
        if payload is None:
            return httpx.Response(status)
        return httpx.Response(status, json=payload)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def config() -> StreetwiseConfig:
    """Client config with fast polling for tests"""
    return StreetwiseConfig(
        api_base_url="http://test",
        session_cookie=SESSION_COOKIE,
        map_access_token="pk.test-token",
        map_refresh_interval=0.05,
        feed_refresh_interval=0.05,
        chat_poll_interval=0.05,
    )


@pytest.fixture
async def api(config: StreetwiseConfig, backend: FakeBackend) -> AsyncGenerator[StreetwiseAPIClient, None]:
    async with StreetwiseAPIClient(config, transport=httpx.MockTransport(backend)) as client:
        yield client


@pytest.fixture
async def session(api: StreetwiseAPIClient) -> SessionManager:
    """Session hydrated as a student"""
    manager = SessionManager(api)
    await manager.hydrate()
    return manager


@pytest.fixture
def console() -> Console:
    return Console(file=io.StringIO(), width=120)


@pytest.fixture
def notifier(console: Console) -> Notifier:
    return Notifier(console)


@pytest.fixture
async def view(config, api, session, console, notifier) -> AsyncGenerator[StreetwiseView, None]:
    async with StreetwiseView(config, api, session, console=console, notifier=notifier) as mounted:
        yield mounted


@pytest.fixture
def make_report() -> Callable[..., Dict[str, Any]]:
    """Factory for security report payloads as the backend returns them"""
    counter = {"next": 1}

    def _make(**overrides) -> Dict[str, Any]:
        report = {
            "id": counter["next"],
            "type": fake.random_element(["theft", "harassment", "lights"]),
            "description": fake.sentence(),
            "latitude": float(fake.latitude()),
            "longitude": float(fake.longitude()),
            "intensity": 1.0,
            "decay_weight": 0.8,
            "age_hours": 2.25,
            "created_at": fake.iso8601(),
            "is_active": True,
        }
        counter["next"] += 1
        report.update(overrides)
        return report

    return _make
