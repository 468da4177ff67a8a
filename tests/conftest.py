"""
Pytest configuration and helpers for the Resellio test-suite.

The application reads its configuration from the environment, so the bootstrap
below pins a deterministic test environment before anything imports it. The
session store is replaced with the in-memory implementation and the Meta Graph
client with a scripted fake so no test touches the network.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import AsyncGenerator, Generator, Optional

import pytest
import pytest_asyncio
from cryptography.fernet import Fernet
from httpx import ASGITransport, AsyncClient

# ---------------------------------------------------------------------------
# Environment bootstrap
# ---------------------------------------------------------------------------

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ["META_APP_ID"] = "test_app_id"
os.environ["META_APP_SECRET"] = "test_app_secret"
os.environ["META_REDIRECT_URI"] = ""
os.environ["META_SCOPES"] = ""
os.environ["OAUTH_ENCRYPTION_KEY"] = Fernet.generate_key().decode()
os.environ["SESSION_COOKIE_SECURE"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["REDIS_URL"] = ""
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["CORS_ORIGINS"] = "*"

from resellio.core.config import get_settings  # noqa: E402

get_settings.cache_clear()

from resellio.core.dependencies import get_kv_store, get_meta_graph_service  # noqa: E402
from resellio.core.services.kv_store import MemoryKeyValueStore  # noqa: E402
from resellio.core.services.meta_graph_service import (  # noqa: E402
    AccessToken,
    ManagedPage,
    MetaGraphError,
)
from resellio.main import app  # noqa: E402


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeMetaGraph:
    """Scripted stand-in for MetaGraphService that records the calls it receives."""

    def __init__(self) -> None:
        self.pages: list[ManagedPage] = [
            ManagedPage(
                id="page-1",
                name="Toko Reseller",
                access_token="page-token-1",
                instagram_business_account_id="ig-1",
            )
        ]
        self.permissions: list[str] = [
            "pages_show_list",
            "pages_manage_posts",
            "pages_read_engagement",
            "instagram_basic",
            "instagram_content_publish",
            "business_management",
        ]
        self.long_lived_expires_in: Optional[int] = 60 * 60 * 24 * 60
        self.fail_on: Optional[str] = None
        self.calls: list[tuple[str, dict]] = []

    def _maybe_fail(self, step: str) -> None:
        if self.fail_on == step:
            raise MetaGraphError(f"{step} failed", status_code=400)

    async def exchange_code(self, **kwargs) -> AccessToken:
        self.calls.append(("exchange_code", kwargs))
        self._maybe_fail("exchange_code")
        return AccessToken(access_token="short-token", token_type="bearer", expires_in=3600)

    async def exchange_long_lived(self, **kwargs) -> AccessToken:
        self.calls.append(("exchange_long_lived", kwargs))
        self._maybe_fail("exchange_long_lived")
        return AccessToken(
            access_token="long-token",
            token_type="bearer",
            expires_in=self.long_lived_expires_in,
        )

    async def list_pages(self, access_token: str) -> list[ManagedPage]:
        self.calls.append(("list_pages", {"access_token": access_token}))
        self._maybe_fail("list_pages")
        return list(self.pages)

    async def granted_permissions(self, access_token: str) -> list[str]:
        self.calls.append(("granted_permissions", {"access_token": access_token}))
        self._maybe_fail("granted_permissions")
        return list(self.permissions)

    async def close(self) -> None:  # pragma: no cover - trivial
        return None

    def called(self, name: str) -> bool:
        return any(call_name == name for call_name, _ in self.calls)


# ---------------------------------------------------------------------------
# Store / graph fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def kv_store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def fake_graph() -> FakeMetaGraph:
    return FakeMetaGraph()


# ---------------------------------------------------------------------------
# Dependency overrides
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def override_dependencies(
    kv_store: MemoryKeyValueStore, fake_graph: FakeMetaGraph
) -> Generator[None, None, None]:
    """Override FastAPI dependencies so the app uses the test resources."""

    def _get_kv_store_override() -> MemoryKeyValueStore:
        return kv_store

    async def _get_graph_override() -> AsyncGenerator[FakeMetaGraph, None]:
        yield fake_graph

    app.dependency_overrides[get_kv_store] = _get_kv_store_override
    app.dependency_overrides[get_meta_graph_service] = _get_graph_override
    app.state.kv_store = kv_store

    try:
        yield
    finally:
        app.dependency_overrides.clear()
        app.state.kv_store = None


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """HTTPX client configured for the ASGI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http
