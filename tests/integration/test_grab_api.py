from __future__ import annotations

import pytest

from resellio.core import taxonomy
from resellio.core.services import product_grabber

PRODUCT_HTML = """
<html><head>
  <meta content="Hijab Voal Motif Premium" property="og:title">
  <meta property="og:image" content="https://cdn.example/hijab.jpg">
  <script type="application/ld+json">{"offers": {"price": "89000"}}</script>
</head></html>
"""


class DummyResponse:
    def __init__(self, status_code: int, text: str = ""):
        self.status_code = status_code
        self.text = text


class DummyClient:
    def __init__(self, response: DummyResponse):
        self._response = response

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def get(self, url: str):
        return self._response


def _patch_upstream(monkeypatch, response: DummyResponse) -> None:
    monkeypatch.setattr(
        product_grabber.httpx, "AsyncClient", lambda *args, **kwargs: DummyClient(response)
    )


@pytest.mark.asyncio
@pytest.mark.integration
@pytest.mark.api
async def test_grab_returns_product(client, monkeypatch):
    _patch_upstream(monkeypatch, DummyResponse(200, PRODUCT_HTML))

    response = await client.post("/api/grab", json={"url": "https://shopee.co.id/hijab"})

    assert response.status_code == 200
    body = response.json()
    assert body["title"] == "Hijab Voal Motif Premium"
    assert body["image"] == "https://cdn.example/hijab.jpg"
    assert body["price"] == 89000
    assert body["source"] == "Shopee"
    assert body["currency"] == "IDR"
    assert body["url"] == "https://shopee.co.id/hijab"
    assert body["niche"] == "Fashion"
    assert "fashion" in body["hashtags"]
    assert "fallback" not in body


@pytest.mark.asyncio
@pytest.mark.integration
@pytest.mark.api
async def test_grab_falls_back_when_upstream_fails(client, monkeypatch):
    _patch_upstream(monkeypatch, DummyResponse(502, "bad gateway"))

    response = await client.post("/api/grab", json={"url": "https://www.tokopedia.com/toko/x"})

    assert response.status_code == 200
    body = response.json()
    assert body["title"] == taxonomy.FALLBACK_TITLE
    assert body["source"] == "Tokopedia"
    assert body["price"] == 120_000


@pytest.mark.asyncio
@pytest.mark.integration
@pytest.mark.api
@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ({}, "URL must not be empty."),
        ({"url": None}, "URL must not be empty."),
        ({"url": 123}, "Invalid URL format."),
        ({"url": "javascript:alert(1)"}, "Invalid URL format."),
        ({"url": "ftp://shopee.co.id/x"}, "URL protocol is not supported."),
        ({"url": "https://evil.example/shopee"}, "Marketplace domain is not supported yet."),
    ],
)
async def test_grab_rejects_bad_urls(client, monkeypatch, payload, message):
    def _fail(*args, **kwargs):  # pragma: no cover - must not be reached
        raise AssertionError("network must not be touched")

    monkeypatch.setattr(product_grabber.httpx, "AsyncClient", _fail)

    response = await client.post("/api/grab", json=payload)

    assert response.status_code == 400
    assert response.json() == {"error": message}


@pytest.mark.asyncio
@pytest.mark.integration
@pytest.mark.api
@pytest.mark.parametrize(
    "request_kwargs",
    [
        {"content": "not json", "headers": {"Content-Type": "application/json"}},
        {"json": ["https://shopee.co.id/hijab"]},
        {"json": "https://shopee.co.id/hijab"},
    ],
)
async def test_grab_malformed_body_returns_error_shape(client, request_kwargs):
    response = await client.post("/api/grab", **request_kwargs)

    assert response.status_code == 400
    assert response.json() == {"error": "Request body must be a JSON object with a url field."}


@pytest.mark.asyncio
@pytest.mark.integration
@pytest.mark.api
async def test_other_routes_keep_default_validation_errors(client):
    response = await client.post("/api/pricing/quote", json={"base_cost": "lots"})

    assert response.status_code == 422
    assert "detail" in response.json()
