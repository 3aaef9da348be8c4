# tests/unit/test_clients.py
"""
针对 Strapi 源客户端与投递客户端的单元测试。

使用 `httpx.MockTransport` 模拟 Strapi v4 REST 接口。
"""

import json
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest

from trans_relay.clients import StrapiDeliveryClient, StrapiSourceClient, normalize_payload
from trans_relay.config import CmsConfig, DeliveryConfig
from trans_relay.core.exceptions import FetchError, SourceNotFoundError

BASE_URL = "http://cms.test"
Handler = Callable[[httpx.Request], httpx.Response]


def _client(handler: Handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))


def _source(handler: Handler) -> StrapiSourceClient:
    return StrapiSourceClient(
        CmsConfig(base_url=BASE_URL), populate=("tableOfContent", "seo"), client=_client(handler)
    )


def _delivery(handler: Handler, max_retries: int = 3) -> tuple[StrapiDeliveryClient, AsyncMock]:
    sleep = AsyncMock()
    client = StrapiDeliveryClient(
        CmsConfig(base_url=BASE_URL),
        DeliveryConfig(max_retries=max_retries, retry_delay=0.5),
        client=_client(handler),
        sleep=sleep,
    )
    return client, sleep


def _localizations(*entries: tuple[int, str]) -> dict[str, Any]:
    return {
        "data": {
            "id": 1,
            "attributes": {
                "localizations": {
                    "data": [{"id": i, "attributes": {"locale": loc}} for i, loc in entries]
                }
            },
        }
    }


@pytest.mark.asyncio
async def test_list_items() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(
            200,
            json={
                "data": [
                    {"id": 1, "attributes": {"slug": "alpha"}},
                    {"id": 2, "attributes": {}},
                ]
            },
        )

    source = _source(handler)
    refs = await source.list_items("reports", 10)
    await source.close()

    assert [(r.slug, r.item_id) for r in refs] == [("alpha", 1), (None, 2)]
    params = requests[0].url.params
    assert requests[0].url.path == "/api/reports"
    assert params["pagination[limit]"] == "10"
    assert params["locale"] == "en"


@pytest.mark.asyncio
async def test_fetch_document() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        params = request.url.params
        assert params["filters[slug][$eq]"] == "alpha"
        assert params["populate[0]"] == "tableOfContent"
        assert params["populate[1]"] == "seo"
        return httpx.Response(
            200, json={"data": [{"id": 5, "attributes": {"title": "Alpha"}}]}
        )

    document = await _source(handler).fetch("alpha", "reports")
    assert document.item_id == 5
    assert document.attributes == {"title": "Alpha"}


@pytest.mark.asyncio
async def test_fetch_missing_document() -> None:
    source = _source(lambda request: httpx.Response(200, json={"data": []}))
    with pytest.raises(SourceNotFoundError):
        await source.fetch("ghost", "reports")


@pytest.mark.asyncio
async def test_fetch_server_error() -> None:
    source = _source(lambda request: httpx.Response(500, text="oops"))
    with pytest.raises(FetchError, match="500"):
        await source.fetch("alpha", "reports")


@pytest.mark.asyncio
async def test_fetch_connection_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(FetchError):
        await _source(handler).list_items("reports", 1)


@pytest.mark.asyncio
async def test_deliver_updates_existing_localization() -> None:
    """目标条目已有该语言的本地化时使用 PUT 更新。"""
    seen: list[tuple[str, str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        seen.append((request.method, request.url.path, body))
        if request.method == "GET":
            return httpx.Response(200, json=_localizations((31, "de"), (32, "fr")))
        return httpx.Response(200, json={"data": {"id": 32}})

    client, _ = _delivery(handler)
    result = await client.deliver({"title": "Titre", "seo": {"id": 3}}, 1, "fr", "reports")

    assert result.success is True
    assert result.destination_id == 32
    method, path, body = seen[-1]
    assert (method, path) == ("PUT", "/api/reports/32")
    assert body == {"data": {"title": "Titre", "seo": {}}}


@pytest.mark.asyncio
async def test_deliver_creates_missing_localization() -> None:
    seen: list[tuple[str, str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        seen.append((request.method, request.url.path, body))
        if request.method == "GET":
            return httpx.Response(200, json=_localizations((31, "de")))
        return httpx.Response(200, json={"id": 40, "locale": "fr"})

    client, _ = _delivery(handler)
    result = await client.deliver({"title": "Titre"}, 1, "fr", "reports")

    assert result.destination_id == 40
    method, path, body = seen[-1]
    assert (method, path) == ("POST", "/api/reports/1/localizations")
    assert body == {"locale": "fr", "title": "Titre"}


@pytest.mark.asyncio
async def test_client_error_is_not_retried() -> None:
    """4xx 表示载荷被拒绝，立即失败，不重试。"""
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if request.method == "GET":
            return httpx.Response(200, json=_localizations())
        return httpx.Response(400, json={"error": {"message": "title is invalid"}})

    client, sleep = _delivery(handler)
    result = await client.deliver({"title": "x"}, 1, "fr", "reports")

    assert result.success is False
    assert "400" in (result.message or "")
    assert calls == 2
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_server_error_is_retried_until_exhausted() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="unavailable")

    client, sleep = _delivery(handler, max_retries=3)
    result = await client.deliver({"title": "x"}, 1, "fr", "reports")

    assert result.success is False
    assert (result.message or "").startswith("3 次尝试后投递仍失败")
    assert [c.args[0] for c in sleep.await_args_list] == [0.5, 0.5]


@pytest.mark.asyncio
async def test_transient_error_then_success() -> None:
    attempts = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal attempts
        if request.method == "GET":
            attempts += 1
            if attempts == 1:
                raise httpx.ReadTimeout("slow", request=request)
            return httpx.Response(200, json=_localizations())
        return httpx.Response(200, json={"data": {"id": 9}})

    client, sleep = _delivery(handler)
    result = await client.deliver({"title": "x"}, 1, "fr", "reports")

    assert result.success is True
    assert result.destination_id == 9
    sleep.assert_awaited_once_with(0.5)


def test_normalize_payload() -> None:
    document = {
        "title": "Titre",
        "locale": "fr",
        "createdAt": "2024-01-01",
        "industry": {"data": {"id": 4, "attributes": {"name": "Energy"}}},
        "tags": {"data": [{"id": 1}, {"id": 2}], "meta": {}},
        "tableOfContent": [{"id": 11, "title": "Intro"}],
        "seo": {
            "id": 3,
            "metaSocial": [
                {"id": 1, "socialNetwork": "twitter"},
                {"id": 2, "socialNetwork": "FACEBOOK"},
                {"id": 3},
                {"id": 4, "socialNetwork": "Mastodon"},
            ],
        },
    }

    payload = normalize_payload(document, fields=None)

    assert "locale" not in payload and "createdAt" not in payload
    assert payload["industry"] == 4
    assert payload["tags"] == [1, 2]
    assert payload["tableOfContent"] == [{"title": "Intro"}]
    assert [s["socialNetwork"] for s in payload["seo"]["metaSocial"]] == [
        "Twitter",
        "Facebook",
        "Twitter",
        "Mastodon",
    ]
    assert document["seo"]["id"] == 3


def test_normalize_payload_selects_fields() -> None:
    payload = normalize_payload({"title": "a", "reportID": "R-1", "slug": "s"}, ["title", "slug"])
    assert payload == {"title": "a", "slug": "s"}
