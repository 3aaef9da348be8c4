# trans_relay/clients/delivery.py
"""
把翻译后的文档作为本地化版本写入目标 Strapi 实例。

目标条目已有该语言的本地化时更新它，否则通过 `/localizations`
端点创建并与源条目关联。
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import httpx
import structlog

from trans_relay.clients.source import build_http_client
from trans_relay.config import CmsConfig, DeliveryConfig
from trans_relay.core.types import DeliveryResult

logger = structlog.get_logger(__name__)

SleepFunc = Callable[[float], Awaitable[Any]]

# 报告类文档中需要随本地化一起写入的字段
REPORT_LOCALIZED_FIELDS: tuple[str, ...] = (
    "title",
    "shortDescription",
    "tableOfContent",
    "faqList",
    "faqSectionHeading",
    "description",
    "relatedReportsSectionHeading",
    "relatedReportsSectionSubheading",
    "clientsSectionHeading",
    "rightSectionHeading",
    "researchMethodology",
    "variants",
    "seo",
)

# Strapi 在属性中返回、但写入时不接受的系统字段
_SYSTEM_FIELDS = frozenset(
    {"locale", "localizations", "createdAt", "updatedAt", "publishedAt"}
)

_SOCIAL_NETWORKS = {"twitter": "Twitter", "facebook": "Facebook"}


def _is_relation(value: dict[str, Any]) -> bool:
    return set(value) <= {"data", "meta"} and "data" in value


def _relation_ids(value: dict[str, Any]) -> Any:
    data = value["data"]
    if data is None:
        return None
    if isinstance(data, list):
        return [entry.get("id") for entry in data if isinstance(entry, dict)]
    return data.get("id") if isinstance(data, dict) else None


def _strip(value: Any) -> Any:
    if isinstance(value, list):
        return [_strip(item) for item in value]
    if isinstance(value, dict):
        if _is_relation(value):
            return _relation_ids(value)
        return {k: _strip(v) for k, v in value.items() if k != "id"}
    return value


def _fix_social_network(entry: dict[str, Any]) -> None:
    network = entry.get("socialNetwork")
    if not network:
        entry["socialNetwork"] = "Twitter"
    elif isinstance(network, str):
        entry["socialNetwork"] = _SOCIAL_NETWORKS.get(network.lower(), network)


def normalize_payload(
    document: dict[str, Any], fields: Sequence[str] | None = None
) -> dict[str, Any]:
    """
    生成可直接写入 Strapi 的载荷。

    - 只保留 `fields` 中的字段；为 None 时保留除系统字段外的全部字段；
    - 递归删除组件与数组条目上的 `id`，关联字段 `{"data": ...}` 折叠为 id；
    - `seo.metaSocial[].socialNetwork` 规范为 Twitter/Facebook，缺省为 Twitter。
    """
    if fields is None:
        selected = {k: v for k, v in document.items() if k not in _SYSTEM_FIELDS}
    else:
        selected = {k: document[k] for k in fields if k in document}
    payload = _strip(copy.deepcopy(selected))

    seo = payload.get("seo")
    if isinstance(seo, dict) and isinstance(seo.get("metaSocial"), list):
        for entry in seo["metaSocial"]:
            if isinstance(entry, dict):
                _fix_social_network(entry)
    return payload


class _ClientFailure(Exception):
    """目标 CMS 返回的 4xx，不值得重试。"""


class StrapiDeliveryClient:
    """`DeliveryClient` 协议的 Strapi v4 REST 实现。"""

    def __init__(
        self,
        cms: CmsConfig,
        policy: DeliveryConfig | None = None,
        *,
        fields: Sequence[str] | None = REPORT_LOCALIZED_FIELDS,
        client: httpx.AsyncClient | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.policy = policy or DeliveryConfig()
        self.fields = fields
        self._client = client or build_http_client(cms)
        self._sleep = sleep

    async def close(self) -> None:
        await self._client.aclose()

    async def find_localization(
        self, content_type: str, source_item_id: int, target_language: str
    ) -> int | None:
        response = await self._client.get(
            f"/api/{content_type}/{source_item_id}",
            params={"populate": "localizations"},
        )
        response.raise_for_status()
        attributes = (response.json().get("data") or {}).get("attributes") or {}
        for entry in (attributes.get("localizations") or {}).get("data") or []:
            if (entry.get("attributes") or {}).get("locale") == target_language:
                return entry.get("id")
        return None

    async def _upsert(
        self,
        payload: dict[str, Any],
        source_item_id: int,
        target_language: str,
        content_type: str,
    ) -> int:
        existing_id = await self.find_localization(
            content_type, source_item_id, target_language
        )
        if existing_id is not None:
            response = await self._client.put(
                f"/api/{content_type}/{existing_id}", json={"data": payload}
            )
            response.raise_for_status()
            return existing_id

        response = await self._client.post(
            f"/api/{content_type}/{source_item_id}/localizations",
            json={"locale": target_language, **payload},
        )
        response.raise_for_status()
        body = response.json()
        created_id = body.get("id") or (body.get("data") or {}).get("id")
        if created_id is None:
            raise ValueError("创建本地化的响应中缺少 id")
        return created_id

    async def deliver(
        self,
        document: dict[str, Any],
        source_item_id: int,
        target_language: str,
        content_type: str,
    ) -> DeliveryResult:
        payload = normalize_payload(document, self.fields)
        log = logger.bind(
            content_type=content_type,
            source_item_id=source_item_id,
            target_language=target_language,
        )
        last_error: Exception | None = None
        for attempt in range(1, self.policy.max_retries + 1):
            try:
                try:
                    destination_id = await self._upsert(
                        payload, source_item_id, target_language, content_type
                    )
                except httpx.HTTPStatusError as e:
                    if 400 <= e.response.status_code < 500:
                        raise _ClientFailure(
                            f"目标 CMS 拒绝了请求 (状态码 {e.response.status_code}): "
                            f"{e.response.text[:500]}"
                        ) from e
                    raise
            except _ClientFailure as e:
                log.error("投递被目标 CMS 拒绝，不再重试", error=str(e))
                return DeliveryResult(success=False, message=str(e))
            except (httpx.HTTPError, ValueError) as e:
                last_error = e
                log.warning(
                    "投递失败",
                    attempt=f"{attempt}/{self.policy.max_retries}",
                    error=str(e),
                )
                if attempt < self.policy.max_retries:
                    await self._sleep(self.policy.retry_delay)
                continue

            log.info("投递成功", destination_id=destination_id)
            return DeliveryResult(success=True, destination_id=destination_id)

        return DeliveryResult(
            success=False,
            message=f"{self.policy.max_retries} 次尝试后投递仍失败: {last_error}",
        )
