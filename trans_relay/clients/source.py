# trans_relay/clients/source.py
"""从源 Strapi 实例读取条目列表与完整文档。"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import httpx
import structlog

from trans_relay.config import CmsConfig
from trans_relay.core.exceptions import FetchError, SourceNotFoundError
from trans_relay.core.types import SourceDocument, SourceItemRef

logger = structlog.get_logger(__name__)

# 报告类文档翻译所需的关联与组件
REPORT_POPULATE: tuple[str, ...] = (
    "industry.name",
    "geography.name",
    "heroSectionPrimaryCTA.link",
    "heroSectionSecondaryCTA.link",
    "tableOfContent",
    "faqList",
    "ctaBanner.ctaButton.link",
    "leftSectionPrimaryCTAButton",
    "leftSectionSecondaryCTAButton",
    "highlightImage",
    "variants.price",
    "seo.metaSocial.image",
)


def build_http_client(cms: CmsConfig) -> httpx.AsyncClient:
    headers = {"Content-Type": "application/json"}
    if cms.api_token is not None:
        headers["Authorization"] = f"Bearer {cms.api_token.get_secret_value()}"
    return httpx.AsyncClient(base_url=cms.base_url, headers=headers, timeout=cms.timeout)


class StrapiSourceClient:
    """`SourceFetcher` 协议的 Strapi v4 REST 实现。"""

    def __init__(
        self,
        cms: CmsConfig,
        *,
        locale: str = "en",
        populate: Sequence[str] = REPORT_POPULATE,
        client: httpx.AsyncClient | None = None,
    ):
        self.locale = locale
        self.populate = tuple(populate)
        self._client = client or build_http_client(cms)

    async def close(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: list[tuple[str, Any]]) -> dict[str, Any]:
        try:
            response = await self._client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise FetchError(
                f"源 CMS 返回 {e.response.status_code}: {path}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise FetchError(f"请求源 CMS 失败 {path}: {e}") from e

    async def list_items(self, content_type: str, limit: int) -> list[SourceItemRef]:
        body = await self._get(
            f"/api/{content_type}",
            [
                ("pagination[limit]", limit),
                ("locale", self.locale),
                ("fields[0]", "slug"),
            ],
        )
        refs = [
            SourceItemRef(
                slug=(entry.get("attributes") or {}).get("slug"),
                item_id=entry.get("id"),
            )
            for entry in body.get("data") or []
        ]
        logger.info("已列出源条目", content_type=content_type, count=len(refs))
        return refs

    async def fetch(self, slug: str, content_type: str) -> SourceDocument:
        params: list[tuple[str, Any]] = [
            ("filters[slug][$eq]", slug),
            ("locale", self.locale),
        ]
        params.extend((f"populate[{i}]", field) for i, field in enumerate(self.populate))
        body = await self._get(f"/api/{content_type}", params)

        data = body.get("data") or []
        if not data:
            raise SourceNotFoundError(
                f"源 CMS 中不存在条目: {content_type}/{slug} (locale={self.locale})"
            )
        entry = data[0]
        return SourceDocument(
            item_id=entry["id"],
            slug=slug,
            content_type=content_type,
            attributes=entry.get("attributes") or {},
        )
