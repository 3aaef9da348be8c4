# tests/unit/test_coordinator.py
"""测试 Coordinator 的装配、初始化、扫描与优雅关闭。"""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from trans_relay.config import TransRelayConfig
from trans_relay.coordinator import Coordinator
from trans_relay.core.types import DeliveryResult, JobStatus, SourceDocument, SourceItemRef
from trans_relay.engines.debug import DebugEngine, DebugEngineConfig
from trans_relay.persistence import create_job_store


DOCUMENTS = {
    "alpha": {"title": "Alpha", "faqSectionHeading": "Alpha FAQ"},
    "beta": {"title": "Beta", "faqSectionHeading": "Beta FAQ"},
}


def _source(documents: dict[str, dict[str, Any]]) -> MagicMock:
    source = MagicMock()
    source.list_items = AsyncMock(
        return_value=[
            SourceItemRef(slug=slug, item_id=i) for i, slug in enumerate(documents, start=1)
        ]
    )

    async def fetch(slug: str, content_type: str) -> SourceDocument:
        item_id = list(documents).index(slug) + 1
        return SourceDocument(
            item_id=item_id, slug=slug, content_type=content_type, attributes=documents[slug]
        )

    source.fetch = AsyncMock(side_effect=fetch)
    source.close = AsyncMock()
    return source


def _coordinator(config: TransRelayConfig, **overrides: Any) -> Coordinator:
    delivery = MagicMock()
    delivery.deliver = AsyncMock(return_value=DeliveryResult(success=True, destination_id=90))
    delivery.close = AsyncMock()
    options: dict[str, Any] = {
        "source": _source(DOCUMENTS),
        "delivery": delivery,
        "primary": DebugEngine(DebugEngineConfig()),
        "fallback": DebugEngine(DebugEngineConfig(mode="FAIL")),
    }
    options.update(overrides)
    return Coordinator(config, create_job_store(config), **options)


@pytest.mark.asyncio
async def test_full_cycle(test_config: TransRelayConfig) -> None:
    """初始化 -> 扫描源条目 -> 翻译 -> 投递 -> 关闭，缓存在关闭时落盘。"""
    coordinator = _coordinator(test_config)
    await coordinator.initialize()
    try:
        assert coordinator.primary.initialized
        assert await coordinator.discover() == 4
        assert await coordinator.discover() == 0

        translation = await coordinator.run_translation_sweep()
        delivery = await coordinator.run_delivery_sweep()

        assert translation.succeeded == 4
        assert delivery.succeeded == 4
        counts = await coordinator.store.status_counts()
        assert counts[JobStatus.COMPLETED.value] == 4
        assert (test_config.output_dir / "reports" / "alpha" / "alpha_fr.json").exists()
    finally:
        await coordinator.close()

    assert test_config.cache.path.exists()
    coordinator.source.close.assert_awaited_once()
    coordinator.delivery.close.assert_awaited_once()
    assert not coordinator.primary.initialized


@pytest.mark.asyncio
async def test_translator_is_cached_per_language(test_config: TransRelayConfig) -> None:
    coordinator = _coordinator(test_config)
    fr = coordinator.translator_for("fr")
    assert coordinator.translator_for("fr") is fr
    assert coordinator.translator_for("de") is not fr
    assert fr.target_lang == "fr"
    assert fr.source_lang == test_config.source_locale
    assert fr.fallback is coordinator.fallback
    await coordinator.store.close()


@pytest.mark.asyncio
async def test_close_is_idempotent_and_skips_flush_when_not_initialized(
    test_config: TransRelayConfig,
) -> None:
    coordinator = _coordinator(test_config)
    await coordinator.close()
    await coordinator.close()
    assert not test_config.cache.path.exists()
    coordinator.source.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_initialize_loads_existing_cache(test_config: TransRelayConfig) -> None:
    first = _coordinator(test_config)
    await first.initialize()
    await first.discover()
    await first.run_translation_sweep()
    await first.close()

    primary = DebugEngine(DebugEngineConfig())
    second = _coordinator(test_config, primary=primary)
    await second.initialize()
    try:
        assert second.memory.languages == ["de", "fr"]
        translated = await second.pipeline.translate_document(
            {"faqSectionHeading": "Alpha FAQ"}, "fr"
        )
        assert translated["faqSectionHeading"] == "Alpha FAQ_fr"
        assert primary.call_count == 0
    finally:
        await second.close()
