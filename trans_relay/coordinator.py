# trans_relay/coordinator.py
"""本模块包含 Trans-Relay 的主协调器：装配全部组件，并对外提供扫描与维护操作。"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from trans_relay.artifacts import FileArtifactStore
from trans_relay.cache import TranslationMemory
from trans_relay.clients import StrapiDeliveryClient, StrapiSourceClient
from trans_relay.config import TransRelayConfig
from trans_relay.context import ProcessingContext
from trans_relay.core.interfaces import (
    ArtifactStore,
    DeliveryClient,
    JobStore,
    SourceFetcher,
    TranslationBackend,
)
from trans_relay.engine_registry import create_engine
from trans_relay.pipeline import DocumentTranslationPipeline
from trans_relay.scheduler import DeliveryScheduler, SweepSummary, TranslationScheduler
from trans_relay.schema import get_schema
from trans_relay.translator import BatchTranslator

logger = structlog.get_logger(__name__)


class Coordinator:
    """异步主协调器，是 Trans-Relay 功能的中心枢纽。"""

    def __init__(
        self,
        config: TransRelayConfig,
        store: JobStore,
        *,
        source: SourceFetcher | None = None,
        delivery: DeliveryClient | None = None,
        artifacts: ArtifactStore | None = None,
        primary: TranslationBackend | None = None,
        fallback: TranslationBackend | None = None,
        memory: TranslationMemory | None = None,
    ):
        self.config = config
        self.store = store
        self.initialized = False
        self._shutting_down = False

        self.memory = memory or TranslationMemory(
            config.cache.path, config.cache.max_entries_per_bucket
        )
        self.source = source or StrapiSourceClient(
            config.source_cms, locale=config.source_locale
        )
        self.delivery = delivery or StrapiDeliveryClient(config.target_cms, config.delivery)
        self.artifacts = artifacts or FileArtifactStore(config.output_dir)
        self.primary = primary or create_engine(config.backends.primary)
        self.fallback = fallback or create_engine(config.backends.fallback)
        self._translators: dict[str, BatchTranslator] = {}

        self.pipeline = DocumentTranslationPipeline(
            get_schema(config.content_type), self.memory, self.translator_for
        )
        self.processing_context = ProcessingContext(
            store=self.store,
            source=self.source,
            pipeline=self.pipeline,
            artifacts=self.artifacts,
            delivery=self.delivery,
        )
        scheduler_config = config.scheduler
        self.translation_scheduler = TranslationScheduler(
            self.processing_context,
            max_concurrency=scheduler_config.max_concurrency,
            page_limit=scheduler_config.page_limit,
        )
        self.delivery_scheduler = DeliveryScheduler(
            self.processing_context,
            max_concurrency=scheduler_config.max_concurrency,
            page_limit=scheduler_config.page_limit,
        )

    def translator_for(self, language: str) -> BatchTranslator:
        """每个目标语言一个 BatchTranslator，共享同一对后端实例。"""
        translator = self._translators.get(language)
        if translator is None:
            translator = BatchTranslator(
                self.primary,
                self.fallback,
                target_lang=language,
                source_lang=self.config.source_locale,
                retry_policy=self.config.retry_policy,
                max_batch_size=self.config.max_batch_size,
            )
            self._translators[language] = translator
        return translator

    def _engines(self) -> list[Any]:
        engines = [self.primary]
        if self.fallback is not None and self.fallback is not self.primary:
            engines.append(self.fallback)
        return engines

    async def initialize(self) -> None:
        """连接作业库、建表、加载翻译缓存并初始化翻译后端。"""
        if self.initialized:
            return
        logger.info("协调器初始化开始...")
        await self.store.connect()
        await self.store.create_schema()
        self.memory.load()
        for engine in self._engines():
            initialize = getattr(engine, "initialize", None)
            if initialize is not None and not getattr(engine, "initialized", False):
                await initialize()
        self.initialized = True
        logger.info(
            "协调器初始化完成。",
            content_type=self.config.content_type,
            target_langs=self.config.target_langs,
        )

    async def discover(self, limit: int | None = None) -> int:
        """扫描源 CMS，为每个条目与每个目标语言补齐作业。返回新增作业数。"""
        content_type = self.config.content_type
        items = await self.source.list_items(
            content_type, limit or self.config.scheduler.discovery_limit
        )
        return await self.store.initialize_jobs(
            items, self.config.target_langs, content_type
        )

    async def run_translation_sweep(self) -> SweepSummary:
        return await self.translation_scheduler.run_sweep()

    async def run_delivery_sweep(self) -> SweepSummary:
        return await self.delivery_scheduler.run_sweep()

    async def flush_cache(self, force: bool = False) -> bool:
        return await self.memory.aflush(force=force)

    async def close(self) -> None:
        """优雅地关闭协调器和所有相关资源。缓存总是在关闭前落盘。"""
        if self._shutting_down:
            return
        self._shutting_down = True
        logger.info("开始优雅停机...")
        try:
            if self.initialized:
                await self.flush_cache()
        finally:
            closers = [
                closer()
                for component in (*self._engines(), self.source, self.delivery)
                if (closer := getattr(component, "close", None)) is not None
            ]
            results = await asyncio.gather(*closers, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.warning("关闭组件时出错", error=str(result))
            await self.store.close()
            self.initialized = False
        logger.info("优雅停机完成。")
