# trans_relay/pipeline/runner.py
"""把抽取、翻译、缓存写入与重建串成单个文档的翻译流水线。"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog

from trans_relay.cache import TranslationMemory
from trans_relay.core.exceptions import ReconstructionError
from trans_relay.pipeline.extractor import FragmentExtractor, has_text
from trans_relay.pipeline.reconstructor import DocumentReconstructor
from trans_relay.schema import ALT_TAGS_BUCKET, HEADINGS_BUCKET, DocumentSchema
from trans_relay.translator import BatchTranslator

logger = structlog.get_logger(__name__)

# 片段级写入的简单桶；结构化桶由重建器在组装完整条目后写入
_SIMPLE_BUCKETS = frozenset({HEADINGS_BUCKET, ALT_TAGS_BUCKET})


class DocumentTranslationPipeline:
    """
    单个文档、单个目标语言的 extract -> translate -> reconstruct。

    缓存由 `TranslationMemory` 按语言提供，同一进程内所有并发作业共享；
    写入均为先写者胜，因此不需要加锁。
    """

    def __init__(
        self,
        schema: DocumentSchema,
        memory: TranslationMemory,
        translator_for: Callable[[str], BatchTranslator],
    ):
        self.schema = schema
        self.memory = memory
        self.translator_for = translator_for

    async def translate_document(
        self, document: dict[str, Any], language: str
    ) -> dict[str, Any]:
        cache = self.memory.for_language(language)
        extraction = FragmentExtractor(self.schema, cache).extract(document)

        fresh: dict[str, str] = {}
        if extraction.fragments:
            texts = extraction.fragment_texts
            translated = await self.translator_for(language).translate(texts)
            if len(translated) != len(texts):
                raise ReconstructionError(
                    f"译文数量 {len(translated)} 与片段数量 {len(texts)} 不一致"
                )
            for fragment, value in zip(extraction.fragments, translated):
                fresh[fragment.fragment_id] = value
                hint = fragment.cache_hint
                if hint is not None and hint.bucket in _SIMPLE_BUCKETS and has_text(value):
                    cache.store(hint.bucket, hint.key, value)

        logger.info(
            "文档翻译完成",
            language=language,
            translated_fragments=len(fresh),
            cache_hits=len(extraction.cache_hits),
        )
        merged: dict[str, Any] = {**extraction.cache_hits, **fresh}
        reconstructor = DocumentReconstructor(self.schema, cache)
        return reconstructor.reconstruct(
            document,
            extraction.skeleton,
            merged,
            required=[fid for fid, value in fresh.items() if has_text(value)],
        )
