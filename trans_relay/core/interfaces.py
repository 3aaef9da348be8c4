# trans_relay/core/interfaces.py
"""
本模块使用 typing.Protocol 定义了核心组件与外部协作方之间的接口契约。

核心只依赖这些协议；具体实现（SQLAlchemy 作业库、Strapi 客户端、
文件产物存储、翻译引擎）在运行时注入。
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any, Protocol

from trans_relay.core.types import (
    DeliveryResult,
    JobKey,
    JobStatus,
    SourceDocument,
    SourceItemRef,
    TranslationArtifact,
    TranslationJob,
)

# 用于区分“不修改该列”与“将该列置为 NULL”
UNSET: Any = object()


class SourceFetcher(Protocol):
    """源文档抓取方。"""

    async def list_items(self, content_type: str, limit: int) -> list[SourceItemRef]:
        """列出源语言下可翻译的条目引用。"""
        ...

    async def fetch(self, slug: str, content_type: str) -> SourceDocument:
        """抓取完整文档。不存在时抛出 SourceNotFoundError，其余失败抛出 FetchError。"""
        ...


class TranslationBackend(Protocol):
    """翻译后端。返回原始响应，由 BatchTranslator 负责解析与校验。"""

    @property
    def name(self) -> str: ...

    async def atranslate_batch(
        self, texts: list[str], target_lang: str, source_lang: str | None = None
    ) -> Any:
        """
        翻译一批文本。

        必须通过 BackendError 的类型化字段区分“内容安全拦截”
        (escalate_to_fallback=True) 与瞬时错误 (retryable=True)。
        """
        ...


class ArtifactStore(Protocol):
    """翻译产物的持久化。"""

    def save(self, artifact: TranslationArtifact) -> str: ...

    def load(self, path: str) -> TranslationArtifact: ...


class DeliveryClient(Protocol):
    """目标 CMS 的投递端点。"""

    async def deliver(
        self,
        document: dict[str, Any],
        source_item_id: int,
        target_language: str,
        content_type: str,
    ) -> DeliveryResult: ...


class JobStore(Protocol):
    """作业状态的唯一可信来源。"""

    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    async def create_schema(self) -> None: ...

    async def initialize_jobs(
        self,
        items: Iterable[SourceItemRef],
        languages: Sequence[str],
        content_type: str,
    ) -> int:
        """幂等地批量插入作业，返回实际新增的行数。已有行保持不变。"""
        ...

    async def get_job(self, key: JobKey) -> TranslationJob | None: ...

    async def fetch_ready_for_translation(self, limit: int) -> list[TranslationJob]: ...

    async def fetch_ready_for_upload(self, limit: int) -> list[TranslationJob]: ...

    async def transition(
        self,
        key: JobKey,
        expected: JobStatus | Iterable[JobStatus],
        target: JobStatus,
        *,
        error: str | None = UNSET,
        artifact_path: str | None = UNSET,
        target_item_id: int | None = UNSET,
    ) -> TranslationJob:
        """
        原子的条件更新：“如果当前状态属于 expected，则置为 target”。

        Raises:
            IllegalTransitionError: expected 中存在到 target 的非法边。
            StateTransitionRace: 行存在但前置状态已不成立。
            JobNotFoundError: 行不存在。
        """
        ...

    async def list_jobs(
        self, page: int = 1, limit: int = 50, status: JobStatus | None = None
    ) -> tuple[list[TranslationJob], int]: ...

    async def status_counts(self) -> dict[str, int]: ...
