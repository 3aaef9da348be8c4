# trans_relay/scheduler.py
"""
有界并发的作业调度器。

每轮扫描取一页就绪作业放入队列，由 `min(max_concurrency, n)` 个工作任务
依次取出处理：任何时刻在途作业不超过并发上限，一个作业结束后立即开始下一个。

单个作业的任何失败都在作业边界被转换为状态迁移与错误信息，
不会中止整轮扫描；只有作业库本身不可用 (`DatabaseError`) 会向上传播。
"""

from __future__ import annotations

import asyncio
import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import structlog
from structlog.contextvars import bound_contextvars

from trans_relay.context import ProcessingContext
from trans_relay.core.exceptions import (
    DatabaseError,
    DeliveryError,
    JobNotFoundError,
    PersistenceError,
    StateTransitionRace,
)
from trans_relay.core.types import (
    TRANSLATION_READY_STATUSES,
    UPLOAD_READY_STATUSES,
    JobStatus,
    TranslationArtifact,
    TranslationJob,
)

logger = structlog.get_logger(__name__)


class JobOutcome(str, enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class SweepSummary:
    """一轮扫描的统计结果。"""

    found: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    errors: dict[str, str] = field(default_factory=dict)

    def record(self, outcome: JobOutcome) -> None:
        if outcome is JobOutcome.SUCCEEDED:
            self.succeeded += 1
        elif outcome is JobOutcome.FAILED:
            self.failed += 1
        else:
            self.skipped += 1


def _describe(error: BaseException) -> str:
    return str(error) or type(error).__name__


class BaseJobScheduler(ABC):
    """翻译与投递两个调度器共享的有界工作池。"""

    kind: str = "base"

    def __init__(
        self,
        context: ProcessingContext,
        *,
        max_concurrency: int = 3,
        page_limit: int = 50,
    ):
        if max_concurrency <= 0:
            raise ValueError("max_concurrency 必须为正整数")
        self.context = context
        self.max_concurrency = max_concurrency
        self.page_limit = page_limit

    @abstractmethod
    async def fetch_ready(self, limit: int) -> list[TranslationJob]: ...

    @abstractmethod
    async def claim(self, job: TranslationJob) -> TranslationJob:
        """[子类实现] 把作业迁移到进行中状态。被抢先时抛出 StateTransitionRace。"""
        ...

    @abstractmethod
    async def execute(self, job: TranslationJob) -> None:
        """[子类实现] 执行作业并迁移到成功状态。"""
        ...

    @abstractmethod
    async def mark_failed(self, job: TranslationJob, error: BaseException) -> None: ...

    async def run_sweep(self) -> SweepSummary:
        jobs = await self.fetch_ready(self.page_limit)
        summary = SweepSummary(found=len(jobs))
        if not jobs:
            logger.debug("没有就绪的作业", scheduler=self.kind)
            return summary

        queue: asyncio.Queue[TranslationJob] = asyncio.Queue()
        for job in jobs:
            queue.put_nowait(job)

        async def worker() -> None:
            while True:
                try:
                    job = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                outcome = await self.process(job, summary)
                summary.record(outcome)

        workers = [
            asyncio.create_task(worker())
            for _ in range(min(self.max_concurrency, len(jobs)))
        ]
        try:
            await asyncio.gather(*workers)
        except BaseException:
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            raise

        logger.info(
            "调度轮次完成",
            scheduler=self.kind,
            found=summary.found,
            succeeded=summary.succeeded,
            failed=summary.failed,
            skipped=summary.skipped,
        )
        return summary

    async def process(
        self, job: TranslationJob, summary: SweepSummary | None = None
    ) -> JobOutcome:
        with bound_contextvars(job=str(job.key), scheduler=self.kind):
            try:
                claimed = await self.claim(job)
            except (StateTransitionRace, JobNotFoundError) as e:
                logger.info("作业已被其他工作者认领或已不存在，跳过", reason=str(e))
                return JobOutcome.SKIPPED

            try:
                await self.execute(claimed)
            except DatabaseError:
                raise
            except Exception as e:
                message = _describe(e)
                logger.error("作业失败", error_type=type(e).__name__, error=message)
                if summary is not None:
                    summary.errors[str(job.key)] = message
                try:
                    await self.mark_failed(claimed, e)
                except (StateTransitionRace, JobNotFoundError) as race:
                    logger.warning("无法记录作业失败状态", reason=str(race))
                return JobOutcome.FAILED

            logger.info("作业完成")
            return JobOutcome.SUCCEEDED


class TranslationScheduler(BaseJobScheduler):
    """驱动 pending_translation/failed_translation -> translating -> pending_upload。"""

    kind = "translation"

    async def fetch_ready(self, limit: int) -> list[TranslationJob]:
        return await self.context.store.fetch_ready_for_translation(limit)

    async def claim(self, job: TranslationJob) -> TranslationJob:
        return await self.context.store.transition(
            job.key, TRANSLATION_READY_STATUSES, JobStatus.TRANSLATING
        )

    async def execute(self, job: TranslationJob) -> None:
        ctx = self.context
        source = await ctx.source.fetch(job.slug, job.content_type)
        translated = await ctx.pipeline.translate_document(source.attributes, job.language)
        artifact = TranslationArtifact(
            source_item_id=source.item_id,
            item_slug=job.slug,
            content_type=job.content_type,
            target_language=job.language,
            translated_document=translated,
        )
        path = ctx.artifacts.save(artifact)
        await ctx.store.transition(
            job.key,
            JobStatus.TRANSLATING,
            JobStatus.PENDING_UPLOAD,
            artifact_path=path,
            error=None,
        )

    async def mark_failed(self, job: TranslationJob, error: BaseException) -> None:
        await self.context.store.transition(
            job.key,
            JobStatus.TRANSLATING,
            JobStatus.FAILED_TRANSLATION,
            error=_describe(error),
        )


class DeliveryScheduler(BaseJobScheduler):
    """驱动 pending_upload/failed_upload -> uploading -> completed。"""

    kind = "delivery"

    async def fetch_ready(self, limit: int) -> list[TranslationJob]:
        return await self.context.store.fetch_ready_for_upload(limit)

    async def claim(self, job: TranslationJob) -> TranslationJob:
        return await self.context.store.transition(
            job.key, UPLOAD_READY_STATUSES, JobStatus.UPLOADING
        )

    async def execute(self, job: TranslationJob) -> None:
        ctx = self.context
        if not job.artifact_path:
            raise PersistenceError(f"作业 {job.key} 缺少翻译产物路径")
        artifact = ctx.artifacts.load(job.artifact_path)
        result = await ctx.delivery.deliver(
            artifact.translated_document,
            artifact.source_item_id,
            job.language,
            job.content_type,
        )
        if not result.success:
            raise DeliveryError(result.message or "目标 CMS 投递失败")
        await ctx.store.transition(
            job.key,
            JobStatus.UPLOADING,
            JobStatus.COMPLETED,
            error=None,
            target_item_id=result.destination_id,
        )

    async def mark_failed(self, job: TranslationJob, error: BaseException) -> None:
        # 产物路径保持不变，重试时无需重新翻译
        await self.context.store.transition(
            job.key,
            JobStatus.UPLOADING,
            JobStatus.FAILED_UPLOAD,
            error=_describe(error),
        )
