# trans_relay/persistence/base.py
"""
作业库的 SQLAlchemy 共享实现。SQLite 与 PostgreSQL 子类只覆盖连接检查与
“插入但忽略冲突”的方言差异。

状态迁移在存储层用单条条件 UPDATE 完成（“如果当前状态是 X，则置为 Y”），
因此两个调度器实例不可能同时认领同一个作业。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from typing import Any

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.sql import Executable

from trans_relay.core.exceptions import (
    DatabaseError,
    IllegalTransitionError,
    JobNotFoundError,
    StateTransitionRace,
)
from trans_relay.core.interfaces import UNSET
from trans_relay.core.types import (
    ARTIFACT_STATUSES,
    TRANSLATION_READY_STATUSES,
    UPLOAD_READY_STATUSES,
    JobKey,
    JobStatus,
    SourceItemRef,
    TranslationJob,
)
from trans_relay.db.schema import Base, TranslationJobRecord
from trans_relay.utils import chunked

logger = structlog.get_logger(__name__)

Record = TranslationJobRecord


def _identity(key: JobKey) -> tuple[Any, ...]:
    return (
        Record.slug == key.slug,
        Record.content_type == key.content_type,
        Record.language == key.language,
    )


class BaseJobStore(ABC):
    """`JobStore` 协议的 SQLAlchemy 实现基类。"""

    INSERT_CHUNK_SIZE = 500

    def __init__(self, engine: AsyncEngine):
        self._engine = engine
        self._sessionmaker: async_sessionmaker[AsyncSession] = async_sessionmaker(
            engine, expire_on_commit=False
        )

    @abstractmethod
    async def connect(self) -> None:
        """[子类实现] 确认数据库可达，并完成方言相关的会话设置。"""
        ...

    @abstractmethod
    def _insert_ignoring_conflicts(self, rows: list[dict[str, Any]]) -> Executable:
        """[子类实现] 构造一条遇到唯一约束冲突时静默跳过的批量 INSERT。"""
        ...

    async def close(self) -> None:
        await self._engine.dispose()
        logger.info("作业库引擎已关闭。")

    async def create_schema(self) -> None:
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise DatabaseError(f"创建作业表失败: {e}") from e
        logger.info("作业表已就绪。")

    async def initialize_jobs(
        self,
        items: Iterable[SourceItemRef],
        languages: Sequence[str],
        content_type: str,
    ) -> int:
        rows: list[dict[str, Any]] = []
        skipped = 0
        for item in items:
            if not item.slug or item.item_id is None:
                skipped += 1
                continue
            for language in languages:
                rows.append(
                    {
                        "slug": item.slug,
                        "content_type": content_type,
                        "language": language,
                        "source_item_id": item.item_id,
                        "status": JobStatus.PENDING_TRANSLATION.value,
                    }
                )
        if skipped:
            logger.warning("跳过缺少 slug 或 id 的源条目", count=skipped)

        inserted = 0
        try:
            async with self._sessionmaker.begin() as session:
                for chunk in chunked(rows, self.INSERT_CHUNK_SIZE):
                    result = await session.execute(self._insert_ignoring_conflicts(list(chunk)))
                    inserted += max(result.rowcount or 0, 0)
        except SQLAlchemyError as e:
            raise DatabaseError(f"批量初始化作业失败: {e}") from e

        logger.info(
            "作业初始化完成",
            content_type=content_type,
            candidates=len(rows),
            inserted=inserted,
        )
        return inserted

    async def get_job(self, key: JobKey) -> TranslationJob | None:
        try:
            async with self._sessionmaker() as session:
                row = (
                    await session.execute(select(Record).where(*_identity(key)))
                ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseError(f"读取作业失败: {e}") from e
        return TranslationJob.model_validate(row) if row is not None else None

    async def _fetch_by_status(
        self, statuses: Iterable[JobStatus], limit: int, *, require_artifact: bool = False
    ) -> list[TranslationJob]:
        stmt = select(Record).where(Record.status.in_([s.value for s in statuses]))
        if require_artifact:
            stmt = stmt.where(Record.artifact_path.is_not(None))
        stmt = stmt.order_by(Record.updated_at.asc(), Record.id.asc()).limit(limit)
        try:
            async with self._sessionmaker() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            raise DatabaseError(f"查询待处理作业失败: {e}") from e
        return [TranslationJob.model_validate(row) for row in rows]

    async def fetch_ready_for_translation(self, limit: int) -> list[TranslationJob]:
        return await self._fetch_by_status(TRANSLATION_READY_STATUSES, limit)

    async def fetch_ready_for_upload(self, limit: int) -> list[TranslationJob]:
        return await self._fetch_by_status(
            UPLOAD_READY_STATUSES, limit, require_artifact=True
        )

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
        expected_set = {expected} if isinstance(expected, JobStatus) else set(expected)
        if not expected_set:
            raise ValueError("expected 不能为空")
        illegal = sorted(s.value for s in expected_set if not s.can_transition_to(target))
        if illegal:
            raise IllegalTransitionError(
                f"非法的状态迁移: {illegal} -> {target.value} ({key})"
            )

        values: dict[Any, Any] = {Record.status: target.value, Record.updated_at: func.now()}
        if error is not UNSET:
            values[Record.last_error] = error
        if target_item_id is not UNSET:
            values[Record.target_item_id] = target_item_id
        if target not in ARTIFACT_STATUSES:
            values[Record.artifact_path] = None
        elif artifact_path is not UNSET:
            values[Record.artifact_path] = artifact_path

        stmt = (
            update(Record)
            .where(*_identity(key), Record.status.in_([s.value for s in expected_set]))
            .values(values)
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._sessionmaker.begin() as session:
                result = await session.execute(stmt)
                if result.rowcount == 0:
                    current = (
                        await session.execute(select(Record.status).where(*_identity(key)))
                    ).scalar_one_or_none()
                    if current is None:
                        raise JobNotFoundError(f"作业不存在: {key}")
                    raise StateTransitionRace(
                        f"作业 {key} 的当前状态为 '{current}'，无法迁移到 '{target.value}'"
                    )
                row = (
                    await session.execute(select(Record).where(*_identity(key)))
                ).scalar_one()
                job = TranslationJob.model_validate(row)
        except SQLAlchemyError as e:
            raise DatabaseError(f"更新作业状态失败: {e}") from e

        logger.debug("作业状态已迁移", job=str(key), status=target.value)
        return job

    async def list_jobs(
        self, page: int = 1, limit: int = 50, status: JobStatus | None = None
    ) -> tuple[list[TranslationJob], int]:
        page = max(page, 1)
        stmt = select(Record)
        count_stmt = select(func.count()).select_from(Record)
        if status is not None:
            stmt = stmt.where(Record.status == status.value)
            count_stmt = count_stmt.where(Record.status == status.value)
        stmt = (
            stmt.order_by(Record.updated_at.desc(), Record.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        try:
            async with self._sessionmaker() as session:
                total = (await session.execute(count_stmt)).scalar_one()
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            raise DatabaseError(f"分页查询作业失败: {e}") from e
        return [TranslationJob.model_validate(row) for row in rows], int(total)

    async def status_counts(self) -> dict[str, int]:
        stmt = select(Record.status, func.count()).group_by(Record.status)
        try:
            async with self._sessionmaker() as session:
                rows = (await session.execute(stmt)).all()
        except SQLAlchemyError as e:
            raise DatabaseError(f"统计作业状态失败: {e}") from e

        counts = {status.value: 0 for status in JobStatus}
        for status, count in rows:
            counts[status] = int(count)
        counts["pending"] = (
            counts[JobStatus.PENDING_TRANSLATION.value] + counts[JobStatus.PENDING_UPLOAD.value]
        )
        counts["failed"] = (
            counts[JobStatus.FAILED_TRANSLATION.value] + counts[JobStatus.FAILED_UPLOAD.value]
        )
        counts["total"] = sum(counts[status.value] for status in JobStatus)
        return counts
