# trans_relay/db/schema.py
"""
作业表的 ORM 定义。

列名与既有部署的 `translation_jobs` 表保持兼容：产物路径在 Python 侧称为
`artifact_path`，落库列名仍是 `translation_file_path`。
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func

from trans_relay.core.types import JobStatus

_STATUS_VALUES = ", ".join(f"'{status.value}'" for status in JobStatus)


class Base(DeclarativeBase):
    pass


class TranslationJobRecord(Base):
    """每个 (slug, content_type, language) 一行，从不删除（审计轨迹）。"""

    __tablename__ = "translation_jobs"
    __table_args__ = (
        UniqueConstraint(
            "slug", "content_type", "language", name="uq_translation_jobs_identity"
        ),
        CheckConstraint(f"status IN ({_STATUS_VALUES})", name="ck_translation_jobs_status"),
        Index("ix_translation_jobs_status_updated_at", "status", "updated_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(255), nullable=False)
    content_type: Mapped[str] = mapped_column(String(100), nullable=False)
    language: Mapped[str] = mapped_column(String(35), nullable=False)
    source_item_id: Mapped[int] = mapped_column(Integer, nullable=False)
    target_item_id: Mapped[int | None] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=JobStatus.PENDING_TRANSLATION.value,
        server_default=JobStatus.PENDING_TRANSLATION.value,
    )
    last_error: Mapped[str | None] = mapped_column(Text)
    artifact_path: Mapped[str | None] = mapped_column("translation_file_path", Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
