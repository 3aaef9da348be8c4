# trans_relay/core/types.py
"""
本模块定义了 Trans-Relay 系统的核心数据类型。

包括作业状态机 (`JobStatus` 及其合法迁移表)、作业模型、片段模型以及
与外部协作方交换的产物/投递结果模型。
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field


class JobStatus(str, Enum):
    """作业在其生命周期中的状态。按流水线阶段排序，而非时间。"""

    PENDING_TRANSLATION = "pending_translation"
    TRANSLATING = "translating"
    FAILED_TRANSLATION = "failed_translation"
    PENDING_UPLOAD = "pending_upload"
    UPLOADING = "uploading"
    FAILED_UPLOAD = "failed_upload"
    COMPLETED = "completed"

    def can_transition_to(self, target: JobStatus) -> bool:
        """判断 `self -> target` 是否是状态机中的一条合法边。"""
        return target in LEGAL_TRANSITIONS[self]

    @property
    def is_terminal(self) -> bool:
        return not LEGAL_TRANSITIONS[self]


LEGAL_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING_TRANSLATION: frozenset({JobStatus.TRANSLATING}),
    JobStatus.TRANSLATING: frozenset(
        {JobStatus.PENDING_UPLOAD, JobStatus.FAILED_TRANSLATION}
    ),
    JobStatus.FAILED_TRANSLATION: frozenset({JobStatus.TRANSLATING}),
    JobStatus.PENDING_UPLOAD: frozenset({JobStatus.UPLOADING}),
    JobStatus.UPLOADING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED_UPLOAD}),
    JobStatus.FAILED_UPLOAD: frozenset({JobStatus.UPLOADING}),
    JobStatus.COMPLETED: frozenset(),
}

# 可被翻译调度器认领的状态
TRANSLATION_READY_STATUSES = (
    JobStatus.PENDING_TRANSLATION,
    JobStatus.FAILED_TRANSLATION,
)
# 可被投递调度器认领的状态
UPLOAD_READY_STATUSES = (JobStatus.PENDING_UPLOAD, JobStatus.FAILED_UPLOAD)
# 允许持有产物路径的状态
ARTIFACT_STATUSES = frozenset(
    {
        JobStatus.PENDING_UPLOAD,
        JobStatus.UPLOADING,
        JobStatus.FAILED_UPLOAD,
        JobStatus.COMPLETED,
    }
)


class JobKey(NamedTuple):
    """作业的唯一身份：(条目 slug, 内容类型, 语言)。"""

    slug: str
    content_type: str
    language: str

    def __str__(self) -> str:
        return f"{self.content_type}/{self.slug}@{self.language}"


class TranslationJob(BaseModel):
    """作业库中的一行。"""

    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    slug: str
    content_type: str
    language: str
    source_item_id: int
    target_item_id: int | None = None
    status: JobStatus = JobStatus.PENDING_TRANSLATION
    last_error: str | None = None
    artifact_path: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def key(self) -> JobKey:
        return JobKey(self.slug, self.content_type, self.language)


class SourceItemRef(BaseModel):
    """源 CMS 中一个条目的最小引用，用于批量初始化作业。"""

    slug: str | None
    item_id: int | None


class SourceDocument(BaseModel):
    """从源 CMS 抓取到的完整文档。`attributes` 即待翻译的结构化内容。"""

    item_id: int
    slug: str
    content_type: str
    attributes: dict[str, Any]


class CacheHint(BaseModel):
    """片段翻译完成后应写入的缓存位置。"""

    model_config = ConfigDict(frozen=True)

    bucket: str
    key: str
    sub_key: str | None = None


class Fragment(BaseModel):
    """一个原子可翻译单元。只在单次文档流水线运行期间存在，从不持久化。"""

    model_config = ConfigDict(frozen=True)

    fragment_id: str
    text: str
    cache_hint: CacheHint | None = None


class TranslationArtifact(BaseModel):
    """
    每个 (条目, 语言) 一份的翻译产物。
    序列化时使用 camelCase 别名，与落盘的 JSON 文件格式保持一致。
    """

    model_config = ConfigDict(populate_by_name=True)

    source_item_id: int = Field(alias="sourceItemId")
    item_slug: str = Field(alias="itemSlug")
    content_type: str = Field(alias="contentType")
    target_language: str = Field(alias="targetLanguage")
    translated_document: dict[str, Any] = Field(alias="translatedDocument")


class DeliveryResult(BaseModel):
    """投递端点的返回结果。"""

    success: bool
    destination_id: int | None = None
    message: str | None = None
