# trans_relay/context.py
"""定义调度流程中使用的高层上下文对象。"""

from __future__ import annotations

from dataclasses import dataclass

from trans_relay.core.interfaces import (
    ArtifactStore,
    DeliveryClient,
    JobStore,
    SourceFetcher,
)
from trans_relay.pipeline import DocumentTranslationPipeline


@dataclass(frozen=True)
class ProcessingContext:
    """一个“工具箱”对象，封装了调度器处理作业时所需的所有依赖项。"""

    store: JobStore
    source: SourceFetcher
    pipeline: DocumentTranslationPipeline
    artifacts: ArtifactStore
    delivery: DeliveryClient
