# trans_relay/pipeline/skeleton.py
"""抽取与重建之间传递的骨架数据结构。"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from trans_relay.core.types import Fragment
from trans_relay.markup import ElementNode, TextNode
from trans_relay.schema import StructuralField


class SlotState(str, Enum):
    HIT = "hit"  # 整个条目由结构化缓存提供
    MISS = "miss"  # 条目需要翻译，重建时组装并写回缓存
    ALIAS = "alias"  # 与同一文档中较早的未命中条目内容相同，直接复用其组装结果


@dataclass
class MarkupSkeleton:
    """一个富文本值解析后的节点树，以及按稳定编号定位的可回填节点。"""

    source: str
    root: ElementNode
    text_nodes: dict[str, TextNode] = field(default_factory=dict)
    captions: dict[str, ElementNode] = field(default_factory=dict)
    from_cache: bool = False


@dataclass
class StructuralSlot:
    """数组条目或单例组件在骨架中的位置与缓存状态。"""

    spec: StructuralField
    id_base: str
    index: int | None
    content_hash: str
    state: SlotState
    alias_of: str | None = None

    def locate(self, document: dict[str, Any]) -> dict[str, Any] | None:
        container = document.get(self.spec.name)
        if self.index is None:
            return container if isinstance(container, dict) else None
        if isinstance(container, list) and self.index < len(container):
            item = container[self.index]
            return item if isinstance(item, dict) else None
        return None


@dataclass
class Skeleton:
    # 键为片段 ID 前缀，例如 "html::description"、"array::faqList::0::description"
    markup: dict[str, MarkupSkeleton] = field(default_factory=dict)
    slots: list[StructuralSlot] = field(default_factory=list)
    # 被复用的片段 ID -> 提供译文的片段 ID
    reused: dict[str, str] = field(default_factory=dict)


@dataclass
class ExtractionResult:
    fragments: list[Fragment]
    skeleton: Skeleton
    cache_hits: dict[str, Any]

    @property
    def fragment_texts(self) -> list[str]:
        return [fragment.text for fragment in self.fragments]
