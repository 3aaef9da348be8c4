# trans_relay/pipeline/extractor.py
"""
本模块实现 FragmentExtractor：把一份结构化文档分解为有序的原子片段列表。

片段 ID 只由结构路径决定，与内容无关：
- 纯文本字段:        field::<name>
- 富文本字段:        html::<name>::html_text_<n> / html::<name>::html_alt_<n>
- 数组条目子字段:    array::<field>::<i>::<prop>[::html_text_<n>]
- 组件子字段:        component::<field>::<prop>[::html_text_<n>]
- 组件内嵌套数组:    component::<field>::<prop>::<sub>::<j>
"""

from __future__ import annotations

from typing import Any

import structlog

from trans_relay.cache import TranslationCache
from trans_relay.core.types import CacheHint, Fragment
from trans_relay.hashing import content_hash
from trans_relay.markup import iter_captions, iter_translatable_text, parse_markup
from trans_relay.pipeline.skeleton import (
    ExtractionResult,
    MarkupSkeleton,
    Skeleton,
    SlotState,
    StructuralSlot,
)
from trans_relay.schema import (
    ALT_TAGS_BUCKET,
    HEADINGS_BUCKET,
    DocumentSchema,
    FieldKind,
    StructuralField,
    SubField,
    TextField,
)

logger = structlog.get_logger(__name__)


def has_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


class _Run:
    """单次抽取的可变状态。"""

    def __init__(self) -> None:
        self.fragments: list[Fragment] = []
        self.cache_hits: dict[str, Any] = {}
        self.skeleton = Skeleton()
        # (桶, 哈希) -> 首个未命中条目的 id_base
        self.pending_items: dict[tuple[str, str], str] = {}

    def emit(self, fragment_id: str, text: str, hint: CacheHint | None = None) -> None:
        self.fragments.append(Fragment(fragment_id=fragment_id, text=text, cache_hint=hint))


class FragmentExtractor:
    """按 DocumentSchema 遍历文档，区分缓存命中与待翻译片段。"""

    def __init__(self, schema: DocumentSchema, cache: TranslationCache):
        self.schema = schema
        self.cache = cache

    def extract(self, document: dict[str, Any]) -> ExtractionResult:
        run = _Run()
        for text_spec in self.schema.text_fields:
            self._extract_text_field(text_spec, document.get(text_spec.name), run)
        for rich_spec in self.schema.rich_text_fields:
            value = document.get(rich_spec.name)
            if has_text(value):
                self._extract_markup(f"html::{rich_spec.name}", value, run)
        for spec in self.schema.structural_fields:
            value = document.get(spec.name)
            if spec.kind is FieldKind.ARRAY and isinstance(value, list):
                for index, item in enumerate(value):
                    if isinstance(item, dict):
                        self._extract_item(spec, f"array::{spec.name}::{index}", index, item, run)
            elif spec.kind is FieldKind.COMPONENT and isinstance(value, dict):
                self._extract_item(spec, f"component::{spec.name}", None, value, run)

        logger.debug(
            "片段抽取完成",
            fragments=len(run.fragments),
            cache_hits=len(run.cache_hits),
            language=self.cache.language,
        )
        return ExtractionResult(run.fragments, run.skeleton, run.cache_hits)

    def _extract_text_field(self, spec: TextField, value: Any, run: _Run) -> None:
        if not has_text(value):
            return
        fragment_id = f"field::{spec.name}"
        text = value.strip()
        if not spec.heading:
            run.emit(fragment_id, text)
            return
        cached = self.cache.lookup(HEADINGS_BUCKET, text)
        if has_text(cached):
            run.cache_hits[fragment_id] = cached
        else:
            run.emit(fragment_id, text, CacheHint(bucket=HEADINGS_BUCKET, key=text))

    def _extract_markup(
        self,
        prefix: str,
        markup: str,
        run: _Run,
        *,
        owner: CacheHint | None = None,
        collect: bool = True,
    ) -> None:
        root = parse_markup(markup)
        skeleton = MarkupSkeleton(source=markup, root=root, from_cache=not collect)
        for n, node in enumerate(iter_translatable_text(root)):
            node_id = f"html_text_{n}"
            skeleton.text_nodes[node_id] = node
            if collect:
                run.emit(f"{prefix}::{node_id}", node.text.strip(), owner)
        for n, image in enumerate(iter_captions(root)):
            node_id = f"html_alt_{n}"
            skeleton.captions[node_id] = image
            if not collect:
                continue
            alt = (image.get_attr("alt") or "").strip()
            fragment_id = f"{prefix}::{node_id}"
            cached = self.cache.lookup(ALT_TAGS_BUCKET, alt)
            if has_text(cached):
                run.cache_hits[fragment_id] = cached
            else:
                run.emit(fragment_id, alt, CacheHint(bucket=ALT_TAGS_BUCKET, key=alt))
        run.skeleton.markup[prefix] = skeleton

    def _extract_item(
        self,
        spec: StructuralField,
        id_base: str,
        index: int | None,
        item: dict[str, Any],
        run: _Run,
    ) -> None:
        item_hash = content_hash(item, spec.content_props)
        cached = self.cache.lookup(spec.bucket, item_hash)
        if isinstance(cached, dict):
            run.skeleton.slots.append(
                StructuralSlot(spec, id_base, index, item_hash, SlotState.HIT)
            )
            self._collect_cached_item(spec, id_base, item, cached, run)
            return

        first = run.pending_items.get((spec.bucket, item_hash))
        if first is not None:
            run.skeleton.slots.append(
                StructuralSlot(spec, id_base, index, item_hash, SlotState.ALIAS, alias_of=first)
            )
            return

        run.pending_items[(spec.bucket, item_hash)] = id_base
        run.skeleton.slots.append(
            StructuralSlot(spec, id_base, index, item_hash, SlotState.MISS)
        )
        for sub in spec.translatable:
            value = item.get(sub.name)
            fragment_id = f"{id_base}::{sub.name}"
            hint = CacheHint(bucket=spec.bucket, key=item_hash, sub_key=sub.name)
            if sub.kind is FieldKind.NESTED_ARRAY:
                if isinstance(value, list):
                    self._extract_nested(spec, sub, id_base, item, value, item_hash, run)
            elif not has_text(value):
                continue
            elif sub.kind is FieldKind.RICHTEXT:
                self._extract_markup(fragment_id, value, run, owner=hint)
            else:
                run.emit(fragment_id, value.strip(), hint)

    def _extract_nested(
        self,
        spec: StructuralField,
        sub: SubField,
        id_base: str,
        item: dict[str, Any],
        entries: list[Any],
        item_hash: str,
        run: _Run,
    ) -> None:
        prefix = f"{id_base}::{sub.name}"
        for j, entry in enumerate(entries):
            if not isinstance(entry, dict):
                continue
            for nested in sub.sub_fields:
                value = entry.get(nested.name)
                if not has_text(value):
                    continue
                fragment_id = f"{prefix}::{nested.name}::{j}"
                if nested.mirrors:
                    mirrored = item.get(nested.mirrors)
                    if has_text(mirrored) and mirrored.strip() == value.strip():
                        run.skeleton.reused[fragment_id] = f"{id_base}::{nested.mirrors}"
                        continue
                hint = CacheHint(
                    bucket=spec.bucket,
                    key=item_hash,
                    sub_key=f"{sub.name}.{j}.{nested.name}",
                )
                if nested.kind is FieldKind.RICHTEXT:
                    self._extract_markup(fragment_id, value, run, owner=hint)
                else:
                    run.emit(fragment_id, value.strip(), hint)

    def _collect_cached_item(
        self,
        spec: StructuralField,
        id_base: str,
        item: dict[str, Any],
        cached: dict[str, Any],
        run: _Run,
    ) -> None:
        for sub in spec.translatable:
            fragment_id = f"{id_base}::{sub.name}"
            if sub.kind is FieldKind.NESTED_ARRAY:
                cached_entries = cached.get(sub.name)
                if not isinstance(cached_entries, list):
                    continue
                for j, entry in enumerate(cached_entries):
                    if not isinstance(entry, dict):
                        continue
                    for nested in sub.sub_fields:
                        value = entry.get(nested.name)
                        if has_text(value):
                            run.cache_hits[f"{fragment_id}::{nested.name}::{j}"] = value
                continue
            value = cached.get(sub.name)
            if has_text(value):
                run.cache_hits[fragment_id] = value
            source = item.get(sub.name)
            if sub.kind is FieldKind.RICHTEXT and has_text(source):
                # 缓存里只有组装好的整段 HTML；仍解析原文以保持骨架完整
                self._extract_markup(fragment_id, source, run, collect=False)

