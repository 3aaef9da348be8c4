# trans_relay/pipeline/reconstructor.py
"""
本模块实现 DocumentReconstructor：把缓存命中与新译文合并回原始文档的形状中。

重建不会增删任何字段或数组元素；只替换已声明为可翻译的字符串值，
因此输出与输入的结构（字段名、数组长度、嵌套深度）始终一致。
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import structlog

from trans_relay.cache import TranslationCache
from trans_relay.core.exceptions import ReconstructionError
from trans_relay.markup import serialize
from trans_relay.pipeline.extractor import has_text
from trans_relay.pipeline.skeleton import MarkupSkeleton, Skeleton, SlotState, StructuralSlot
from trans_relay.schema import DocumentSchema, FieldKind, LocalizedUrlRule, StructuralField, SubField

logger = structlog.get_logger(__name__)


def localize_url(url: str, language: str) -> str:
    """
    在 URL 路径前插入语言段，scheme/host/query/fragment 保持不变。

    Raises:
        ValueError: URL 不是带 scheme 和 host 的绝对地址。
    """
    parts = urlsplit(url.strip())
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"不是绝对 URL: {url!r}")
    path = parts.path or "/"
    if not path.startswith("/"):
        path = f"/{path}"
    return urlunsplit((parts.scheme, parts.netloc, f"/{language}{path}", parts.query, parts.fragment))


class _Assembly:
    """单次重建的片段表与已消费片段的记录。"""

    def __init__(self, fragments: Mapping[str, Any]):
        self.fragments = fragments
        self.consumed: set[str] = set()

    def take(self, fragment_id: str) -> Any | None:
        value = self.fragments.get(fragment_id)
        if value is not None:
            self.consumed.add(fragment_id)
        return value


class DocumentReconstructor:
    def __init__(self, schema: DocumentSchema, cache: TranslationCache):
        self.schema = schema
        self.cache = cache

    @property
    def language(self) -> str:
        return self.cache.language

    def reconstruct(
        self,
        document: dict[str, Any],
        skeleton: Skeleton,
        fragments: Mapping[str, Any],
        *,
        required: Iterable[str] = (),
    ) -> dict[str, Any]:
        """
        重建译文文档。

        Args:
            document: 源文档（不会被修改）。
            skeleton: FragmentExtractor 产出的骨架。
            fragments: 片段 ID -> 译文，包含缓存命中与新译文。
            required: 必须全部被回填的片段 ID（通常是本次新翻译的片段）。

        Raises:
            ReconstructionError: 有必需片段没有对应的骨架位置。
        """
        assembly = _Assembly(fragments)
        output = copy.deepcopy(document)

        for text_spec in self.schema.text_fields:
            value = assembly.take(f"field::{text_spec.name}")
            if has_text(value):
                output[text_spec.name] = value

        for rich_spec in self.schema.rich_text_fields:
            prefix = f"html::{rich_spec.name}"
            markup = skeleton.markup.get(prefix)
            if markup is not None:
                assembled_markup = self._assemble_markup(prefix, markup, assembly)
                if assembled_markup is not None:
                    output[rich_spec.name] = assembled_markup

        assembled: dict[str, dict[str, Any]] = {}
        for slot in skeleton.slots:
            target = slot.locate(output)
            source = slot.locate(document)
            if target is None or source is None:
                raise ReconstructionError(f"骨架中的条目 '{slot.id_base}' 在文档中不存在")
            if slot.state is SlotState.ALIAS:
                entry = assembled.get(slot.alias_of or "")
                if entry is None:
                    raise ReconstructionError(
                        f"条目 '{slot.id_base}' 引用的 '{slot.alias_of}' 尚未组装"
                    )
            else:
                entry = self._assemble_entry(slot, source, skeleton, assembly)
                if slot.state is SlotState.MISS:
                    if self._is_complete(slot, source, entry, skeleton):
                        self.cache.store(slot.spec.bucket, slot.content_hash, entry)
                    else:
                        logger.debug("条目译文不完整，不写入缓存", item=slot.id_base)
            assembled[slot.id_base] = entry
            self._apply_entry(slot.spec, target, entry)

        for rule in self.schema.derived_fields:
            self._apply_localized_url(output, rule)

        missing = set(required) - assembly.consumed
        if missing:
            raise ReconstructionError(
                f"{len(missing)} 个译文片段没有对应的骨架位置: {sorted(missing)[:5]}"
            )
        return output

    def _assemble_markup(
        self, prefix: str, markup: MarkupSkeleton, assembly: _Assembly
    ) -> str | None:
        """回填译文并序列化。没有任何节点被替换时返回 None。"""
        changed = False
        for node_id, node in markup.text_nodes.items():
            value = assembly.take(f"{prefix}::{node_id}")
            if has_text(value):
                node.replace_core(value)
                changed = True
        for node_id, image in markup.captions.items():
            value = assembly.take(f"{prefix}::{node_id}")
            if has_text(value):
                image.set_attr("alt", value)
                changed = True
        return serialize(markup.root) if changed else None

    def _assemble_entry(
        self,
        slot: StructuralSlot,
        source: dict[str, Any],
        skeleton: Skeleton,
        assembly: _Assembly,
    ) -> dict[str, Any]:
        """组装一个条目的译文映射，其格式与结构化缓存桶中的值一致。"""
        entry: dict[str, Any] = {}
        for sub in slot.spec.translatable:
            fragment_id = f"{slot.id_base}::{sub.name}"
            if sub.kind is FieldKind.NESTED_ARRAY:
                entries = source.get(sub.name)
                if isinstance(entries, list):
                    entry[sub.name] = self._assemble_nested(
                        sub, fragment_id, entries, entry, skeleton, assembly
                    )
                continue
            value = assembly.take(fragment_id)
            if has_text(value):
                entry[sub.name] = value
            elif sub.kind is FieldKind.RICHTEXT:
                markup = skeleton.markup.get(fragment_id)
                if markup is not None and not markup.from_cache:
                    assembled_markup = self._assemble_markup(fragment_id, markup, assembly)
                    if assembled_markup is not None:
                        entry[sub.name] = assembled_markup
        return entry

    @staticmethod
    def _is_complete(
        slot: StructuralSlot,
        source: dict[str, Any],
        entry: dict[str, Any],
        skeleton: Skeleton,
    ) -> bool:
        """源条目中每个有可翻译内容的字段在 entry 中都有译文。"""
        for sub in slot.spec.translatable:
            value = source.get(sub.name)
            if sub.kind is not FieldKind.NESTED_ARRAY:
                if not has_text(value) or sub.name in entry:
                    continue
                markup = skeleton.markup.get(f"{slot.id_base}::{sub.name}")
                if markup is not None and not (markup.text_nodes or markup.captions):
                    continue
                return False
            if not isinstance(value, list):
                continue
            for source_entry, translated in zip(value, entry.get(sub.name) or []):
                if not isinstance(source_entry, dict):
                    continue
                for nested in sub.sub_fields:
                    if has_text(source_entry.get(nested.name)) and nested.name not in translated:
                        return False
        return True

    def _assemble_nested(
        self,
        sub: SubField,
        prefix: str,
        entries: list[Any],
        owner_entry: dict[str, Any],
        skeleton: Skeleton,
        assembly: _Assembly,
    ) -> list[dict[str, Any]]:
        result: list[dict[str, Any]] = []
        for j, source_entry in enumerate(entries):
            translated: dict[str, Any] = {}
            if isinstance(source_entry, dict):
                for nested in sub.sub_fields:
                    fragment_id = f"{prefix}::{nested.name}::{j}"
                    value = assembly.take(fragment_id)
                    if not has_text(value) and fragment_id in skeleton.reused:
                        value = owner_entry.get(nested.mirrors or "")
                    if not has_text(value) and nested.kind is FieldKind.RICHTEXT:
                        markup = skeleton.markup.get(fragment_id)
                        if markup is not None:
                            value = self._assemble_markup(fragment_id, markup, assembly)
                    if has_text(value):
                        translated[nested.name] = value
            result.append(translated)
        return result

    @staticmethod
    def _apply_entry(spec: StructuralField, target: dict[str, Any], entry: dict[str, Any]) -> None:
        for sub in spec.translatable:
            if sub.name not in entry:
                continue
            value = entry[sub.name]
            if sub.kind is not FieldKind.NESTED_ARRAY:
                if has_text(value):
                    target[sub.name] = value
                continue
            target_entries = target.get(sub.name)
            if not isinstance(target_entries, list) or not isinstance(value, list):
                continue
            allowed = {nested.name for nested in sub.sub_fields}
            for target_entry, translated in zip(target_entries, value):
                if not isinstance(target_entry, dict) or not isinstance(translated, dict):
                    continue
                for name, text in translated.items():
                    if name in allowed and has_text(text):
                        target_entry[name] = text

    def _apply_localized_url(self, output: dict[str, Any], rule: LocalizedUrlRule) -> None:
        container = output.get(rule.component) if rule.component else output
        if not isinstance(container, dict):
            return
        value = container.get(rule.field)
        if not has_text(value):
            return
        try:
            container[rule.field] = localize_url(value, self.language)
        except ValueError as e:
            logger.warning(
                "派生 URL 字段解析失败，保留原值",
                field=f"{rule.component}.{rule.field}" if rule.component else rule.field,
                language=self.language,
                error=str(e),
            )
