# trans_relay/schema.py
"""
本模块以声明式的方式描述可翻译文档的结构。

FragmentExtractor 与 DocumentReconstructor 都只解释这里的描述符，
不针对具体字段写分支。新增一种内容类型只需要注册一份新的 DocumentSchema。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from trans_relay.core.exceptions import ConfigurationError

HEADINGS_BUCKET = "headings"
ALT_TAGS_BUCKET = "altTags"


class FieldKind(str, Enum):
    TEXT = "text"
    RICHTEXT = "richtext"
    ARRAY = "array"
    COMPONENT = "component"
    NESTED_ARRAY = "nested_array"


@dataclass(frozen=True)
class TextField:
    """顶层纯文本字段。`heading=True` 的字段通过 `headings` 桶按原文去重。"""

    name: str
    heading: bool = False


@dataclass(frozen=True)
class RichTextField:
    """顶层富文本（HTML）字段。"""

    name: str


@dataclass(frozen=True)
class SubField:
    """
    结构化条目内部的可翻译子字段。

    - kind 为 TEXT / RICHTEXT 时是一个叶子字段；
    - kind 为 NESTED_ARRAY 时，`sub_fields` 描述嵌套数组每一项的可翻译字段；
    - `mirrors` 指向所属条目中的另一个纯文本字段：当两者原文（去除首尾空白后）
      完全一致时，直接复用那个字段的译文，不再提交重复片段。
    """

    name: str
    kind: FieldKind = FieldKind.TEXT
    sub_fields: tuple[SubField, ...] = ()
    mirrors: str | None = None

    def __post_init__(self) -> None:
        if self.kind not in (FieldKind.TEXT, FieldKind.RICHTEXT, FieldKind.NESTED_ARRAY):
            raise ConfigurationError(f"子字段 '{self.name}' 的类型 {self.kind} 不受支持")
        if self.kind is FieldKind.NESTED_ARRAY:
            if not self.sub_fields:
                raise ConfigurationError(f"嵌套数组 '{self.name}' 缺少子字段声明")
            if any(sub.kind is FieldKind.NESTED_ARRAY for sub in self.sub_fields):
                raise ConfigurationError(f"嵌套数组 '{self.name}' 只支持一层嵌套")


@dataclass(frozen=True)
class StructuralField:
    """
    可重复数组 (ARRAY) 或单例组件 (COMPONENT)。

    每个条目按 `content_props` 计算 ContentHash 作为 `bucket` 中的缓存键，
    `translatable` 描述需要翻译的子字段。
    """

    name: str
    kind: FieldKind
    bucket: str
    content_props: tuple[str, ...]
    translatable: tuple[SubField, ...]

    def __post_init__(self) -> None:
        if self.kind not in (FieldKind.ARRAY, FieldKind.COMPONENT):
            raise ConfigurationError(f"结构化字段 '{self.name}' 的类型 {self.kind} 无效")
        # 重建时按 translatable 的顺序组装，被复用的字段必须先于嵌套数组完成
        text_names: set[str] = set()
        for sub in self.translatable:
            for nested in sub.sub_fields:
                if nested.mirrors and nested.mirrors not in text_names:
                    raise ConfigurationError(
                        f"'{self.name}.{sub.name}.{nested.name}' 引用的 "
                        f"'{nested.mirrors}' 必须是声明在 '{sub.name}' 之前的纯文本字段"
                    )
            if sub.kind is FieldKind.TEXT:
                text_names.add(sub.name)


@dataclass(frozen=True)
class LocalizedUrlRule:
    """
    派生字段：值不经翻译，而是在重建后把目标语言插入 URL 路径的开头。
    `component` 为 None 时表示顶层字段。
    """

    field: str
    component: str | None = None


@dataclass(frozen=True)
class DocumentSchema:
    text_fields: tuple[TextField, ...] = ()
    rich_text_fields: tuple[RichTextField, ...] = ()
    structural_fields: tuple[StructuralField, ...] = ()
    derived_fields: tuple[LocalizedUrlRule, ...] = ()
    name: str = field(default="document")

    def __post_init__(self) -> None:
        names = (
            [f.name for f in self.text_fields]
            + [f.name for f in self.rich_text_fields]
            + [f.name for f in self.structural_fields]
        )
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise ConfigurationError(f"文档结构 '{self.name}' 中存在重复字段: {sorted(duplicates)}")


def text_fields(*names: str) -> tuple[TextField, ...]:
    """按名称批量声明纯文本字段；名称中包含 'heading' 的视为标题类字段。"""
    return tuple(TextField(name, heading="heading" in name.lower()) for name in names)


def _title_and_description_array(name: str, bucket: str) -> StructuralField:
    return StructuralField(
        name=name,
        kind=FieldKind.ARRAY,
        bucket=bucket,
        content_props=("title", "description"),
        translatable=(
            SubField("title", FieldKind.TEXT),
            SubField("description", FieldKind.RICHTEXT),
        ),
    )


REPORT_SCHEMA = DocumentSchema(
    name="report",
    text_fields=text_fields(
        "title",
        "shortDescription",
        "faqSectionHeading",
        "relatedReportsSectionHeading",
        "relatedReportsSectionSubheading",
        "clientsSectionHeading",
        "rightSectionHeading",
    ),
    rich_text_fields=(RichTextField("description"), RichTextField("researchMethodology")),
    structural_fields=(
        _title_and_description_array("tableOfContent", "tocItems"),
        _title_and_description_array("faqList", "faqItems"),
        _title_and_description_array("variants", "variantItems"),
        StructuralField(
            name="seo",
            kind=FieldKind.COMPONENT,
            bucket="seoComponents",
            content_props=("metaTitle", "metaDescription", "keywords", "metaSocial"),
            translatable=(
                SubField("metaTitle"),
                SubField("metaDescription"),
                SubField("keywords"),
                SubField(
                    "metaSocial",
                    FieldKind.NESTED_ARRAY,
                    sub_fields=(
                        SubField("title", mirrors="metaTitle"),
                        SubField("description"),
                    ),
                ),
            ),
        ),
    ),
    derived_fields=(LocalizedUrlRule(field="canonicalURL", component="seo"),),
)

_SCHEMAS: dict[str, DocumentSchema] = {"reports": REPORT_SCHEMA}


def register_schema(content_type: str, schema: DocumentSchema) -> None:
    _SCHEMAS[content_type] = schema


def get_schema(content_type: str) -> DocumentSchema:
    try:
        return _SCHEMAS[content_type]
    except KeyError as e:
        raise ConfigurationError(
            f"内容类型 '{content_type}' 没有注册文档结构。可用: {sorted(_SCHEMAS)}"
        ) from e
