# trans_relay/markup.py
"""
本模块提供富文本字段使用的显式节点树：parse -> visit -> serialize。

节点是带标签的变体 `TextNode | ElementNode | RawNode`，
译文回填只修改节点内容，再整体序列化，不做任何字符串拼接式替换。
解析基于标准库的 `html.parser.HTMLParser`，对不闭合、错位的标签保持宽容。
"""

from __future__ import annotations

import html
from collections.abc import Iterator
from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import Union

ROOT_TAG = "#root"

VOID_ELEMENTS = frozenset(
    {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "param",
        "source",
        "track",
        "wbr",
    }
)
# 这些块级元素的开始标签会隐式关闭尚未闭合的 <p>
CLOSES_PARAGRAPH = frozenset(
    {
        "address",
        "article",
        "aside",
        "blockquote",
        "dd",
        "details",
        "div",
        "dl",
        "dt",
        "fieldset",
        "figcaption",
        "figure",
        "footer",
        "form",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "header",
        "hr",
        "li",
        "main",
        "nav",
        "ol",
        "p",
        "pre",
        "section",
        "table",
        "ul",
    }
)
# 查找可隐式关闭的 <p> 时不越过这些元素
PARAGRAPH_SCOPE_BOUNDARIES = frozenset(
    {"button", "caption", "marquee", "object", "table", "td", "template", "th"}
)
# 这些元素内部的文本不是可翻译内容，且序列化时必须原样输出
RAW_TEXT_ELEMENTS = frozenset({"script", "style"})


@dataclass
class TextNode:
    text: str

    def replace_core(self, translated: str) -> None:
        """替换去除首尾空白后的正文，保留原有的首尾空白。"""
        stripped = self.text.strip()
        if not stripped:
            self.text = translated
            return
        start = self.text.index(stripped)
        self.text = self.text[:start] + translated + self.text[start + len(stripped) :]


@dataclass
class RawNode:
    """注释、声明、处理指令等，序列化时原样输出。"""

    markup: str


@dataclass
class ElementNode:
    tag: str
    attrs: list[tuple[str, str | None]] = field(default_factory=list)
    children: list[Node] = field(default_factory=list)
    self_closing: bool = False

    def get_attr(self, name: str) -> str | None:
        for key, value in self.attrs:
            if key == name:
                return value
        return None

    def set_attr(self, name: str, value: str) -> None:
        for index, (key, _) in enumerate(self.attrs):
            if key == name:
                self.attrs[index] = (key, value)
                return
        self.attrs.append((name, value))


Node = Union[TextNode, ElementNode, RawNode]


class _TreeBuilder(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.root = ElementNode(ROOT_TAG)
        self._stack: list[ElementNode] = [self.root]

    def _append(self, node: Node) -> None:
        self._stack[-1].children.append(node)

    def _close_open_paragraph(self) -> None:
        for depth in range(len(self._stack) - 1, 0, -1):
            current = self._stack[depth].tag
            if current == "p":
                del self._stack[depth:]
                return
            if current in PARAGRAPH_SCOPE_BOUNDARIES:
                return

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in CLOSES_PARAGRAPH:
            self._close_open_paragraph()
        element = ElementNode(tag, list(attrs))
        self._append(element)
        if tag not in VOID_ELEMENTS:
            self._stack.append(element)

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in CLOSES_PARAGRAPH:
            self._close_open_paragraph()
        self._append(ElementNode(tag, list(attrs), self_closing=True))

    def handle_endtag(self, tag: str) -> None:
        if tag in VOID_ELEMENTS:
            return
        for depth in range(len(self._stack) - 1, 0, -1):
            if self._stack[depth].tag == tag:
                del self._stack[depth:]
                return
        # 没有匹配的开始标签，忽略

    def handle_data(self, data: str) -> None:
        children = self._stack[-1].children
        if children and isinstance(children[-1], TextNode):
            children[-1].text += data
        else:
            children.append(TextNode(data))

    def handle_comment(self, data: str) -> None:
        self._append(RawNode(f"<!--{data}-->"))

    def handle_decl(self, decl: str) -> None:
        self._append(RawNode(f"<!{decl}>"))

    def handle_pi(self, data: str) -> None:
        self._append(RawNode(f"<?{data}>"))

    def unknown_decl(self, data: str) -> None:
        self._append(RawNode(f"<![{data}]>"))


def parse_markup(markup: str) -> ElementNode:
    """将 HTML 片段解析为以虚拟 `#root` 元素为根的节点树。"""
    builder = _TreeBuilder()
    builder.feed(markup)
    builder.close()
    return builder.root


def _walk_text(node: ElementNode, in_raw: bool) -> Iterator[tuple[TextNode, bool]]:
    for child in node.children:
        if isinstance(child, TextNode):
            yield child, in_raw
        elif isinstance(child, ElementNode):
            yield from _walk_text(child, in_raw or child.tag in RAW_TEXT_ELEMENTS)


def iter_translatable_text(root: ElementNode) -> Iterator[TextNode]:
    """按文档顺序产出所有非空、且不在 script/style 内的文本节点。"""
    for text_node, in_raw in _walk_text(root, False):
        if not in_raw and text_node.text.strip():
            yield text_node


def iter_captions(root: ElementNode) -> Iterator[ElementNode]:
    """按文档顺序产出所有带非空 alt 属性的 img 元素。"""
    for child in root.children:
        if isinstance(child, ElementNode):
            if child.tag == "img" and (child.get_attr("alt") or "").strip():
                yield child
            yield from iter_captions(child)


def _serialize_attrs(attrs: list[tuple[str, str | None]]) -> str:
    parts = []
    for key, value in attrs:
        if value is None:
            parts.append(f" {key}")
        else:
            parts.append(f' {key}="{html.escape(value, quote=True)}"')
    return "".join(parts)


def _serialize_node(node: Node, in_raw: bool, out: list[str]) -> None:
    if isinstance(node, TextNode):
        out.append(node.text if in_raw else html.escape(node.text, quote=False))
    elif isinstance(node, RawNode):
        out.append(node.markup)
    else:
        attrs = _serialize_attrs(node.attrs)
        if node.self_closing:
            out.append(f"<{node.tag}{attrs} />")
            return
        out.append(f"<{node.tag}{attrs}>")
        if node.tag in VOID_ELEMENTS:
            return
        child_raw = in_raw or node.tag in RAW_TEXT_ELEMENTS
        for child in node.children:
            _serialize_node(child, child_raw, out)
        out.append(f"</{node.tag}>")


def serialize(root: ElementNode) -> str:
    """将节点树序列化回 HTML。虚拟根元素本身不输出。"""
    out: list[str] = []
    if root.tag == ROOT_TAG:
        for child in root.children:
            _serialize_node(child, False, out)
    else:
        _serialize_node(root, False, out)
    return "".join(out)
