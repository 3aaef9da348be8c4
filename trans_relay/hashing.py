# trans_relay/hashing.py
"""
本模块实现 ContentHash：对结构化条目中声明的“内容定义字段”子集计算确定性哈希。

规范化规则：
1. 只取声明的字段，跳过值为 None 的字段（空字符串是有效内容，参与哈希）；
2. 递归移除值为 None 的键与数组元素；
3. 使用 RFC 8785 (JCS) 规范化 JSON 序列化，保证键序与数值表示稳定；
4. 对序列化结果取 SHA-256 十六进制摘要。
"""

import hashlib
from collections.abc import Iterable, Mapping
from typing import Any

import rfc8785


def _strip_nulls(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(k): _strip_nulls(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [_strip_nulls(v) for v in value if v is not None]
    return value


def normalize_for_hash(item: Mapping[str, Any], props: Iterable[str]) -> dict[str, Any]:
    """提取并规范化参与哈希的字段子集。"""
    subset: dict[str, Any] = {}
    for prop in props:
        value = item.get(prop)
        if value is None:
            continue
        subset[prop] = _strip_nulls(value)
    return subset


def content_hash(item: Mapping[str, Any], props: Iterable[str]) -> str:
    """计算条目的结构化缓存键。相同内容的条目（无论键序）得到相同的哈希。"""
    canonical = rfc8785.dumps(normalize_for_hash(item, props))
    return hashlib.sha256(canonical).hexdigest()
