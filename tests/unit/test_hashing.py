# tests/unit/test_hashing.py
"""针对 `trans_relay.hashing` 的单元测试。"""

from trans_relay.hashing import content_hash, normalize_for_hash

PROPS = ("title", "description")


def test_hash_ignores_key_order_and_undeclared_fields() -> None:
    """键序与未声明的字段（如 id）不影响哈希。"""
    a = {"id": 1, "title": "Intro", "description": "<p>x</p>"}
    b = {"description": "<p>x</p>", "title": "Intro", "id": 99}
    assert content_hash(a, PROPS) == content_hash(b, PROPS)


def test_hash_treats_null_as_absent() -> None:
    """None 等价于字段缺失，空字符串则是不同的内容。"""
    base = content_hash({"title": "Intro"}, PROPS)
    assert content_hash({"title": "Intro", "description": None}, PROPS) == base
    assert content_hash({"title": "Intro", "description": ""}, PROPS) != base


def test_normalize_keeps_empty_strings() -> None:
    item = {"title": "", "description": None}
    assert normalize_for_hash(item, PROPS) == {"title": ""}


def test_hash_changes_with_content() -> None:
    """内容不同的条目得到不同的哈希。"""
    assert content_hash({"title": "Intro"}, PROPS) != content_hash({"title": "Intro "}, PROPS)


def test_normalize_strips_nested_nulls() -> None:
    """嵌套结构中的 None 值被递归移除。"""
    item = {"metaSocial": [{"title": "t", "image": None}, None]}
    assert normalize_for_hash(item, ["metaSocial"]) == {"metaSocial": [{"title": "t"}]}


def test_hash_is_sha256_hex() -> None:
    digest = content_hash({"title": "Intro"}, PROPS)
    assert len(digest) == 64
    int(digest, 16)
