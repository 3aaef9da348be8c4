# tests/unit/test_utils.py
"""针对 `trans_relay.utils` 模块的单元测试。"""

import pytest
from langcodes.tag_parser import LanguageTagError

from trans_relay.utils import chunked, language_display_name, validate_lang_codes


@pytest.mark.parametrize(
    "valid_codes",
    [
        ["en"],
        ["zh-CN", "zh-TW"],
        ["de", "fr", "es-419"],
        ["EN"],
        ["en_GB"],
    ],
)
def test_validate_lang_codes_accepts_valid_tags(valid_codes: list[str]) -> None:
    validate_lang_codes(valid_codes)


@pytest.mark.parametrize("invalid_code", ["german", "123", "zh-CN-"])
def test_validate_lang_codes_rejects_invalid_tags(invalid_code: str) -> None:
    """无效的语言代码会引发 ValueError，错误信息中包含中文说明，并保留底层原因。"""
    with pytest.raises(ValueError) as excinfo:
        validate_lang_codes([invalid_code])
    assert f"提供的语言代码 '{invalid_code}' 格式无效" in str(excinfo.value)
    assert "原因: " in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, LanguageTagError)


def test_language_display_name() -> None:
    assert language_display_name("fr") == "French"
    assert language_display_name("zh-TW") == "Chinese (Taiwan)"


def test_chunked_preserves_order() -> None:
    assert [list(c) for c in chunked([1, 2, 3, 4, 5], 2)] == [[1, 2], [3, 4], [5]]
    assert list(chunked([], 3)) == []
    with pytest.raises(ValueError):
        list(chunked([1], 0))
