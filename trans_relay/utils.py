# trans_relay/utils.py
"""本模块包含项目范围内的通用工具函数。"""

import re
from collections.abc import Iterator, Sequence
from typing import TypeVar

from langcodes import Language
from langcodes.tag_parser import LanguageTagError

_T = TypeVar("_T")

# 语言子标签应该由 2-3 个字母组成 (BCP 47)
LANGUAGE_SUBTAG_PATTERN = re.compile(r"^[a-zA-Z]{2,3}$")


def validate_lang_codes(lang_codes: Sequence[str]) -> None:
    """使用 `langcodes` 库校验语言代码列表中的每个代码是否符合 BCP 47 规范。"""
    for code in lang_codes:
        try:
            lang = Language.get(code)
            if not lang.language or not LANGUAGE_SUBTAG_PATTERN.match(lang.language):
                raise LanguageTagError(
                    f"Tag '{code}' lacks a valid 2-3 letter language subtag."
                )
        except LanguageTagError as e:
            raise ValueError(f"提供的语言代码 '{code}' 格式无效。原因: {e}") from e


def language_display_name(code: str) -> str:
    """返回语言代码的英文全称（例如 'zh-TW' -> 'Chinese (Taiwan)'），用于构造提示词。"""
    try:
        return str(Language.get(code).display_name("en"))
    except LanguageTagError:
        return code


def chunked(items: Sequence[_T], size: int) -> Iterator[Sequence[_T]]:
    """将序列切分为连续的、长度不超过 size 的块，保持原有顺序。"""
    if size <= 0:
        raise ValueError("size 必须为正整数")
    for start in range(0, len(items), size):
        yield items[start : start + size]
