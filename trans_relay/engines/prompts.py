# trans_relay/engines/prompts.py
"""构造让大模型以 JSON 数组返回批量译文的提示词。"""

import json

SYSTEM_PROMPT = (
    "You are an expert technical translator working for a market research "
    "publisher. You always answer with a single valid JSON array of strings "
    "and nothing else."
)

_TITLE_HINTS = ("Market", "Report", "Analysis")


def build_json_array_prompt(
    texts: list[str], target_language: str, source_language: str = "English"
) -> str:
    """
    构造批量翻译提示词。片段以编号 + JSON 字符串的形式列出，
    要求模型返回等长、同序的 JSON 数组。
    """
    count = len(texts)
    numbered = "\n".join(
        f"{index}. {json.dumps(text, ensure_ascii=False)}"
        for index, text in enumerate(texts, start=1)
    )
    title_guidance = ""
    if any(len(text) < 100 and any(h in text for h in _TITLE_HINTS) for text in texts):
        title_guidance = (
            "\n\nSPECIAL INSTRUCTION FOR TITLES AND HEADINGS: market report titles "
            "and product names contain precise technical terminology. Always use the "
            f"most specific technical term available in {target_language}."
        )

    return f"""Translate the following {count} JSON string fragments from {source_language} to {target_language}.

TRANSLATION PRINCIPLES:
1. Technical precision is the highest priority: choose the most specific technical term available in {target_language}, never a more generic one.
2. Write for subject matter experts who expect industry terminology.
3. Keep all numbers, product codes and special characters exactly as they appear.{title_guidance}

Return ONLY a single valid JSON array containing exactly {count} translated strings.
The order of the array MUST match the order of the input fragments.
Your entire response MUST start with '[' and end with ']'. Do not add notes or markdown.

Input fragments (JSON strings):
{numbered}

Valid output example for 2 fragments:
["Translated fragment 1", "Translated fragment 2"]

JSON output:"""
