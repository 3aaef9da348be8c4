# trans_relay/translator.py
"""
本模块实现 BatchTranslator：带主/备后端升级、指数退避重试和严格响应校验的批量翻译执行器。

顺序契约是整个重建步骤的正确性基础：
- 输入按 `max_batch_size` 切分为连续的块，结果按块顺序拼接；
- 块内译文与原文按位置一一对应；
- 任意一个块失败都会让整个 `translate` 调用失败，绝不返回部分或错位的数组。
"""

from __future__ import annotations

import asyncio
import json
import re
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import structlog

from trans_relay.config import RetryPolicyConfig
from trans_relay.core.exceptions import (
    BackendError,
    ResponseValidationError,
    TranslationBackendExhausted,
)
from trans_relay.core.interfaces import TranslationBackend
from trans_relay.utils import chunked

logger = structlog.get_logger(__name__)

_JSON_ARRAY_PATTERN = re.compile(r"\[.*\]", re.DOTALL)

SleepFunc = Callable[[float], Awaitable[Any]]


def parse_backend_response(raw: Any, expected: int) -> list[str]:
    """
    将后端的原始响应解析为长度为 expected 的字符串列表。

    字符串响应中取第一个 '[' 到最后一个 ']' 之间的内容按 JSON 解析，
    以容忍模型在数组前后附加的说明或 Markdown 围栏。
    非字符串元素按空字符串处理，字符串元素去除首尾空白。

    Raises:
        ResponseValidationError: 无法解析为数组，或长度不符。
    """
    if isinstance(raw, str):
        match = _JSON_ARRAY_PATTERN.search(raw)
        if match is None:
            raise ResponseValidationError(f"响应中找不到 JSON 数组。开头: {raw[:100]!r}")
        try:
            data = json.loads(match.group(0))
        except ValueError as e:
            raise ResponseValidationError(f"响应中的 JSON 数组无法解析: {e}") from e
    elif isinstance(raw, (list, tuple)):
        data = list(raw)
    else:
        raise ResponseValidationError(f"不支持的响应类型: {type(raw).__name__}")

    if not isinstance(data, list):
        raise ResponseValidationError(f"响应不是数组，而是 {type(data).__name__}")
    if len(data) != expected:
        raise ResponseValidationError(
            f"片段数量不匹配: 期望 {expected}，实际 {len(data)}"
        )
    return [item.strip() if isinstance(item, str) else "" for item in data]


class BatchTranslator:
    """面向单一目标语言的批量翻译器。"""

    def __init__(
        self,
        primary: TranslationBackend,
        fallback: TranslationBackend | None,
        *,
        target_lang: str,
        source_lang: str | None = None,
        retry_policy: RetryPolicyConfig | None = None,
        max_batch_size: int = 50,
        sleep: SleepFunc = asyncio.sleep,
    ):
        if max_batch_size <= 0:
            raise ValueError("max_batch_size 必须为正整数")
        self.primary = primary
        self.fallback = fallback
        self.target_lang = target_lang
        self.source_lang = source_lang
        self.retry_policy = retry_policy or RetryPolicyConfig()
        self.max_batch_size = max_batch_size
        self._sleep = sleep

    async def translate(self, texts: Sequence[str]) -> list[str]:
        """翻译全部文本，返回等长、同序的译文列表。"""
        if not texts:
            return []
        results: list[str] = []
        chunks = list(chunked(texts, self.max_batch_size))
        for index, chunk in enumerate(chunks):
            logger.debug(
                "开始翻译批次",
                batch=f"{index + 1}/{len(chunks)}",
                size=len(chunk),
                target_lang=self.target_lang,
            )
            results.extend(await self.translate_chunk(chunk))
        return results

    async def translate_chunk(self, chunk: Sequence[str]) -> list[str]:
        """先用主后端，耗尽后切换备用后端。两者都失败时抛出 TranslationBackendExhausted。"""
        result, primary_error = await self._attempt_backend(
            self.primary, chunk, self.retry_policy.primary_base_delay
        )
        if result is not None:
            return result

        fallback_error: BaseException | None = None
        if self.fallback is not None:
            logger.warning(
                "主后端已耗尽，切换到备用后端",
                primary=self.primary.name,
                fallback=self.fallback.name,
                target_lang=self.target_lang,
                error=str(primary_error),
            )
            result, fallback_error = await self._attempt_backend(
                self.fallback, chunk, self.retry_policy.fallback_base_delay
            )
            if result is not None:
                return result

        raise TranslationBackendExhausted(primary_error, fallback_error)

    async def _attempt_backend(
        self,
        backend: TranslationBackend,
        chunk: Sequence[str],
        base_delay: float,
    ) -> tuple[list[str] | None, BaseException | None]:
        """
        在单个后端上按策略重试。不可重试或要求升级的错误只结束当前后端的尝试。

        Returns:
            (译文或 None, 最后一个错误)
        """
        max_attempts = self.retry_policy.max_attempts_per_model
        last_error: BaseException | None = None
        for attempt in range(max_attempts):
            try:
                raw = await backend.atranslate_batch(
                    list(chunk), self.target_lang, self.source_lang
                )
                return parse_backend_response(raw, len(chunk)), None
            except BackendError as e:
                last_error = e
                if e.escalate_to_fallback:
                    logger.warning(
                        "后端拒绝了请求，立即升级到备用后端",
                        backend=backend.name,
                        error=str(e),
                    )
                    return None, e
                if not e.retryable:
                    logger.error("后端返回不可重试错误", backend=backend.name, error=str(e))
                    return None, e
            except Exception as e:
                # 超时、连接中断等与其他可重试失败同等对待
                last_error = e

            logger.warning(
                "翻译尝试失败",
                backend=backend.name,
                attempt=f"{attempt + 1}/{max_attempts}",
                target_lang=self.target_lang,
                error=f"{type(last_error).__name__}: {last_error}",
            )
            if attempt + 1 < max_attempts:
                await self._sleep(base_delay * (2 ** (attempt + 1)))
        return None, last_error
