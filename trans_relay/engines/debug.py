# trans_relay/engines/debug.py
"""提供一个用于开发和测试的调试翻译引擎。"""

import json
from typing import Any, Literal

from pydantic import Field

from trans_relay.core.exceptions import BackendError
from trans_relay.engines.base import BaseEngineConfig, BaseTranslationEngine


class DebugEngineConfig(BaseEngineConfig):
    """Debug 引擎的配置模型。"""

    mode: Literal["SUCCESS", "FAIL", "SAFETY_BLOCK", "SHORT"] = Field(
        default="SUCCESS",
        description="SUCCESS: 正常返回; FAIL: 抛出错误; "
        "SAFETY_BLOCK: 模拟内容安全拦截; SHORT: 返回少一项的数组",
    )
    fail_on_text: str | None = Field(default=None)
    fail_is_retryable: bool = Field(default=True)
    translation_map: dict[str, str] = Field(default_factory=dict)
    template: str = Field(default="{text}_{lang}", description="未命中映射时的译文格式")


class DebugEngine(BaseTranslationEngine[DebugEngineConfig]):
    """一个简单的调试翻译引擎实现。返回 JSON 数组字符串，与真实模型的输出形态一致。"""

    CONFIG_MODEL = DebugEngineConfig
    VERSION = "1.0.0"

    def __init__(self, config: DebugEngineConfig):
        super().__init__(config)
        self.call_count = 0

    async def _execute_batch(
        self, texts: list[str], target_lang: str, source_lang: str | None
    ) -> Any:
        self.call_count += 1
        if self.config.mode == "FAIL":
            raise BackendError(
                "DebugEngine is in FAIL mode.", retryable=self.config.fail_is_retryable
            )
        if self.config.mode == "SAFETY_BLOCK":
            raise BackendError(
                "DebugEngine 模拟内容安全拦截。",
                retryable=False,
                escalate_to_fallback=True,
            )
        if self.config.fail_on_text and self.config.fail_on_text in texts:
            raise BackendError(
                f"模拟失败：检测到配置的文本 '{self.config.fail_on_text}'",
                retryable=self.config.fail_is_retryable,
            )

        translated = [
            self.config.translation_map.get(
                text, self.config.template.format(text=text, lang=target_lang)
            )
            for text in texts
        ]
        if self.config.mode == "SHORT":
            translated = translated[:-1]
        return json.dumps(translated, ensure_ascii=False)
