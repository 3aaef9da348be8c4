# trans_relay/engines/openai.py
"""提供一个使用 OpenAI Chat Completions API 的批量翻译引擎。"""

from typing import Any, cast

import httpx
import structlog
from openai import (
    APIConnectionError,
    APIStatusError,
    AsyncOpenAI,
    AuthenticationError,
    BadRequestError,
    InternalServerError,
    PermissionDeniedError,
    RateLimitError,
)
from openai.types.chat import (
    ChatCompletionMessageParam,
    ChatCompletionSystemMessageParam,
    ChatCompletionUserMessageParam,
)
from pydantic import Field, HttpUrl, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from trans_relay.core.exceptions import BackendError, ConfigurationError
from trans_relay.engines.base import BaseEngineConfig, BaseTranslationEngine
from trans_relay.engines.prompts import SYSTEM_PROMPT, build_json_array_prompt
from trans_relay.utils import language_display_name

logger = structlog.get_logger(__name__)


class OpenAIEngineConfig(BaseSettings, BaseEngineConfig):
    """OpenAI 引擎的配置模型。API 密钥可通过 TR_OPENAI_API_KEY 提供。"""

    model_config = SettingsConfigDict(env_prefix="TR_OPENAI_", extra="ignore")

    api_key: SecretStr | None = Field(default=None)
    endpoint: HttpUrl = Field(default=cast(HttpUrl, "https://api.openai.com/v1"))
    model: str = "gpt-4o-mini"
    temperature: float = 0.1
    timeout_connect: float = 5.0
    health_check: bool = True


class OpenAIEngine(BaseTranslationEngine[OpenAIEngineConfig]):
    """使用 OpenAI API 的翻译引擎实现。SDK 自带的重试被关闭，由 BatchTranslator 统一负责。"""

    CONFIG_MODEL = OpenAIEngineConfig
    VERSION = "1.0.0"

    def __init__(self, config: OpenAIEngineConfig):
        super().__init__(config)
        if not config.api_key:
            raise ConfigurationError(
                "OpenAI 引擎配置错误: 缺少 API 密钥 (TR_OPENAI_API_KEY)。"
            )
        timeout = httpx.Timeout(config.request_timeout, connect=config.timeout_connect)
        self.client = AsyncOpenAI(
            api_key=config.api_key.get_secret_value(),
            base_url=str(config.endpoint),
            timeout=timeout,
            max_retries=0,
        )

    @property
    def name(self) -> str:
        return f"openai:{self.config.model}"

    async def initialize(self) -> None:
        if not self.config.health_check:
            await super().initialize()
            return
        logger.info("OpenAI 引擎正在执行健康检查...", endpoint=str(self.config.endpoint))
        try:
            await self.client.models.list(timeout=10)
        except AuthenticationError as e:
            raise ConfigurationError(f"OpenAI API Key 无效或权限不足: {e}") from e
        except APIConnectionError as e:
            # 后端暂时不可达不应阻止 worker 启动，真正的调用会按重试策略处理
            logger.warning("OpenAI 健康检查无法连接端点，继续启动", error=str(e))
        await super().initialize()

    async def close(self) -> None:
        await self.client.close()
        logger.debug("OpenAI 引擎的 HTTP 客户端已关闭。", model=self.config.model)
        await super().close()

    async def _execute_batch(
        self, texts: list[str], target_lang: str, source_lang: str | None
    ) -> Any:
        prompt = build_json_array_prompt(
            texts,
            target_language=language_display_name(target_lang),
            source_language=language_display_name(source_lang or "en"),
        )
        messages: list[ChatCompletionMessageParam] = [
            ChatCompletionSystemMessageParam(role="system", content=SYSTEM_PROMPT),
            ChatCompletionUserMessageParam(role="user", content=prompt),
        ]
        try:
            response = await self.client.chat.completions.create(
                model=self.config.model,
                messages=messages,
                temperature=self.config.temperature,
            )
        except (RateLimitError, InternalServerError, APIConnectionError) as e:
            raise BackendError(f"{self.name}: {e}", retryable=True) from e
        except (PermissionDeniedError, BadRequestError) as e:
            # 内容策略拒绝或该模型无法处理此请求：换用备用模型
            raise BackendError(
                f"{self.name} 拒绝了请求: {e}",
                retryable=False,
                escalate_to_fallback=True,
            ) from e
        except AuthenticationError as e:
            raise BackendError(f"{self.name} 认证失败: {e}", retryable=False) from e
        except APIStatusError as e:
            raise BackendError(
                f"{self.name} 返回 HTTP {e.status_code}: {e}",
                retryable=e.status_code >= 500 or e.status_code == 429,
            ) from e

        if not response.choices:
            raise BackendError(f"{self.name} 返回了空的 'choices' 列表。", retryable=True)
        choice = response.choices[0]
        if choice.finish_reason == "content_filter" or choice.message.refusal:
            raise BackendError(
                f"{self.name} 的响应被内容安全策略拦截。",
                retryable=False,
                escalate_to_fallback=True,
            )
        return choice.message.content or ""
