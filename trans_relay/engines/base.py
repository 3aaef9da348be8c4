# trans_relay/engines/base.py
"""
本模块定义了所有翻译后端适配器必须继承的抽象基类（ABC）。

适配器只负责一件事：把一批文本发给后端并返回原始响应，
同时把后端的失败翻译为类型化的 BackendError。响应的解析与长度校验
由 BatchTranslator 统一完成。
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

from trans_relay.core.exceptions import BackendError

_ConfigType = TypeVar("_ConfigType", bound="BaseEngineConfig")


class BaseEngineConfig(BaseModel):
    """所有引擎配置模型的基类，提供通用的并发与超时控制选项。"""

    max_concurrency: int | None = Field(
        default=None, description="同一引擎实例的最大并发请求数", gt=0
    )
    request_timeout: float = Field(
        default=120.0, description="单次批量请求的超时（秒）", gt=0
    )


class BaseTranslationEngine(ABC, Generic[_ConfigType]):
    """翻译后端的纯异步抽象基类。"""

    CONFIG_MODEL: type[_ConfigType]
    VERSION: str = "1.0.0"

    def __init__(self, config: _ConfigType):
        self.config = config
        self.initialized: bool = False
        self._concurrency_semaphore: asyncio.Semaphore | None = (
            asyncio.Semaphore(config.max_concurrency) if config.max_concurrency else None
        )

    @property
    def name(self) -> str:
        """从类名自动推断引擎的名称。"""
        return self.__class__.__name__.replace("Engine", "").lower()

    async def initialize(self) -> None:
        """引擎的异步初始化钩子，用于设置连接池等。"""
        self.initialized = True

    async def close(self) -> None:
        """引擎的异步关闭钩子，用于安全释放资源。"""
        self.initialized = False

    @abstractmethod
    async def _execute_batch(
        self, texts: list[str], target_lang: str, source_lang: str | None
    ) -> Any:
        """[子类实现] 真正执行一次批量翻译调用，返回原始响应。"""
        ...

    async def _execute_with_timeout(
        self, texts: list[str], target_lang: str, source_lang: str | None
    ) -> Any:
        try:
            return await asyncio.wait_for(
                self._execute_batch(texts, target_lang, source_lang),
                timeout=self.config.request_timeout,
            )
        except asyncio.TimeoutError as e:
            raise BackendError(
                f"{self.name} 请求超时 ({self.config.request_timeout}s)", retryable=True
            ) from e

    async def atranslate_batch(
        self, texts: list[str], target_lang: str, source_lang: str | None = None
    ) -> Any:
        """[模板方法] 执行一次批量翻译，应用并发限制与请求超时。"""
        if self._concurrency_semaphore:
            async with self._concurrency_semaphore:
                return await self._execute_with_timeout(texts, target_lang, source_lang)
        return await self._execute_with_timeout(texts, target_lang, source_lang)
