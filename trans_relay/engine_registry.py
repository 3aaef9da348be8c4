# trans_relay/engine_registry.py
"""本模块负责动态发现 `trans_relay.engines` 包下的翻译引擎，并按配置创建实例。"""

import importlib
import pkgutil
from typing import Any

import structlog

from trans_relay.config import BackendConfig
from trans_relay.core.exceptions import ConfigurationError, EngineNotFoundError
from trans_relay.engines.base import BaseTranslationEngine

log = structlog.get_logger(__name__)
ENGINE_REGISTRY: dict[str, type[BaseTranslationEngine[Any]]] = {}

_NON_ENGINE_MODULES = {"base", "prompts"}


def discover_engines() -> None:
    """
    动态发现 `trans_relay.engines` 包下的所有引擎并注册。

    幂等：只在首次调用时执行发现操作。
    缺少可选依赖的引擎模块会被跳过并记录在摘要日志中。
    """
    if ENGINE_REGISTRY:
        return

    import trans_relay.engines

    skipped: list[dict[str, str]] = []
    for module_info in pkgutil.iter_modules(trans_relay.engines.__path__):
        module_name = module_info.name
        if module_name in _NON_ENGINE_MODULES or module_name.startswith("_"):
            continue
        try:
            module = importlib.import_module(f"trans_relay.engines.{module_name}")
        except ImportError as e:
            skipped.append({"engine_name": module_name, "missing_dependency": str(e.name)})
            continue
        for attr in vars(module).values():
            if (
                isinstance(attr, type)
                and issubclass(attr, BaseTranslationEngine)
                and attr is not BaseTranslationEngine
                and attr.__module__ == module.__name__
            ):
                ENGINE_REGISTRY[attr.__name__.replace("Engine", "").lower()] = attr

    log.info("引擎发现完成。", registered=sorted(ENGINE_REGISTRY), skipped=skipped or None)


def create_engine(backend: BackendConfig) -> BaseTranslationEngine[Any]:
    """根据后端配置创建一个未初始化的引擎实例。"""
    discover_engines()
    engine_name = backend.engine.value
    engine_class = ENGINE_REGISTRY.get(engine_name)
    if engine_class is None:
        raise EngineNotFoundError(
            f"引擎 '{engine_name}' 未注册或依赖缺失。可用: {sorted(ENGINE_REGISTRY)}"
        )
    try:
        config = engine_class.CONFIG_MODEL(**backend.options)
    except ValueError as e:
        raise ConfigurationError(f"引擎 '{engine_name}' 的配置无效: {e}") from e
    engine = engine_class(config)
    log.info("引擎实例已创建", engine_name=engine.name)
    return engine
