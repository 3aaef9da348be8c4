# trans_relay/core/exceptions.py
"""
本模块定义了 Trans-Relay 项目中所有自定义的、语义化的异常类型。

异常分为两类：
- 作业级错误（抓取、翻译、重建、产物写入、投递），它们在作业边界被捕获，
  并转换为一次状态迁移加上一条持久化的错误信息；
- 进程级错误（配置、作业库连接），它们会一直向上传播，终止当前进程。
"""

from __future__ import annotations


class TransRelayError(Exception):
    """
    所有 Trans-Relay 自定义异常的通用基类。
    捕获此异常可以处理所有源自本项目的预期错误。
    """

    pass


class ConfigurationError(TransRelayError):
    """表示在加载、解析或验证配置时发生的错误。"""

    pass


class EngineNotFoundError(TransRelayError, KeyError):
    """
    表示尝试访问一个未注册或不可用的翻译引擎时引发的错误。
    继承自 KeyError 是为了保持与字典查找行为的一致性。
    """

    pass


class DatabaseError(TransRelayError):
    """
    表示作业库本身不可用（连接、查询失败）。
    这是唯一会被上升为进程级失败的错误，因为没有作业库系统无法推进。
    """

    pass


class FetchError(TransRelayError):
    """源文档不可用。作业会立即进入 `failed_translation`。"""

    pass


class SourceNotFoundError(FetchError):
    """源 CMS 中不存在给定 slug 的条目。"""

    pass


class BackendError(TransRelayError):
    """
    翻译后端适配器抛出的类型化错误。

    由适配器而不是下游的字符串匹配来决定错误的性质：
    - `retryable`: 是否值得在同一后端上重试；
    - `escalate_to_fallback`: 是否应放弃当前后端的剩余尝试，立即切换到备用后端
      （例如内容安全拦截）。
    两者都为 False 时，表示后续任何尝试都没有意义。
    """

    def __init__(
        self,
        message: str,
        *,
        retryable: bool = True,
        escalate_to_fallback: bool = False,
    ) -> None:
        super().__init__(message)
        self.retryable = retryable
        self.escalate_to_fallback = escalate_to_fallback


class ResponseValidationError(BackendError):
    """后端响应无法解析为数组，或数组长度与请求不符。总是可重试。"""

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=True, escalate_to_fallback=False)


class TranslationBackendExhausted(TransRelayError):
    """主后端与备用后端均已耗尽重试次数。携带两者各自的最后一个错误。"""

    def __init__(
        self,
        primary_error: BaseException | None,
        fallback_error: BaseException | None,
    ) -> None:
        self.primary_error = primary_error
        self.fallback_error = fallback_error
        super().__init__(
            "主、备翻译后端均已失败。"
            f" 主后端最后错误: {primary_error or '无'};"
            f" 备用后端最后错误: {fallback_error or '无'}"
        )


class ReconstructionError(TransRelayError):
    """片段与骨架不匹配。理论上不应发生，出现即视为程序缺陷信号。"""

    pass


class PersistenceError(TransRelayError):
    """翻译产物写入或读取失败。"""

    pass


class DeliveryError(TransRelayError):
    """向目标 CMS 投递失败。作业进入 `failed_upload`，已生成的产物保留。"""

    pass


class JobStateError(TransRelayError):
    """作业状态机相关错误的基类。"""

    pass


class IllegalTransitionError(JobStateError, ValueError):
    """请求的状态迁移不在合法迁移表中（例如 `completed -> translating`）。"""

    pass


class StateTransitionRace(JobStateError):
    """
    更新时作业的前置状态已不成立（另一个 worker 抢先认领）。
    这是良性的并发认领，调用方应静默跳过。
    """

    pass


class JobNotFoundError(JobStateError, LookupError):
    """作业行不存在（例如已被人工删除）。"""

    pass
