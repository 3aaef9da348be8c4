# trans_relay/core/__init__.py
"""
本核心包定义了 Trans-Relay 系统中最基础、最稳定的构建块。

这里包含了系统的核心数据类型、接口协议和自定义异常，它们共同构成了
整个应用的“契约”。本包不依赖于项目中的任何其他模块。
"""

from .exceptions import (
    BackendError,
    ConfigurationError,
    DatabaseError,
    DeliveryError,
    EngineNotFoundError,
    FetchError,
    IllegalTransitionError,
    JobNotFoundError,
    JobStateError,
    PersistenceError,
    ReconstructionError,
    ResponseValidationError,
    SourceNotFoundError,
    StateTransitionRace,
    TranslationBackendExhausted,
    TransRelayError,
)
from .interfaces import (
    UNSET,
    ArtifactStore,
    DeliveryClient,
    JobStore,
    SourceFetcher,
    TranslationBackend,
)
from .types import (
    LEGAL_TRANSITIONS,
    CacheHint,
    DeliveryResult,
    Fragment,
    JobKey,
    JobStatus,
    SourceDocument,
    SourceItemRef,
    TranslationArtifact,
    TranslationJob,
)

__all__ = [
    # from exceptions.py
    "TransRelayError",
    "ConfigurationError",
    "EngineNotFoundError",
    "DatabaseError",
    "FetchError",
    "SourceNotFoundError",
    "BackendError",
    "ResponseValidationError",
    "TranslationBackendExhausted",
    "ReconstructionError",
    "PersistenceError",
    "DeliveryError",
    "JobStateError",
    "IllegalTransitionError",
    "StateTransitionRace",
    "JobNotFoundError",
    # from interfaces.py
    "UNSET",
    "ArtifactStore",
    "DeliveryClient",
    "JobStore",
    "SourceFetcher",
    "TranslationBackend",
    # from types.py
    "LEGAL_TRANSITIONS",
    "CacheHint",
    "DeliveryResult",
    "Fragment",
    "JobKey",
    "JobStatus",
    "SourceDocument",
    "SourceItemRef",
    "TranslationArtifact",
    "TranslationJob",
]
