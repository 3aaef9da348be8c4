# trans_relay/__init__.py
"""Trans-Relay: 把 CMS 中的结构化内容翻译成多种语言并回写目标 CMS 的作业流水线。

该模块提供了主协调器、配置与作业状态机等核心入口。
"""

__version__ = "1.0.0"

from .config import EngineName, TransRelayConfig
from .coordinator import Coordinator
from .core.types import JobKey, JobStatus, TranslationJob
from .persistence import create_job_store

__all__ = [
    "__version__",
    "Coordinator",
    "TransRelayConfig",
    "EngineName",
    "JobKey",
    "JobStatus",
    "TranslationJob",
    "create_job_store",
]
