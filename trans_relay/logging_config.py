# trans_relay/logging_config.py
"""
本模块负责集中配置项目的日志系统。

- console 格式：使用 Rich 渲染的紧凑单行输出，键值对按键名排序附在行尾，
  适合在终端里观察 worker 的长时间运行。
- json 格式：每条日志一行 JSON，适合被日志采集系统消费。
"""

import logging
from collections.abc import MutableMapping
from typing import Any, Literal

import structlog
from rich.console import Console
from rich.text import Text
from structlog.typing import Processor

APP_LOGGER_NAME = "trans_relay"


class RichLineRenderer:
    """将一条 structlog 事件渲染为带颜色的单行文本。"""

    _LEVEL_STYLES = {
        "debug": ("blue", "DEBUG"),
        "info": ("green", "INFO"),
        "warning": ("yellow", "WARN"),
        "error": ("bold red", "ERROR"),
        "critical": ("bold magenta", "CRIT"),
    }

    def __init__(self, kv_truncate_at: int = 120, show_logger_name: bool = True):
        self._console = Console(soft_wrap=True)
        self._kv_truncate_at = kv_truncate_at
        self._show_logger_name = show_logger_name

    def __call__(
        self, logger: Any, name: str, event_dict: MutableMapping[str, Any]
    ) -> str:
        event = str(event_dict.pop("event", "")).strip()
        timestamp = event_dict.pop("timestamp", None)
        level = str(event_dict.pop("level", "info")).lower()
        logger_name = event_dict.pop("logger", None)
        exception = event_dict.pop("exception", None)
        style, label = self._LEVEL_STYLES.get(level, ("default", level.upper()))

        line = Text()
        if timestamp:
            line.append(f"{timestamp} ", style="dim")
        line.append(f"{label:<5} ", style=style)
        line.append(event)
        for key, value in sorted(event_dict.items()):
            rendered = value if isinstance(value, str) else repr(value)
            if len(rendered) > self._kv_truncate_at:
                rendered = rendered[: self._kv_truncate_at] + "…"
            line.append(f" {key}=", style="dim")
            line.append(rendered, style="bright_white")
        if self._show_logger_name and logger_name:
            line.append(f" ({logger_name})", style="cyan dim")

        with self._console.capture() as capture:
            self._console.print(line)
        output = capture.get().rstrip()
        if exception:
            output = f"{output}\n{exception}"
        return output


class _PassthroughFormatter(logging.Formatter):
    """直接传递 structlog 已经渲染好的字符串。"""

    def format(self, record: logging.LogRecord) -> str:
        return str(record.getMessage())


def setup_logging(
    log_level: str = "INFO",
    log_format: Literal["json", "console"] = "console",
) -> None:
    """
    配置全局的 structlog 日志系统。这是整个应用的日志配置入口。

    Args:
        log_level: 本应用日志记录器的最低级别。第三方库保持在 WARNING。
        log_format: 'console' 用于终端，'json' 用于生产环境的机器可读输出。

    """
    timestamper = (
        structlog.processors.TimeStamper(fmt="iso", utc=True)
        if log_format == "json"
        else structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", utc=False)
    )
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        timestamper,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if log_format == "console":
        processors.append(RichLineRenderer())
    else:
        processors.append(structlog.processors.JSONRenderer(ensure_ascii=False))

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(_PassthroughFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.WARNING)

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    app_logger.setLevel(log_level.upper())
    app_logger.propagate = True

    structlog.get_logger(f"{APP_LOGGER_NAME}.logging_config").debug(
        "日志系统已配置完成。", log_format=log_format, app_log_level=log_level.upper()
    )
