# trans_relay/config.py
"""
本模块定义了 Trans-Relay 的全部配置项。

所有配置都可以通过 `TR_` 前缀的环境变量或 `.env` 文件覆盖，
嵌套字段使用 `__` 分隔，例如 `TR_SCHEDULER__MAX_CONCURRENCY=5`。
"""

import enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from trans_relay.utils import validate_lang_codes

DEFAULT_TARGET_LANGS = [
    "es",
    "fr",
    "de",
    "zh-CN",
    "zh-TW",
    "ja",
    "ru",
    "ar",
    "pl",
    "it",
    "vi",
    "ko",
]


class EngineName(str, enum.Enum):
    DEBUG = "debug"
    OPENAI = "openai"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: Literal["json", "console"] = "console"


class RetryPolicyConfig(BaseModel):
    """批量翻译的重试策略。第 n 次失败（从 1 计）后等待 `base_delay * 2**n` 秒。"""

    max_attempts_per_model: int = Field(default=2, gt=0)
    primary_base_delay: float = Field(default=1.0, ge=0)
    fallback_base_delay: float = Field(default=1.5, ge=0)

    @model_validator(mode="after")
    def check_backoff_consistency(self) -> "RetryPolicyConfig":
        if self.fallback_base_delay < self.primary_base_delay:
            raise ValueError("fallback_base_delay 必须大于或等于 primary_base_delay")
        return self


class SchedulerConfig(BaseModel):
    max_concurrency: int = Field(default=3, gt=0)
    page_limit: int = Field(default=50, gt=0)
    poll_interval: float = Field(default=30.0, gt=0, description="空闲轮询间隔（秒）")
    rescan_interval: float = Field(
        default=3600.0, gt=0, description="重新扫描源条目的间隔（秒）"
    )
    discovery_limit: int = Field(default=50, gt=0)


class CacheConfig(BaseModel):
    path: Path = Path("translation-cache/translationCache.json")
    flush_interval: float = Field(default=300.0, gt=0)
    max_entries_per_bucket: int = Field(default=100_000, gt=0)


class BackendConfig(BaseModel):
    engine: EngineName = EngineName.OPENAI
    options: dict[str, Any] = Field(default_factory=dict)


def _default_fallback() -> BackendConfig:
    return BackendConfig(engine=EngineName.OPENAI, options={"model": "gpt-4o"})


class BackendsConfig(BaseModel):
    primary: BackendConfig = Field(
        default_factory=lambda: BackendConfig(options={"model": "gpt-4o-mini"})
    )
    fallback: BackendConfig = Field(default_factory=_default_fallback)


class CmsConfig(BaseModel):
    base_url: str = "http://localhost:1337"
    api_token: SecretStr | None = None
    timeout: float = Field(default=30.0, gt=0)


class DeliveryConfig(BaseModel):
    max_retries: int = Field(default=3, gt=0)
    retry_delay: float = Field(default=2.0, ge=0)


class TransRelayConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TR_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = "sqlite+aiosqlite:///trans_relay.db"
    content_type: str = "reports"
    source_locale: str = "en"
    target_langs: list[str] = Field(default_factory=lambda: list(DEFAULT_TARGET_LANGS))
    output_dir: Path = Path("translations")
    max_batch_size: int = Field(default=50, gt=0)

    backends: BackendsConfig = Field(default_factory=BackendsConfig)
    retry_policy: RetryPolicyConfig = Field(default_factory=RetryPolicyConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    source_cms: CmsConfig = Field(default_factory=CmsConfig)
    target_cms: CmsConfig = Field(default_factory=CmsConfig)
    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        try:
            make_url(v)
        except ArgumentError as e:
            raise ValueError(f"无效的数据库连接字符串: {v}") from e
        return v

    @field_validator("source_locale")
    @classmethod
    def validate_source_locale(cls, v: str) -> str:
        validate_lang_codes([v])
        return v

    @field_validator("target_langs")
    @classmethod
    def validate_target_langs(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("target_langs 不能为空")
        validate_lang_codes(v)
        # 保序去重
        return list(dict.fromkeys(v))

    @property
    def is_sqlite(self) -> bool:
        return make_url(self.database_url).get_backend_name() == "sqlite"
