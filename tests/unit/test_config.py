# tests/unit/test_config.py
"""针对 `TransRelayConfig` 的单元测试。"""

import pytest
from pydantic import ValidationError

from trans_relay.config import EngineName, RetryPolicyConfig, TransRelayConfig


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """确保测试不受当前目录下 .env 文件或外部 TR_ 环境变量的影响。"""
    monkeypatch.chdir(tmp_path)
    for name in ("TR_DATABASE_URL", "TR_TARGET_LANGS", "TR_SCHEDULER__MAX_CONCURRENCY"):
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    config = TransRelayConfig()
    assert config.content_type == "reports"
    assert config.is_sqlite
    assert config.backends.primary.engine is EngineName.OPENAI
    assert config.backends.fallback.options["model"] == "gpt-4o"
    assert config.retry_policy.max_attempts_per_model == 2
    assert len(config.target_langs) == 12


def test_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TR_SCHEDULER__MAX_CONCURRENCY", "7")
    monkeypatch.setenv("TR_TARGET_LANGS", '["fr", "de", "fr"]')
    monkeypatch.setenv("TR_DATABASE_URL", "postgresql+asyncpg://u:p@db/relay")

    config = TransRelayConfig()

    assert config.scheduler.max_concurrency == 7
    assert config.target_langs == ["fr", "de"]
    assert not config.is_sqlite


def test_dotenv_file_is_read(tmp_path) -> None:
    (tmp_path / ".env").write_text("TR_CONTENT_TYPE=articles\n", encoding="utf-8")
    assert TransRelayConfig().content_type == "articles"


@pytest.mark.parametrize(
    "overrides",
    [
        {"target_langs": ["fr", "german"]},
        {"target_langs": []},
        {"source_locale": "123"},
        {"database_url": "not a url"},
        {"scheduler": {"max_concurrency": 0}},
    ],
)
def test_invalid_values_are_rejected(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        TransRelayConfig(**overrides)


def test_retry_policy_requires_longer_fallback_backoff() -> None:
    with pytest.raises(ValidationError, match="fallback_base_delay"):
        RetryPolicyConfig(primary_base_delay=2.0, fallback_base_delay=1.0)
    assert RetryPolicyConfig(primary_base_delay=1.0, fallback_base_delay=1.0)
