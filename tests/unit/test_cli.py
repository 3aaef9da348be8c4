# tests/unit/test_cli.py
"""
针对 Trans-Relay CLI 的单元测试。

`setup_logging` 在每个测试中都被替换，避免日志处理器绑定到 CliRunner 已关闭的输出流。
"""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from pytest_mock import MockerFixture
from typer.testing import CliRunner

from trans_relay import __version__
from trans_relay.cli.main import app
from trans_relay.cli.worker import _run_worker_loop
from trans_relay.config import TransRelayConfig
from trans_relay.core.exceptions import ConfigurationError
from trans_relay.core.types import SourceItemRef
from trans_relay.scheduler import SweepSummary


@pytest.fixture
def cli_runner() -> CliRunner:
    """提供一个 Typer CliRunner 实例用于模拟命令行调用。"""
    return CliRunner()


@pytest.fixture(autouse=True)
def cli_env(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, mocker: MockerFixture
) -> Path:
    """让每个 CLI 调用都使用临时目录中的作业库，并且不加载 .env。"""
    monkeypatch.chdir(tmp_path)
    db_path = tmp_path / "cli.db"
    monkeypatch.setenv("TR_DATABASE_URL", f"sqlite+aiosqlite:///{db_path}")
    monkeypatch.setenv("TR_TARGET_LANGS", '["fr", "de"]')
    monkeypatch.delenv("TR_OPENAI_API_KEY", raising=False)
    mocker.patch("trans_relay.cli.main.setup_logging")
    return db_path


def _mock_source(mocker: MockerFixture, refs: list[SourceItemRef]) -> MagicMock:
    source_cls = mocker.patch("trans_relay.cli.jobs.StrapiSourceClient")
    source_cls.return_value.list_items = AsyncMock(return_value=refs)
    source_cls.return_value.close = AsyncMock()
    return source_cls


def test_version_option(cli_runner: CliRunner) -> None:
    result = cli_runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout
    assert "Trans-Relay" in result.stdout


def test_help(cli_runner: CliRunner) -> None:
    result = cli_runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "Usage: trans-relay" in result.stdout


def test_config_load_failure_exits_gracefully(
    cli_runner: CliRunner, mocker: MockerFixture
) -> None:
    """配置加载失败时 CLI 优雅退出并显示错误。"""
    mocker.patch(
        "trans_relay.cli.main.TransRelayConfig",
        side_effect=ValueError("Invalid .env file"),
    )
    result = cli_runner.invoke(app, ["db", "init"])
    assert result.exit_code == 1
    assert "启动失败" in result.stdout


def test_db_init_creates_tables(cli_runner: CliRunner, cli_env: Path) -> None:
    result = cli_runner.invoke(app, ["db", "init"])
    assert result.exit_code == 0, result.stdout
    assert "作业表已就绪" in result.stdout
    assert cli_env.exists()


def test_jobs_init_and_list(cli_runner: CliRunner, mocker: MockerFixture) -> None:
    source_cls = _mock_source(
        mocker,
        [SourceItemRef(slug="alpha", item_id=1), SourceItemRef(slug="beta", item_id=2)],
    )

    result = cli_runner.invoke(app, ["jobs", "init", "--limit", "5"])
    assert result.exit_code == 0, result.stdout
    assert "新增 4 个作业" in result.stdout
    source_cls.return_value.list_items.assert_awaited_once_with("reports", 5)

    again = cli_runner.invoke(app, ["jobs", "init"])
    assert "新增 0 个作业" in again.stdout

    listed = cli_runner.invoke(app, ["jobs", "list", "--limit", "3"])
    assert listed.exit_code == 0
    assert "共 4 个" in listed.stdout
    assert "第 1/2 页" in listed.stdout


def test_jobs_list_with_no_matches(cli_runner: CliRunner) -> None:
    assert cli_runner.invoke(app, ["db", "init"]).exit_code == 0
    result = cli_runner.invoke(app, ["jobs", "list", "--status", "completed"])
    assert result.exit_code == 0
    assert "没有符合条件的作业" in result.stdout


def test_jobs_list_rejects_unknown_status(cli_runner: CliRunner) -> None:
    result = cli_runner.invoke(app, ["jobs", "list", "--status", "bogus"])
    assert result.exit_code == 2


def test_jobs_counts(cli_runner: CliRunner, mocker: MockerFixture) -> None:
    _mock_source(mocker, [SourceItemRef(slug="alpha", item_id=1)])
    assert cli_runner.invoke(app, ["jobs", "init"]).exit_code == 0

    result = cli_runner.invoke(app, ["jobs", "counts"])
    assert result.exit_code == 0
    assert "pending_translation" in result.stdout
    assert "total" in result.stdout


def test_jobs_counts_without_schema_fails(cli_runner: CliRunner) -> None:
    result = cli_runner.invoke(app, ["jobs", "counts"])
    assert result.exit_code == 1
    assert "统计作业失败" in result.stdout


def test_worker_start_without_api_key_fails(cli_runner: CliRunner) -> None:
    """默认后端是 OpenAI；缺少 API 密钥时 worker 拒绝启动。"""
    result = cli_runner.invoke(app, ["worker", "start"])
    assert result.exit_code == 1
    assert "Worker 启动失败" in result.stdout


def test_worker_start_initialize_failure_closes_coordinator(
    cli_runner: CliRunner, mocker: MockerFixture
) -> None:
    coordinator = MagicMock()
    coordinator.initialize = AsyncMock(side_effect=ConfigurationError("OpenAI API Key 无效"))
    coordinator.close = AsyncMock()
    mocker.patch("trans_relay.cli.worker.create_coordinator", return_value=coordinator)

    result = cli_runner.invoke(app, ["worker", "start"])

    assert result.exit_code == 1
    assert "API Key 无效" in result.stdout
    coordinator.close.assert_awaited_once()


def test_worker_run_once_prints_summaries(
    cli_runner: CliRunner, mocker: MockerFixture
) -> None:
    coordinator = MagicMock()
    coordinator.initialize = AsyncMock()
    coordinator.discover = AsyncMock(return_value=2)
    coordinator.run_translation_sweep = AsyncMock(
        return_value=SweepSummary(
            found=2, succeeded=1, failed=1, errors={"reports/alpha@fr": "boom"}
        )
    )
    coordinator.run_delivery_sweep = AsyncMock(return_value=SweepSummary())
    coordinator.close = AsyncMock()
    mocker.patch("trans_relay.cli.worker.create_coordinator", return_value=coordinator)

    result = cli_runner.invoke(app, ["worker", "run-once"])

    assert result.exit_code == 0, result.stdout
    assert "成功 1" in result.stdout
    assert "reports/alpha@fr" in result.stdout
    assert "boom" in result.stdout
    coordinator.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_worker_loop_stops_after_shutdown_signal(mocker: MockerFixture) -> None:
    """停机事件被设置后，当前这一轮扫描完成即退出循环。"""
    shutdown_event = asyncio.Event()
    coordinator = MagicMock()
    coordinator.config = TransRelayConfig()
    coordinator.discover = AsyncMock(return_value=0)
    coordinator.run_translation_sweep = AsyncMock(return_value=SweepSummary())
    coordinator.run_delivery_sweep = AsyncMock(
        side_effect=lambda: shutdown_event.set() or SweepSummary()
    )
    coordinator.flush_cache = AsyncMock()

    await asyncio.wait_for(_run_worker_loop(coordinator, shutdown_event), timeout=5)

    coordinator.discover.assert_awaited_once()
    coordinator.run_translation_sweep.assert_awaited_once()
    coordinator.flush_cache.assert_not_awaited()
