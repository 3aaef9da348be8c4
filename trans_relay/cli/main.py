# trans_relay/cli/main.py
"""Trans-Relay CLI 的主入口点。"""

from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console

import trans_relay
from trans_relay.cli.db import db_app
from trans_relay.cli.jobs import jobs_app
from trans_relay.cli.state import State
from trans_relay.cli.worker import worker_app
from trans_relay.config import TransRelayConfig
from trans_relay.core.exceptions import TransRelayError
from trans_relay.logging_config import setup_logging

app = typer.Typer(
    name="trans-relay",
    help="🌐 Trans-Relay: 把 CMS 内容翻译成多种语言并回写目标 CMS 的作业流水线。",
    add_completion=False,
    no_args_is_help=True,
)

app.add_typer(db_app, name="db")
app.add_typer(jobs_app, name="jobs")
app.add_typer(worker_app, name="worker")

console = Console()


def version_callback(value: bool) -> None:
    """处理 --version 选项的回调函数。"""
    if value:
        console.print(f"Trans-Relay [bold cyan]v{trans_relay.__version__}[/bold cyan]")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-v",
            help="显示版本信息并退出。",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """主回调函数，在任何子命令执行前加载配置并配置日志。"""
    try:
        config = TransRelayConfig()
        setup_logging(log_level=config.logging.level, log_format=config.logging.format)
        ctx.obj = State(config=config)
    except (ValidationError, TransRelayError, ValueError) as e:
        console.print("[bold red]❌ 启动失败：无法加载配置或初始化日志。[/bold red]")
        console.print(f"[dim]{e}[/dim]")
        raise typer.Exit(code=1) from e
