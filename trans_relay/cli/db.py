# trans_relay/cli/db.py
"""处理数据库相关操作的 CLI 命令。"""

import asyncio

import structlog
import typer
from rich.console import Console

from trans_relay.cli.state import State
from trans_relay.cli.utils import open_job_store
from trans_relay.config import TransRelayConfig
from trans_relay.core.exceptions import TransRelayError

logger = structlog.get_logger(__name__)
console = Console()
db_app = typer.Typer(help="数据库管理命令")


async def _init_schema(config: TransRelayConfig) -> None:
    async with open_job_store(config) as store:
        await store.create_schema()


@db_app.command("init")
def db_init(ctx: typer.Context) -> None:
    """创建作业表（已存在时不做任何修改）。"""
    state: State = ctx.obj
    console.print(f"数据库: [cyan]{state.config.database_url}[/cyan]")
    try:
        asyncio.run(_init_schema(state.config))
    except TransRelayError as e:
        logger.error("初始化作业表失败。", exc_info=True)
        console.print(f"[bold red]❌ 初始化作业表失败: {e}[/bold red]")
        raise typer.Exit(code=1) from e
    console.print("[bold green]✅ 作业表已就绪！[/bold green]")
