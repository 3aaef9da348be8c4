# trans_relay/cli/jobs.py
"""作业的初始化与查询命令。"""

import asyncio
from typing import Annotated

import structlog
import typer
from rich.console import Console
from rich.table import Table

from trans_relay.cli.state import State
from trans_relay.cli.utils import open_job_store
from trans_relay.clients import StrapiSourceClient
from trans_relay.config import TransRelayConfig
from trans_relay.core.exceptions import TransRelayError
from trans_relay.core.types import JobStatus, TranslationJob

logger = structlog.get_logger(__name__)
console = Console()
jobs_app = typer.Typer(help="查看与初始化翻译作业")

_STATUS_STYLES = {
    JobStatus.PENDING_TRANSLATION: "yellow",
    JobStatus.TRANSLATING: "cyan",
    JobStatus.FAILED_TRANSLATION: "red",
    JobStatus.PENDING_UPLOAD: "yellow",
    JobStatus.UPLOADING: "cyan",
    JobStatus.FAILED_UPLOAD: "red",
    JobStatus.COMPLETED: "green",
}


async def _init_jobs(config: TransRelayConfig, limit: int) -> int:
    source = StrapiSourceClient(config.source_cms, locale=config.source_locale)
    try:
        items = await source.list_items(config.content_type, limit)
    finally:
        await source.close()
    async with open_job_store(config) as store:
        await store.create_schema()
        return await store.initialize_jobs(items, config.target_langs, config.content_type)


@jobs_app.command("init")
def jobs_init(
    ctx: typer.Context,
    limit: Annotated[
        int | None, typer.Option("--limit", "-l", help="最多扫描的源条目数。", min=1)
    ] = None,
) -> None:
    """扫描源 CMS，为每个条目与每个目标语言补齐作业。已有作业保持不变。"""
    state: State = ctx.obj
    config = state.config
    try:
        inserted = asyncio.run(
            _init_jobs(config, limit or config.scheduler.discovery_limit)
        )
    except TransRelayError as e:
        console.print(f"[bold red]❌ 初始化作业失败: {e}[/bold red]")
        raise typer.Exit(code=1) from e
    console.print(
        f"[green]✅ 新增 [bold]{inserted}[/bold] 个作业 "
        f"({config.content_type} × {len(config.target_langs)} 种语言)。[/green]"
    )


def _render_jobs(jobs: list[TranslationJob], total: int, page: int, limit: int) -> Table:
    pages = max((total + limit - 1) // limit, 1)
    table = Table(title=f"翻译作业 (第 {page}/{pages} 页，共 {total} 个)")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("条目")
    table.add_column("语言")
    table.add_column("状态")
    table.add_column("更新时间")
    table.add_column("最后错误", overflow="fold", max_width=60)
    for job in jobs:
        style = _STATUS_STYLES[job.status]
        table.add_row(
            str(job.id),
            f"{job.content_type}/{job.slug}",
            job.language,
            f"[{style}]{job.status.value}[/{style}]",
            job.updated_at.strftime("%Y-%m-%d %H:%M:%S") if job.updated_at else "-",
            job.last_error or "",
        )
    return table


async def _list_jobs(
    config: TransRelayConfig, page: int, limit: int, status: JobStatus | None
) -> tuple[list[TranslationJob], int]:
    async with open_job_store(config) as store:
        return await store.list_jobs(page=page, limit=limit, status=status)


@jobs_app.command("list")
def jobs_list(
    ctx: typer.Context,
    status: Annotated[
        JobStatus | None, typer.Option("--status", "-s", help="只显示该状态的作业。")
    ] = None,
    page: Annotated[int, typer.Option("--page", "-p", min=1)] = 1,
    limit: Annotated[int, typer.Option("--limit", "-l", min=1, max=500)] = 50,
) -> None:
    """按更新时间倒序分页列出作业。"""
    state: State = ctx.obj
    try:
        jobs, total = asyncio.run(_list_jobs(state.config, page, limit, status))
    except TransRelayError as e:
        console.print(f"[bold red]❌ 查询作业失败: {e}[/bold red]")
        raise typer.Exit(code=1) from e
    if not jobs:
        console.print("[yellow]没有符合条件的作业。[/yellow]")
        return
    console.print(_render_jobs(jobs, total, page, limit))


async def _status_counts(config: TransRelayConfig) -> dict[str, int]:
    async with open_job_store(config) as store:
        return await store.status_counts()


@jobs_app.command("counts")
def jobs_counts(ctx: typer.Context) -> None:
    """按状态统计作业数量。"""
    state: State = ctx.obj
    try:
        counts = asyncio.run(_status_counts(state.config))
    except TransRelayError as e:
        console.print(f"[bold red]❌ 统计作业失败: {e}[/bold red]")
        raise typer.Exit(code=1) from e

    table = Table(title="作业状态统计")
    table.add_column("状态")
    table.add_column("数量", justify="right")
    for status in JobStatus:
        style = _STATUS_STYLES[status]
        table.add_row(f"[{style}]{status.value}[/{style}]", str(counts[status.value]))
    table.add_section()
    for aggregate in ("pending", "failed", "total"):
        table.add_row(f"[bold]{aggregate}[/bold]", f"[bold]{counts[aggregate]}[/bold]")
    console.print(table)
