# trans_relay/cli/worker.py
"""处理后台 Worker 运行的 CLI 命令。"""

import asyncio
import signal

import structlog
import typer
from rich.console import Console

from trans_relay.cli.state import State
from trans_relay.cli.utils import create_coordinator
from trans_relay.coordinator import Coordinator
from trans_relay.core.exceptions import DatabaseError, FetchError, TransRelayError
from trans_relay.scheduler import SweepSummary

logger = structlog.get_logger(__name__)
console = Console()
worker_app = typer.Typer(help="运行翻译与投递 Worker")


def _print_summary(label: str, summary: SweepSummary) -> None:
    console.print(
        f"{label}: 就绪 [bold]{summary.found}[/bold]，"
        f"[green]成功 {summary.succeeded}[/green]，"
        f"[red]失败 {summary.failed}[/red]，"
        f"[dim]跳过 {summary.skipped}[/dim]"
    )
    for job, error in summary.errors.items():
        console.print(f"  [red]✗[/red] {job}: [dim]{error}[/dim]")


async def _discover(coordinator: Coordinator) -> None:
    try:
        inserted = await coordinator.discover()
        logger.info("源条目扫描完成", inserted=inserted)
    except FetchError as e:
        # 源 CMS 暂时不可达时继续处理已有作业
        logger.error("扫描源条目失败，将在下次扫描时重试", error=str(e))


async def _run_worker_loop(coordinator: Coordinator, shutdown_event: asyncio.Event) -> None:
    """Worker 的主循环。收到停机信号后，当前这一轮扫描完成即退出。"""
    loop = asyncio.get_running_loop()

    def _signal_handler(signum: int) -> None:
        logger.warning("收到停机信号，正在准备优雅关闭...", signal=signal.strsignal(signum))
        shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler, sig)

    scheduler_config = coordinator.config.scheduler
    flush_interval = coordinator.config.cache.flush_interval
    console.print("▶️  [bold green]Worker 已启动[/bold green]. 按 CTRL+C 停止。")

    last_rescan: float | None = None
    last_flush = loop.time()
    while not shutdown_event.is_set():
        if last_rescan is None or loop.time() - last_rescan >= scheduler_config.rescan_interval:
            await _discover(coordinator)
            last_rescan = loop.time()

        await coordinator.run_translation_sweep()
        await coordinator.run_delivery_sweep()

        if loop.time() - last_flush >= flush_interval:
            await coordinator.flush_cache()
            last_flush = loop.time()

        try:
            await asyncio.wait_for(
                shutdown_event.wait(), timeout=scheduler_config.poll_interval
            )
        except asyncio.TimeoutError:
            pass


async def _start(coordinator: Coordinator) -> int:
    shutdown_event = asyncio.Event()
    try:
        try:
            await coordinator.initialize()
        except TransRelayError as e:
            logger.error("Worker 启动失败", error=str(e))
            console.print(f"[bold red]❌ Worker 启动失败: {e}[/bold red]")
            return 1
        await _run_worker_loop(coordinator, shutdown_event)
        return 0
    except DatabaseError as e:
        logger.error("作业库不可用，Worker 退出", error=str(e))
        console.print(f"[bold red]❌ 作业库不可用: {e}[/bold red]")
        return 1
    finally:
        console.print("\n[yellow]Worker 正在关闭，请稍候...[/yellow]")
        await coordinator.close()
        console.print("[bold]✅ Worker 已安全关闭。[/bold]")


@worker_app.command("start")
def worker_start(ctx: typer.Context) -> None:
    """启动一个长期运行的 Worker，周期性地扫描源条目并处理待办作业。"""
    state: State = ctx.obj
    try:
        coordinator = create_coordinator(state.config)
    except TransRelayError as e:
        console.print(f"[bold red]❌ Worker 启动失败: {e}[/bold red]")
        raise typer.Exit(code=1) from e

    try:
        exit_code = asyncio.run(_start(coordinator))
    except KeyboardInterrupt:
        logger.info("主循环被强制中断。")
        exit_code = 0
    if exit_code:
        raise typer.Exit(code=exit_code)


async def _run_once(coordinator: Coordinator) -> tuple[SweepSummary, SweepSummary]:
    try:
        await coordinator.initialize()
        await _discover(coordinator)
        translation = await coordinator.run_translation_sweep()
        delivery = await coordinator.run_delivery_sweep()
        return translation, delivery
    finally:
        await coordinator.close()


@worker_app.command("run-once")
def worker_run_once(ctx: typer.Context) -> None:
    """扫描一次源条目，并各执行一轮翻译与投递后退出。"""
    state: State = ctx.obj
    try:
        coordinator = create_coordinator(state.config)
        translation, delivery = asyncio.run(_run_once(coordinator))
    except TransRelayError as e:
        console.print(f"[bold red]❌ 执行失败: {e}[/bold red]")
        raise typer.Exit(code=1) from e
    _print_summary("翻译", translation)
    _print_summary("投递", delivery)
