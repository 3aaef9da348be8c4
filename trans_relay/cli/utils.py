# trans_relay/cli/utils.py
"""提供 CLI 命令使用的共享工具函数。"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from rich.console import Console

from trans_relay.config import TransRelayConfig
from trans_relay.coordinator import Coordinator
from trans_relay.persistence import BaseJobStore, create_job_store

logger = structlog.get_logger(__name__)
console = Console()


def create_coordinator(config: TransRelayConfig) -> Coordinator:
    """
    根据配置创建并返回一个未初始化的 Coordinator 实例。

    这是 CLI 创建 Coordinator 的唯一入口，确保了装配逻辑的一致性。
    """
    return Coordinator(config, create_job_store(config))


@asynccontextmanager
async def open_job_store(config: TransRelayConfig) -> AsyncIterator[BaseJobStore]:
    """只需要作业库的命令（建表、查询）不必装配引擎与 CMS 客户端。"""
    store = create_job_store(config)
    await store.connect()
    try:
        yield store
    finally:
        await store.close()
