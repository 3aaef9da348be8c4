# trans_relay/persistence/__init__.py
"""本模块作为持久化层的公共入口，根据数据库 URL 选择作业库实现。"""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from trans_relay.config import TransRelayConfig
from trans_relay.core.exceptions import ConfigurationError

from .base import BaseJobStore
from .postgres import PostgresJobStore
from .sqlite import SQLiteJobStore


def create_job_store(config: TransRelayConfig) -> BaseJobStore:
    """
    根据配置创建、配置并返回一个具体的作业库实例。
    这是实例化持久化层的唯一入口。
    """
    url = make_url(config.database_url)
    backend = url.get_backend_name()

    if backend == "sqlite":
        db_path = url.database or ":memory:"
        if db_path == ":memory:":
            # 内存库必须共享同一个连接，否则每个连接都会看到一个新的空库
            engine = create_async_engine(
                url,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        else:
            engine = create_async_engine(url, connect_args={"timeout": 30})
        return SQLiteJobStore(engine, db_path=db_path)

    if backend == "postgresql":
        try:
            engine = create_async_engine(url, pool_size=10, max_overflow=5)
        except ImportError as e:
            raise ConfigurationError(
                "要使用 PostgreSQL, 请安装 'asyncpg' 驱动: "
                'pip install "trans-relay[postgres]"'
            ) from e
        return PostgresJobStore(engine)

    raise ConfigurationError(f"不支持的数据库类型或驱动: '{config.database_url}'")


__all__ = ["BaseJobStore", "PostgresJobStore", "SQLiteJobStore", "create_job_store"]
