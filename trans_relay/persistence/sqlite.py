# trans_relay/persistence/sqlite.py
"""`JobStore` 协议的 SQLite (aiosqlite) 实现。"""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import insert, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.sql import Executable

from trans_relay.core.exceptions import DatabaseError
from trans_relay.db.schema import TranslationJobRecord
from trans_relay.persistence.base import BaseJobStore

logger = structlog.get_logger(__name__)


class SQLiteJobStore(BaseJobStore):
    def __init__(self, engine: AsyncEngine, db_path: str):
        super().__init__(engine)
        self.db_path = db_path

    async def connect(self) -> None:
        """[覆盖] 建立连接并为 SQLite 设置必要的 PRAGMA。"""
        try:
            async with self._engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
                if self.db_path not in ("", ":memory:"):
                    await conn.execute(text("PRAGMA journal_mode=WAL;"))
        except SQLAlchemyError as e:
            raise DatabaseError(f"无法连接 SQLite 作业库 '{self.db_path}': {e}") from e
        logger.info("SQLite 作业库连接已建立", db_path=self.db_path)

    def _insert_ignoring_conflicts(self, rows: list[dict[str, Any]]) -> Executable:
        return insert(TranslationJobRecord).values(rows).prefix_with("OR IGNORE")
