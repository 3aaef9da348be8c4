# trans_relay/persistence/postgres.py
"""`JobStore` 协议的 PostgreSQL (asyncpg) 实现。"""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql import Executable

from trans_relay.core.exceptions import DatabaseError
from trans_relay.db.schema import TranslationJobRecord
from trans_relay.persistence.base import BaseJobStore

logger = structlog.get_logger(__name__)


class PostgresJobStore(BaseJobStore):
    async def connect(self) -> None:
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            raise DatabaseError(f"无法连接 PostgreSQL 作业库: {e}") from e
        logger.info("PostgreSQL 作业库连接已建立", host=self._engine.url.host)

    def _insert_ignoring_conflicts(self, rows: list[dict[str, Any]]) -> Executable:
        return (
            pg_insert(TranslationJobRecord)
            .values(rows)
            .on_conflict_do_nothing(constraint="uq_translation_jobs_identity")
        )
