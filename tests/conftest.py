# tests/conftest.py
"""项目全局共享的测试 Fixtures。"""

from collections.abc import AsyncGenerator, Generator
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from pytest_mock import MockerFixture
from rich.console import Console

from trans_relay.config import TransRelayConfig
from trans_relay.persistence import BaseJobStore, create_job_store


@pytest.fixture(scope="session", autouse=True)
def disable_rich_colors_for_tests(
    session_mocker: MockerFixture,
) -> Generator[None, None, None]:
    """全局禁用 rich 库的颜色输出，以确保测试结果的确定性。"""
    original_init = Console.__init__

    def new_init(self: Console, *args: Any, **kwargs: Any) -> None:
        kwargs["force_terminal"] = False
        kwargs["color_system"] = None
        original_init(self, *args, **kwargs)

    session_mocker.patch("rich.console.Console.__init__", new=new_init)
    yield


@pytest.fixture
def test_config(tmp_path: Path) -> TransRelayConfig:
    """提供一个所有路径都指向临时目录的配置对象。"""
    return TransRelayConfig(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}",
        target_langs=["fr", "de"],
        output_dir=tmp_path / "translations",
        cache={"path": tmp_path / "cache" / "translationCache.json"},
    )


@pytest_asyncio.fixture
async def job_store(test_config: TransRelayConfig) -> AsyncGenerator[BaseJobStore, None]:
    """提供一个使用临时文件 SQLite 数据库、已建表的作业库。"""
    store = create_job_store(test_config)
    await store.connect()
    await store.create_schema()
    yield store
    await store.close()


@pytest.fixture
def report_document() -> dict[str, Any]:
    """一份覆盖全部字段类型的报告文档。"""
    return {
        "title": "Market Report",
        "slug": "market-report",
        "faqSectionHeading": "Frequently Asked Questions",
        "description": "<p>Hello <b>world</b></p>",
        "tableOfContent": [
            {"id": 11, "title": "Intro", "description": "<p>Hello <img alt='pic'/></p>"},
            {"id": 12, "title": "Scope", "description": None},
        ],
        "seo": {
            "id": 3,
            "metaTitle": "Market Report 2024",
            "metaDescription": "All about the market",
            "canonicalURL": "https://example.com/reports/market?ref=a#top",
            "metaSocial": [
                {
                    "id": 7,
                    "socialNetwork": "twitter",
                    "title": "Market Report 2024",
                    "description": "Share this",
                },
            ],
        },
        "reportID": "R-1",
    }
