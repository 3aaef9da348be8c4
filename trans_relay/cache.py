# trans_relay/cache.py
"""
本模块提供按目标语言划分的翻译缓存（翻译记忆）。

- `TranslationCache`：单一语言的缓存，内部按桶划分。简单桶 (`headings`、`altTags`)
  为 原文 -> 译文；结构化桶以 ContentHash 为键，值为 字段 -> 译文 的映射，
  富文本字段存储的是组装好的 HTML 字符串。
- `TranslationMemory`：持有所有语言的缓存，负责从 JSON 文件加载与落盘。

所有写入都是“先写者胜”：同一个键的第二次写入是空操作。
缓存只是建议性的，丢失它只会导致重复翻译，不会导致错误输出，
因此每个桶使用有界的 LRU，文件加载失败时退化为空缓存。
"""

from __future__ import annotations

import asyncio
import copy
import json
import os
import tempfile
from pathlib import Path
from typing import Any

import structlog
from cachetools import LRUCache

logger = structlog.get_logger(__name__)


class TranslationCache:
    """单一目标语言的分桶缓存。"""

    def __init__(self, language: str, max_entries_per_bucket: int = 100_000):
        self.language = language
        self._max_entries = max_entries_per_bucket
        self._buckets: dict[str, LRUCache[str, Any]] = {}
        self._dirty = False

    def _bucket(self, name: str) -> LRUCache[str, Any]:
        bucket = self._buckets.get(name)
        if bucket is None:
            bucket = LRUCache(maxsize=self._max_entries)
            self._buckets[name] = bucket
        return bucket

    def lookup(self, bucket: str, key: str) -> Any | None:
        """命中时返回缓存值，未命中返回 None。调用方不得修改返回的对象。"""
        return self._bucket(bucket).get(key)

    def store(self, bucket: str, key: str, value: Any) -> bool:
        """
        写入缓存。如果键已存在则不做任何事（先写者胜）。

        Returns:
            本次调用是否真正写入。
        """
        target = self._bucket(bucket)
        if key in target:
            return False
        target[key] = copy.deepcopy(value)
        self._dirty = True
        return True

    @property
    def dirty(self) -> bool:
        return self._dirty

    def mark_clean(self) -> None:
        self._dirty = False

    def snapshot(self) -> dict[str, dict[str, Any]]:
        return {name: dict(bucket.items()) for name, bucket in self._buckets.items()}

    def restore(self, data: dict[str, Any]) -> None:
        """从持久化数据恢复。仅接受 桶名 -> 映射 的结构，其余内容忽略。"""
        for name, entries in data.items():
            if not isinstance(entries, dict):
                logger.warning("忽略格式无效的缓存桶", language=self.language, bucket=name)
                continue
            bucket = self._bucket(name)
            for key, value in entries.items():
                if key not in bucket:
                    bucket[key] = value

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._buckets.values())


class TranslationMemory:
    """所有语言缓存的拥有者，管理“启动时加载、周期性与停机时落盘”的生命周期。"""

    def __init__(self, path: Path | str, max_entries_per_bucket: int = 100_000):
        self.path = Path(path)
        self._max_entries = max_entries_per_bucket
        self._caches: dict[str, TranslationCache] = {}

    def for_language(self, language: str) -> TranslationCache:
        cache = self._caches.get(language)
        if cache is None:
            cache = TranslationCache(language, self._max_entries)
            self._caches[language] = cache
        return cache

    @property
    def languages(self) -> list[str]:
        return sorted(self._caches)

    def load(self) -> None:
        """从文件加载缓存。文件缺失或损坏时记录警告并以空缓存继续。"""
        if not self.path.exists():
            logger.info("缓存文件不存在，使用空缓存启动", path=str(self.path))
            return
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("缓存文件读取失败，使用空缓存启动", path=str(self.path), error=str(e))
            return
        if not isinstance(raw, dict):
            logger.warning("缓存文件顶层结构无效，使用空缓存启动", path=str(self.path))
            return
        for language, buckets in raw.items():
            if isinstance(buckets, dict):
                self.for_language(language).restore(buckets)
        logger.info(
            "翻译缓存已加载",
            path=str(self.path),
            languages=len(self._caches),
            entries=sum(len(c) for c in self._caches.values()),
        )

    def flush(self, force: bool = False) -> bool:
        """
        将所有语言的缓存原子地写入文件（临时文件 + 替换）。

        Returns:
            是否真正执行了写入。没有新写入且未强制时跳过。
        """
        if not force and not any(c.dirty for c in self._caches.values()):
            return False
        payload = {lang: cache.snapshot() for lang, cache in sorted(self._caches.items())}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        for cache in self._caches.values():
            cache.mark_clean()
        logger.info("翻译缓存已落盘", path=str(self.path), languages=len(payload))
        return True

    async def aflush(self, force: bool = False) -> bool:
        return await asyncio.to_thread(self.flush, force)
