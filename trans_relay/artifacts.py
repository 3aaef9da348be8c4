# trans_relay/artifacts.py
"""
翻译产物的文件系统存储。

每个 (条目, 语言) 一份 JSON 文件，位于
`<output_dir>/<contentType>/<slug>/<slug>_<language>.json`。
写入先落到同目录的临时文件，再原子替换，读者永远不会看到半个文件。
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

import structlog
from pydantic import ValidationError

from trans_relay.core.exceptions import PersistenceError
from trans_relay.core.types import TranslationArtifact

logger = structlog.get_logger(__name__)


class FileArtifactStore:
    def __init__(self, output_dir: Path | str):
        self.output_dir = Path(output_dir)

    def path_for(self, content_type: str, slug: str, language: str) -> Path:
        return self.output_dir / content_type / slug / f"{slug}_{language}.json"

    def save(self, artifact: TranslationArtifact) -> str:
        path = self.path_for(artifact.content_type, artifact.item_slug, artifact.target_language)
        payload = artifact.model_dump(by_alias=True)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(payload, fh, ensure_ascii=False, indent=2)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"写入翻译产物失败 '{path}': {e}") from e

        logger.debug("翻译产物已保存", path=str(path))
        return str(path)

    def load(self, path: str) -> TranslationArtifact:
        try:
            with open(path, encoding="utf-8") as fh:
                data = json.load(fh)
            return TranslationArtifact.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise PersistenceError(f"读取翻译产物失败 '{path}': {e}") from e
