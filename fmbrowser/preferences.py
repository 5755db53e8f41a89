"""
客户端本地持久化：简单的键值存储（JSON 文件），保存「删除时不再确认」偏好与未保存的编辑草稿。
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from fmbrowser import cli_config

logger = logging.getLogger(__name__)

SUPPRESS_DELETE_CONFIRM_KEY = "dontShowDeleteConfirm"
DRAFT_KEY_PREFIX = "draft_"


def default_state_path() -> Path:
    """状态文件：~/.config/fmbrowser/state.json。"""
    return cli_config._config_dir() / "state.json"


class KeyValueStore:
    """
    键值存储。path 为 None 时仅保存在内存中；否则每次写入都落盘。

    文件不存在或内容无效时视为空。
    """

    def __init__(self, path: Path | None = None):
        self.path = path
        self._data: dict[str, Any] = self._load()

    def _load(self) -> dict[str, Any]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("ignoring unreadable state file %s", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _flush(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._data, ensure_ascii=False, indent=2), encoding="utf-8")

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._flush()

    def delete(self, key: str) -> bool:
        """删除键；存在则返回 True。"""
        if key not in self._data:
            return False
        del self._data[key]
        self._flush()
        return True


class Preferences:
    def __init__(self, store: KeyValueStore):
        self._store = store

    @property
    def suppress_delete_confirm(self) -> bool:
        return bool(self._store.get(SUPPRESS_DELETE_CONFIRM_KEY, False))

    @suppress_delete_confirm.setter
    def suppress_delete_confirm(self, value: bool) -> None:
        self._store.set(SUPPRESS_DELETE_CONFIRM_KEY, bool(value))


class DraftStore:
    """按文件路径保存未保存的编辑内容；远程保存成功后必须 discard。"""

    def __init__(self, store: KeyValueStore):
        self._store = store

    @staticmethod
    def key(path: str) -> str:
        return f"{DRAFT_KEY_PREFIX}{path}"

    def get(self, path: str) -> str | None:
        value = self._store.get(self.key(path))
        return value if isinstance(value, str) else None

    def save(self, path: str, content: str) -> None:
        self._store.set(self.key(path), content)

    def discard(self, path: str) -> bool:
        return self._store.delete(self.key(path))
