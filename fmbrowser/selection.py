"""选中集合：只关心成员，不关心顺序。路径变化时由控制器清空。"""

from __future__ import annotations

import logging
from typing import Iterable

from fmbrowser.models import Entry

logger = logging.getLogger(__name__)


class SelectionTracker:
    def __init__(self) -> None:
        self._ids: set[int] = set()

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __bool__(self) -> bool:
        return bool(self._ids)

    @property
    def ids(self) -> frozenset[int]:
        return frozenset(self._ids)

    def toggle(self, entry_id: int) -> None:
        """不在集合中则加入，否则移除。"""
        if entry_id in self._ids:
            self._ids.discard(entry_id)
        else:
            self._ids.add(entry_id)

    def set_checked(self, entry_id: int, checked: bool) -> None:
        """复选框显式勾选/取消，重复事件不会来回翻转。"""
        if checked:
            self._ids.add(entry_id)
        else:
            self._ids.discard(entry_id)

    def select_all(self, displayed_ids: Iterable[int]) -> None:
        self._ids = set(displayed_ids)
        logger.debug("select all: %d entries", len(self._ids))

    def replace(self, entry_id: int) -> None:
        self._ids = {entry_id}

    def clear(self) -> None:
        self._ids.clear()

    def focus_for_context_menu(self, entry_id: int) -> None:
        """
        右键某项：未选中时替换为仅选中该项；已选中时保留现有多选，
        保证右键菜单的动作目标是确定的。
        """
        if entry_id not in self._ids:
            self.replace(entry_id)

    def selected_entries(self, entries: Iterable[Entry]) -> list[Entry]:
        """按列表顺序返回被选中的条目；刷新后失效的 id 自然被过滤掉。"""
        return [e for e in entries if e.id in self._ids]
