"""
剪贴板状态机：Empty / Holding(copy) / Holding(cut)。

复制/剪切时按值快照条目及其绝对路径，与之后的选中变化无关；
粘贴的目标目录在粘贴时读取，因此可以「复制 -> 切换目录 -> 粘贴」。
粘贴成功后清空；失败时保持不变以便重试。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Protocol

from fmbrowser.models import ClipboardMode, Entry
from fmbrowser.paths import build_file_path

logger = logging.getLogger(__name__)


class ClipboardEmptyError(Exception):
    """剪贴板为空时尝试粘贴。"""


class _PasteTarget(Protocol):
    async def copy(self, source_paths: list[str], destination_path: str) -> object: ...

    async def move(self, source_paths: list[str], destination_path: str) -> object: ...


@dataclass(frozen=True)
class ClipboardItem:
    entry: Entry
    source_path: str


@dataclass(frozen=True)
class ClipboardState:
    items: tuple[ClipboardItem, ...] = ()
    mode: ClipboardMode = ClipboardMode.NONE

    @property
    def is_empty(self) -> bool:
        return self.mode is ClipboardMode.NONE or not self.items

    @property
    def source_paths(self) -> list[str]:
        return [item.source_path for item in self.items]

    def is_cut_source(self, path: str) -> bool:
        """剪切模式下源条目在界面上应淡化显示。"""
        return self.mode is ClipboardMode.CUT and path in self.source_paths


EMPTY_CLIPBOARD = ClipboardState()


class Clipboard:
    def __init__(self) -> None:
        self._state = EMPTY_CLIPBOARD

    @property
    def state(self) -> ClipboardState:
        return self._state

    @property
    def mode(self) -> ClipboardMode:
        return self._state.mode

    @property
    def is_empty(self) -> bool:
        return self._state.is_empty

    def _snapshot(self, entries: Iterable[Entry], current_path: str, mode: ClipboardMode) -> ClipboardState:
        items = tuple(ClipboardItem(e, build_file_path(current_path, e.name)) for e in entries)
        if not items:
            return EMPTY_CLIPBOARD
        return ClipboardState(items, mode)

    def copy(self, entries: Iterable[Entry], current_path: str) -> ClipboardState:
        """快照选中项 -> Holding(copy)，总是覆盖之前的内容。"""
        self._state = self._snapshot(entries, current_path, ClipboardMode.COPY)
        logger.debug("clipboard copy: %s", self._state.source_paths)
        return self._state

    def cut(self, entries: Iterable[Entry], current_path: str) -> ClipboardState:
        self._state = self._snapshot(entries, current_path, ClipboardMode.CUT)
        logger.debug("clipboard cut: %s", self._state.source_paths)
        return self._state

    def clear(self) -> None:
        self._state = EMPTY_CLIPBOARD

    async def paste(self, store: _PasteTarget, destination_path: str) -> ClipboardState:
        """
        将剪贴板内容粘贴到 destination_path。

        copy 模式调用批量 copy，cut 模式调用批量 move。成功后清空剪贴板并返回被粘贴的快照；
        远程调用抛出的异常原样向上传递，剪贴板保持不变。

        :param store: 提供 copy/move 的文件存储
        :param destination_path: 粘贴目标目录（调用时的当前目录）
        """
        pasted = self._state
        if pasted.is_empty:
            raise ClipboardEmptyError("Clipboard is empty")
        if pasted.mode is ClipboardMode.COPY:
            await store.copy(pasted.source_paths, destination_path)
        else:
            await store.move(pasted.source_paths, destination_path)
        # 等待期间剪贴板可能已被新的复制/剪切覆盖，此时保留新内容
        if self._state is pasted:
            self._state = EMPTY_CLIPBOARD
        logger.info("pasted %d item(s) (%s) into %s", len(pasted.items), pasted.mode.value, destination_path)
        return pasted
