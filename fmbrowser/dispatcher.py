"""
键盘与右键事件路由。

调度器持有控制器引用，每种事件只有一个入口（handle_key / handle_click / handle_context_menu），
所有判断都基于调用时控制器的当前状态。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from fmbrowser.controller import FileBrowserController
from fmbrowser.menus import ContextMenuState, MenuAction
from fmbrowser.models import Entry, is_editable_file

logger = logging.getLogger(__name__)

# 获得焦点时屏蔽全部快捷键的编辑控件
EDITING_TARGETS = frozenset({"input", "textarea", "editor"})


@dataclass(frozen=True)
class KeyEvent:
    """
    :param key: 按键名，如 "a"、"Delete"、"F2"、"Escape"、"ArrowLeft"
    :param ctrl: 是否按下 Ctrl（macOS 上为 Cmd）
    :param target: 当前焦点控件类型，如 "input"；None 表示列表本身
    """

    key: str
    ctrl: bool = False
    target: str | None = None

    @property
    def in_editing_surface(self) -> bool:
        return (self.target or "").lower() in EDITING_TARGETS


class CommandDispatcher:
    """
    快捷键与菜单动作的统一入口。

    :param controller: 文件浏览器控制器
    :param request_upload: 「上传文件」菜单项的回调（由界面打开文件选择器）
    """

    def __init__(
        self,
        controller: FileBrowserController,
        request_upload: Callable[[], Awaitable[object] | None] | None = None,
    ):
        self.controller = controller
        self.request_upload = request_upload

    async def handle_key(self, event: KeyEvent) -> bool:
        """处理按键；返回是否消费了该事件。"""
        c = self.controller
        if event.in_editing_surface or c.editor_open:
            return False
        consumed = c.preview is not None and self._handle_preview_key(event)

        key = event.key
        # 只有字母键按大小写不敏感匹配，"Escape"/"Delete"/"F2" 原样比较
        letter = key.lower() if len(key) == 1 else ""
        if key == "Escape":
            c.clear_selection()
            c.close_context_menu()
            return True
        if key in ("ArrowLeft", "ArrowRight"):
            return consumed
        if event.ctrl and letter == "a":
            c.select_all()
            return True
        if key == "Delete":
            if not c.selection:
                return False
            await c.bulk_delete()
            return True
        if key == "F2":
            selected = c.selected_entries()
            if len(selected) != 1:
                return False
            await c.rename(selected[0])
            return True
        if event.ctrl and letter in ("c", "x"):
            if not c.selection:
                return False
            if letter == "c":
                c.copy_selection()
            else:
                c.cut_selection()
            return True
        if event.ctrl and letter == "v":
            if c.clipboard.is_empty:
                return False
            await c.paste()
            return True
        return False

    def _handle_preview_key(self, event: KeyEvent) -> bool:
        c = self.controller
        if event.key == "Escape":
            c.close_preview()
        elif event.key == "ArrowLeft":
            c.navigate_preview("prev")
        elif event.key == "ArrowRight":
            c.navigate_preview("next")
        else:
            return False
        return True

    def handle_click(self) -> None:
        """菜单外的任意点击关闭右键菜单。"""
        self.controller.close_context_menu()

    def handle_context_menu(self, entry: Entry | None, x: int = 0, y: int = 0) -> ContextMenuState:
        return self.controller.open_context_menu(entry, x, y)

    async def invoke(self, action: MenuAction) -> bool:
        """
        执行当前右键菜单中的动作；菜单中不存在或已禁用的动作不执行。

        :return: 是否执行了动作
        """
        c = self.controller
        menu = c.context_menu
        item = menu.item(action)
        if item is None or not item.enabled:
            logger.debug("menu action %s unavailable", action.value)
            return False
        entry = menu.entry
        c.close_context_menu()

        if action is MenuAction.PASTE:
            await c.paste()
        elif action is MenuAction.REFRESH:
            await c.load_files()
        elif action is MenuAction.UPLOAD:
            if self.request_upload is not None:
                result = self.request_upload()
                if result is not None:
                    await result
        elif entry is None:
            return False
        elif action is MenuAction.DOWNLOAD:
            await c.download(entry)
        elif action is MenuAction.PREVIEW:
            c.open_preview(entry)
        elif action is MenuAction.EDIT:
            if is_editable_file(entry.name):
                await c.open_editor(entry)
        elif action is MenuAction.RENAME:
            await c.rename(entry)
        elif action is MenuAction.COMPRESS:
            await c.compress_selection()
        elif action is MenuAction.COPY:
            c.copy_selection()
        elif action is MenuAction.CUT:
            c.cut_selection()
        elif action is MenuAction.EXTRACT:
            await c.extract(entry)
        elif action is MenuAction.PERMISSIONS:
            await c.change_permissions(entry)
        elif action is MenuAction.DELETE:
            if len(c.selection) > 1:
                await c.bulk_delete()
            else:
                await c.delete_entry(entry)
        return True
