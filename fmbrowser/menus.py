"""右键菜单模型：条目菜单的动作集合取决于条目类型与扩展名；空白处菜单提供粘贴/刷新/上传。"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from fmbrowser.models import Entry, is_editable_file, is_media_file, is_zip_file


class MenuAction(str, Enum):
    DOWNLOAD = "download"
    PREVIEW = "preview"
    EDIT = "edit"
    RENAME = "rename"
    COMPRESS = "compress"
    COPY = "copy"
    CUT = "cut"
    EXTRACT = "extract"
    PERMISSIONS = "permissions"
    DELETE = "delete"
    PASTE = "paste"
    REFRESH = "refresh"
    UPLOAD = "upload"


@dataclass(frozen=True)
class MenuItem:
    action: MenuAction
    label: str
    enabled: bool = True
    shortcut: str = ""


@dataclass(frozen=True)
class ContextMenuState:
    visible: bool = False
    x: int = 0
    y: int = 0
    entry: Entry | None = None
    items: tuple[MenuItem, ...] = ()

    def item(self, action: MenuAction) -> MenuItem | None:
        for it in self.items:
            if it.action is action:
                return it
        return None


HIDDEN_MENU = ContextMenuState()


def build_entry_menu(entry: Entry) -> tuple[MenuItem, ...]:
    is_file = not entry.is_folder
    items: list[MenuItem] = []
    if is_file:
        items.append(MenuItem(MenuAction.DOWNLOAD, "Download"))
    if is_file and is_media_file(entry.name):
        items.append(MenuItem(MenuAction.PREVIEW, "Preview"))
    if is_file and is_editable_file(entry.name):
        items.append(MenuItem(MenuAction.EDIT, "Edit"))
    items += [
        MenuItem(MenuAction.RENAME, "Rename", shortcut="F2"),
        MenuItem(MenuAction.COMPRESS, "Compress to ZIP"),
        MenuItem(MenuAction.COPY, "Copy", shortcut="Ctrl+C"),
        MenuItem(MenuAction.CUT, "Cut", shortcut="Ctrl+X"),
    ]
    if is_file and is_zip_file(entry.name):
        items.append(MenuItem(MenuAction.EXTRACT, "Extract Here"))
    items += [
        MenuItem(MenuAction.PERMISSIONS, "Permissions"),
        MenuItem(MenuAction.DELETE, "Delete", shortcut="Delete"),
    ]
    return tuple(items)


def build_background_menu(clipboard_empty: bool) -> tuple[MenuItem, ...]:
    return (
        MenuItem(MenuAction.PASTE, "Paste", enabled=not clipboard_empty, shortcut="Ctrl+V"),
        MenuItem(MenuAction.REFRESH, "Refresh"),
        MenuItem(MenuAction.UPLOAD, "Upload Files"),
    )
