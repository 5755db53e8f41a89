"""Web 文件管理器的浏览核心：导航、筛选排序、选中、剪贴板、目录上传遍历与 REST 客户端。"""

from fmbrowser.client import FileStore, FileStoreClient, FileStoreError
from fmbrowser.clipboard import Clipboard, ClipboardEmptyError, ClipboardState
from fmbrowser.controller import FileBrowserController, ViewSnapshot
from fmbrowser.dispatcher import CommandDispatcher, KeyEvent
from fmbrowser.models import (
    ClipboardMode,
    Entry,
    EntryKind,
    FilterSpec,
    SortSpec,
    SourceFile,
    UploadTask,
)
from fmbrowser.selection import SelectionTracker

__all__ = [
    "FileStore",
    "FileStoreClient",
    "FileStoreError",
    "Clipboard",
    "ClipboardEmptyError",
    "ClipboardState",
    "ClipboardMode",
    "FileBrowserController",
    "ViewSnapshot",
    "CommandDispatcher",
    "KeyEvent",
    "Entry",
    "EntryKind",
    "FilterSpec",
    "SortSpec",
    "SourceFile",
    "UploadTask",
    "SelectionTracker",
]
