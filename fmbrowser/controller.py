"""
文件浏览器控制器：持有当前目录、条目列表、选中集合、剪贴板、筛选/排序、忙碌标记等全部状态，
并把删除/粘贴/上传等远程操作委托给 FileStore。

单线程事件循环模型：所有状态修改都在触发它的事件内完成；await 之后的续体会重新校验状态
（如列表返回时目录已切换则丢弃结果）。远程错误在调用处捕获并通过 Notifier 提示，
剪贴板与选中集合只在确认成功后才修改。
"""

from __future__ import annotations

import datetime
import logging
import re
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable, Protocol

from fmbrowser import pipeline
from fmbrowser.client import FileStore, FileStoreError
from fmbrowser.clipboard import Clipboard, ClipboardState
from fmbrowser.menus import HIDDEN_MENU, ContextMenuState, build_background_menu, build_entry_menu
from fmbrowser.models import (
    ClipboardMode,
    DirectoryStats,
    Entry,
    FilterSpec,
    SortSpec,
    SourceFile,
    UploadProgress,
    UploadReport,
    UploadTask,
    is_zip_file,
    media_type,
    validate_file_name,
)
from fmbrowser.paths import (
    DEFAULT_ROOT,
    Breadcrumb,
    build_breadcrumbs,
    build_file_path,
    navigate_to_breadcrumb,
    navigate_to_folder,
    navigate_to_parent,
    normalize_path,
)
from fmbrowser.preferences import DraftStore, KeyValueStore, Preferences
from fmbrowser.selection import SelectionTracker
from fmbrowser.traverser import DroppedEntry, build_upload_tasks, flatten_drop

logger = logging.getLogger(__name__)

# 同一操作进行中时拒绝再次触发
BUSY_OPERATIONS = ("loading", "upload", "paste", "delete", "rename")

_PERMISSION_MODE = re.compile(r"^[0-7]{3}$")


class Notifier(Protocol):
    """提示消息（toast）展示接口。"""

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...


class Prompter(Protocol):
    """模态对话框接口。"""

    async def confirm(self, title: str, message: str) -> bool: ...

    async def ask_text(self, title: str, default: str = "") -> str | None: ...


class LoggingNotifier:
    """默认提示：写日志。"""

    def success(self, message: str) -> None:
        logger.info(message)

    def error(self, message: str) -> None:
        logger.error(message)

    def info(self, message: str) -> None:
        logger.info(message)


class AutoPrompter:
    """默认对话框：总是确认，文本输入直接采用默认值。"""

    async def confirm(self, title: str, message: str) -> bool:
        return True

    async def ask_text(self, title: str, default: str = "") -> str | None:
        return default


@dataclass(frozen=True)
class MediaItem:
    name: str
    path: str
    type: str


@dataclass(frozen=True)
class PreviewState:
    items: tuple[MediaItem, ...]
    index: int

    @property
    def current(self) -> MediaItem:
        return self.items[self.index]


@dataclass
class EditorState:
    name: str
    path: str
    content: str
    draft_restored: bool = False


@dataclass(frozen=True)
class ViewSnapshot:
    """每次状态变化后交给渲染方的只读快照。"""

    current_path: str
    breadcrumbs: tuple[Breadcrumb, ...]
    displayed_entries: tuple[Entry, ...]
    selection: frozenset[int]
    clipboard: ClipboardState
    filter_spec: FilterSpec
    sort_spec: SortSpec
    busy: dict[str, bool]
    stats: DirectoryStats = field(default_factory=DirectoryStats)
    context_menu: ContextMenuState = HIDDEN_MENU
    upload_progress: UploadProgress | None = None
    error: str = ""


def _message(e: BaseException) -> str:
    return getattr(e, "message", None) or str(e) or "Unknown error"


def default_archive_name(today: datetime.date | None = None) -> str:
    return f"archive_{(today or datetime.date.today()).isoformat()}"


class FileBrowserController:
    """
    文件浏览器的状态机与命令入口。

    :param store: 文件存储（FileStoreClient 或测试替身）
    :param root: 根目录，不可再向上导航
    :param notifier: 提示消息展示，默认写日志
    :param prompter: 确认/输入对话框，默认自动确认
    :param state_store: 本地键值存储（偏好与草稿），默认仅内存
    """

    def __init__(
        self,
        store: FileStore,
        *,
        root: str = DEFAULT_ROOT,
        notifier: Notifier | None = None,
        prompter: Prompter | None = None,
        state_store: KeyValueStore | None = None,
    ):
        self.store = store
        self.root = normalize_path(root)
        self.notifier: Notifier = notifier or LoggingNotifier()
        self.prompter: Prompter = prompter or AutoPrompter()
        kv = state_store or KeyValueStore()
        self.preferences = Preferences(kv)
        self.drafts = DraftStore(kv)

        self.current_path = self.root
        self.entries: tuple[Entry, ...] = ()
        self.stats = DirectoryStats()
        self.selection = SelectionTracker()
        self.clipboard = Clipboard()
        self.filter_spec = FilterSpec()
        self.sort_spec = SortSpec()
        self.busy: dict[str, bool] = {op: False for op in BUSY_OPERATIONS}
        self.context_menu = HIDDEN_MENU
        self.upload_progress: UploadProgress | None = None
        self.editor: EditorState | None = None
        self.preview: PreviewState | None = None
        self.last_error = ""

        self._load_seq = 0
        self._subscribers: list[Callable[[ViewSnapshot], None]] = []

    # ------------------------- 快照与订阅 -------------------------

    def subscribe(self, callback: Callable[[ViewSnapshot], None]) -> Callable[[], None]:
        """注册渲染回调；返回取消订阅函数。"""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def snapshot(self) -> ViewSnapshot:
        return ViewSnapshot(
            current_path=self.current_path,
            breadcrumbs=tuple(build_breadcrumbs(self.current_path)),
            displayed_entries=tuple(self.displayed_entries),
            selection=self.selection.ids,
            clipboard=self.clipboard.state,
            filter_spec=self.filter_spec,
            sort_spec=self.sort_spec,
            busy=dict(self.busy),
            stats=self.stats,
            context_menu=self.context_menu,
            upload_progress=self.upload_progress,
            error=self.last_error,
        )

    def _emit(self) -> None:
        if not self._subscribers:
            return
        snap = self.snapshot()
        for callback in list(self._subscribers):
            callback(snap)

    @property
    def displayed_entries(self) -> list[Entry]:
        return pipeline.apply(self.entries, self.filter_spec, self.sort_spec)

    @property
    def editor_open(self) -> bool:
        return self.editor is not None

    def selected_entries(self) -> list[Entry]:
        return self.selection.selected_entries(self.entries)

    def entry_path(self, entry: Entry) -> str:
        return build_file_path(self.current_path, entry.name)

    def _begin(self, op: str) -> bool:
        if self.busy.get(op):
            logger.debug("%s already in progress, rejected", op)
            self.notifier.info(f"{op.capitalize()} already in progress")
            return False
        self.busy[op] = True
        self._emit()
        return True

    def _end(self, op: str) -> None:
        self.busy[op] = False
        self._emit()

    def _fail(self, action: str, e: BaseException) -> None:
        msg = _message(e)
        self.last_error = msg
        logger.warning("%s failed: %s", action, msg)
        self.notifier.error(f"{action} failed: {msg}")

    # ------------------------- 列表与导航 -------------------------

    async def load_files(self) -> bool:
        """
        重新加载当前目录。条目整体替换（不做增量合并）。

        返回期间若目录已切换（或已有更新的加载），则丢弃本次结果并返回 False。
        """
        path = self.current_path
        self._load_seq += 1
        seq = self._load_seq
        self.busy["loading"] = True
        self.last_error = ""
        self._emit()
        try:
            result = await self.store.list(path)
        except FileStoreError as e:
            if seq == self._load_seq:
                self.last_error = _message(e) or "Failed to load files"
                logger.warning("load %s failed: %s", path, self.last_error)
            return False
        finally:
            if seq == self._load_seq:
                self.busy["loading"] = False
                self._emit()
        if seq != self._load_seq or path != self.current_path:
            logger.debug("discarding stale listing of %s", path)
            return False
        self.entries = result.entries
        self.stats = result.stats
        self._emit()
        return True

    async def navigate_to(self, path: str) -> bool:
        """切换目录：清空选中、关闭菜单，然后加载。"""
        self.current_path = normalize_path(path)
        self.selection.clear()
        self.context_menu = HIDDEN_MENU
        self.preview = None
        logger.debug("navigate to %s", self.current_path)
        self._emit()
        return await self.load_files()

    async def open_folder(self, name: str) -> bool:
        return await self.navigate_to(navigate_to_folder(self.current_path, name))

    async def go_up(self) -> bool:
        return await self.navigate_to(navigate_to_parent(self.current_path, self.root))

    async def go_to_breadcrumb(self, index: int) -> bool:
        return await self.navigate_to(navigate_to_breadcrumb(index, self.current_path, self.root))

    # ------------------------- 选中 -------------------------

    def toggle_selection(self, entry_id: int) -> None:
        self.selection.toggle(entry_id)
        self._emit()

    def set_checked(self, entry_id: int, checked: bool) -> None:
        self.selection.set_checked(entry_id, checked)
        self._emit()

    def select_all(self) -> None:
        """全选当前展示（筛选后）的条目。"""
        self.selection.select_all(e.id for e in self.displayed_entries)
        self._emit()

    def clear_selection(self) -> None:
        self.selection.clear()
        self._emit()

    # ------------------------- 筛选与排序 -------------------------

    def change_filter(self, **changes: str) -> FilterSpec:
        """修改筛选条件，如 change_filter(type="image", query="logo")。"""
        self.filter_spec = replace(self.filter_spec, **changes)
        self._emit()
        return self.filter_spec

    def clear_filters(self) -> None:
        self.filter_spec = self.filter_spec.cleared()
        self._emit()

    def change_sort(self, key: str, direction: str | None = None) -> SortSpec:
        """不传 direction 时按列头点击语义切换。"""
        self.sort_spec = SortSpec(key, direction) if direction else self.sort_spec.toggle(key)
        self._emit()
        return self.sort_spec

    # ------------------------- 右键菜单 -------------------------

    def open_context_menu(self, entry: Entry | None, x: int = 0, y: int = 0) -> ContextMenuState:
        """右键条目时按选中规则调整选中集合；右键空白处打开背景菜单。"""
        if entry is not None:
            self.selection.focus_for_context_menu(entry.id)
            items = build_entry_menu(entry)
        else:
            items = build_background_menu(self.clipboard.is_empty)
        self.context_menu = ContextMenuState(True, x, y, entry, items)
        self._emit()
        return self.context_menu

    def close_context_menu(self) -> None:
        if self.context_menu.visible:
            self.context_menu = HIDDEN_MENU
            self._emit()

    # ------------------------- 剪贴板 -------------------------

    def copy_selection(self) -> ClipboardState:
        state = self.clipboard.copy(self.selected_entries(), self.current_path)
        self.context_menu = HIDDEN_MENU
        if not state.is_empty:
            self.notifier.success(f"{len(state.items)} file(s) copied!")
        self._emit()
        return state

    def cut_selection(self) -> ClipboardState:
        state = self.clipboard.cut(self.selected_entries(), self.current_path)
        self.context_menu = HIDDEN_MENU
        if not state.is_empty:
            self.notifier.success(f"{len(state.items)} file(s) cut!")
        self._emit()
        return state

    def clear_clipboard(self) -> None:
        self.clipboard.clear()
        self._emit()

    async def paste(self) -> bool:
        """粘贴到当前目录（粘贴时读取）；成功后清空剪贴板与选中并刷新。"""
        if self.clipboard.is_empty:
            self.notifier.error("Clipboard is empty")
            return False
        if not self._begin("paste"):
            return False
        destination = self.current_path
        try:
            pasted = await self.clipboard.paste(self.store, destination)
        except FileStoreError as e:
            self._fail("Paste", e)
            return False
        finally:
            self._end("paste")
        self.selection.clear()
        self.context_menu = HIDDEN_MENU
        verb = "copied" if pasted.mode is ClipboardMode.COPY else "moved"
        await self.load_files()
        self.notifier.success(f"Successfully {verb} {len(pasted.items)} file(s)!")
        return True

    # ------------------------- 删除 -------------------------

    async def delete_entry(self, entry: Entry) -> bool:
        """删除单个条目；除非设置了「不再确认」，否则先确认。"""
        if not self.preferences.suppress_delete_confirm:
            if not await self.prompter.confirm(f'Delete "{entry.name}"?', "This action cannot be undone."):
                return False
        if not self._begin("delete"):
            return False
        try:
            await self.store.delete(self.entry_path(entry))
        except FileStoreError as e:
            self._fail("Delete", e)
            return False
        finally:
            self._end("delete")
        self.selection.set_checked(entry.id, False)
        await self.load_files()
        self.notifier.success("Deleted successfully!")
        return True

    def set_suppress_delete_confirm(self, value: bool) -> None:
        self.preferences.suppress_delete_confirm = value

    async def bulk_delete(self) -> tuple[int, int]:
        """
        删除全部选中项：逐个调用 delete，单个失败不中断，最后汇总并刷新。

        :return: (成功数, 失败数)；未确认或无选中时为 (0, 0)
        """
        targets = self.selected_entries()
        if not targets:
            return (0, 0)
        names = "\n• ".join(e.name for e in targets)
        if not await self.prompter.confirm(
            f"Delete {len(targets)} selected file(s)?",
            f"{names}\n\nThis action cannot be undone.",
        ):
            return (0, 0)
        if not self._begin("delete"):
            return (0, 0)
        ok = failed = 0
        try:
            for entry in targets:
                try:
                    await self.store.delete(self.entry_path(entry))
                except FileStoreError as e:
                    logger.warning("failed to delete %s: %s", entry.name, _message(e))
                    failed += 1
                else:
                    ok += 1
        finally:
            self._end("delete")
        self.selection.clear()
        await self.load_files()
        if failed == 0:
            self.notifier.success(f"Successfully deleted {ok} file(s)!")
        else:
            self.notifier.error(f"Deleted {ok} file(s).\nFailed to delete {failed} file(s).")
        return (ok, failed)

    # ------------------------- 新建 / 重命名 -------------------------

    async def create_folder(self, name: str | None = None) -> bool:
        if name is None:
            name = await self.prompter.ask_text("Enter folder name:")
            if name is None:
                return False
        error = validate_file_name(name)
        if error:
            self.notifier.error(error)
            return False
        try:
            await self.store.create_folder(name, self.current_path)
        except FileStoreError as e:
            self._fail("Create folder", e)
            return False
        await self.load_files()
        self.notifier.success("Folder created successfully!")
        return True

    async def rename(self, entry: Entry, new_name: str | None = None) -> bool:
        """重命名；名称不变视为取消，非法名称在本地拒绝。"""
        if new_name is None:
            new_name = await self.prompter.ask_text(f'Rename "{entry.name}"', entry.name)
            if new_name is None:
                return False
        if new_name == entry.name:
            return False
        error = validate_file_name(new_name)
        if error:
            self.notifier.error(error)
            return False
        if not self._begin("rename"):
            return False
        try:
            await self.store.rename(self.entry_path(entry), new_name)
        except FileStoreError as e:
            self._fail("Rename", e)
            return False
        finally:
            self._end("rename")
        await self.load_files()
        self.notifier.success(f'Renamed successfully to "{new_name}"')
        return True

    # ------------------------- 上传 -------------------------

    async def _run_uploads(self, tasks: list[UploadTask], report: UploadReport | None = None) -> UploadReport:
        """按列表顺序一次上传一个文件；单个失败记录后继续。"""
        report = report or UploadReport()
        total = len(tasks)
        for i, task in enumerate(tasks):
            self.upload_progress = UploadProgress(task.source.name, round((i + 1) / total * 100))
            self._emit()
            try:
                await self.store.upload(task.source, task.folder)
            except (FileStoreError, OSError) as e:
                logger.warning("upload %s failed: %s", task.destination_path, _message(e))
                report.failed.append((task.destination_path, _message(e)))
            else:
                report.succeeded += 1
        self.upload_progress = None
        return report

    async def _upload(self, build: Callable[[str], Any]) -> UploadReport | None:
        if not self._begin("upload"):
            return None
        root = self.current_path
        try:
            tasks, report = await build(root)
            if not tasks and not report.failed:
                return report
            report = await self._run_uploads(tasks, report)
        finally:
            self._end("upload")
        await self.load_files()
        if not report.failed:
            self.notifier.success(f"{report.succeeded} file(s) uploaded successfully!")
        else:
            self.notifier.error(
                f"Uploaded {report.succeeded} file(s). Failed to upload {len(report.failed)} file(s)."
            )
        return report

    async def upload_files(self, files: Iterable[SourceFile]) -> UploadReport | None:
        """平铺的多文件上传（不含目录结构），全部上传到当前目录。"""
        files = list(files)

        async def build(root: str) -> tuple[list[UploadTask], UploadReport]:
            flat = [SourceFile(f.name, f.name, f.path, f.content) for f in files]
            return build_upload_tasks(flat, root), UploadReport()

        return await self._upload(build)

    async def upload_folder(self, files: Iterable[SourceFile]) -> UploadReport | None:
        """目录选择器上传：按每个文件的 relative_path 还原目录结构。"""
        files = list(files)

        async def build(root: str) -> tuple[list[UploadTask], UploadReport]:
            return build_upload_tasks(files, root), UploadReport()

        return await self._upload(build)

    async def upload_dropped(self, entries: Iterable[DroppedEntry]) -> UploadReport | None:
        """拖放上传：先遍历目录树，解析失败的分支计入失败，其余照常上传。"""
        entries = list(entries)

        async def build(root: str) -> tuple[list[UploadTask], UploadReport]:
            drop = await flatten_drop(entries)
            return build_upload_tasks(drop.files, root), UploadReport(failed=list(drop.failures))

        return await self._upload(build)

    # ------------------------- 下载 / 压缩 / 解压 / 权限 / git -------------------------

    async def download(self, entry: Entry) -> bytes | None:
        try:
            return await self.store.download(self.entry_path(entry))
        except FileStoreError as e:
            self._fail("Download", e)
            return None

    async def compress_selection(self, archive_name: str | None = None) -> bool:
        targets = self.selected_entries()
        if not targets:
            self.notifier.error("Please select files to compress")
            return False
        if archive_name is None:
            archive_name = await self.prompter.ask_text("Archive name:", default_archive_name())
            if archive_name is None:
                return False
        error = validate_file_name(archive_name)
        if error:
            self.notifier.error(error)
            return False
        paths = [self.entry_path(e) for e in targets]
        try:
            await self.store.compress(paths, archive_name)
        except FileStoreError as e:
            self._fail("Compress", e)
            return False
        await self.load_files()
        self.notifier.success(f"Compressed {len(paths)} item(s) into {archive_name}")
        return True

    async def extract(self, entry: Entry, delete_after: bool = True) -> int | None:
        """解压 ZIP；返回解压出的文件数。"""
        if entry.is_folder or not is_zip_file(entry.name):
            self.notifier.error("Only .zip archives can be extracted")
            return None
        try:
            result = await self.store.extract_archive(self.entry_path(entry), delete_after)
        except FileStoreError as e:
            self._fail("Extract", e)
            return None
        count = int(result.get("filesExtracted") or 0) if isinstance(result, dict) else 0
        await self.load_files()
        self.notifier.success(f"Extracted {count} file(s) from {entry.name}")
        return count

    async def change_permissions(self, entry: Entry, mode: str | None = None) -> bool:
        if mode is None:
            mode = await self.prompter.ask_text(f'Permissions for "{entry.name}"', entry.permissions or "644")
            if mode is None:
                return False
        if not _PERMISSION_MODE.match(mode):
            self.notifier.error(f"Invalid permission mode: {mode}")
            return False
        try:
            await self.store.set_permissions(self.entry_path(entry), mode)
        except FileStoreError as e:
            self._fail("Change permissions", e)
            return False
        await self.load_files()
        self.notifier.success(f"Permissions of {entry.name} set to {mode}")
        return True

    async def clone_repository(self, url: str | None = None) -> bool:
        if url is None:
            url = await self.prompter.ask_text("Enter Git Repository URL:")
        if not url or not url.strip():
            return False
        try:
            await self.store.clone_repository(url.strip(), self.current_path)
        except FileStoreError as e:
            self._fail("Clone", e)
            return False
        await self.load_files()
        self.notifier.success("Repository cloned successfully!")
        return True

    # ------------------------- 文本编辑与草稿 -------------------------

    async def open_editor(self, entry: Entry) -> EditorState | None:
        """读取文本；存在本地草稿时询问是否恢复。"""
        path = self.entry_path(entry)
        try:
            content = await self.store.read_text(path)
        except FileStoreError as e:
            self._fail("Read file", e)
            return None
        state = EditorState(entry.name, path, content)
        draft = self.drafts.get(path)
        if draft is not None and draft != content:
            if await self.prompter.confirm(
                "Restore draft?",
                "We found an unsaved draft for this file. Do you want to restore it?",
            ):
                state.content = draft
                state.draft_restored = True
            else:
                self.drafts.discard(path)
        self.editor = state
        self._emit()
        return state

    def save_draft(self, content: str) -> None:
        if self.editor is not None:
            self.drafts.save(self.editor.path, content)

    async def save_editor(self, content: str) -> bool:
        """远程保存；成功后才清除该文件的草稿，失败时保留为草稿。"""
        if self.editor is None:
            return False
        path = self.editor.path
        try:
            await self.store.write_text(path, content)
        except FileStoreError as e:
            self.drafts.save(path, content)
            self._fail("Save", e)
            return False
        self.drafts.discard(path)
        self.editor.content = content
        self.notifier.success(f"Saved {self.editor.name}")
        return True

    def close_editor(self, content: str | None = None) -> None:
        """关闭编辑器；传入的内容与已保存内容不同时存为草稿。"""
        if self.editor is not None and content is not None and content != self.editor.content:
            self.drafts.save(self.editor.path, content)
        self.editor = None
        self._emit()

    # ------------------------- 媒体预览 -------------------------

    def media_list(self) -> tuple[MediaItem, ...]:
        """当前展示列表中的图片/视频。"""
        return tuple(
            MediaItem(e.name, self.entry_path(e), media_type(e.name) or "")
            for e in self.displayed_entries
            if not e.is_folder and media_type(e.name)
        )

    def open_preview(self, entry: Entry) -> PreviewState | None:
        items = self.media_list()
        index = next((i for i, m in enumerate(items) if m.name == entry.name), -1)
        if index == -1:
            return None
        self.preview = PreviewState(items, index)
        self._emit()
        return self.preview

    def navigate_preview(self, direction: str) -> PreviewState | None:
        """prev/next，在两端停住。"""
        if self.preview is None:
            return None
        last = len(self.preview.items) - 1
        step = -1 if direction == "prev" else 1
        index = min(max(self.preview.index + step, 0), last)
        if index != self.preview.index:
            self.preview = replace(self.preview, index=index)
            self._emit()
        return self.preview

    async def load_preview(self) -> bytes | None:
        if self.preview is None:
            return None
        try:
            return await self.store.fetch_media(self.preview.current.path)
        except FileStoreError as e:
            self._fail("Preview", e)
            return None

    def close_preview(self) -> None:
        self.preview = None
        self._emit()
