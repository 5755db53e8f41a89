"""
pytest 配置与共享 fixture。

FakeStore 是内存中的 FileStore：记录每次调用，可按操作注入失败，可用 gate 挂起 list 以模拟慢请求。
控制器测试在普通测试函数中用 asyncio.run 驱动协程。
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable

import pytest

from fmbrowser.client import FileStoreError
from fmbrowser.controller import FileBrowserController
from fmbrowser.models import DirectoryStats, Entry, EntryKind, ListResult, SourceFile, parse_entry
from fmbrowser.preferences import KeyValueStore

from tests.config import FM_ROOT, SAMPLE_FILES


def make_entry(
    entry_id: int,
    name: str,
    kind: str = "file",
    size: str = "1 KB",
    modified: str = "2 days ago",
    permissions: str = "644",
) -> Entry:
    return Entry(entry_id, name, EntryKind(kind), size, modified, permissions)


FailureRule = Callable[..., "FileStoreError | None"]


class FakeStore:
    """内存实现的 FileStore。"""

    def __init__(self, listings: dict[str, list[Entry]] | None = None):
        self.listings: dict[str, list[Entry]] = listings or {}
        self.calls: list[tuple[Any, ...]] = []
        # 操作名 -> FileStoreError 或 (参数) -> FileStoreError | None
        self.fail: dict[str, FileStoreError | FailureRule] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.texts: dict[str, str] = {}
        self.blobs: dict[str, bytes] = {}
        self.uploads: list[tuple[str, str]] = []

    def _record(self, op: str, *args: Any) -> None:
        self.calls.append((op, *args))
        rule = self.fail.get(op)
        if rule is None:
            return
        err = rule if isinstance(rule, FileStoreError) else rule(*args)
        if err is not None:
            raise err

    def ops(self, op: str) -> list[tuple[Any, ...]]:
        return [c[1:] for c in self.calls if c[0] == op]

    async def list(self, path: str) -> ListResult:
        self._record("list", path)
        gate = self.gates.get(path)
        if gate is not None:
            await gate.wait()
        entries = tuple(self.listings.get(path, []))
        stats = DirectoryStats(
            total_files=sum(1 for e in entries if not e.is_folder),
            total_folders=sum(1 for e in entries if e.is_folder),
        )
        return ListResult(entries, stats, path)

    async def upload(self, file: SourceFile, destination_path: str) -> Any:
        self._record("upload", file.relative_path, destination_path)
        self.uploads.append((destination_path, file.name))
        return {"success": True}

    async def download(self, path: str) -> bytes:
        self._record("download", path)
        return self.blobs.get(path, b"")

    async def delete(self, path: str) -> Any:
        self._record("delete", path)
        return {"success": True}

    async def create_folder(self, name: str, path: str) -> Any:
        self._record("create_folder", name, path)
        return {"success": True}

    async def rename(self, old_path: str, new_name: str) -> Any:
        self._record("rename", old_path, new_name)
        return {"success": True}

    async def copy(self, source_paths: list[str], destination_path: str) -> Any:
        self._record("copy", list(source_paths), destination_path)
        return {"success": True}

    async def move(self, source_paths: list[str], destination_path: str) -> Any:
        self._record("move", list(source_paths), destination_path)
        return {"success": True}

    async def read_text(self, path: str) -> str:
        self._record("read_text", path)
        return self.texts.get(path, "")

    async def write_text(self, path: str, content: str) -> Any:
        self._record("write_text", path, content)
        self.texts[path] = content
        return {"success": True}

    async def extract_archive(self, path: str, delete_after: bool = True) -> dict[str, Any]:
        self._record("extract_archive", path, delete_after)
        return {"success": True, "filesExtracted": 3}

    async def compress(self, paths: list[str], archive_name: str) -> Any:
        self._record("compress", list(paths), archive_name)
        return {"success": True}

    async def set_permissions(self, path: str, mode: str) -> Any:
        self._record("set_permissions", path, mode)
        return {"success": True}

    async def clone_repository(self, url: str, destination_path: str) -> Any:
        self._record("clone_repository", url, destination_path)
        return {"success": True}

    async def fetch_media(self, path: str) -> bytes:
        self._record("fetch_media", path)
        data = self.blobs.get(path, b"")
        if not data:
            raise FileStoreError("Received empty file")
        return data


class FakeReader:
    """按固定批大小返回子项，最后返回空批次。"""

    def __init__(self, children: list, batch_size: int = 1):
        self._pending = list(children)
        self._batch_size = batch_size
        self.reads = 0

    async def read_entries(self) -> list:
        self.reads += 1
        batch, self._pending = self._pending[: self._batch_size], self._pending[self._batch_size :]
        return batch


class FakeFile:
    is_file = True
    is_directory = False

    def __init__(self, name: str, error: Exception | None = None):
        self.name = name
        self.error = error

    async def file(self) -> SourceFile:
        if self.error is not None:
            raise self.error
        return SourceFile(self.name, self.name, content=self.name.encode())

    def create_reader(self) -> FakeReader:
        raise AssertionError("files have no reader")


class FakeDir:
    is_file = False
    is_directory = True

    def __init__(self, name: str, children: list, batch_size: int = 1):
        self.name = name
        self.children = children
        self.batch_size = batch_size
        self.readers: list[FakeReader] = []

    async def file(self) -> SourceFile:
        raise AssertionError("directories have no file")

    def create_reader(self) -> FakeReader:
        reader = FakeReader(self.children, self.batch_size)
        self.readers.append(reader)
        return reader


class RecordingNotifier:
    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    def success(self, message: str) -> None:
        self.messages.append(("success", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))

    def info(self, message: str) -> None:
        self.messages.append(("info", message))

    def last(self, level: str) -> str | None:
        found = [m for lv, m in self.messages if lv == level]
        return found[-1] if found else None


class ScriptedPrompter:
    """确认结果固定；文本输入按队列依次返回，队列为空时返回默认值。"""

    def __init__(self, confirm: bool = True, texts: list[str | None] | None = None):
        self.answer = confirm
        self.texts = list(texts or [])
        self.confirms: list[str] = []

    async def confirm(self, title: str, message: str) -> bool:
        self.confirms.append(title)
        return self.answer

    async def ask_text(self, title: str, default: str = "") -> str | None:
        if self.texts:
            return self.texts.pop(0)
        return default


@pytest.fixture
def sample_entries() -> list[Entry]:
    return [parse_entry(f) for f in SAMPLE_FILES]


@pytest.fixture
def store(sample_entries: list[Entry]) -> FakeStore:
    """根目录含示例条目，/public_html/assets 含两个文件。"""
    return FakeStore(
        {
            FM_ROOT: sample_entries,
            f"{FM_ROOT}/assets": [make_entry(10, "a.css"), make_entry(11, "b.js")],
        }
    )


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def prompter() -> ScriptedPrompter:
    return ScriptedPrompter()


@pytest.fixture
def controller(store: FakeStore, notifier: RecordingNotifier, prompter: ScriptedPrompter) -> FileBrowserController:
    """已加载根目录的控制器（偏好与草稿仅保存在内存）。"""
    c = FileBrowserController(
        store,
        root=FM_ROOT,
        notifier=notifier,
        prompter=prompter,
        state_store=KeyValueStore(),
    )
    asyncio.run(c.load_files())
    return c
