"""
目录树上传遍历：把拖放进来的目录（异步 entry 句柄树）展平成待上传的叶子文件列表。

- 文件：异步解析为具体文件并追加到累加列表；解析失败向上抛出（中止该分支）。
- 目录：反复 read_entries 直到返回空批次（平台按批返回），再依次递归每个子项。
- 空目录不产生任何上传任务（远端不会因此创建空目录）。

拖放的每个顶层项是一个独立分支：某分支失败时丢弃该分支已解析的文件并记录错误，
其余分支继续（与批量删除的部分失败语义一致）。
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Protocol

from fmbrowser.models import SourceFile, UploadTask
from fmbrowser.paths import join_upload_path

logger = logging.getLogger(__name__)

# 本地目录每批返回的子项数量，模拟平台的分批读取
LOCAL_READ_BATCH_SIZE = 100


class TraversalError(Exception):
    """拖放条目（文件或目录）解析失败。"""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path
        self.message = message


class EntryReader(Protocol):
    async def read_entries(self) -> list[DroppedEntry]:
        """返回下一批子项；空列表表示已读完。"""
        ...


class DroppedEntry(Protocol):
    name: str
    is_file: bool
    is_directory: bool

    async def file(self) -> SourceFile: ...

    def create_reader(self) -> EntryReader: ...


@dataclass
class DropResult:
    """遍历结果：成功解析的文件 + 失败分支 [(路径, 错误信息)]。"""

    files: list[SourceFile] = field(default_factory=list)
    failures: list[tuple[str, str]] = field(default_factory=list)


async def _read_all(entry: DroppedEntry) -> list[DroppedEntry]:
    reader = entry.create_reader()
    children: list[DroppedEntry] = []
    while True:
        batch = await reader.read_entries()
        if not batch:
            return children
        children.extend(batch)


async def traverse(entry: DroppedEntry, accumulator: list[SourceFile], prefix: str = "") -> None:
    """
    递归展平 entry，把解析出的叶子文件追加到 accumulator。

    :param entry: 拖放条目（文件或目录）
    :param accumulator: 结果列表，顺序无关，只要求完整
    :param prefix: entry 所在目录在拖放树内的相对路径
    :raises TraversalError: 文件或目录解析失败
    """
    rel = f"{prefix}/{entry.name}" if prefix else entry.name
    if entry.is_file:
        try:
            resolved = await entry.file()
        except TraversalError as e:
            raise TraversalError(rel, e.message) from e
        except Exception as e:
            raise TraversalError(rel, str(e) or type(e).__name__) from e
        # 相对路径以遍历位置为准，保证目录结构不丢失
        accumulator.append(SourceFile(resolved.name, rel, resolved.path, resolved.content))
        return
    if entry.is_directory:
        try:
            children = await _read_all(entry)
        except TraversalError as e:
            raise TraversalError(rel, e.message) from e
        except Exception as e:
            raise TraversalError(rel, str(e) or type(e).__name__) from e
        for child in children:
            await traverse(child, accumulator, rel)


async def flatten_drop(entries: Iterable[DroppedEntry]) -> DropResult:
    """逐个遍历拖放的顶层项；失败分支不计入结果，其余继续。"""
    result = DropResult()
    for entry in entries:
        branch: list[SourceFile] = []
        try:
            await traverse(entry, branch)
        except TraversalError as e:
            logger.warning("drop traversal failed: %s", e)
            result.failures.append((e.path, e.message))
            continue
        result.files.extend(branch)
    return result


def build_upload_tasks(files: Iterable[SourceFile], upload_root: str) -> list[UploadTask]:
    """目标路径 = 上传根目录 + 文件在拖放树内的相对路径（规范化）。"""
    return [UploadTask(f, join_upload_path(upload_root, f.relative_path)) for f in files]


# ------------------------- 本地文件系统适配 -------------------------


class LocalEntryReader:
    def __init__(self, directory: Path, batch_size: int = LOCAL_READ_BATCH_SIZE):
        self._directory = directory
        self._batch_size = batch_size
        self._pending: list[Path] | None = None

    async def read_entries(self) -> list[LocalDroppedEntry]:
        if self._pending is None:
            self._pending = await asyncio.to_thread(lambda: sorted(self._directory.iterdir()))
        batch, self._pending = self._pending[: self._batch_size], self._pending[self._batch_size :]
        return [LocalDroppedEntry(p) for p in batch]


class LocalDroppedEntry:
    """把本地路径包装成拖放条目，供 CLI 上传目录时复用同一遍历逻辑。"""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.name = self.path.name
        self.is_directory = self.path.is_dir()
        self.is_file = not self.is_directory

    async def file(self) -> SourceFile:
        if not await asyncio.to_thread(os.access, self.path, os.R_OK):
            raise TraversalError(self.name, "file is not readable")
        return SourceFile(self.name, self.name, path=self.path)

    def create_reader(self) -> LocalEntryReader:
        return LocalEntryReader(self.path)


def files_from_paths(paths: Iterable[str | Path]) -> list[SourceFile]:
    """平铺的多文件选择：视为已是叶子文件，不做遍历。"""
    return [SourceFile(Path(p).name, Path(p).name, path=Path(p)) for p in paths]
