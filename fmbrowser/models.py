"""
文件浏览器数据模型（与后端 /api/files/list 返回一致）。

后端列表项字段：
- id: 列表内唯一整数标识（每次刷新后可能变化）
- name: 名称（路径最后一段）
- type: "file" | "folder"
- size: 已格式化的大小，如 "12.4 MB"；文件夹为 "-"
- modified: 已格式化的相对时间，如 "3 days ago"
- permissions: 权限字符串，如 "644"

列表项在客户端边界处由 parse_entry 校验，之后统一使用 Entry，不再传递原始 dict。
"""

from __future__ import annotations

import io
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO

# 文件夹大小占位
SIZE_SENTINEL = "-"

IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "bmp", "webp", "svg"})
VIDEO_EXTENSIONS = frozenset({"mp4", "avi", "mov", "wmv", "flv", "webm", "mkv"})
# 可在编辑器中打开的文本类扩展名
EDITABLE_EXTENSIONS = frozenset({
    "html", "htm", "css", "scss", "less", "js", "jsx", "ts", "tsx",
    "json", "xml", "yaml", "yml", "toml", "ini", "conf",
    "php", "py", "rb", "java", "cpp", "c", "go", "rs",
    "sh", "bash", "md", "txt", "sql", "log", "env", "htaccess",
})

# 文件名中禁止出现的字符（/ 与 \ 单独提示）
INVALID_NAME_CHARS = ("<", ">", ":", '"', "|", "?", "*")


class InvalidEntryError(ValueError):
    """后端返回的列表项结构不合法。"""


class EntryKind(str, Enum):
    FILE = "file"
    FOLDER = "folder"


class ClipboardMode(str, Enum):
    NONE = "none"
    COPY = "copy"
    CUT = "cut"


@dataclass(frozen=True)
class Entry:
    """一个文件或文件夹节点（来自某次目录列表）。"""

    id: int
    name: str
    kind: EntryKind
    size: str = SIZE_SENTINEL
    modified: str = ""
    permissions: str = ""

    @property
    def is_folder(self) -> bool:
        return self.kind is EntryKind.FOLDER

    @property
    def extension(self) -> str:
        return file_extension(self.name)


@dataclass(frozen=True)
class DirectoryStats:
    total_files: int = 0
    total_folders: int = 0
    storage_used: str = "0 B"
    storage_quota: str = "10 GB"


@dataclass(frozen=True)
class ListResult:
    """list(path) 的解析结果。"""

    entries: tuple[Entry, ...]
    stats: DirectoryStats
    current_path: str


@dataclass(frozen=True)
class FilterSpec:
    """类型/大小/日期/搜索四个条件，取交集。"""

    type: str = "all"
    size: str = "all"
    date: str = "all"
    query: str = ""

    def active_count(self) -> int:
        """非 all 的高级筛选条件数量（不含搜索词）。"""
        return sum(1 for v in (self.type, self.size, self.date) if v != "all")

    def cleared(self) -> FilterSpec:
        """清空高级筛选，保留搜索词。"""
        return replace(self, type="all", size="all", date="all")


@dataclass(frozen=True)
class SortSpec:
    key: str = "name"
    direction: str = "asc"

    def toggle(self, key: str) -> SortSpec:
        """同一列再次点击时翻转方向，否则切换到该列并升序。"""
        if key == self.key:
            return SortSpec(key, "desc" if self.direction == "asc" else "asc")
        return SortSpec(key, "asc")


@dataclass(frozen=True)
class SourceFile:
    """
    待上传的本地文件。

    relative_path 为文件在拖放/选择目录中的相对路径（含文件名），平铺选择时即文件名。
    内容来自 path（本地文件）或 content（内存字节）二者之一。
    """

    name: str
    relative_path: str
    path: Path | None = None
    content: bytes | None = None

    def open(self) -> BinaryIO:
        if self.content is not None:
            return io.BytesIO(self.content)
        if self.path is None:
            raise ValueError(f"no content for {self.name}")
        return self.path.open("rb")


@dataclass(frozen=True)
class UploadTask:
    """一次上传：源文件 + 远程目标路径（含文件名，已规范化）。"""

    source: SourceFile
    destination_path: str

    @property
    def folder(self) -> str:
        """目标所在目录，即调用 upload 时传入的路径。"""
        head, _, _ = self.destination_path.rpartition("/")
        return head or "/"


@dataclass
class UploadProgress:
    file_name: str
    progress: int


@dataclass
class UploadReport:
    """顺序上传的汇总：成功数与失败列表 [(目标路径, 错误信息)]。"""

    succeeded: int = 0
    failed: list[tuple[str, str]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.succeeded + len(self.failed)


def parse_entry(raw: Any) -> Entry:
    """校验并转换后端列表项；结构不合法时抛 InvalidEntryError。"""
    if not isinstance(raw, dict):
        raise InvalidEntryError(f"entry must be an object, got {type(raw).__name__}")
    for key in ("id", "name", "type"):
        if key not in raw:
            raise InvalidEntryError(f"entry missing '{key}': {raw!r}")
    entry_id = raw["id"]
    # bool 是 int 的子类，需单独排除
    if not isinstance(entry_id, int) or isinstance(entry_id, bool):
        raise InvalidEntryError(f"entry id must be an integer: {entry_id!r}")
    name = raw["name"]
    if not isinstance(name, str) or not name:
        raise InvalidEntryError(f"entry name must be a non-empty string: {name!r}")
    try:
        kind = EntryKind(raw["type"])
    except ValueError:
        raise InvalidEntryError(f"unknown entry type: {raw['type']!r}") from None
    return Entry(
        id=entry_id,
        name=name,
        kind=kind,
        size=str(raw.get("size") or SIZE_SENTINEL),
        modified=str(raw.get("modified") or ""),
        permissions=str(raw.get("permissions") or ""),
    )


def parse_stats(raw: Any) -> DirectoryStats:
    if not isinstance(raw, dict):
        return DirectoryStats()
    return DirectoryStats(
        total_files=int(raw.get("totalFiles") or 0),
        total_folders=int(raw.get("totalFolders") or 0),
        storage_used=str(raw.get("storageUsed") or "0 B"),
        storage_quota=str(raw.get("storageQuota") or "10 GB"),
    )


def parse_list_response(raw: Any, requested_path: str) -> ListResult:
    """解析 list 响应 {files, stats, currentPath}。"""
    if not isinstance(raw, dict):
        raise InvalidEntryError("list response must be an object")
    files = raw.get("files")
    if files is None:
        files = []
    if not isinstance(files, list):
        raise InvalidEntryError("'files' must be a list")
    return ListResult(
        entries=tuple(parse_entry(f) for f in files),
        stats=parse_stats(raw.get("stats")),
        current_path=str(raw.get("currentPath") or requested_path),
    )


# ------------------------- 文件类型 -------------------------


def file_extension(name: str) -> str:
    """最后一个 . 之后的部分（小写）；无 . 时返回整个名称的小写。"""
    return name.rsplit(".", 1)[-1].lower()


def is_image_file(name: str) -> bool:
    return file_extension(name) in IMAGE_EXTENSIONS


def is_video_file(name: str) -> bool:
    return file_extension(name) in VIDEO_EXTENSIONS


def is_media_file(name: str) -> bool:
    return is_image_file(name) or is_video_file(name)


def media_type(name: str) -> str | None:
    """'image' / 'video' / None。"""
    if is_image_file(name):
        return "image"
    if is_video_file(name):
        return "video"
    return None


def is_editable_file(name: str) -> bool:
    return file_extension(name) in EDITABLE_EXTENSIONS


def is_zip_file(name: str) -> bool:
    return name.lower().endswith(".zip")


def format_file_size(n: int) -> str:
    """将字节数格式化为人类可读（B/KB/MB/GB/TB，最多两位小数）。"""
    if n <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    value = float(n)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {units[i]}"


def validate_file_name(name: str) -> str | None:
    """校验文件/文件夹名称；合法返回 None，否则返回错误信息。"""
    if not name.strip():
        return "File name cannot be empty"
    if "/" in name or "\\" in name:
        return "File name cannot contain / or \\"
    for ch in INVALID_NAME_CHARS:
        if ch in name:
            return f"File name cannot contain {ch}"
    return None
