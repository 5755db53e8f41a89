"""
条目筛选/排序管线：原始列表 + FilterSpec + SortSpec -> 展示列表。

顺序固定为 搜索 -> 类型 -> 大小 -> 日期 -> 排序，每一步只缩小上一步的结果。
纯函数，无副作用；条目、筛选条件或排序参数变化时重新计算即可。
"""

from __future__ import annotations

import re
from functools import cmp_to_key
from typing import Iterable

from fmbrowser.models import SIZE_SENTINEL, Entry, FilterSpec, SortSpec

# 类型筛选使用的扩展名集合（与编辑器/预览判断用的集合不同）
FILTER_TYPE_EXTENSIONS: dict[str, frozenset[str]] = {
    "image": frozenset({"jpg", "jpeg", "png", "gif", "bmp", "webp", "svg"}),
    "video": frozenset({"mp4", "avi", "mov", "wmv", "flv", "webm", "mkv"}),
    "document": frozenset({"pdf", "doc", "docx", "txt", "rtf", "odt"}),
    "code": frozenset({
        "js", "jsx", "ts", "tsx", "html", "css", "scss",
        "php", "py", "java", "cpp", "c", "go", "rs",
    }),
    "archive": frozenset({"zip", "rar", "tar", "gz", "7z"}),
}

# 大小分档（KB）：[下限, 上限)
SIZE_BUCKETS_KB: dict[str, tuple[float, float]] = {
    "tiny": (0, 100),
    "small": (100, 1024),
    "medium": (1024, 10240),
    "large": (10240, 102400),
    "huge": (102400, float("inf")),
}

_UNIT_TO_KB = (
    ("tb", 1024.0 ** 3),
    ("gb", 1024.0 ** 2),
    ("mb", 1024.0),
    ("kb", 1.0),
    ("b", 1 / 1024),
)

_LEADING_NUMBER = re.compile(r"^\s*([0-9]*\.?[0-9]+)")
_RELATIVE_AGE = re.compile(r"(\d+)\s+(week|day|hour)")


def parse_size_kb(size: str) -> float | None:
    """
    将 "1.5 MB" 之类的格式化大小换算为 KB。

    单位无法识别时按 0 KB 计（归入 tiny）；单位可识别但没有数值时返回 None（不归入任何区间）。
    """
    text = size.lower()
    unit = re.sub(r"[0-9.]", "", text).strip()
    factor = next((f for prefix, f in _UNIT_TO_KB if unit.startswith(prefix)), None)
    if factor is None:
        return 0.0
    m = _LEADING_NUMBER.match(text)
    if not m:
        return None
    return float(m.group(1)) * factor


def size_bucket_matches(entry: Entry, bucket: str) -> bool:
    if bucket == "all" or bucket not in SIZE_BUCKETS_KB:
        return True
    # 文件夹与占位大小只归入 tiny
    if entry.is_folder or entry.size == SIZE_SENTINEL:
        return bucket == "tiny"
    kb = parse_size_kb(entry.size)
    if kb is None:
        return False
    low, high = SIZE_BUCKETS_KB[bucket]
    return low <= kb < high


def type_matches(entry: Entry, type_filter: str) -> bool:
    if type_filter == "all":
        return True
    if type_filter == "folder":
        return entry.is_folder
    if entry.is_folder:
        return False
    extensions = FILTER_TYPE_EXTENSIONS.get(type_filter)
    if extensions is None:
        return True
    return entry.extension in extensions


def date_matches(entry: Entry, date_filter: str) -> bool:
    """
    按相对时间文本粗略归类（非时间戳比较）。

    已知偏差："N minutes ago" 不计入 week/month；"1 day" 与 "8 days" 同样含 day。
    """
    modified = entry.modified.lower()
    if date_filter == "today":
        return "hour" in modified or "minute" in modified or modified == "just now"
    if date_filter == "week":
        return (
            ("day" in modified and "week" not in modified)
            or "hour" in modified
            or modified == "just now"
        )
    if date_filter == "month":
        m = _RELATIVE_AGE.search(modified)
        if not m:
            return modified == "just now"
        num, unit = int(m.group(1)), m.group(2)
        days = num * 7 if unit == "week" else num if unit == "day" else 0
        return days <= 30
    if date_filter == "year":
        return "year" not in modified
    return True


def search_matches(entry: Entry, query: str) -> bool:
    q = query.strip().lower()
    return not q or q in entry.name.lower()


def _sort_value(entry: Entry, key: str) -> str | float:
    if key == "size":
        if entry.size == SIZE_SENTINEL:
            return 0.0
        return parse_size_kb(entry.size) or 0.0
    if key == "modified":
        return entry.modified
    if key == "type":
        return entry.name.rsplit(".", 1)[-1]
    return entry.name


def _compare(a: Entry, b: Entry, sort: SortSpec) -> int:
    # 文件夹始终在前，不受排序方向影响
    if a.is_folder != b.is_folder:
        return -1 if a.is_folder else 1
    va, vb = _sort_value(a, sort.key), _sort_value(b, sort.key)
    result = (va > vb) - (va < vb)
    return result if sort.direction == "asc" else -result


def sort_entries(entries: Iterable[Entry], sort: SortSpec) -> list[Entry]:
    """稳定排序；相等项保持原顺序。"""
    return sorted(entries, key=cmp_to_key(lambda a, b: _compare(a, b, sort)))


def apply(entries: Iterable[Entry], filters: FilterSpec, sort: SortSpec) -> list[Entry]:
    """完整管线：搜索 -> 类型 -> 大小 -> 日期 -> 排序。"""
    result = [e for e in entries if search_matches(e, filters.query)]
    if filters.type != "all":
        result = [e for e in result if type_matches(e, filters.type)]
    if filters.size != "all":
        result = [e for e in result if size_bucket_matches(e, filters.size)]
    if filters.date != "all":
        result = [e for e in result if date_matches(e, filters.date)]
    return sort_entries(result, sort)
