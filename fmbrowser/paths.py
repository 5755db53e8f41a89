"""
路径导航：当前目录、面包屑、父/子目录计算。

全部为纯字符串运算，无错误状态。路径始终为以 / 开头的绝对路径，
无重复斜杠，除根 "/" 外无末尾斜杠。
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# 文件管理器的固定根目录
DEFAULT_ROOT = "/public_html"

_MULTI_SLASH = re.compile(r"/+")


@dataclass(frozen=True)
class Breadcrumb:
    name: str
    path: str
    index: int


def split_path(path: str) -> list[str]:
    """按 / 拆分并丢弃空段。"""
    return [p for p in path.split("/") if p]


def normalize_path(path: str) -> str:
    """合并重复斜杠，补前导 /，去掉末尾 /（根除外）。"""
    path = _MULTI_SLASH.sub("/", "/" + path.strip())
    if len(path) > 1:
        path = path.rstrip("/")
    return path or "/"


def build_file_path(current: str, name: str) -> str:
    """当前目录下某项的完整路径。"""
    return normalize_path(f"{current}/{name}")


def navigate_to_folder(current: str, name: str) -> str:
    """进入子目录；name 不应含分隔符（由调用方用 validate_file_name 校验）。"""
    return build_file_path(current, name)


def navigate_to_parent(current: str, root: str = DEFAULT_ROOT) -> str:
    """返回上一级；已在根目录（或根之外的更浅层）时返回根。"""
    parts = split_path(current)
    if normalize_path(current) == normalize_path(root) or len(parts) <= len(split_path(root)):
        return normalize_path(root)
    return "/" + "/".join(parts[:-1])


def navigate_to_breadcrumb(index: int, current: str, root: str = DEFAULT_ROOT) -> str:
    """index 为 -1 时回到根；否则截取前 index+1 段。"""
    if index == -1:
        return normalize_path(root)
    parts = split_path(current)
    return "/" + "/".join(parts[: index + 1])


def build_breadcrumbs(current: str) -> list[Breadcrumb]:
    """每段一个面包屑，含累计路径与序号（用于点击时查找）。"""
    parts = split_path(current)
    return [
        Breadcrumb(name=part, path="/" + "/".join(parts[: i + 1]), index=i)
        for i, part in enumerate(parts)
    ]


def join_upload_path(root: str, relative_path: str) -> str:
    """上传根目录 + 拖放树内相对路径，规范化。"""
    rel = relative_path.replace("\\", "/")
    return normalize_path(f"{root}/{rel}")
