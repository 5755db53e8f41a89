"""
数据模型（models）单元测试：列表项校验、文件类型判断、大小格式化、名称校验。
"""

from __future__ import annotations

import pytest

from fmbrowser.models import (
    EntryKind,
    InvalidEntryError,
    SourceFile,
    UploadReport,
    format_file_size,
    is_editable_file,
    is_zip_file,
    media_type,
    parse_entry,
    parse_list_response,
    validate_file_name,
)

from tests.config import FM_ROOT, SAMPLE_FILES


def test_parse_entry_defaults() -> None:
    """缺少 size 时为占位 "-"。"""
    entry = parse_entry({"id": 7, "name": "dir", "type": "folder"})
    assert entry.kind is EntryKind.FOLDER
    assert entry.is_folder
    assert entry.size == "-"


@pytest.mark.parametrize(
    "raw",
    [
        None,
        {"name": "a", "type": "file"},
        {"id": True, "name": "a", "type": "file"},
        {"id": 1, "name": "", "type": "file"},
        {"id": 1, "name": "a", "type": "link"},
    ],
)
def test_parse_entry_rejects_invalid(raw: object) -> None:
    with pytest.raises(InvalidEntryError):
        parse_entry(raw)


def test_parse_list_response() -> None:
    result = parse_list_response({"files": SAMPLE_FILES}, FM_ROOT)
    assert len(result.entries) == len(SAMPLE_FILES)
    assert result.current_path == FM_ROOT
    assert result.stats.storage_quota == "10 GB"


def test_extension_and_kinds() -> None:
    assert parse_entry(SAMPLE_FILES[2]).extension == "png"
    assert media_type("a.JPG") == "image"
    assert media_type("a.webm") == "video"
    assert media_type("a.mp3") is None
    assert is_editable_file(".htaccess")
    assert not is_editable_file("a.png")
    assert is_zip_file("A.Zip") and not is_zip_file("a.tar.gz")


@pytest.mark.parametrize(
    "n, expected",
    [(0, "0 B"), (512, "512 B"), (1024, "1 KB"), (1536, "1.5 KB"), (1024 ** 2 * 10, "10 MB"), (1024 ** 4 * 3, "3 TB")],
)
def test_format_file_size(n: int, expected: str) -> None:
    assert format_file_size(n) == expected


@pytest.mark.parametrize(
    "name, error",
    [
        ("ok-name.txt", None),
        ("   ", "File name cannot be empty"),
        ("a/b", "File name cannot contain / or \\"),
        ("a\\b", "File name cannot contain / or \\"),
        ("what?.txt", "File name cannot contain ?"),
        ("a|b", "File name cannot contain |"),
    ],
)
def test_validate_file_name(name: str, error: str | None) -> None:
    assert validate_file_name(name) == error


def test_source_file_open_and_report_total() -> None:
    with SourceFile("a.txt", "a.txt", content=b"abc").open() as fp:
        assert fp.read() == b"abc"
    with pytest.raises(ValueError):
        SourceFile("a.txt", "a.txt").open()
    assert UploadReport(succeeded=2, failed=[("/x", "e")]).total == 3
