"""
CLI（typer）单元测试。不依赖真实后端：patch _get_client 返回挂载 httpx.MockTransport 的客户端，
命令经由控制器发出真实形态的 REST 请求。
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest
import typer
from typer.testing import CliRunner

from fmbrowser.cli import app
from fmbrowser.cli_config import clear_config, load_config, save_config
from fmbrowser.client import FileStoreClient
from fmbrowser.pipeline import FILTER_TYPE_EXTENSIONS

from tests.config import FM_BASE_URL, FM_ROOT, FM_TOKEN, SAMPLE_FILES, SAMPLE_STATS

runner = CliRunner()


@pytest.fixture(autouse=True)
def _patch_config_path(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """将配置路径指向临时目录。"""
    config_dir = tmp_path / "fmbrowser"
    config_dir.mkdir(parents=True, exist_ok=True)

    def _config_dir():
        return config_dir

    monkeypatch.setattr("fmbrowser.cli_config._config_dir", _config_dir)


class Backend:
    """按路径返回目录列表的假后端，记录全部请求。"""

    def __init__(self) -> None:
        self.listings: dict[str, list[dict]] = {
            FM_ROOT: SAMPLE_FILES,
            f"{FM_ROOT}/assets": [{"id": 10, "name": "a.css", "type": "file", "size": "1 KB"}],
        }
        self.requests: list[httpx.Request] = []
        self.errors: dict[str, httpx.Response] = {}
        self.texts: dict[str, str] = {f"{FM_ROOT}/index.html": "<h1>hi</h1>\n"}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        endpoint = request.url.path.rsplit("/", 1)[-1]
        if endpoint in self.errors:
            return self.errors[endpoint]
        path = request.url.params.get("path", "")
        if endpoint == "list":
            if path not in self.listings:
                return httpx.Response(404, json={"success": False, "message": "Directory not found"})
            return httpx.Response(200, json={"files": self.listings[path], "stats": SAMPLE_STATS, "currentPath": path})
        if endpoint == "read":
            return httpx.Response(200, json={"success": True, "content": self.texts.get(path, "")})
        if endpoint == "download":
            return httpx.Response(200, content=b"binary-data")
        if endpoint == "extract":
            return httpx.Response(200, json={"success": True, "filesExtracted": 2})
        return httpx.Response(200, json={"success": True})

    def calls(self, endpoint: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(f"/{endpoint}")]

    def bodies(self, endpoint: str) -> list[dict]:
        return [json.loads(r.content) for r in self.calls(endpoint)]


@pytest.fixture
def backend() -> Backend:
    save_config(FM_BASE_URL, FM_TOKEN)
    b = Backend()
    client = FileStoreClient(FM_BASE_URL, FM_TOKEN, transport=httpx.MockTransport(b))
    with patch("fmbrowser.cli._get_client", return_value=client):
        yield b


# ------------------------- login / logout / auth / info -------------------------


def test_login_saves_config() -> None:
    """login 保存 base_url、token 与根目录。"""
    result = runner.invoke(
        app, ["login", "--base-url", f"{FM_BASE_URL}/", "--token", FM_TOKEN, "--root", "/srv/www/"]
    )
    assert result.exit_code == 0
    assert "Saved." in result.stdout
    cfg = load_config()
    assert cfg == {"base_url": FM_BASE_URL, "token": FM_TOKEN, "root": "/srv/www"}


def test_logout_clears_config() -> None:
    save_config(FM_BASE_URL, FM_TOKEN)
    result = runner.invoke(app, ["logout"])
    assert result.exit_code == 0
    assert "Cleared." in result.stdout
    assert load_config() is None
    assert "No saved credentials." in runner.invoke(app, ["logout"]).stdout


def test_auth_status() -> None:
    clear_config()
    assert "Not logged in." in runner.invoke(app, ["auth", "status"]).stdout
    save_config(FM_BASE_URL, FM_TOKEN)
    result = runner.invoke(app, ["auth", "status"])
    assert f"base_url: {FM_BASE_URL}" in result.stdout
    assert "auth: yes" in result.stdout


def test_info_shows_root() -> None:
    save_config(FM_BASE_URL)
    result = runner.invoke(app, ["info"])
    assert result.exit_code == 0
    assert f"root: {FM_ROOT}" in result.stdout
    assert "auth: no" in result.stdout


def test_command_without_credentials_exits_1() -> None:
    clear_config()
    result = runner.invoke(app, ["ls"])
    assert result.exit_code == 1
    assert "no saved credentials" in result.output


# ------------------------- ls -------------------------


def test_ls_lists_root_sorted(backend: Backend) -> None:
    """默认列出根目录，文件夹在前。"""
    result = runner.invoke(app, ["ls"])
    assert result.exit_code == 0
    lines = result.stdout.splitlines()
    assert lines[0].strip().startswith("assets/")
    assert lines[1].strip().startswith("docs/")
    assert "6 item(s)" in result.stdout


def test_ls_applies_filters(backend: Backend) -> None:
    result = runner.invoke(app, ["ls", "--type", "image"])
    assert result.exit_code == 0
    assert "logo.png" in result.stdout
    assert "index.html" not in result.stdout
    assert "1 item(s)" in result.stdout

    result = runner.invoke(app, ["ls", "--sort", "size", "--desc", "--search", "i"])
    names = [line.split()[0] for line in result.stdout.splitlines()[:-1]]
    assert names == ["intro.mp4", "backup.zip", "index.html"]


def test_ls_relative_path(backend: Backend) -> None:
    result = runner.invoke(app, ["ls", "assets"])
    assert result.exit_code == 0
    assert "a.css" in result.stdout
    assert backend.calls("list")[-1].url.params["path"] == f"{FM_ROOT}/assets"


def test_ls_missing_directory_exits_1(backend: Backend) -> None:
    result = runner.invoke(app, ["ls", "/nope"])
    assert result.exit_code == 1
    assert "error: Directory not found" in result.output


# ------------------------- 写操作 -------------------------


def test_rm_bulk_with_yes(backend: Backend) -> None:
    result = runner.invoke(app, ["rm", "index.html", "logo.png", "--yes"])
    assert result.exit_code == 0
    assert [b["path"] for b in backend.bodies("delete")] == [f"{FM_ROOT}/index.html", f"{FM_ROOT}/logo.png"]
    assert "Successfully deleted 2 file(s)!" in result.stdout


def test_rm_declined_does_nothing(backend: Backend) -> None:
    result = runner.invoke(app, ["rm", "index.html"], input="n\n")
    assert result.exit_code == 1
    assert backend.calls("delete") == []


def test_rm_partial_failure_exits_1(backend: Backend) -> None:
    backend.errors["delete"] = httpx.Response(403, json={"message": "Permission denied"})
    result = runner.invoke(app, ["rm", "index.html", "-y"])
    assert result.exit_code == 1
    assert "Failed to delete 1 file(s)." in result.output


def test_rm_unknown_entry(backend: Backend) -> None:
    result = runner.invoke(app, ["rm", "ghost.txt", "-y"])
    assert result.exit_code == 1
    assert f"not found: {FM_ROOT}/ghost.txt" in result.output


def test_cp_goes_through_clipboard(backend: Backend) -> None:
    """cp：在源目录复制，切到目标目录后粘贴。"""
    result = runner.invoke(app, ["cp", "index.html", "logo.png", "--to", "assets"])
    assert result.exit_code == 0
    assert backend.bodies("copy") == [
        {"sourcePaths": [f"{FM_ROOT}/index.html", f"{FM_ROOT}/logo.png"], "targetPath": f"{FM_ROOT}/assets"}
    ]
    assert "Successfully copied 2 file(s)!" in result.stdout


def test_mv_uses_move(backend: Backend) -> None:
    result = runner.invoke(app, ["mv", f"{FM_ROOT}/backup.zip", "--to", f"{FM_ROOT}/assets"])
    assert result.exit_code == 0
    assert backend.bodies("move")[0]["sourcePaths"] == [f"{FM_ROOT}/backup.zip"]


def test_sources_must_share_directory(backend: Backend) -> None:
    result = runner.invoke(app, ["cp", "index.html", "assets/a.css", "--to", "/"])
    assert result.exit_code == 1
    assert "same directory" in result.output


def test_mkdir(backend: Backend) -> None:
    result = runner.invoke(app, ["mkdir", "assets/img"])
    assert result.exit_code == 0
    assert backend.bodies("folder") == [{"name": "img", "path": f"{FM_ROOT}/assets"}]


def test_rename_invalid_name(backend: Backend) -> None:
    result = runner.invoke(app, ["rename", "index.html", "a:b.html"])
    assert result.exit_code == 1
    assert "File name cannot contain :" in result.output
    assert backend.calls("rename") == []


def test_rename(backend: Backend) -> None:
    result = runner.invoke(app, ["rename", "index.html", "home.html"])
    assert result.exit_code == 0
    assert backend.bodies("rename") == [{"oldPath": f"{FM_ROOT}/index.html", "newName": "home.html"}]


def test_extract_keep(backend: Backend) -> None:
    result = runner.invoke(app, ["extract", "backup.zip", "--keep"])
    assert result.exit_code == 0
    assert backend.bodies("extract") == [{"zipPath": f"{FM_ROOT}/backup.zip", "deleteAfter": False}]
    assert "Extracted 2 file(s)" in result.stdout


def test_compress_with_name(backend: Backend) -> None:
    result = runner.invoke(app, ["compress", "index.html", "assets", "--name", "site"])
    assert result.exit_code == 0
    assert backend.bodies("compress") == [
        {"paths": [f"{FM_ROOT}/assets", f"{FM_ROOT}/index.html"], "archiveName": "site"}
    ]


def test_chmod(backend: Backend) -> None:
    assert runner.invoke(app, ["chmod", "755", "index.html"]).exit_code == 0
    assert backend.bodies("permissions") == [{"path": f"{FM_ROOT}/index.html", "mode": "755"}]
    assert runner.invoke(app, ["chmod", "8", "index.html"]).exit_code == 1


def test_clone(backend: Backend) -> None:
    result = runner.invoke(app, ["clone", "https://github.com/user/repo.git", "--to", "assets"])
    assert result.exit_code == 0
    assert backend.bodies("git-clone") == [
        {"repoUrl": "https://github.com/user/repo.git", "targetPath": f"{FM_ROOT}/assets"}
    ]


# ------------------------- 上传 / 下载 / cat -------------------------


def test_upload_directory(backend: Backend, tmp_path: Path) -> None:
    """上传目录时按目录结构分目标文件夹。"""
    site = tmp_path / "site"
    (site / "css").mkdir(parents=True)
    (site / "index.html").write_text("x", encoding="utf-8")
    (site / "css" / "main.css").write_text("y", encoding="utf-8")
    result = runner.invoke(app, ["upload", str(site)])
    assert result.exit_code == 0
    bodies = [r.content for r in backend.calls("upload")]
    assert len(bodies) == 2
    assert any(b"/public_html/site/css" in b and b"main.css" in b for b in bodies)
    assert "2 file(s) uploaded successfully!" in result.stdout


def test_upload_missing_local_path(backend: Backend, tmp_path: Path) -> None:
    result = runner.invoke(app, ["upload", str(tmp_path / "nope.txt")])
    assert result.exit_code == 1
    assert "not found" in result.output


def test_download(backend: Backend, tmp_path: Path) -> None:
    out = tmp_path / "out.bin"
    result = runner.invoke(app, ["download", "backup.zip", "-o", str(out)])
    assert result.exit_code == 0
    assert out.read_bytes() == b"binary-data"
    assert backend.calls("download")[0].url.params["path"] == f"{FM_ROOT}/backup.zip"


def test_cat(backend: Backend) -> None:
    result = runner.invoke(app, ["cat", "index.html"])
    assert result.exit_code == 0
    assert result.stdout == "<h1>hi</h1>\n"


def test_ls_type_help_lists_filter_categories() -> None:
    """--type 的帮助只列出筛选实际支持的类别。"""
    ls = typer.main.get_command(app).commands["ls"]
    option = next(p for p in ls.params if "--type" in p.opts)
    assert option.help.split("|") == ["all", "folder", *FILTER_TYPE_EXTENSIONS]
