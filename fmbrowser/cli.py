"""
fmbrowser CLI：登录一次保存到本地，之后所有命令复用已保存的地址与 token。

命令经由 FileBrowserController 执行（选中、剪贴板、批量删除、上传遍历与界面一致），
失败统一输出 "error: ..." 到 stderr 并以退出码 1 结束。
"""

from __future__ import annotations

import asyncio
import getpass
import logging
import sys
from pathlib import Path
from typing import Annotated, Any, Awaitable, Callable, Optional

import typer

from fmbrowser.cli_config import clear_config, load_config, save_config
from fmbrowser.client import FileStoreClient, FileStoreError
from fmbrowser.controller import FileBrowserController, ViewSnapshot, default_archive_name
from fmbrowser.models import Entry, format_file_size
from fmbrowser.paths import DEFAULT_ROOT, normalize_path, split_path
from fmbrowser.preferences import KeyValueStore, default_state_path
from fmbrowser.traverser import LocalDroppedEntry, files_from_paths

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

app = typer.Typer(
    name="fm",
    help="File manager CLI. Login once and save; saved base URL and token are used for all commands.",
)

# 可选参数：覆盖已保存的 base_url（未登录时必填）
_base_url_option: type = Annotated[
    Optional[str],
    typer.Option("--base-url", "-b", help="Override saved base URL (or required if not logged in)"),
]


class EchoNotifier:
    """把控制器的提示输出到终端。"""

    def success(self, message: str) -> None:
        typer.echo(message)

    def info(self, message: str) -> None:
        typer.echo(message)

    def error(self, message: str) -> None:
        typer.echo(f"error: {message}", err=True)


class TyperPrompter:
    """终端确认/输入；assume_yes 时跳过确认。"""

    def __init__(self, assume_yes: bool = False):
        self.assume_yes = assume_yes

    async def confirm(self, title: str, message: str) -> bool:
        if self.assume_yes:
            return True
        typer.echo(message)
        return typer.confirm(title, default=False)

    async def ask_text(self, title: str, default: str = "") -> str | None:
        value = typer.prompt(title, default=default)
        return value or None


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
) -> None:
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format=LOG_FORMAT, stream=sys.stderr)


def _get_client(base_url: str | None) -> FileStoreClient | None:
    cfg = load_config()
    url = base_url or (cfg and cfg.get("base_url"))
    if not url:
        return None
    token = cfg.get("token") if cfg else None
    return FileStoreClient(base_url=url, token=token, timeout=30.0)


def _require_client(base_url: str | None) -> FileStoreClient:
    client = _get_client(base_url)
    if client is None:
        typer.echo("error: no saved credentials. run 'fm login' or pass --base-url", err=True)
        raise typer.Exit(1)
    return client


def _root() -> str:
    cfg = load_config()
    return normalize_path((cfg and cfg.get("root")) or DEFAULT_ROOT)


def _remote(path: str, root: str) -> str:
    """相对路径按根目录解析，绝对路径原样规范化。"""
    path = (path or "").strip()
    if path.startswith("/"):
        return normalize_path(path)
    return normalize_path(f"{root}/{path}")


def _parent_and_name(path: str) -> tuple[str, str]:
    parts = split_path(path)
    if not parts:
        typer.echo(f"error: invalid path: {path!r}", err=True)
        raise typer.Exit(1)
    return "/" + "/".join(parts[:-1]), parts[-1]


def _run(
    base_url: str | None,
    action: Callable[[FileBrowserController], Awaitable[Any]],
    *,
    assume_yes: bool = False,
) -> Any:
    """创建客户端与控制器，执行 action，结束时关闭客户端。"""
    client = _require_client(base_url)
    controller = FileBrowserController(
        client,
        root=_root(),
        notifier=EchoNotifier(),
        prompter=TyperPrompter(assume_yes),
        state_store=KeyValueStore(default_state_path()),
    )

    async def runner() -> Any:
        try:
            return await action(controller)
        finally:
            await client.aclose()

    return asyncio.run(runner())


async def _load(c: FileBrowserController, path: str) -> None:
    if not await c.navigate_to(path):
        typer.echo(f"error: {c.last_error or 'Failed to load files'}", err=True)
        raise typer.Exit(1)


async def _select(c: FileBrowserController, paths: list[str]) -> list[Entry]:
    """在同一目录下定位并选中 paths 对应的条目。"""
    remote = [_remote(p, c.root) for p in paths]
    parents = {_parent_and_name(p)[0] for p in remote}
    if len(parents) != 1:
        typer.echo("error: all paths must be in the same directory", err=True)
        raise typer.Exit(1)
    await _load(c, parents.pop())
    by_name = {e.name: e for e in c.entries}
    found: list[Entry] = []
    for p in remote:
        entry = by_name.get(_parent_and_name(p)[1])
        if entry is None:
            typer.echo(f"error: not found: {p}", err=True)
            raise typer.Exit(1)
        found.append(entry)
        c.set_checked(entry.id, True)
    return found


def _ok(result: object) -> None:
    if result is False or result is None:
        raise typer.Exit(1)


# ------------------------- login / logout / auth -------------------------


@app.command("login", help="Save base URL and token to local config")
def login(
    base_url: Annotated[Optional[str], typer.Option("--base-url", "-b", help="Backend base URL")] = None,
    token: Annotated[Optional[str], typer.Option("--token", "-t", help="Bearer token (unsafe in shell)")] = None,
    root: Annotated[Optional[str], typer.Option("--root", "-r", help=f"Root directory (default: {DEFAULT_ROOT})")] = None,
) -> None:
    base_url = base_url or input("Base URL (e.g. http://localhost:3001): ").strip()
    if not base_url:
        typer.echo("error: base URL required", err=True)
        raise typer.Exit(1)
    if token is None:
        token = getpass.getpass("Token (empty for none): ").strip() or None
    save_config(base_url, token, normalize_path(root) if root else None)
    typer.echo("Saved.")


@app.command("logout", help="Clear saved credentials")
def logout() -> None:
    if clear_config():
        typer.echo("Cleared.")
    else:
        typer.echo("No saved credentials.")


auth_app = typer.Typer(help="Auth subcommands")
app.add_typer(auth_app, name="auth")


@auth_app.command("status", help="Show whether credentials are saved")
def auth_status() -> None:
    cfg = load_config()
    if not cfg:
        typer.echo("Not logged in.")
        return
    typer.echo(f"base_url: {cfg.get('base_url', '')}")
    typer.echo(f"auth: {'yes' if cfg.get('token') else 'no'}")


@app.command("info", help="Show saved base_url, root and auth status")
def info_cmd() -> None:
    cfg = load_config()
    if not cfg:
        typer.echo("Not logged in. Run 'fm login' or pass --base-url for commands.")
        return
    typer.echo(f"base_url: {cfg.get('base_url')}")
    typer.echo(f"root: {cfg.get('root') or DEFAULT_ROOT}")
    typer.echo(f"auth: {'yes' if cfg.get('token') else 'no'}")


# ------------------------- ls -------------------------


def _format_entry(e: Entry) -> str:
    name = f"{e.name}/" if e.is_folder else e.name
    return f"  {name}  {e.size}  {e.modified or '-'}  {e.permissions or '-'}"


@app.command("ls", help="List a directory (filtered and sorted like the browser view)")
def ls_cmd(
    path: Annotated[str, typer.Argument(help="Remote directory (default: root)")] = "",
    search: Annotated[str, typer.Option("--search", "-s", help="Case-insensitive name substring")] = "",
    type_: Annotated[str, typer.Option("--type", help="all|folder|image|video|document|code|archive")] = "all",
    size: Annotated[str, typer.Option("--size", help="all|tiny|small|medium|large|huge")] = "all",
    date: Annotated[str, typer.Option("--date", help="all|today|week|month|year")] = "all",
    sort: Annotated[str, typer.Option("--sort", help="name|size|modified|type")] = "name",
    desc: Annotated[bool, typer.Option("--desc", help="Sort descending")] = False,
    base_url: _base_url_option = None,
) -> None:
    async def action(c: FileBrowserController) -> list[Entry]:
        await _load(c, _remote(path, c.root) if path else c.root)
        c.change_filter(type=type_, size=size, date=date, query=search)
        c.change_sort(sort, "desc" if desc else "asc")
        return c.displayed_entries

    entries = _run(base_url, action)
    for e in entries:
        typer.echo(_format_entry(e))
    typer.echo(f"{len(entries)} item(s)")


# ------------------------- upload / download -------------------------


def _progress_printer(snapshot: ViewSnapshot) -> None:
    p = snapshot.upload_progress
    if p is not None:
        sys.stderr.write(f"\r  {p.file_name} {p.progress}%   ")
        sys.stderr.flush()


@app.command("upload", help="Upload files or folders (folders are uploaded recursively)")
def upload_cmd(
    paths: Annotated[list[Path], typer.Argument(help="Local files or directories")],
    to: Annotated[str, typer.Option("--to", "-t", help="Remote directory (default: root)")] = "",
    progress: Annotated[bool, typer.Option("--progress", "-p", help="Show upload progress")] = False,
    base_url: _base_url_option = None,
) -> None:
    for p in paths:
        if not p.exists():
            typer.echo(f"error: not found: {p}", err=True)
            raise typer.Exit(1)

    async def action(c: FileBrowserController):
        await _load(c, _remote(to, c.root) if to else c.root)
        if progress:
            c.subscribe(_progress_printer)
        try:
            if all(p.is_file() for p in paths):
                return await c.upload_files(files_from_paths(paths))
            return await c.upload_dropped([LocalDroppedEntry(p) for p in paths])
        finally:
            if progress:
                sys.stderr.write("\n")

    report = _run(base_url, action)
    if report is None:
        raise typer.Exit(1)
    for rel_path, msg in report.failed:
        typer.echo(f"  failed: {rel_path}: {msg}", err=True)
    if report.failed:
        raise typer.Exit(1)


@app.command("download", help="Download a file")
def download_cmd(
    remote_path: Annotated[str, typer.Argument(help="Remote file path (absolute or relative to root)")],
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Local path (default: same name)")] = None,
    base_url: _base_url_option = None,
) -> None:
    async def action(c: FileBrowserController) -> bytes:
        remote = _remote(remote_path, c.root)
        try:
            return await c.store.download(remote)
        except FileStoreError as e:
            typer.echo(f"error: {e.message}", err=True)
            raise typer.Exit(1)

    data = _run(base_url, action)
    out = output if output is not None else Path(_parent_and_name(normalize_path(remote_path))[1])
    out.write_bytes(data)
    typer.echo(f"Saved to {out} ({format_file_size(len(data))}).")


@app.command("cat", help="Print a text file")
def cat_cmd(
    remote_path: Annotated[str, typer.Argument(help="Remote file path")],
    base_url: _base_url_option = None,
) -> None:
    async def action(c: FileBrowserController) -> str:
        try:
            return await c.store.read_text(_remote(remote_path, c.root))
        except FileStoreError as e:
            typer.echo(f"error: {e.message}", err=True)
            raise typer.Exit(1)

    typer.echo(_run(base_url, action), nl=False)


# ------------------------- mkdir / rm / rename -------------------------


@app.command("mkdir", help="Create a folder")
def mkdir_cmd(
    path: Annotated[str, typer.Argument(help="Remote folder path, e.g. assets/img")],
    base_url: _base_url_option = None,
) -> None:
    async def action(c: FileBrowserController) -> bool:
        parent, name = _parent_and_name(_remote(path, c.root))
        await _load(c, parent)
        return await c.create_folder(name)

    _ok(_run(base_url, action))


@app.command("rm", help="Delete files or folders (all in the same directory)")
def rm_cmd(
    paths: Annotated[list[str], typer.Argument(help="Remote paths")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
    base_url: _base_url_option = None,
) -> None:
    async def action(c: FileBrowserController) -> tuple[int, int]:
        await _select(c, paths)
        return await c.bulk_delete()

    ok, failed = _run(base_url, action, assume_yes=yes)
    if failed or ok == 0:
        raise typer.Exit(1)


@app.command("rename", help="Rename a file or folder")
def rename_cmd(
    path: Annotated[str, typer.Argument(help="Remote path")],
    new_name: Annotated[str, typer.Argument(help="New name (no slashes)")],
    base_url: _base_url_option = None,
) -> None:
    async def action(c: FileBrowserController) -> bool:
        (entry,) = await _select(c, [path])
        if new_name == entry.name:
            typer.echo("Name unchanged.")
            return True
        return await c.rename(entry, new_name)

    _ok(_run(base_url, action))


# ------------------------- cp / mv -------------------------


def _paste_cmd(sources: list[str], destination: str, cut: bool, base_url: str | None) -> None:
    async def action(c: FileBrowserController) -> bool:
        await _select(c, sources)
        if cut:
            c.cut_selection()
        else:
            c.copy_selection()
        await _load(c, _remote(destination, c.root))
        return await c.paste()

    _ok(_run(base_url, action))


@app.command("cp", help="Copy files or folders into a directory")
def cp_cmd(
    sources: Annotated[list[str], typer.Argument(help="Remote source paths (same directory)")],
    destination: Annotated[str, typer.Option("--to", "-t", help="Destination directory")],
    base_url: _base_url_option = None,
) -> None:
    _paste_cmd(sources, destination, False, base_url)


@app.command("mv", help="Move files or folders into a directory")
def mv_cmd(
    sources: Annotated[list[str], typer.Argument(help="Remote source paths (same directory)")],
    destination: Annotated[str, typer.Option("--to", "-t", help="Destination directory")],
    base_url: _base_url_option = None,
) -> None:
    _paste_cmd(sources, destination, True, base_url)


# ------------------------- extract / compress / chmod / clone -------------------------


@app.command("extract", help="Extract a .zip archive in place")
def extract_cmd(
    path: Annotated[str, typer.Argument(help="Remote .zip path")],
    keep: Annotated[bool, typer.Option("--keep", "-k", help="Keep the archive after extracting")] = False,
    base_url: _base_url_option = None,
) -> None:
    async def action(c: FileBrowserController) -> int | None:
        (entry,) = await _select(c, [path])
        return await c.extract(entry, delete_after=not keep)

    _ok(_run(base_url, action))


@app.command("compress", help="Compress files or folders into a ZIP archive")
def compress_cmd(
    paths: Annotated[list[str], typer.Argument(help="Remote paths (same directory)")],
    name: Annotated[Optional[str], typer.Option("--name", "-n", help="Archive name (default: archive_<date>)")] = None,
    base_url: _base_url_option = None,
) -> None:
    async def action(c: FileBrowserController) -> bool:
        await _select(c, paths)
        return await c.compress_selection(name or default_archive_name())

    _ok(_run(base_url, action))


@app.command("chmod", help="Change permissions, e.g. fm chmod 755 script.sh")
def chmod_cmd(
    mode: Annotated[str, typer.Argument(help="Octal mode, three digits")],
    path: Annotated[str, typer.Argument(help="Remote path")],
    base_url: _base_url_option = None,
) -> None:
    async def action(c: FileBrowserController) -> bool:
        (entry,) = await _select(c, [path])
        return await c.change_permissions(entry, mode)

    _ok(_run(base_url, action))


@app.command("clone", help="Clone a git repository into a remote directory")
def clone_cmd(
    url: Annotated[str, typer.Argument(help="Repository URL")],
    to: Annotated[str, typer.Option("--to", "-t", help="Remote directory (default: root)")] = "",
    base_url: _base_url_option = None,
) -> None:
    if not url.strip():
        typer.echo("error: repository URL required", err=True)
        raise typer.Exit(1)

    async def action(c: FileBrowserController) -> bool:
        await _load(c, _remote(to, c.root) if to else c.root)
        return await c.clone_repository(url)

    _ok(_run(base_url, action))


# ------------------------- main -------------------------


def main() -> None:
    app()


if __name__ == "__main__":
    main()
