"""
文件管理后端 REST 客户端（/api/files/*）。

基于 httpx.AsyncClient，所有操作均为协程；Bearer token 认证。
非 2xx 响应统一抛 FileStoreError：优先使用后端 JSON 中的 message，否则使用通用信息。
"""

from __future__ import annotations

import asyncio
from typing import Any, BinaryIO, Protocol

import httpx

from fmbrowser.models import ListResult, SourceFile, parse_list_response

# 媒体预览下载的固定超时（秒），超时即中止
MEDIA_FETCH_TIMEOUT = 10.0

NOT_AUTHENTICATED = "Not authenticated. Please login first."


class FileStoreError(Exception):
    """远程调用失败（传输错误或后端拒绝）。"""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class FileStore(Protocol):
    """控制器依赖的文件存储接口；FileStoreClient 为其 REST 实现。"""

    async def list(self, path: str) -> ListResult: ...

    async def upload(self, file: SourceFile, destination_path: str) -> Any: ...

    async def download(self, path: str) -> bytes: ...

    async def delete(self, path: str) -> Any: ...

    async def create_folder(self, name: str, path: str) -> Any: ...

    async def rename(self, old_path: str, new_name: str) -> Any: ...

    async def copy(self, source_paths: list[str], destination_path: str) -> Any: ...

    async def move(self, source_paths: list[str], destination_path: str) -> Any: ...

    async def read_text(self, path: str) -> str: ...

    async def write_text(self, path: str, content: str) -> Any: ...

    async def extract_archive(self, path: str, delete_after: bool = True) -> dict[str, Any]: ...

    async def compress(self, paths: list[str], archive_name: str) -> Any: ...

    async def set_permissions(self, path: str, mode: str) -> Any: ...

    async def clone_repository(self, url: str, destination_path: str) -> Any: ...

    async def fetch_media(self, path: str) -> bytes: ...


def _error_message(response: httpx.Response, fallback: str) -> str:
    """从错误响应中取后端 message；非 JSON 或无 message 时返回 fallback。"""
    try:
        data = response.json()
    except ValueError:
        return fallback
    if isinstance(data, dict) and isinstance(data.get("message"), str) and data["message"]:
        return data["message"]
    return fallback


class FileStoreClient:
    """
    文件管理后端客户端。

    示例： base_url="http://localhost:3001", token="<jwt>"
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        *,
        timeout: float = 30.0,
        verify: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        :param base_url: 后端根地址，如 http://localhost:3001（不要带 /api）
        :param token: Bearer token；为 None 时部分写操作会在本地直接失败
        :param timeout: 请求超时秒数
        :param verify: 是否验证 HTTPS 证书
        :param transport: 自定义 transport（测试时传入 httpx.MockTransport）
        """
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.verify = verify
        self._transport = transport
        self._api_base = f"{self.base_url}/api/files"
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                verify=self.verify,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def _require_token(self) -> None:
        if not self.token:
            raise FileStoreError(NOT_AUTHENTICATED)

    async def aclose(self) -> None:
        """关闭底层 HTTP 客户端。"""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> FileStoreClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def _request(self, method: str, endpoint: str, fallback: str, **kwargs: Any) -> httpx.Response:
        """发送请求；传输错误与非 2xx 响应统一转为 FileStoreError。"""
        try:
            r = await self._get_client().request(
                method, f"{self._api_base}/{endpoint}", headers=self._headers(), **kwargs
            )
        except httpx.TimeoutException as e:
            raise FileStoreError(f"{fallback}: request timed out") from e
        except httpx.HTTPError as e:
            raise FileStoreError(f"{fallback}: {e}") from e
        if not r.is_success:
            raise FileStoreError(_error_message(r, fallback), r.status_code)
        return r

    @staticmethod
    def _json(r: httpx.Response) -> Any:
        try:
            return r.json()
        except ValueError:
            return {}

    # ------------------------- 列表 -------------------------

    async def list(self, path: str) -> ListResult:
        """
        获取目录下的文件/文件夹列表。

        :param path: 目录路径，如 "/public_html"
        :return: 校验后的 ListResult；列表项结构不合法时抛 FileStoreError
        """
        r = await self._request("GET", "list", "Failed to list files", params={"path": path})
        try:
            return parse_list_response(r.json(), path)
        except ValueError as e:
            # 含 InvalidEntryError 与 JSON 解析失败
            raise FileStoreError(f"Invalid list response: {e}") from e

    # ------------------------- 上传 / 下载 -------------------------

    async def upload(self, file: SourceFile, destination_path: str) -> Any:
        """
        上传单个文件到指定目录（multipart：file + path）。

        :param file: 源文件
        :param destination_path: 远程目录，如 "/public_html/sub"
        """
        self._require_token()
        fp: BinaryIO = file.open()
        try:
            r = await self._request(
                "POST",
                "upload",
                "Failed to upload file",
                files={"file": (file.name, fp, "application/octet-stream")},
                data={"path": destination_path},
            )
        finally:
            fp.close()
        return self._json(r)

    async def download(self, path: str) -> bytes:
        r = await self._request("GET", "download", "Failed to download file", params={"path": path})
        return r.content

    async def fetch_media(self, path: str) -> bytes:
        """下载图片/视频用于预览；超过 MEDIA_FETCH_TIMEOUT 秒即中止，空内容视为失败。"""
        try:
            content = await asyncio.wait_for(self.download(path), timeout=MEDIA_FETCH_TIMEOUT)
        except asyncio.TimeoutError as e:
            raise FileStoreError(f"Media load timeout after {MEDIA_FETCH_TIMEOUT:g} seconds") from e
        if not content:
            raise FileStoreError("Received empty file")
        return content

    # ------------------------- 删除 / 新建 / 重命名 -------------------------

    async def delete(self, path: str) -> Any:
        r = await self._request("DELETE", "delete", "Failed to delete file", json={"path": path})
        return self._json(r)

    async def create_folder(self, name: str, path: str) -> Any:
        """在 path 下创建名为 name 的文件夹。"""
        r = await self._request(
            "POST", "folder", "Failed to create folder", json={"name": name, "path": path}
        )
        return self._json(r)

    async def rename(self, old_path: str, new_name: str) -> Any:
        self._require_token()
        r = await self._request(
            "PUT", "rename", "Failed to rename", json={"oldPath": old_path, "newName": new_name}
        )
        return self._json(r)

    # ------------------------- 复制 / 移动 -------------------------

    async def copy(self, source_paths: list[str], destination_path: str) -> Any:
        """批量复制，一次请求。"""
        self._require_token()
        r = await self._request(
            "POST",
            "copy",
            "Failed to copy files",
            json={"sourcePaths": list(source_paths), "targetPath": destination_path},
        )
        return self._json(r)

    async def move(self, source_paths: list[str], destination_path: str) -> Any:
        """批量移动，一次请求。"""
        self._require_token()
        r = await self._request(
            "POST",
            "move",
            "Failed to move files",
            json={"sourcePaths": list(source_paths), "targetPath": destination_path},
        )
        return self._json(r)

    # ------------------------- 文本读写 -------------------------

    async def read_text(self, path: str) -> str:
        r = await self._request("GET", "read", "Failed to read file", params={"path": path})
        data = self._json(r)
        content = data.get("content") if isinstance(data, dict) else None
        if not isinstance(content, str):
            raise FileStoreError("Failed to read file")
        return content

    async def write_text(self, path: str, content: str) -> Any:
        r = await self._request(
            "PUT", "update", "Failed to update file", json={"path": path, "content": content}
        )
        return self._json(r)

    # ------------------------- 压缩 / 解压 / 权限 / git -------------------------

    async def extract_archive(self, path: str, delete_after: bool = True) -> dict[str, Any]:
        """
        解压 ZIP。

        :param path: ZIP 文件路径
        :param delete_after: 解压后是否删除 ZIP
        :return: 后端响应，含 filesExtracted
        """
        self._require_token()
        r = await self._request(
            "POST",
            "extract",
            "Failed to extract ZIP",
            json={"zipPath": path, "deleteAfter": delete_after},
        )
        data = self._json(r)
        return data if isinstance(data, dict) else {}

    async def compress(self, paths: list[str], archive_name: str) -> Any:
        r = await self._request(
            "POST",
            "compress",
            "Failed to compress files",
            json={"paths": list(paths), "archiveName": archive_name},
        )
        return self._json(r)

    async def set_permissions(self, path: str, mode: str) -> Any:
        r = await self._request(
            "POST", "permissions", "Failed to change permissions", json={"path": path, "mode": mode}
        )
        return self._json(r)

    async def clone_repository(self, url: str, destination_path: str) -> Any:
        """在 destination_path 下 git clone 远程仓库。"""
        self._require_token()
        r = await self._request(
            "POST",
            "git-clone",
            "Failed to clone repository",
            json={"repoUrl": url, "targetPath": destination_path},
        )
        return self._json(r)
