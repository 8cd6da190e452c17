"""File system access for the image cache."""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Optional, Protocol, Union
from uuid import uuid4

import httpx

from ..core.http_client import (
    build_timeout,
    get_shared_client,
    record_client_error,
    record_client_success,
)
from .exceptions import StorageError, TransferError
from .models import DownloadResult, FileStat

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

CLIENT_ID = "images"


class FileStore(Protocol):
    """Async file operations used by ImageCache."""

    async def ensure_dir(self, path: PathLike) -> None: ...

    async def download(self, url: str, dest: PathLike) -> DownloadResult: ...

    async def stat(self, path: PathLike) -> FileStat: ...

    async def delete(self, path: PathLike, ignore_missing: bool = True) -> None: ...

    async def delete_dir(self, path: PathLike, ignore_missing: bool = True) -> None: ...


def _write_atomically(dest: Path, body: bytes) -> None:
    # Temp sibling then rename, so a reader never sees a partial file
    tmp_path = dest.with_name(f".{dest.stem}.tmp.{uuid4()}")
    try:
        tmp_path.write_bytes(body)
        tmp_path.replace(dest)
    finally:
        tmp_path.unlink(missing_ok=True)


def _stat(path: Path) -> FileStat:
    try:
        return FileStat(exists=True, size=path.stat().st_size)
    except FileNotFoundError:
        return FileStat(exists=False)


class LocalFileStore:
    """Local disk storage with httpx downloads.

    Blocking file calls run in worker threads via ``asyncio.to_thread``.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        max_image_bytes: int = 5_000_000,
        timeout_seconds: float = 10.0,
    ):
        self._client = client
        self.max_image_bytes = max_image_bytes
        self.timeout_seconds = timeout_seconds

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        return await get_shared_client(CLIENT_ID, timeout=build_timeout(self.timeout_seconds))

    async def ensure_dir(self, path: PathLike) -> None:
        try:
            await asyncio.to_thread(Path(path).mkdir, parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create directory {path}: {e}") from e

    async def download(self, url: str, dest: PathLike) -> DownloadResult:
        """Fetch ``url`` into ``dest``.

        Only a 200 response is written; any other status is returned with
        nothing touched on disk.

        Raises:
            TransferError: Connection failure or body above ``max_image_bytes``
            StorageError: The file could not be written
        """
        dest_path = Path(dest)
        client = await self._get_client()
        try:
            async with client.stream("GET", url) as response:
                if response.status_code != 200:
                    logger.debug("Download of %s returned status %d", url, response.status_code)
                    return DownloadResult(status_code=response.status_code)

                declared = response.headers.get("Content-Length")
                if declared and declared.isdigit() and int(declared) > self.max_image_bytes:
                    raise TransferError(
                        f"Image too large ({declared} bytes)", url=url, status_code=response.status_code
                    )

                chunks = []
                received = 0
                async for chunk in response.aiter_bytes():
                    received += len(chunk)
                    if received > self.max_image_bytes:
                        raise TransferError(
                            f"Image exceeds {self.max_image_bytes} bytes", url=url, status_code=200
                        )
                    chunks.append(chunk)
        except httpx.HTTPError as e:
            if self._client is None:
                await record_client_error(CLIENT_ID)
            raise TransferError(f"Download failed: {e}", url=url) from e

        if self._client is None:
            await record_client_success(CLIENT_ID)

        body = b"".join(chunks)
        try:
            await asyncio.to_thread(_write_atomically, dest_path, body)
        except OSError as e:
            raise StorageError(f"Failed to write {dest_path}: {e}") from e

        return DownloadResult(status_code=200, file_size=len(body))

    async def stat(self, path: PathLike) -> FileStat:
        try:
            return await asyncio.to_thread(_stat, Path(path))
        except OSError as e:
            raise StorageError(f"Failed to stat {path}: {e}") from e

    async def delete(self, path: PathLike, ignore_missing: bool = True) -> None:
        try:
            await asyncio.to_thread(Path(path).unlink, missing_ok=ignore_missing)
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}") from e

    async def delete_dir(self, path: PathLike, ignore_missing: bool = True) -> None:
        target = Path(path)
        try:
            if ignore_missing and not await asyncio.to_thread(target.exists):
                return
            await asyncio.to_thread(shutil.rmtree, target)
        except OSError as e:
            raise StorageError(f"Failed to delete directory {path}: {e}") from e
