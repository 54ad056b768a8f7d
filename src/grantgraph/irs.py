"""IRS TEOS bulk archive downloader."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import aiohttp

from .errors import ArchiveNotPublishedError, DownloadError

logger = logging.getLogger(__name__)

USER_AGENT = "grantgraph/1.0"


def open_session() -> aiohttp.ClientSession:
    """Create the shared HTTP session used for archive downloads."""
    return aiohttp.ClientSession(headers={"User-Agent": USER_AGENT})


class IRSBulkDownloader:
    """Stream monthly 990 XML archives from the IRS to disk.

    A download either leaves a complete file at the destination or no file at
    all. Retrying is left to the caller.
    """

    CHUNK_SIZE = 8 * 1024 * 1024  # 8MB chunks

    def __init__(self, session: aiohttp.ClientSession, timeout: int = 600):
        """Initialize the downloader.

        Args:
            session: Open aiohttp session (or anything with the same ``get``).
            timeout: Total request timeout in seconds for large downloads.
        """
        self.session = session
        self.timeout = timeout

    async def download(self, url: str, target_file: Path) -> int:
        """Download a ZIP file from URL to disk using streaming.

        Args:
            url: URL to download from
            target_file: Path to save the ZIP file

        Returns:
            Number of bytes written.

        Raises:
            ArchiveNotPublishedError: The server answered 404.
            DownloadError: Any other HTTP, network, or size-verification failure.
        """
        zip_name = url.split("/")[-1]
        logger.info(f"Downloading {url}...")

        # Never append to a leftover partial file
        _remove(target_file)

        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with self.session.get(url, timeout=timeout) as resp:
                if resp.status == 404:
                    raise ArchiveNotPublishedError(url)
                if resp.status != 200:
                    raise DownloadError(f"HTTP {resp.status} for {url}")

                total_size = _content_length(resp.headers)
                downloaded = await self._write_stream(resp, target_file, zip_name, total_size)

        except DownloadError:
            _remove(target_file)
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            _remove(target_file)
            raise DownloadError(f"Error downloading {zip_name}: {e}") from e

        size = target_file.stat().st_size
        if total_size and size != total_size:
            _remove(target_file)
            raise DownloadError(
                f"Download incomplete: expected {total_size} bytes, got {size} bytes"
            )

        logger.info(f"Saved {zip_name} ({downloaded / 1024 / 1024:.0f}MB)")
        return size

    async def _write_stream(self, resp, target_file: Path, zip_name: str,
                            total_size: Optional[int]) -> int:
        downloaded = 0
        last_progress = 0

        target_file.parent.mkdir(parents=True, exist_ok=True)
        with open(target_file, "wb") as f:
            async for chunk in resp.content.iter_chunked(self.CHUNK_SIZE):
                if not chunk:
                    continue
                f.write(chunk)
                downloaded += len(chunk)
                if total_size:
                    progress = int(downloaded * 100 / total_size)
                    if progress >= last_progress + 10:
                        logger.info(
                            f"   {zip_name}: {progress}% "
                            f"({downloaded / 1024 / 1024:.0f}MB / {total_size / 1024 / 1024:.0f}MB)"
                        )
                        last_progress = progress
        return downloaded


def _content_length(headers) -> Optional[int]:
    value = headers.get("Content-Length") or headers.get("content-length")
    try:
        return int(value) if value else None
    except ValueError:
        return None


def _remove(path: Path):
    if path.exists():
        path.unlink()
