# © Copyright 2025 Stuart Parmenter
# SPDX-License-Identifier: MIT

import logging
from abc import ABC, abstractmethod
from io import BytesIO
from pathlib import Path

import aiohttp
from PIL import Image

from ..config import Config
from ..utils.helpers import is_http_url, resolve_local_path
from .exceptions import MediaDecodeError, MediaNetworkError, MediaNotFoundError


def _format_size_mb(size_bytes: int) -> str:
    """Format size in bytes as MB string."""
    return f"{size_bytes / 1024 / 1024:.1f}MB"


class ImageSource(ABC):
    """Abstract base for image data sources."""

    def __init__(self, src_url: str):
        self.src_url = src_url

    @abstractmethod
    def open_image(self) -> Image.Image:
        """Open and return PIL Image object."""
        pass

    @abstractmethod
    def cleanup(self) -> None:
        """Release any buffered data."""
        pass


class BytesIOSource(ImageSource):
    """Image source backed by an in-memory download."""

    def __init__(self, src_url: str, data: bytes):
        super().__init__(src_url)
        self._data: bytes | None = data

    def open_image(self) -> Image.Image:
        if self._data is None:
            raise RuntimeError("Attempted to use cleaned up ImageSource")
        return Image.open(BytesIO(self._data))

    def cleanup(self) -> None:
        self._data = None


class LocalFileSource(ImageSource):
    """Image source that directly uses a local file without copying."""

    def __init__(self, src_url: str, file_path: str):
        super().__init__(src_url)
        self.file_path = file_path

    def open_image(self) -> Image.Image:
        return Image.open(self.file_path)

    def cleanup(self) -> None:
        pass


def _open_local(src_url: str, local_path: str, max_size: int) -> LocalFileSource:
    path = Path(local_path)
    try:
        file_size = path.stat().st_size
    except FileNotFoundError as e:
        raise MediaNotFoundError(f"cannot open source: {local_path}", src_url) from e
    except OSError as e:
        raise MediaDecodeError(f"cannot stat source: {e}", src_url, e.errno) from e

    if not path.is_file():
        raise MediaNotFoundError(f"not a regular file: {local_path}", src_url)
    if file_size > max_size:
        raise MediaDecodeError(
            f"Image too large: {_format_size_mb(file_size)} (max {_format_size_mb(max_size)})", src_url
        )

    return LocalFileSource(src_url, local_path)


async def _fetch_remote(src_url: str, max_size: int) -> BytesIOSource:
    """Fetch an HTTP(S) image without blocking the event loop."""
    try:
        async with aiohttp.ClientSession() as session:
            headers = {"User-Agent": Config().get("image.user_agent")}
            timeout = aiohttp.ClientTimeout(total=30)

            async with session.get(src_url, headers=headers, timeout=timeout) as response:
                if response.status == 404:
                    raise MediaNotFoundError(f"HTTP 404: {response.reason}", src_url)
                if response.status >= 400:
                    raise MediaNetworkError(
                        f"HTTP {response.status}: {response.reason}",
                        src_url,
                        error_code=response.status,
                        retryable=response.status >= 500,
                    )

                content_length = response.headers.get("Content-Length")
                if content_length and int(content_length) > max_size:
                    raise MediaDecodeError(
                        f"Image too large: {_format_size_mb(int(content_length))} (max {_format_size_mb(max_size)})",
                        src_url,
                    )

                data = await response.read()

    except aiohttp.ClientError as e:
        raise MediaNetworkError(f"Network error: {e}", src_url) from e
    except TimeoutError as e:
        raise MediaNetworkError(f"Timed out fetching image: {e}", src_url) from e

    if len(data) > max_size:
        raise MediaDecodeError(
            f"Image too large: {_format_size_mb(len(data))} (max {_format_size_mb(max_size)})", src_url
        )

    logging.getLogger("images").debug(f"fetched {len(data)} bytes from {src_url}")
    return BytesIOSource(src_url, data)


async def create_image_source(src_url: str) -> ImageSource:
    """Create an image source for a local path, file:// URL or HTTP(S) URL."""
    max_size = int(Config().get("image.max_size"))

    if is_http_url(src_url):
        return await _fetch_remote(src_url, max_size)

    local_path = resolve_local_path(src_url)
    if local_path is None:
        raise MediaNotFoundError(f"Unsupported image location: {src_url}", src_url)
    return _open_local(src_url, local_path, max_size)
