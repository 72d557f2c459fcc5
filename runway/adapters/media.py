"""Local media processing: ffmpeg frame sampling and zip packaging."""

from __future__ import annotations

import asyncio
import io
import logging
import posixpath
import shutil
import tempfile
import zipfile
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import httpx

from ..contracts import AdapterError
from .http import HttpAdapter

logger = logging.getLogger(__name__)


def _archive_name(index: int, url: str) -> str:
    ext = posixpath.splitext(urlparse(url).path)[1] or ".jpg"
    return f"image_{index:03d}{ext}"


def build_zip(files: list[tuple[str, bytes]]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
        for name, data in files:
            archive.writestr(name, data)
    return buffer.getvalue()


class FFmpegToolkit(HttpAdapter):
    """Downloads media over HTTP and processes it with the ``ffmpeg`` binary."""

    provider = "media"

    def __init__(
        self,
        ffmpeg_binary: str = "ffmpeg",
        timeout: float = 120.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(timeout=timeout, client=client)
        self._ffmpeg = ffmpeg_binary

    async def package_images(self, image_urls: list[str]) -> bytes:
        if not image_urls:
            raise AdapterError("No images to package", retryable=False)
        contents = await asyncio.gather(*(self.download(url) for url in image_urls))
        files = [
            (_archive_name(i, url), data)
            for i, (url, data) in enumerate(zip(image_urls, contents), start=1)
        ]
        archive = await asyncio.to_thread(build_zip, files)
        logger.info(f"Packaged {len(files)} images into {len(archive)} byte archive")
        return archive

    async def sample_frames(
        self, video_url: str, fps: int = 1, max_frames: int = 30
    ) -> list[bytes]:
        if shutil.which(self._ffmpeg) is None:
            raise AdapterError(f"{self._ffmpeg} binary not found", retryable=False)

        video = await self.download(video_url)
        with tempfile.TemporaryDirectory(prefix="runway-frames-") as tmp:
            workdir = Path(tmp)
            source = workdir / "source.mp4"
            await asyncio.to_thread(source.write_bytes, video)

            process = await asyncio.create_subprocess_exec(
                self._ffmpeg,
                "-hide_banner",
                "-loglevel",
                "error",
                "-i",
                str(source),
                "-vf",
                f"fps={fps}",
                "-frames:v",
                str(max_frames),
                str(workdir / "frame-%04d.png"),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            _, stderr = await process.communicate()
            if process.returncode != 0:
                raise AdapterError(
                    f"ffmpeg exited with {process.returncode}: {stderr.decode(errors='replace').strip()}"
                )

            frame_paths = sorted(workdir.glob("frame-*.png"))
            frames = [await asyncio.to_thread(p.read_bytes) for p in frame_paths]

        logger.info(f"Sampled {len(frames)} frames from {video_url} at {fps} fps")
        return frames
