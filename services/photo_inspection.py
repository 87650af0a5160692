"""Download and measure listing photos before they are attached to a listing."""

from __future__ import annotations

import io
import os
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Optional

import httpx
from loguru import logger
from PIL import Image, UnidentifiedImageError
from prometheus_client import Histogram

from services.listing_checks import (
    MAX_PHOTO_BYTES,
    MIN_PHOTO_HEIGHT,
    MIN_PHOTO_WIDTH,
    CheckResult,
    validate_image,
)

PHOTO_INSPECTION_DURATION = Histogram(
    "photo_inspection_duration_seconds",
    "Latency of downloading and measuring a listing photo",
    labelnames=["status"],
)


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        logger.warning("Invalid integer setting; using default", setting=name, default=default)
        return default


@dataclass(slots=True)
class InspectionConfig:
    """Runtime configuration for photo inspection."""

    min_width: int = MIN_PHOTO_WIDTH
    min_height: int = MIN_PHOTO_HEIGHT
    max_bytes: int = MAX_PHOTO_BYTES
    fetch_timeout_seconds: float = 15.0

    @classmethod
    def from_env(cls) -> "InspectionConfig":
        try:
            timeout = float(os.getenv("PHOTO_FETCH_TIMEOUT_SECONDS", "15"))
        except ValueError:
            timeout = 15.0
        return cls(
            min_width=_env_int("PHOTO_MIN_WIDTH", MIN_PHOTO_WIDTH),
            min_height=_env_int("PHOTO_MIN_HEIGHT", MIN_PHOTO_HEIGHT),
            max_bytes=_env_int("PHOTO_MAX_BYTES", MAX_PHOTO_BYTES),
            fetch_timeout_seconds=timeout,
        )


@dataclass(slots=True)
class PhotoInspection:
    url: str
    width: Optional[int] = None
    height: Optional[int] = None
    file_size: Optional[int] = None
    checks: Dict[str, CheckResult] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.error is None and all(check.passed for check in self.checks.values())

    def failure_messages(self) -> list[str]:
        messages = [check.message for check in self.checks.values() if not check.passed]
        if self.error:
            messages.insert(0, self.error)
        return messages

    def photo_metadata(self) -> Dict[str, Optional[int]]:
        return {"width": self.width, "height": self.height, "size": self.file_size}


class PhotoInspector:
    """Fetches photo URLs over HTTP and checks resolution and file size with Pillow."""

    def __init__(
        self,
        config: Optional[InspectionConfig] = None,
        image_fetcher: Optional[Callable[[str], Awaitable[Optional[bytes]]]] = None,
    ) -> None:
        self._config = config or InspectionConfig()
        self._image_fetcher = image_fetcher
        self._http_client: httpx.AsyncClient | None = None

    async def start(self) -> None:
        if self._http_client is None and self._image_fetcher is None:
            self._http_client = httpx.AsyncClient(
                timeout=self._config.fetch_timeout_seconds,
                follow_redirects=True,
            )
            logger.info("PhotoInspector started")

    async def stop(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
            logger.info("PhotoInspector stopped")

    async def inspect(self, url: str) -> PhotoInspection:
        started = time.perf_counter()
        status_label = "accepted"
        try:
            data = await self._fetch_image(url)
            if data is None:
                result = PhotoInspection(url=url, error="Image could not be downloaded")
            else:
                result = self.inspect_bytes(url, data)
            if not result.passed:
                status_label = "rejected"
            return result
        finally:
            PHOTO_INSPECTION_DURATION.labels(status=status_label).observe(time.perf_counter() - started)

    def inspect_bytes(self, url: str, data: bytes) -> PhotoInspection:
        try:
            with Image.open(io.BytesIO(data)) as img:
                width, height = img.size
        except (UnidentifiedImageError, OSError):
            logger.warning("Unsupported image format", url=url)
            return PhotoInspection(url=url, file_size=len(data), error="Unsupported image format")

        checks = validate_image(
            width,
            height,
            len(data),
            min_width=self._config.min_width,
            min_height=self._config.min_height,
            max_bytes=self._config.max_bytes,
        )
        return PhotoInspection(url=url, width=width, height=height, file_size=len(data), checks=checks)

    async def _fetch_image(self, url: str) -> Optional[bytes]:
        if self._image_fetcher is not None:
            return await self._image_fetcher(url)

        if self._http_client is None:
            raise RuntimeError("PhotoInspector not started")

        try:
            response = await self._http_client.get(url)
            response.raise_for_status()
            return response.content
        except httpx.HTTPError:
            logger.warning("Failed to download image", url=url)
            return None
