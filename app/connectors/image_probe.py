"""
app/connectors/image_probe.py

Image accessibility probes used by business-rule validation.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass

import requests

from app.config import ImageProbeSettings, get_image_probe_settings

logger = logging.getLogger(__name__)

HEAD_UNSUPPORTED_STATUS_CODES = {405, 501}
SUPPORTED_IMAGE_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}


class ImageProbeError(RuntimeError):
    """
    Raised when a probe cannot reach a verdict (timeout, DNS, connection reset).
    """


@dataclass(frozen=True)
class ImageProbeResult:
    """
    Outcome of one accessibility check.
    """

    url: str
    is_accessible: bool
    status_code: int | None = None
    size_bytes: int | None = None
    content_type: str | None = None
    error: str | None = None

    @property
    def is_supported_image(self) -> bool:
        return self.content_type is None or self.content_type in SUPPORTED_IMAGE_CONTENT_TYPES


class ImageProbe(ABC):
    """
    Resource accessibility check.

    ``probe`` returns a result when the server answered, and raises
    ImageProbeError when no answer could be obtained.
    """

    @abstractmethod
    def probe(self, url: str) -> ImageProbeResult:
        """
        Check one URL.
        """


class HttpImageProbe(ImageProbe):
    """
    HEAD-based probe with a fixed per-call timeout.
    """

    def __init__(
        self,
        *,
        settings: ImageProbeSettings | None = None,
        session: requests.Session | None = None,
    ) -> None:
        resolved = settings or get_image_probe_settings()
        self._timeout_seconds = resolved.timeout_seconds
        self._allow_redirects = resolved.allow_redirects
        self._headers = {"User-Agent": resolved.user_agent}
        self._session = session or requests.Session()

    def probe(self, url: str) -> ImageProbeResult:
        try:
            response = self._session.head(
                url,
                headers=self._headers,
                timeout=self._timeout_seconds,
                allow_redirects=self._allow_redirects,
            )
            if response.status_code in HEAD_UNSUPPORTED_STATUS_CODES:
                response = self._session.get(
                    url,
                    headers=self._headers,
                    timeout=self._timeout_seconds,
                    allow_redirects=self._allow_redirects,
                    stream=True,
                )
                response.close()
        except requests.Timeout as exc:
            logger.warning("Image probe timed out url=%s timeout=%.1fs", url, self._timeout_seconds)
            raise ImageProbeError(f"Image probe timed out after {self._timeout_seconds:.1f}s.") from exc
        except requests.RequestException as exc:
            logger.warning("Image probe failed url=%s error=%s", url, exc)
            raise ImageProbeError(f"Image probe failed: {exc.__class__.__name__}.") from exc

        if not response.ok:
            return ImageProbeResult(
                url=url,
                is_accessible=False,
                status_code=response.status_code,
                error=f"HTTP {response.status_code}",
            )

        return ImageProbeResult(
            url=url,
            is_accessible=True,
            status_code=response.status_code,
            size_bytes=_parse_content_length(response.headers.get("Content-Length")),
            content_type=_parse_content_type(response.headers.get("Content-Type")),
        )


class StaticImageProbe(ImageProbe):
    """
    Deterministic in-process probe.

    Known URLs answer with their configured result (or raise the configured
    exception); every other URL is reported accessible with default metadata.
    """

    def __init__(
        self,
        results: Mapping[str, ImageProbeResult | Exception] | None = None,
        *,
        default_size_bytes: int | None = 150_000,
        default_content_type: str | None = "image/jpeg",
    ) -> None:
        self._results = dict(results or {})
        self._default_size_bytes = default_size_bytes
        self._default_content_type = default_content_type
        self._lock = threading.Lock()
        self.calls: list[str] = []

    def probe(self, url: str) -> ImageProbeResult:
        with self._lock:
            self.calls.append(url)

        configured = self._results.get(url)
        if isinstance(configured, Exception):
            raise configured
        if configured is not None:
            return configured

        return ImageProbeResult(
            url=url,
            is_accessible=True,
            status_code=200,
            size_bytes=self._default_size_bytes,
            content_type=self._default_content_type,
        )


def _parse_content_length(raw: str | None) -> int | None:
    if raw is None:
        return None
    stripped = raw.strip()
    if not stripped.isdigit():
        return None
    return int(stripped)


def _parse_content_type(raw: str | None) -> str | None:
    if not raw:
        return None
    media_type = raw.split(";", 1)[0].strip().lower()
    return media_type or None
