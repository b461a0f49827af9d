"""
object_urls.py – in-memory blob registry addressed by "blob:" URLs

A merged document lives only as long as the screen that asked for it. The
registry holds the bytes; a MergedUrlSlot keeps at most one live URL per
screen and revokes the previous one before publishing a new one.
"""

import threading
import uuid
from dataclasses import dataclass
from typing import Optional

from fund_portal.utils.logger import get_logger


logger = get_logger("object-urls")

URL_PREFIX = "blob:"


@dataclass(frozen=True)
class Blob:
    content: bytes
    media_type: str = "application/pdf"
    filename: Optional[str] = None


class ObjectUrlRegistry:
    def __init__(self):
        self._blobs: dict[str, Blob] = {}
        self._lock = threading.Lock()

    def create(self, content: bytes, media_type: str = "application/pdf",
               filename: Optional[str] = None) -> str:
        url = f"{URL_PREFIX}{uuid.uuid4().hex}"
        with self._lock:
            self._blobs[url] = Blob(content, media_type, filename)
        logger.debug("Created %s (%d bytes)", url, len(content))
        return url

    def resolve(self, url: str) -> Optional[Blob]:
        with self._lock:
            return self._blobs.get(self.normalize(url))

    def revoke(self, url: Optional[str]) -> bool:
        if not url:
            return False
        with self._lock:
            removed = self._blobs.pop(self.normalize(url), None)
        if removed is not None:
            logger.debug("Revoked %s", url)
        return removed is not None

    @staticmethod
    def normalize(url_or_token: str) -> str:
        return url_or_token if url_or_token.startswith(URL_PREFIX) else f"{URL_PREFIX}{url_or_token}"

    @staticmethod
    def token(url: str) -> str:
        return url[len(URL_PREFIX):] if url.startswith(URL_PREFIX) else url

    @property
    def live_count(self) -> int:
        with self._lock:
            return len(self._blobs)


class MergedUrlSlot:
    """At most one live merged-document URL for the owning screen."""

    def __init__(self, registry: ObjectUrlRegistry):
        self.registry = registry
        self.current: Optional[str] = None

    def replace(self, content: bytes, media_type: str = "application/pdf",
                filename: Optional[str] = None) -> str:
        self.release()
        self.current = self.registry.create(content, media_type, filename)
        return self.current

    def release(self) -> None:
        if self.current:
            self.registry.revoke(self.current)
            self.current = None


registry = ObjectUrlRegistry()
