"""
detail_screen.py – one open submission and the screens kept open between requests

A detail screen owns its view model, its visible attachments and at most one
live merged-document URL. Closing it revokes that URL.
"""

import asyncio
import threading
from collections import OrderedDict
from typing import Any, Callable, Hashable, List, Mapping, Optional

from fund_portal.models.submission_schema import Attachment, SubmissionView
from fund_portal.services.attachment_filter import filter_visible, normalize_attachment
from fund_portal.services.backend_client import BackendClient, BackendError, pick_array
from fund_portal.services.document_merge import (
    AttachmentFetcher, NoMergeablePagesError, merge_attachments, merged_file_name,
)
from fund_portal.services.lookups import LookupCache
from fund_portal.services.object_urls import MergedUrlSlot, ObjectUrlRegistry, registry as default_registry
from fund_portal.services.reconciler import flatten_details, reconcile
from fund_portal.services.status_classifier import StatusCatalog
from fund_portal.utils.config import MAX_OPEN_SCREENS, MERGE_CONCURRENCY
from fund_portal.utils.logger import get_logger


logger = get_logger("detail-screen")


class SubmissionDetailScreen:
    """
    One open submission: its view model, its visible attachments and at most
    one live merged-document URL. close() releases the URL; merges that
    finish after close() are discarded.
    """

    def __init__(self, client: BackendClient, submission_id: Any,
                 registry: ObjectUrlRegistry = default_registry,
                 lookups: Optional[LookupCache] = None,
                 statuses: Optional[StatusCatalog] = None,
                 fetcher_factory: Optional[Callable[[], AttachmentFetcher]] = None,
                 concurrency: int = MERGE_CONCURRENCY):
        self.client = client
        self.submission_id = submission_id
        self.lookups = lookups or LookupCache(client)
        self.statuses = statuses
        self.slot = MergedUrlSlot(registry)
        self.fetcher_factory = fetcher_factory or (
            lambda: AttachmentFetcher(base_url=client.base_url, token=client.token)
        )
        self.concurrency = concurrency
        self.record: dict = {}
        self.view: Optional[SubmissionView] = None
        self.documents: List[Any] = []
        self.last_skipped: List[str] = []
        self.closed = False

    def load(self) -> SubmissionView:
        payload = self.client.get_submission_details(self.submission_id)
        self.record = flatten_details(payload)
        self.documents = [d for d in pick_array(
            self.record.get("documents"),
            payload.get("documents") if isinstance(payload, Mapping) else None,
        ) if isinstance(d, Mapping)]
        if not self.documents:
            try:
                self.documents = [d for d in self.client.get_submission_documents(self.submission_id)
                                  if isinstance(d, Mapping)]
            except BackendError as e:
                logger.warning("No documents for submission %s: %s", self.submission_id, e)

        if self.statuses is None:
            try:
                self.statuses = StatusCatalog.from_payload(self.client.get_statuses())
            except BackendError as e:
                logger.error("Error fetching statuses: %s", e)
                self.statuses = StatusCatalog()
        lookups = self.lookups.ensure_loaded()
        self.view = reconcile(self.record,
                              subcategory_names=lookups.subcategories,
                              category_names=lookups.categories,
                              statuses=self.statuses)
        logger.info("Loaded submission %s (%d document(s))", self.submission_id, len(self.documents))
        return self.view

    @property
    def visible_documents(self) -> List[Any]:
        return filter_visible(self.documents)

    def attachments(self) -> List[Attachment]:
        return [a for a in (normalize_attachment(d) for d in self.visible_documents) if a is not None]

    def load_announcements(self) -> dict[str, Optional[Any]]:
        out: dict[str, Optional[Any]] = {"main": None, "activity": None}
        if self.view is None:
            return out
        try:
            if self.view.main_announcement_id:
                out["main"] = self.client.get_announcement(self.view.main_announcement_id)
            if self.view.activity_announcement_id:
                out["activity"] = self.client.get_announcement(self.view.activity_announcement_id)
        except BackendError as e:
            logger.warning("Load announcements failed: %s", e)
            return {"main": None, "activity": None}
        return out

    # ---- merged document ----
    async def build_merged(self) -> Optional[str]:
        docs = self.visible_documents
        if not docs:
            raise NoMergeablePagesError([])
        async with self.fetcher_factory() as fetcher:
            result = await merge_attachments(docs, fetcher, concurrency=self.concurrency)
        if self.closed:
            logger.info("Screen for %s closed during merge; discarding result", self.submission_id)
            return None
        self.last_skipped = result.skipped
        view = self.view or SubmissionView()
        filename = merged_file_name(view.submission_number, view.submission_id or self.submission_id)
        return self.slot.replace(result.content, result.media_type, filename)

    async def merged_url(self) -> Optional[str]:
        return self.slot.current or await self.build_merged()

    async def rebuild_merged(self) -> Optional[str]:
        self.slot.release()
        return await self.build_merged()

    def merged_url_sync(self, rebuild: bool = False) -> Optional[str]:
        return asyncio.run(self.rebuild_merged() if rebuild else self.merged_url())

    def close(self) -> None:
        self.closed = True
        self.slot.release()


class OpenScreens:
    """
    Detail screens kept open between requests, least recently used first.

    Only the merged-document slot needs to outlive a request; the view is
    reloaded by the caller. Screens pushed out past `capacity` are closed,
    which revokes their merged URL.
    """

    def __init__(self, capacity: int = MAX_OPEN_SCREENS):
        self.capacity = capacity
        self._screens: "OrderedDict[Hashable, SubmissionDetailScreen]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[SubmissionDetailScreen]:
        with self._lock:
            screen = self._screens.get(key)
            if screen is not None:
                self._screens.move_to_end(key)
            return screen

    def add(self, key: Hashable, screen: SubmissionDetailScreen) -> SubmissionDetailScreen:
        """Returns the screen now registered under `key` (an earlier one wins)."""
        evicted: List[SubmissionDetailScreen] = []
        with self._lock:
            existing = self._screens.get(key)
            if existing is None:
                self._screens[key] = screen
                while len(self._screens) > max(1, self.capacity):
                    evicted.append(self._screens.popitem(last=False)[1])
        if existing is not None:
            screen.close()
            return existing
        for old in evicted:
            logger.info("Closing idle screen for submission %s", old.submission_id)
            old.close()
        return screen

    def pop(self, key: Hashable) -> Optional[SubmissionDetailScreen]:
        with self._lock:
            return self._screens.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            screens = list(self._screens.values())
            self._screens.clear()
        for screen in screens:
            screen.close()

    def __len__(self) -> int:
        with self._lock:
            return len(self._screens)
