"""
list_screens.py – applications, received funds and department review lists

Each screen owns its lookups, its status catalog and a request sequencer.
Loads go through start() / apply_response() so that only the most recently
issued request ever reaches the visible rows.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from fund_portal.models.submission_schema import ListPage, SubmissionView
from fund_portal.services.backend_client import BackendClient, BackendError, pick_array
from fund_portal.services.lookups import LookupCache
from fund_portal.services.reconciler import flatten_details, reconcile
from fund_portal.services.sequencing import LatestOnlyRunner, RequestSequencer
from fund_portal.services.status_classifier import StatusCatalog
from fund_portal.utils.config import MERGE_CONCURRENCY
from fund_portal.utils.logger import get_logger


logger = get_logger("list-screens")

LIST_LIMIT = 1000


@dataclass
class ListFilters:
    search: str = ""
    status_id: Optional[str] = None
    year: Optional[str] = None
    page: int = 1
    page_size: int = 20


class SubmissionListScreen:
    approved_only = False
    visible_subcategories = False

    def __init__(self, client: BackendClient, lookups: Optional[LookupCache] = None,
                 statuses: Optional[StatusCatalog] = None):
        self.client = client
        self.lookups = lookups or LookupCache(client, visible_only=self.visible_subcategories)
        self.statuses = statuses
        self.sequencer = RequestSequencer()
        self.runner = LatestOnlyRunner()
        self.rows: List[SubmissionView] = []
        self.loading = False
        self.error: Optional[str] = None

    # ---- loading ----
    def ensure_statuses(self) -> StatusCatalog:
        if self.statuses is None:
            try:
                self.statuses = StatusCatalog.from_payload(self.client.get_statuses())
            except BackendError as e:
                logger.error("Error fetching statuses: %s", e)
                self.statuses = StatusCatalog()
        return self.statuses

    def fetch(self, year_id: Optional[int] = None) -> Any:
        params: Dict[str, Any] = {"limit": LIST_LIMIT}
        if year_id:
            params["year_id"] = year_id
        return self.client.get_submissions(params)

    def extract_rows(self, payload: Any) -> List[Mapping[str, Any]]:
        return [r for r in pick_array(payload, keys=("submissions", "data", "items", "results"))
                if isinstance(r, Mapping)]

    def transform(self, payload: Any) -> List[SubmissionView]:
        self.lookups.ensure_loaded()
        statuses = self.ensure_statuses()
        rows = [
            reconcile(raw,
                      subcategory_names=self.lookups.subcategories,
                      category_names=self.lookups.categories,
                      statuses=statuses)
            for raw in self.extract_rows(payload)
        ]
        if self.approved_only:
            rows = [r for r in rows if r.status.approved]
        rows.sort(key=lambda r: r.submitted_at or "", reverse=True)
        return rows

    def start(self) -> int:
        self.loading = True
        return self.sequencer.issue()

    def apply_response(self, token: int, payload: Any) -> bool:
        rows = self.transform(payload)
        return self.sequencer.commit(token, lambda: self._set_rows(rows, None))

    def apply_error(self, token: int, error: Exception) -> bool:
        logger.error("%s load failed: %s", type(self).__name__, error)
        return self.sequencer.commit(token, lambda: self._set_rows([], str(error)))

    def _set_rows(self, rows: List[SubmissionView], error: Optional[str]) -> None:
        self.rows = rows
        self.error = error
        self.loading = False

    def load(self, year_id: Optional[int] = None) -> bool:
        token = self.start()
        try:
            payload = self.fetch(year_id)
        except BackendError as e:
            return self.apply_error(token, e)
        return self.apply_response(token, payload)

    async def load_async(self, year_id: Optional[int] = None) -> Optional[List[SubmissionView]]:
        """Supersedes any in-flight load_async(); the newest call wins."""
        self.loading = True

        async def work() -> List[SubmissionView]:
            payload = await asyncio.to_thread(self.fetch, year_id)
            return await asyncio.to_thread(self.transform, payload)

        try:
            return await self.runner.run(work, lambda rows: self._set_rows(rows, None))
        except BackendError as e:
            logger.error("%s load failed: %s", type(self).__name__, e)
            if not self.runner.closed:
                self._set_rows([], str(e))
            return None

    def close(self) -> None:
        self.runner.close()
        self.sequencer.issue()

    # ---- filtering ----
    def filter(self, filters: ListFilters) -> List[SubmissionView]:
        data = list(self.rows)
        if filters.search:
            term = filters.search.lower()
            data = [r for r in data if term in r.submission_number.lower() or term in r.title.lower()]
        if filters.status_id not in (None, "", "all"):
            data = [r for r in data if r.status_id is not None and str(r.status_id) == str(filters.status_id)]
        if filters.year not in (None, "", "all"):
            data = [r for r in data if r.year == str(filters.year)]
        return data

    def page(self, filters: ListFilters) -> ListPage:
        data = self.filter(filters)
        size = max(1, filters.page_size)
        page = max(1, filters.page)
        start = (page - 1) * size
        return ListPage(items=data[start:start + size], total=len(data), page=page, page_size=size,
                        meta={"loaded": len(self.rows)})


class ApplicationsScreen(SubmissionListScreen):
    pass


class ReceivedFundsScreen(SubmissionListScreen):
    approved_only = True
    visible_subcategories = True


class DeptReviewScreen(SubmissionListScreen):
    """Department-head queue; rows are hydrated from the per-submission details."""

    def __init__(self, *args, concurrency: int = MERGE_CONCURRENCY, **kwargs):
        super().__init__(*args, **kwargs)
        self.concurrency = concurrency

    def fetch(self, year_id: Optional[int] = None) -> Any:
        params: Dict[str, Any] = {}
        if year_id:
            params["year_id"] = year_id
        return self.client.get_pending_reviews(params)

    def _details(self, submission_id: Any) -> Optional[Mapping[str, Any]]:
        try:
            return self.client.get_submission_details(submission_id)
        except BackendError as e:
            logger.warning("details fetch failed for %s: %s", submission_id, e)
            return None

    def extract_rows(self, payload: Any) -> List[Mapping[str, Any]]:
        items = super().extract_rows(payload)
        ids = [i.get("submission_id") or i.get("id") for i in items]
        with ThreadPoolExecutor(max_workers=max(1, min(self.concurrency, len(ids) or 1))) as pool:
            details = list(pool.map(lambda sid: self._details(sid) if sid else None, ids))
        rows = []
        for item, detail in zip(items, details):
            merged = dict(item)
            if detail:
                merged.update({k: v for k, v in flatten_details(detail).items() if v is not None})
            rows.append(merged)
        return rows
