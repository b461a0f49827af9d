"""
document_merge.py – combine submission attachments into a single PDF

Attachments are downloaded with bounded concurrency, then their pages are
appended in input order. A member that cannot be fetched or parsed is
reported in `skipped` and does not abort the merge; only a result with zero
pages is an error.
"""

import asyncio
import re
from typing import Any, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urljoin

import fitz  # PyMuPDF
import httpx

from fund_portal.models.submission_schema import Attachment, MergeResult
from fund_portal.services.attachment_filter import (
    is_pdf_name, resolve_file_id, resolve_file_name, resolve_file_path,
)
from fund_portal.utils.config import API_BASE_URL, API_TOKEN, MERGE_CONCURRENCY, REQUEST_TIMEOUT
from fund_portal.utils.logger import get_logger


logger = get_logger("document-merge")

_API_SUFFIX = re.compile(r"/?api/v1/?$")
_ABSOLUTE_URL = re.compile(r"^https?://", re.IGNORECASE)


class FileFetchError(Exception):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class NoMergeablePagesError(Exception):
    def __init__(self, skipped: Sequence[str]):
        super().__init__("No PDF pages could be assembled from the attachments")
        self.skipped = list(skipped)


def _as_mapping(doc: Any) -> Any:
    return doc.model_dump() if isinstance(doc, Attachment) else doc


def select_working_set(attachments: Iterable[Any]) -> List[Any]:
    """Only the .pdf-named attachments when there are any, else all of them."""
    docs = [_as_mapping(d) for d in attachments or []]
    pdfs = [d for d in docs if is_pdf_name(d)]
    return pdfs or docs


def merged_file_name(submission_number: Optional[str] = None, submission_id: Any = None) -> str:
    suffix = submission_number if submission_number and submission_number != "-" else submission_id
    return f"merged_documents_{suffix if suffix is not None else ''}.pdf"


class AttachmentFetcher:
    """Downloads attachment bytes from the backend's file endpoints."""

    def __init__(self, base_url: str = API_BASE_URL, token: Optional[str] = API_TOKEN,
                 timeout: float = REQUEST_TIMEOUT, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.origin = _API_SUFFIX.sub("", self.base_url)
        self.token = token
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport, follow_redirects=True)

    async def __aenter__(self) -> "AttachmentFetcher":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def file_url(self, file_path: str) -> str:
        if _ABSOLUTE_URL.match(file_path):
            return file_path
        return urljoin(self.origin + "/", file_path)

    async def _get(self, url: str) -> bytes:
        logger.debug("GET %s", url)
        try:
            r = await self._client.get(url, headers=self._headers())
        except httpx.HTTPError as e:
            raise FileFetchError(f"Request failed for {url}: {e}") from e
        if r.status_code >= 400:
            raise FileFetchError("File not found", status=r.status_code)
        return r.content

    async def fetch_managed(self, file_id: int) -> bytes:
        return await self._get(f"{self.base_url}/files/managed/{file_id}/download")

    async def fetch_by_path(self, file_path: str) -> bytes:
        if not file_path:
            raise FileFetchError("missing file path")
        return await self._get(self.file_url(file_path))

    async def fetch(self, doc: Any) -> bytes:
        """Managed-file endpoint first, stored path as fallback."""
        doc = _as_mapping(doc)
        if not doc:
            raise FileFetchError("missing document")
        file_id = resolve_file_id(doc)
        if file_id is not None:
            try:
                return await self.fetch_managed(file_id)
            except FileFetchError as e:
                logger.warning("Managed file fetch failed for %s (%s); trying path fallback", file_id, e)
        file_path = resolve_file_path(doc)
        if file_path:
            return await self.fetch_by_path(file_path)
        raise FileFetchError("File not accessible")


def append_pdf(out: "fitz.Document", content: bytes) -> int:
    """Append every page of `content` to `out`; returns pages added."""
    with fitz.open(stream=content, filetype="pdf") as src:
        if src.needs_pass:
            raise ValueError("encrypted PDF")
        if src.page_count == 0:
            raise ValueError("PDF has no pages")
        out.insert_pdf(src)
        return src.page_count


async def _fetch_all(docs: Sequence[Any], fetcher: AttachmentFetcher,
                     concurrency: int) -> List[Tuple[Optional[bytes], Optional[BaseException]]]:
    sem = asyncio.Semaphore(max(1, concurrency))

    async def load(doc: Any) -> Tuple[Optional[bytes], Optional[BaseException]]:
        async with sem:
            try:
                return await fetcher.fetch(doc), None
            except Exception as e:  # noqa: BLE001
                return None, e

    # gather keeps input order whatever the completion order
    return await asyncio.gather(*(load(d) for d in docs))


async def merge_attachments(attachments: Iterable[Any], fetcher: AttachmentFetcher,
                            concurrency: int = MERGE_CONCURRENCY) -> MergeResult:
    working = select_working_set(attachments)
    logger.info("Merging %d attachment(s)", len(working))
    fetched = await _fetch_all(working, fetcher, concurrency)

    skipped: List[str] = []
    out = fitz.open()
    try:
        for doc, (content, error) in zip(working, fetched):
            name = resolve_file_name(doc)
            if error is not None:
                logger.warning("merge: skip %s (%s)", name, error)
                skipped.append(name)
                continue
            try:
                append_pdf(out, content)
            except Exception as e:  # noqa: BLE001
                logger.warning("merge: skip %s (%s)", name, e)
                skipped.append(name)

        if out.page_count == 0:
            raise NoMergeablePagesError(skipped)
        data = out.tobytes(garbage=3, deflate=True)
        logger.info("Merged %d page(s), skipped %d", out.page_count, len(skipped))
        return MergeResult(content=data, skipped=skipped, page_count=out.page_count)
    finally:
        out.close()
