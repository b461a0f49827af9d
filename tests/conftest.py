"""Pytest configuration and shared fixtures."""

from typing import Any, Callable, Dict, Optional
from unittest.mock import Mock

import fitz
import httpx
import pytest

from fund_portal.services.backend_client import BackendClient
from fund_portal.services.document_merge import AttachmentFetcher
from fund_portal.services.object_urls import ObjectUrlRegistry


def make_pdf(*texts: str) -> bytes:
    """One page per text."""
    doc = fitz.open()
    for text in texts:
        page = doc.new_page()
        page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


def page_texts(content: bytes) -> list[str]:
    with fitz.open(stream=content, filetype="pdf") as doc:
        return [page.get_text().strip() for page in doc]


@pytest.fixture
def pdf_factory() -> Callable[..., bytes]:
    return make_pdf


@pytest.fixture
def registry() -> ObjectUrlRegistry:
    return ObjectUrlRegistry()


@pytest.fixture
def mock_client() -> Mock:
    """BackendClient double with empty lookups."""
    client = Mock(spec=BackendClient)
    client.base_url = "http://backend.test/api/v1"
    client.token = "tok"
    client.get_statuses.return_value = {"data": [
        {"application_status_id": 1, "status_code": "0", "status_name": "อยู่ระหว่างพิจารณา"},
        {"application_status_id": 2, "status_code": "1", "status_name": "อนุมัติ"},
        {"application_status_id": 3, "status_code": "2", "status_name": "ปฏิเสธ"},
    ]}
    client.get_categories.return_value = {"categories": []}
    client.get_subcategories.return_value = {"subcategories": []}
    client.get_visible_subcategories.return_value = {"subcategories": []}
    client.get_submission_documents.return_value = []
    client.get_announcement.return_value = None
    return client


def file_transport(files: Dict[str, Any], seen: Optional[list] = None) -> httpx.MockTransport:
    """
    Serve `files` keyed by URL path. A value of int is returned as that
    status code with an empty body.
    """
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        body = files.get(request.url.path)
        if body is None:
            return httpx.Response(404)
        if isinstance(body, int):
            return httpx.Response(body)
        return httpx.Response(200, content=body, headers={"Content-Type": "application/pdf"})

    return httpx.MockTransport(handler)


@pytest.fixture
def fetcher_factory():
    def build(files: Dict[str, Any], seen: Optional[list] = None, token: str = "tok") -> AttachmentFetcher:
        return AttachmentFetcher(base_url="http://backend.test/api/v1", token=token,
                                 transport=file_transport(files, seen))
    return build


@pytest.fixture
def read_pages() -> Callable[[bytes], list]:
    return page_texts
