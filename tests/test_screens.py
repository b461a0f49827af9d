import asyncio

from fund_portal.services.backend_client import BackendError
from fund_portal.services.detail_screen import SubmissionDetailScreen
from fund_portal.services.list_screens import (
    ApplicationsScreen, DeptReviewScreen, ListFilters, ReceivedFundsScreen,
)


ROWS = {"submissions": [
    {"submission_id": 1, "submission_number": "S-1", "title": "Alpha", "status_id": 1,
     "submitted_at": "2025-01-01T00:00:00Z", "Year": {"year": "2568"}},
    {"submission_id": 2, "submission_number": "S-2", "title": "Beta", "status_id": 2,
     "submitted_at": "2025-03-01T00:00:00Z", "Year": {"year": "2568"}},
    {"submission_id": 3, "submission_number": "S-3", "title": "Gamma", "status_id": 2,
     "submitted_at": "2025-02-01T00:00:00Z", "Year": {"year": "2567"}},
]}


def test_applications_screen_sorts_newest_first(mock_client):
    mock_client.get_submissions.return_value = ROWS
    screen = ApplicationsScreen(mock_client)
    assert screen.load() is True
    assert [r.submission_number for r in screen.rows] == ["S-2", "S-3", "S-1"]
    assert screen.rows[0].status_name == "อนุมัติ"
    assert mock_client.get_submissions.call_args.args[0] == {"limit": 1000}


def test_received_funds_screen_keeps_only_approved(mock_client):
    mock_client.get_submissions.return_value = ROWS
    screen = ReceivedFundsScreen(mock_client)
    screen.load(year_id=4)
    assert [r.submission_id for r in screen.rows] == [2, 3]
    assert mock_client.get_visible_subcategories.called
    assert mock_client.get_submissions.call_args.args[0]["year_id"] == 4


def test_filters_and_paging(mock_client):
    mock_client.get_submissions.return_value = ROWS
    screen = ApplicationsScreen(mock_client)
    screen.load()
    assert [r.title for r in screen.filter(ListFilters(search="alp"))] == ["Alpha"]
    assert len(screen.filter(ListFilters(status_id="2"))) == 2
    assert [r.submission_id for r in screen.filter(ListFilters(year="2567"))] == [3]
    page = screen.page(ListFilters(page=2, page_size=2))
    assert page.total == 3 and len(page.items) == 1


def test_stale_response_does_not_overwrite_newer(mock_client):
    screen = ApplicationsScreen(mock_client)
    old = screen.start()
    new = screen.start()
    assert screen.apply_response(new, {"submissions": [ROWS["submissions"][0]]})
    assert not screen.apply_response(old, ROWS)
    assert not screen.apply_error(old, BackendError("late failure"))
    assert [r.submission_id for r in screen.rows] == [1]
    assert screen.error is None


def test_load_error_clears_rows(mock_client):
    mock_client.get_submissions.side_effect = BackendError("down", 503)
    screen = ApplicationsScreen(mock_client)
    screen.load()
    assert screen.rows == [] and screen.error == "down"
    assert screen.loading is False


async def test_load_async_commits_latest(mock_client):
    mock_client.get_submissions.return_value = ROWS
    screen = ApplicationsScreen(mock_client)
    rows = await screen.load_async()
    assert len(rows) == 3 and screen.rows == rows


def test_dept_review_hydrates_rows_from_details(mock_client):
    mock_client.get_pending_reviews.return_value = {"data": [{"submission_id": 8, "status_id": 1}]}
    mock_client.get_submission_details.return_value = {
        "submission": {"submission_id": 8, "submission_number": "S-8"},
        "details": {"type": "fund_application", "data": {"project_title": "Hydrated"}},
    }
    screen = DeptReviewScreen(mock_client, concurrency=2)
    screen.load()
    assert screen.rows[0].title == "Hydrated"
    assert screen.rows[0].submission_number == "S-8"


DETAIL = {
    "submission": {"submission_id": 21, "submission_number": "S-21", "status_id": 1},
    "documents": [
        {"file_id": 1, "original_name": "proposal.pdf"},
        {"file_id": 2, "original_name": "แบบฟอร์มคำร้องรวม (merged pdf)"},
        {"file_id": 3, "original_name": "budget.pdf"},
    ],
    "details": {"type": "fund_application", "data": {"project_title": "Detail", "main_annoucement": 6}},
}


def test_detail_screen_hides_merged_artifact(mock_client, registry):
    mock_client.get_submission_details.return_value = DETAIL
    mock_client.get_announcement.return_value = {"id": 6}
    screen = SubmissionDetailScreen(mock_client, 21, registry=registry)
    view = screen.load()
    assert view.title == "Detail"
    assert [a.original_name for a in screen.attachments()] == ["proposal.pdf", "budget.pdf"]
    assert screen.load_announcements() == {"main": {"id": 6}, "activity": None}


async def test_detail_screen_merged_url_lifecycle(mock_client, registry, fetcher_factory, pdf_factory):
    mock_client.get_submission_details.return_value = DETAIL
    files = {
        "/api/v1/files/managed/1/download": pdf_factory("p1"),
        "/api/v1/files/managed/3/download": pdf_factory("p3"),
    }
    screen = SubmissionDetailScreen(mock_client, 21, registry=registry,
                                    fetcher_factory=lambda: fetcher_factory(files))
    screen.load()

    url = await screen.merged_url()
    assert registry.resolve(url).filename == "merged_documents_S-21.pdf"
    assert await screen.merged_url() == url

    rebuilt = await screen.rebuild_merged()
    assert rebuilt != url
    assert registry.resolve(url) is None
    assert registry.live_count == 1

    screen.close()
    assert registry.live_count == 0


async def test_merge_finishing_after_close_is_discarded(mock_client, registry, fetcher_factory, pdf_factory):
    mock_client.get_submission_details.return_value = DETAIL
    files = {"/api/v1/files/managed/1/download": pdf_factory("p1")}
    screen = SubmissionDetailScreen(mock_client, 21, registry=registry,
                                    fetcher_factory=lambda: fetcher_factory(files))
    screen.load()

    pending = asyncio.create_task(screen.merged_url())
    await asyncio.sleep(0)
    screen.close()
    assert await pending is None
    assert registry.live_count == 0


def test_malformed_status_names_do_not_break_loading(mock_client):
    mock_client.get_statuses.return_value = [
        {"application_status_id": 1, "status_code": 0, "status_name": 5},
    ]
    mock_client.get_submissions.return_value = ROWS
    screen = ApplicationsScreen(mock_client)
    assert screen.load() is True
    assert screen.error is None
    assert len(screen.rows) == 3
    assert screen.rows[-1].status_name == "5"
