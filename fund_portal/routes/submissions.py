from flask import Blueprint, request, jsonify
from typing import Optional

from fund_portal.services.backend_client import BackendClient, BackendError
from fund_portal.services.detail_screen import OpenScreens, SubmissionDetailScreen
from fund_portal.services.document_merge import NoMergeablePagesError
from fund_portal.services.list_screens import (
    ApplicationsScreen, DeptReviewScreen, ListFilters, ReceivedFundsScreen,
)
from fund_portal.services.object_urls import registry
from fund_portal.utils.config import API_BASE_URL, API_TOKEN
from fund_portal.utils.logger import get_logger


bp = Blueprint("submissions", __name__, url_prefix="/api/submissions")
logger = get_logger("submissions")

SCREENS = {
    "applications": ApplicationsScreen,
    "received": ReceivedFundsScreen,
    "review": DeptReviewScreen,
}

# keyed by (bearer token, submission id)
open_screens = OpenScreens()


def bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return API_TOKEN


def make_client() -> BackendClient:
    return BackendClient(base_url=API_BASE_URL, token=bearer_token())


def _error(e: BackendError):
    status = e.status if e.status and 400 <= e.status < 600 else 502
    return jsonify({"error": str(e)}), status


def _detail_screen(submission_id: int, reload: bool = True) -> SubmissionDetailScreen:
    """Open (or reuse) the screen; a reused screen is reloaded unless `reload` is off."""
    key = (bearer_token(), submission_id)
    screen = open_screens.get(key)
    if screen is None:
        screen = SubmissionDetailScreen(make_client(), submission_id, registry=registry)
        screen.load()
        return open_screens.add(key, screen)
    if reload:
        screen.load()
    return screen


@bp.get("")
def list_submissions():
    """
    ?view=applications|received|review plus search, status_id, year, year_id,
    page and page_size.
    """
    view = request.args.get("view", "applications")
    screen_cls = SCREENS.get(view)
    if screen_cls is None:
        return jsonify({"error": f"unknown view '{view}'"}), 400

    screen = screen_cls(make_client())
    year_id = request.args.get("year_id", type=int)
    screen.load(year_id)
    if screen.error:
        return jsonify({"error": screen.error}), 502

    filters = ListFilters(
        search=request.args.get("search", ""),
        status_id=request.args.get("status_id"),
        year=request.args.get("year"),
        page=request.args.get("page", 1, type=int),
        page_size=request.args.get("page_size", 20, type=int),
    )
    return jsonify(screen.page(filters).model_dump()), 200


@bp.get("/<int:submission_id>")
def get_submission(submission_id: int):
    try:
        screen = _detail_screen(submission_id)
    except BackendError as e:
        return _error(e)
    return jsonify({
        "submission": screen.view.model_dump() if screen.view else None,
        "announcements": screen.load_announcements(),
        "merged_url": screen.slot.current,
    }), 200


@bp.get("/<int:submission_id>/attachments")
def list_attachments(submission_id: int):
    try:
        screen = _detail_screen(submission_id)
    except BackendError as e:
        return _error(e)
    items = [dict(a.model_dump(), openable=a.openable) for a in screen.attachments()]
    return jsonify({"attachments": items, "total": len(items)}), 200


@bp.post("/<int:submission_id>/merged")
def build_merged(submission_id: int):
    """Returns the live merged-document URL, building it when needed (?rebuild=1 forces)."""
    rebuild = request.args.get("rebuild", "").lower() in ("1", "true", "yes")
    try:
        screen = _detail_screen(submission_id, reload=rebuild)
        url = screen.merged_url_sync(rebuild=rebuild)
    except BackendError as e:
        return _error(e)
    except NoMergeablePagesError as e:
        return jsonify({"error": str(e), "skipped": e.skipped}), 422
    if url is None:
        return jsonify({"error": "screen closed during merge"}), 409
    return jsonify({
        "url": url,
        "token": registry.token(url),
        "skipped": screen.last_skipped,
    }), 200


@bp.delete("/<int:submission_id>")
def close_submission(submission_id: int):
    screen = open_screens.pop((bearer_token(), submission_id))
    if screen is None:
        return jsonify({"closed": False}), 404
    screen.close()
    return jsonify({"closed": True}), 200
