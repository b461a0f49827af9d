"""
backend_client.py – synchronous client for the portal REST API

Wraps `requests` with bearer auth and maps every transport or HTTP failure
to BackendError. Older deployments lack some department-head endpoints, so
those calls fall back to the generic submission routes on 404.
"""

import requests
from typing import Any, Iterable, Mapping, Optional

from fund_portal.utils.config import API_BASE_URL, API_TOKEN, REQUEST_TIMEOUT
from fund_portal.utils.logger import get_logger


logger = get_logger("backend-client")

ARRAY_KEYS = (
    "documents", "document_list", "files", "items", "results", "data", "rows",
    "list", "values", "attachments", "users", "submission_users", "records",
)
PENDING_HEAD_REVIEW_CODE = "5"


class BackendError(Exception):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

    @property
    def not_found(self) -> bool:
        return self.status == 404


def _first_array(candidate: Any, keys: Iterable[str], depth: int = 0) -> Optional[list]:
    if isinstance(candidate, list):
        return candidate
    if not isinstance(candidate, Mapping) or depth > 3:
        return None
    for key in keys:
        if key in candidate and candidate[key] is not None:
            found = _first_array(candidate[key], keys, depth + 1)
            if found is not None:
                return found
    return None


def pick_array(*candidates: Any, keys: Iterable[str] = ARRAY_KEYS) -> list:
    """First list found among the candidates, searching container keys."""
    keys = tuple(keys)
    for c in candidates:
        found = _first_array(c, keys)
        if found is not None:
            return found
    return []


def extract_submission(payload: Any) -> Any:
    if not isinstance(payload, Mapping):
        return payload
    data = payload.get("data")
    candidates = [
        payload.get("submission"),
        data.get("submission") if isinstance(data, Mapping) else None,
        payload.get("Submission"),
    ]
    for candidate in candidates:
        if isinstance(candidate, Mapping):
            return candidate
    return payload


def _derive_details(submission: Any, candidate: Any) -> Optional[dict]:
    if not isinstance(submission, Mapping):
        submission = {}
    candidate = candidate or submission.get("details") or submission.get("Detail") or submission.get("detail")
    sub_type = submission.get("submission_type") or submission.get("SubmissionType")
    if isinstance(candidate, Mapping):
        if "type" in candidate and "data" in candidate:
            return dict(candidate)
        resolved = candidate.get("type") or sub_type
        if resolved:
            data = candidate["data"] if "data" in candidate else candidate
            return {"type": resolved, "data": data}
    if not sub_type:
        return None
    return {"type": sub_type, "data": None}


class BackendClient:
    """Thin wrapper over the portal REST API (JSON in, JSON out)."""

    def __init__(self, base_url: str = API_BASE_URL, token: Optional[str] = API_TOKEN,
                 timeout: float = REQUEST_TIMEOUT, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        logger.debug("Backend request → %s %s", url, params or "")
        try:
            r = self.session.get(url, params=params, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            raise BackendError(f"Request to {path} failed: {e}") from e
        if r.status_code >= 400:
            message = r.reason or "request failed"
            try:
                body = r.json()
                if isinstance(body, Mapping):
                    message = body.get("error") or body.get("message") or message
            except ValueError:
                pass
            raise BackendError(f"{path}: {message}", status=r.status_code)
        try:
            return r.json()
        except ValueError as e:
            raise BackendError(f"{path}: response is not JSON") from e

    # ---- submissions ----
    def get_submissions(self, params: Optional[dict[str, Any]] = None) -> Any:
        return self.get("/submissions", params)

    def get_submission(self, submission_id: Any) -> Any:
        return self.get(f"/submissions/{submission_id}")

    def get_pending_reviews(self, params: Optional[dict[str, Any]] = None) -> Any:
        query = dict(params or {})
        if query.get("status_code") is None:
            query["status_code"] = PENDING_HEAD_REVIEW_CODE
        try:
            return self.get("/dept-head/submissions", query)
        except BackendError as e:
            if not e.not_found:
                raise
            logger.warning("dept-head list endpoint missing; falling back to /submissions")
            return self.get("/submissions", query)

    def get_submission_details(self, submission_id: Any) -> Any:
        if not submission_id:
            raise BackendError("submission id is required")
        try:
            payload = self.get(f"/dept-head/submissions/{submission_id}/details")
            if payload:
                return payload
        except BackendError as e:
            if not e.not_found:
                raise
            logger.warning("details endpoint missing for %s; assembling from parts", submission_id)
        return self._assemble_details(submission_id)

    def _assemble_details(self, submission_id: Any) -> dict[str, Any]:
        payload = self.get_submission(submission_id)

        users_payload = None
        try:
            users_payload = self.get(f"/submissions/{submission_id}/users")
        except BackendError as e:
            logger.warning("users fetch failed for %s: %s", submission_id, e)

        documents_payload = None
        try:
            documents_payload = self.get(f"/submissions/{submission_id}/documents")
        except BackendError as e:
            logger.warning("documents fetch failed for %s: %s", submission_id, e)

        submission = extract_submission(payload)
        if not isinstance(submission, Mapping):
            submission = None
        data = payload.get("data") if isinstance(payload, Mapping) else None

        users = pick_array(
            (submission or {}).get("submission_users"),
            payload.get("submission_users") if isinstance(payload, Mapping) else None,
            payload.get("users") if isinstance(payload, Mapping) else None,
            data.get("submission_users") if isinstance(data, Mapping) else None,
            data.get("users") if isinstance(data, Mapping) else None,
            users_payload,
        )
        documents = pick_array(
            (submission or {}).get("documents"),
            (submission or {}).get("submission_documents"),
            payload.get("documents") if isinstance(payload, Mapping) else None,
            data.get("documents") if isinstance(data, Mapping) else None,
            documents_payload,
        )
        raw_details = payload.get("details") if isinstance(payload, Mapping) else None
        details = _derive_details(submission, raw_details if isinstance(raw_details, Mapping) else None)

        normalized = None
        if submission is not None:
            normalized = dict(submission)
            normalized["submission_users"] = users
            normalized["documents"] = documents
        return {
            "submission": normalized,
            "submission_users": users,
            "documents": documents,
            "details": details,
            "success": normalized is not None,
        }

    def get_submission_documents(self, submission_id: Any) -> list:
        last_error: Optional[BackendError] = None
        for path in (f"/dept-head/submissions/{submission_id}/documents",
                     f"/submissions/{submission_id}/documents"):
            try:
                return pick_array(self.get(path))
            except BackendError as e:
                last_error = e
                logger.warning("documents fetch via %s failed: %s", path, e)
        raise last_error or BackendError("documents unavailable")

    # ---- lookups ----
    def get_statuses(self) -> Any:
        return self.get("/application-status")

    def get_categories(self) -> Any:
        return self.get("/categories")

    def get_subcategories(self) -> Any:
        return self.get("/subcategories")

    def get_visible_subcategories(self, category_id: Any = None, year_id: Any = None) -> Any:
        params = {}
        if category_id:
            params["category_id"] = category_id
        if year_id:
            params["year_id"] = year_id
        return self.get("/teacher/subcategories", params)

    def get_years(self) -> Any:
        return self.get("/years")

    def get_announcement(self, announcement_id: Any) -> Any:
        payload = self.get(f"/announcements/{announcement_id}")
        if isinstance(payload, Mapping):
            data = payload.get("data")
            return (payload.get("announcement")
                    or (data.get("announcement") if isinstance(data, Mapping) else None)
                    or data or payload)
        return payload
