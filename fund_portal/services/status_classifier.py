"""
status_classifier.py – status taxonomy, approval check and badge styling

Only the approved / not-approved boundary uses the widening fallback chain
(id -> code -> name); it decides which list a submission appears in. The
remaining states come from a direct match on the status code.
"""

import math
from typing import Any, Iterable, Mapping, Optional

from pydantic import ValidationError

from fund_portal.models.submission_schema import Classification, StatusRecord
from fund_portal.utils.config import APPROVED_STATUS_ID
from fund_portal.utils.logger import get_logger


logger = get_logger("status")

APPROVED_NAME_TH = "อนุมัติ"
STATUS_KEYS = ("pending", "approved", "rejected", "revision", "draft")

# numeric status codes as stored by the backend
STYLE_BY_CODE = {
    "0": "bg-amber-100 text-amber-800 border-amber-300",
    "1": "bg-emerald-100 text-emerald-800 border-emerald-300",
    "2": "bg-rose-100 text-rose-800 border-rose-300",
    "3": "bg-sky-100 text-sky-800 border-sky-300",
    "4": "bg-zinc-100 text-zinc-700 border-zinc-300",
    "5": "bg-indigo-100 text-indigo-800 border-indigo-300",
}

STYLE_BY_KEY = {
    "pending": STYLE_BY_CODE["0"],
    "approved": STYLE_BY_CODE["1"],
    "rejected": STYLE_BY_CODE["2"],
    "revision": STYLE_BY_CODE["3"],
    "draft": STYLE_BY_CODE["4"],
    "unknown": "bg-gray-100 text-gray-600 border-gray-300",
}

# no "1" entry: approval comes from is_approved_status only
_KEY_BY_NUMERIC_CODE = {"0": "pending", "2": "rejected", "3": "revision", "4": "draft", "5": "pending"}


def normalize_status_code(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def normalize_status_name(value: Any) -> str:
    if not value:
        return ""
    return str(value).strip().lower()


def _as_finite_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    return num if math.isfinite(num) else None


def is_approved_status(status_id: Any = None, status_code: Any = None, status_name: Any = None,
                       approved_id: int = APPROVED_STATUS_ID) -> bool:
    if _as_finite_number(status_id) == approved_id:
        return True

    code = normalize_status_code(status_code)
    if code and (code == "approved" or "approve" in code):
        return True

    name = normalize_status_name(status_name)
    if name and (APPROVED_NAME_TH in name or "approve" in name):
        return True

    return False


def status_key(status_code: Any) -> str:
    code = normalize_status_code(status_code)
    if code in STATUS_KEYS:
        return code
    return _KEY_BY_NUMERIC_CODE.get(code, "unknown")


def status_style(status_code: Any = None, key: Optional[str] = None) -> str:
    code = "" if status_code is None else str(status_code).strip()
    if code in STYLE_BY_CODE:
        return STYLE_BY_CODE[code]
    return STYLE_BY_KEY.get(key or status_key(status_code), STYLE_BY_KEY["unknown"])


def classify(status_id: Any = None, status_code: Any = None, status_name: Any = None,
             approved_id: int = APPROVED_STATUS_ID) -> Classification:
    """Total over all inputs, including all-None."""
    if is_approved_status(status_id, status_code, status_name, approved_id=approved_id):
        return Classification(approved=True, key="approved", style=status_style(status_code, "approved"))
    key = status_key(status_code)
    return Classification(approved=False, key=key, style=status_style(status_code, key))


class StatusCatalog:
    """Id/code/name triples from the application-status lookup endpoint."""

    def __init__(self, records: Iterable[StatusRecord] = ()):
        self.records: list[StatusRecord] = list(records)
        self.by_id: dict[int, StatusRecord] = {}
        self.by_name: dict[str, StatusRecord] = {}
        for r in self.records:
            self.by_id[r.application_status_id] = r
            if r.status_name:
                self.by_name[r.status_name] = r
            if r.status_code:
                self.by_name[r.status_code] = r

    @classmethod
    def from_payload(cls, payload: Any) -> "StatusCatalog":
        if isinstance(payload, Mapping):
            raw = payload.get("statuses") or payload.get("data") or []
        else:
            raw = payload or []
        records = []
        for item in raw if isinstance(raw, list) else []:
            if not isinstance(item, Mapping):
                continue
            sid = item.get("application_status_id")
            if sid is None:
                sid = item.get("status_id", item.get("id"))
            num = _as_finite_number(sid)
            if num is None or not num.is_integer():
                continue
            code = item.get("status_code", item.get("code"))
            name = item.get("status_name", item.get("name"))
            try:
                records.append(StatusRecord(
                    application_status_id=int(num),
                    status_code=None if code is None else str(code),
                    status_name=None if name is None else str(name),
                ))
            except ValidationError as e:
                logger.warning("Skipping malformed status entry %r: %s", item, e)
        logger.debug("Loaded %d status record(s)", len(records))
        return cls(records)

    def _get(self, status_id: Any) -> Optional[StatusRecord]:
        num = _as_finite_number(status_id)
        if num is None:
            return None
        return self.by_id.get(int(num))

    def label_for(self, status_id: Any) -> Optional[str]:
        r = self._get(status_id)
        return r.status_name if r else None

    def code_for(self, status_id: Any) -> Optional[str]:
        r = self._get(status_id)
        return r.status_code if r else None

    def id_for_code(self, status_code: Any) -> Optional[int]:
        if status_code is None:
            return None
        for r in self.records:
            if r.status_code == str(status_code):
                return r.application_status_id
        return None

    def id_for_name(self, status_name: Optional[str]) -> Optional[int]:
        if not status_name:
            return None
        for r in self.records:
            if r.status_name == status_name:
                return r.application_status_id
        return None

    def approved_records(self) -> list[StatusRecord]:
        return [r for r in self.records
                if is_approved_status(r.application_status_id, r.status_code, r.status_name)]

    def badge_label(self, status_id: Any = None, status_code: Any = None,
                    label: Optional[str] = None, fallback: Optional[str] = None) -> str:
        if label is not None:
            return label
        r = self._get(status_id)
        if r and r.status_name is not None:
            return r.status_name
        if fallback is not None:
            return fallback
        code = status_code if status_code is not None else (r.status_code if r else None)
        if code is not None and str(code) != "":
            return f"สถานะ {code}"
        return "ไม่ทราบสถานะ"
