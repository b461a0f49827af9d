"""
attachment_filter.py – attachment normalization and merged-artifact hiding

The backend stores a system-generated combined request form next to the
user's own uploads. It must never show up in the user-facing attachment list.
Unlike field reconciliation (first match wins), every name and path
candidate is checked here and any match hides the document.
"""

import re
from typing import Any, Iterable, List, Mapping, Optional

from fund_portal.models.submission_schema import Attachment
from fund_portal.services.coerce import dig, first_present, first_text, probe_text, to_bool, to_number


HIDDEN_MERGED_FORM_NAME = "แบบฟอร์มคำร้องรวม (merged pdf)"
HIDDEN_MERGED_FILE_RE = re.compile(r"_merged_document(?:_\d+)?\.pdf$", re.IGNORECASE)
MERGED_FOLDER_SEGMENT = "merge_submissions"

_PATH_KEYS = (
    "file_path", "path", "url", "file_url", "download_url", "document_path",
    "document_url", "attachment_path", "attachment_url",
    "file.file_path", "file.path", "file.url", "file.download_url",
    "document.file_path", "document.path", "document.url",
    "Document.file_path", "Document.path", "Document.url",
)
_FILE_COLLECTIONS = ("files", "Files", "documents", "Documents")


def extract_first_file_path(value: Any) -> Optional[str]:
    """First usable path on the record, descending into nested file lists."""
    if not isinstance(value, Mapping):
        return None
    direct = first_text(*(dig(value, k) for k in _PATH_KEYS))
    if direct:
        return direct
    for key in _FILE_COLLECTIONS:
        collection = value.get(key)
        if not isinstance(collection, list):
            continue
        for entry in collection:
            nested = extract_first_file_path(entry)
            if nested:
                return nested
            if isinstance(entry, str) and entry.strip():
                return entry.strip()
    return None


def name_candidates(doc: Any) -> List[Any]:
    if not doc:
        return []
    if isinstance(doc, str):
        return [doc]
    if not isinstance(doc, Mapping):
        return []
    return [
        doc.get("original_name"),
        doc.get("file_name"),
        doc.get("document_name"),
        doc.get("name"),
        dig(doc, "File.file_name"),
        dig(doc, "file.file_name"),
    ]


def path_candidates(doc: Any) -> List[Any]:
    if not doc:
        return []
    if isinstance(doc, str):
        return [doc]
    if not isinstance(doc, Mapping):
        return []
    paths = [
        doc.get("file_path"),
        doc.get("path"),
        doc.get("url"),
        dig(doc, "file.file_path"),
        dig(doc, "file.path"),
        dig(doc, "file.url"),
        dig(doc, "File.file_path"),
        dig(doc, "File.path"),
        dig(doc, "File.url"),
    ]
    extracted = extract_first_file_path(doc)
    if extracted:
        paths.append(extracted)
    return paths


def is_system_merged_artifact(doc: Any) -> bool:
    for candidate in name_candidates(doc):
        if not isinstance(candidate, str):
            continue
        trimmed = candidate.strip()
        if not trimmed:
            continue
        if trimmed.lower() == HIDDEN_MERGED_FORM_NAME or HIDDEN_MERGED_FILE_RE.search(trimmed):
            return True

    for candidate in path_candidates(doc):
        if not isinstance(candidate, str):
            continue
        normalized = candidate.strip().lower()
        if not normalized:
            continue
        if MERGED_FOLDER_SEGMENT in normalized or HIDDEN_MERGED_FILE_RE.search(normalized):
            return True

    return False


def filter_visible(docs: Optional[Iterable[Any]]) -> List[Any]:
    return [d for d in (docs or []) if not is_system_merged_artifact(d)]


# --- resolution helpers shared with the merge assembler ---

def resolve_file_id(doc: Any) -> Optional[int]:
    if not isinstance(doc, Mapping):
        return None
    for key in ("file_id", "File.file_id", "file.file_id", "file.id", "File.id"):
        num = to_number(dig(doc, key))
        if num is not None:
            return num
    return None


def resolve_file_path(doc: Any) -> Optional[str]:
    if not isinstance(doc, Mapping):
        return None
    return first_text(*(dig(doc, k) for k in (
        "file_path", "File.file_path", "file.file_path",
        "stored_path", "File.stored_path", "file.stored_path",
        "download_url", "url", "File.url", "file.url",
        "path", "File.path", "file.path",
    )))


def resolve_file_name(doc: Any, fallback: Optional[str] = None) -> str:
    """Display name used in skip reports."""
    name = doc.get("original_name") if isinstance(doc, Mapping) else None
    if isinstance(name, str) and name.strip():
        return name.strip()
    if fallback:
        return fallback
    file_id = resolve_file_id(doc)
    return f"file-{file_id}.pdf" if file_id is not None else "unknown.pdf"


def is_openable(doc: Any) -> bool:
    return resolve_file_id(doc) is not None or resolve_file_path(doc) is not None


def is_pdf_name(doc: Any) -> bool:
    if not isinstance(doc, Mapping):
        return False
    name = first_text(
        doc.get("original_name"), doc.get("file_name"),
        dig(doc, "File.file_name"), dig(doc, "file.file_name"),
    )
    return bool(name) and name.lower().endswith(".pdf")


def normalize_attachment(raw: Any) -> Optional[Attachment]:
    """Fold the backend's casing variants into an Attachment record."""
    if not isinstance(raw, Mapping):
        return None
    file_id = to_number(first_present(raw, ("file_id", "FileID", "fileId", "fileID")))
    if file_id is None:
        file_id = resolve_file_id(raw)
    return Attachment(
        file_id=file_id,
        original_name=probe_text(raw, ("original_name", "OriginalName", "originalName", "file_name")) or "",
        stored_path=probe_text(raw, ("stored_path", "StoredPath", "storedPath", "file_path")) or "",
        download_url=probe_text(raw, ("download_url", "downloadUrl", "DownloadURL", "DownloadUrl")),
        document_type=probe_text(raw, (
            "document_type_name", "DocumentTypeName", "document_type.document_type_name", "document_type",
        )),
        file_size=to_number(first_present(raw, ("file_size", "FileSize", "fileSize"))) or 0,
        mime_type=probe_text(raw, ("mime_type", "MimeType", "mimeType")) or "",
        is_public=to_bool(first_present(raw, ("is_public", "IsPublic", "isPublic"))),
        uploaded_at=probe_text(raw, ("uploaded_at", "UploadedAt", "uploadedAt")),
        display_order=to_number(first_present(raw, ("display_order", "DisplayOrder", "displayOrder"))) or 0,
    )
