"""
reconciler.py – raw submission payload -> SubmissionView

Each semantic field owns an explicit, ordered tuple of accessor paths; the
first non-empty value wins. Historical payload shapes stay supported by
adding paths here instead of branching in the screens.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from fund_portal.models.submission_schema import AmountSummary, SubmissionView
from fund_portal.services.coerce import dig, first_text, is_blank, parse_amount, probe_text, to_number
from fund_portal.services.status_classifier import StatusCatalog, classify
from fund_portal.utils.logger import get_logger


logger = get_logger("reconciler")

FUND_APPLICATION = "fund_application"
PUBLICATION_REWARD = "publication_reward"
PUBLICATION_CATEGORY_LABEL = "เงินรางวัลการตีพิมพ์"
PLACEHOLDER = "-"
NAME_SEPARATOR = " - "


def cased(name: str) -> Tuple[str, str, str]:
    """snake_case, PascalCase and camelCase spellings of a snake_case key."""
    parts = name.split("_")
    pascal = "".join(p[:1].upper() + p[1:] for p in parts)
    camel = parts[0] + "".join(p[:1].upper() + p[1:] for p in parts[1:])
    return name, pascal, camel


def under(prefixes: Iterable[str], keys: Iterable[str]) -> List[str]:
    keys = list(keys)
    return [f"{p}.{k}" if p else k for p in prefixes for k in keys]


# =============================
# Detail object location
# =============================
DETAIL_PATHS = {
    FUND_APPLICATION: (
        "FundApplicationDetail", "fund_application_detail", "fundApplicationDetail",
        "details.data.fund_application_detail", "details.data", "payload",
    ),
    PUBLICATION_REWARD: (
        "PublicationRewardDetail", "publication_reward_detail", "publicationRewardDetail",
        "details.data.publication_reward_detail", "details.data", "payload",
    ),
}
ANY_DETAIL_PATHS = tuple(dict.fromkeys(DETAIL_PATHS[FUND_APPLICATION] + DETAIL_PATHS[PUBLICATION_REWARD]))

TYPE_PATHS = ("submission_type", "SubmissionType", "submissionType", "details.type")


# =============================
# Field accessor lists
# =============================
ID_PATHS = ("submission_id", "SubmissionID", "submissionId", "id")
NUMBER_PATHS = cased("submission_number")

TITLE_PATHS = {
    PUBLICATION_REWARD: (
        "@paper_title", "@article_title", "@PaperTitle", "@ArticleTitle",
        "paper_title", "article_title", "title", "project_title",
    ),
    FUND_APPLICATION: (
        "@project_title", "@project_name", "@ProjectTitle", "@ProjectName",
        "project_title", "project_name", "title",
    ),
    None: ("project_title", "title"),
}

SUBCATEGORY_DETAIL_KEYS = (
    "subcategory_name_th", "subcategory_name", "fund_subcategory_name",
    "subcategory_label", "fund_subcategory_label", "fund_name_th", "fund_name",
)
SUBCATEGORY_FLAT_KEYS = (
    "subcategory_name_th", "subcategory_name", "SubcategoryName",
    "fund_subcategory_name", "fund_name_th", "fund_name",
)
SUBCATEGORY_OBJECT_PATHS = (
    "subcategory", "Subcategory", "fund_subcategory", "FundSubcategory",
    "@subcategory", "@Subcategory",
)
SUBCATEGORY_OBJECT_NAME_KEYS = (
    "subcategory_name_th", "subcategory_name", "SubcategoryName",
    "name_th", "title_th", "label_th",
    "name_en", "title_en", "label_en",
    "name", "title", "label",
)
SUBCATEGORY_ID_PATHS = ("subcategory_id", "SubcategoryID", "subcategoryId", "@subcategory_id", "@SubcategoryID")

CATEGORY_PATHS = (
    "category_name", "CategoryName",
    "@subcategory.category.category_name", "@Subcategory.Category.CategoryName",
    "details.data.category.category_name",
    "category.category_name", "Category.CategoryName", "Category.category_name",
)
CATEGORY_ID_PATHS = ("category_id", "CategoryID", "categoryId", "@category_id")

STATUS_ID_PATHS = (
    "status_id", "StatusID", "statusId",
    "status.application_status_id", "Status.application_status_id", "Status.ApplicationStatusID",
)
STATUS_CODE_PATHS = ("status.status_code", "Status.status_code", "status_code", "StatusCode")
STATUS_NAME_PATHS = ("status.status_name", "Status.status_name", "status_name", "StatusName")

# flat first, then the raw details envelope, then the resolved detail object
CONTACT_PREFIXES = ("", "details.data", "@", "@fund_application_detail")
CONTACT_PHONE_PATHS = under(CONTACT_PREFIXES, cased("contact_phone"))
BANK_ACCOUNT_PATHS = under(CONTACT_PREFIXES, cased("bank_account"))
BANK_ACCOUNT_NAME_PATHS = under(CONTACT_PREFIXES, cased("bank_account_name"))
BANK_NAME_PATHS = under(CONTACT_PREFIXES, cased("bank_name"))

MAIN_ANNOUNCEMENT_PATHS = under(
    ("@", ""),
    ("main_annoucement", "main_announcement", "MainAnnouncement", "mainAnnouncement", "main_announcement_id"),
)
ACTIVITY_ANNOUNCEMENT_PATHS = under(
    ("@", ""),
    cased("activity_support_announcement") + ("activity_support_announcement_id",),
)
ANNOUNCE_REFERENCE_PATHS = ("announce_reference_number", "announce_reference", "@announce_reference_number")

REQUESTED_AMOUNT_PATHS = ("@requested_amount", "@RequestedAmount") + cased("requested_amount")
APPROVED_AMOUNT_PATHS = cased("approved_amount") + ("@approved_amount", "@ApprovedAmount")

YEAR_PATHS = ("year.year", "Year.year", "Year.Year", "year", "Year")
YEAR_ID_PATHS = ("year_id", "YearID", "Year.year_id", "year.year_id")
SUBMITTED_AT_PATHS = ("submitted_at", "SubmittedAt", "created_at", "CreatedAt", "create_at")

APPLICANT_PATHS = ("applicant", "applicant_user", "user", "User")
APPLICANT_FLAGS = ("is_applicant", "IsApplicant", "is_owner", "is_submitter")

# publication reward breakdown: requested and approved variants
REWARD_PATHS = ("@reward_amount", "reward_amount")
REVISION_FEE_PATHS = ("@revision_fee", "@editing_fee", "revision_fee")
PUBLICATION_FEE_PATHS = ("@publication_fee", "@page_charge", "publication_fee")
EXTERNAL_FUNDING_PATHS = ("@external_funding_amount", "external_funding_amount")
REQUESTED_TOTAL_PATHS = ("@total_amount", "total_amount", "requested_amount")

REWARD_APPROVED_PATHS = ("@reward_approve_amount", "@reward_approved_amount", "reward_approve_amount")
REVISION_FEE_APPROVED_PATHS = (
    "@revision_fee_approve_amount", "@revision_fee_approved_amount", "revision_fee_approve_amount",
)
PUBLICATION_FEE_APPROVED_PATHS = (
    "@publication_fee_approve_amount", "@publication_fee_approved_amount", "publication_fee_approve_amount",
)
APPROVED_TOTAL_PATHS = ("@total_approve_amount", "@approved_amount", "approved_amount")


class _Source:
    """Path resolution over a submission and its detail ("@" prefix)."""

    def __init__(self, submission: Mapping[str, Any], detail: Mapping[str, Any]):
        self.submission = submission
        self.detail = detail

    def get(self, path: str) -> Any:
        if path == "@":
            return self.detail
        if path.startswith("@"):
            return dig(self.detail, path[1:].lstrip("."))
        return dig(self.submission, path)

    def first(self, paths: Iterable[str]) -> Any:
        for p in paths:
            value = self.get(p)
            if not is_blank(value):
                return value
        return None

    def text(self, paths: Iterable[str]) -> Optional[str]:
        return first_text(*(self.get(p) for p in paths))

    def amount(self, paths: Iterable[str]) -> Optional[float]:
        for p in paths:
            num = parse_amount(self.get(p))
            if num is not None:
                return num
        return None

    def mapping(self, paths: Iterable[str]) -> Optional[Mapping[str, Any]]:
        for p in paths:
            value = self.get(p)
            if isinstance(value, Mapping):
                return value
        return None


def resolve_type(raw: Mapping[str, Any]) -> Optional[str]:
    t = probe_text(raw, TYPE_PATHS)
    return t.lower() if t else None


def resolve_detail(raw: Mapping[str, Any], submission_type: Optional[str] = None) -> Mapping[str, Any]:
    paths = DETAIL_PATHS.get(submission_type or "", ANY_DETAIL_PATHS)
    for p in paths:
        value = dig(raw, p)
        if isinstance(value, Mapping):
            return value
    return {}


def first_name_segment(name: Optional[str]) -> Optional[str]:
    """Keep the part before " - " ("FUND01 - Research Grant" -> "FUND01")."""
    if not name:
        return None
    head = name.split(NAME_SEPARATOR)[0].strip()
    return head or None


def resolve_title(src: _Source, submission_type: Optional[str]) -> str:
    paths = TITLE_PATHS.get(submission_type, TITLE_PATHS[None])
    return src.text(paths) or PLACEHOLDER


def resolve_subcategory_id(src: _Source) -> Optional[str]:
    value = src.first(SUBCATEGORY_ID_PATHS)
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def resolve_subcategory_name(src: _Source, names: Optional[Mapping[str, str]] = None) -> str:
    name = (
        first_text(*(src.detail.get(k) for k in SUBCATEGORY_DETAIL_KEYS))
        or first_text(*(src.submission.get(k) for k in SUBCATEGORY_FLAT_KEYS))
    )
    if not name:
        obj = src.mapping(SUBCATEGORY_OBJECT_PATHS)
        if obj is not None:
            name = first_text(*(obj.get(k) for k in SUBCATEGORY_OBJECT_NAME_KEYS))
    if not name and names:
        sub_id = resolve_subcategory_id(src)
        if sub_id is not None:
            mapped = names.get(sub_id)
            name = mapped.strip() if isinstance(mapped, str) and mapped.strip() else None
    return first_name_segment(name) or PLACEHOLDER


def resolve_category_name(src: _Source, submission_type: Optional[str],
                          names: Optional[Mapping[str, str]] = None) -> str:
    direct = src.text(CATEGORY_PATHS[:2])
    if direct:
        return direct
    if submission_type == PUBLICATION_REWARD:
        return PUBLICATION_CATEGORY_LABEL
    nested = src.text(CATEGORY_PATHS[2:])
    if nested:
        return nested
    if names:
        cat_id = src.first(CATEGORY_ID_PATHS)
        if cat_id is not None:
            return names.get(str(cat_id)) or PLACEHOLDER
    return PLACEHOLDER


def _user_full_name(user: Any) -> Optional[str]:
    if not isinstance(user, Mapping):
        return None
    full = first_text(user.get("full_name"))
    if full:
        return full
    fname = first_text(user.get("user_fname"), user.get("first_name")) or ""
    lname = first_text(user.get("user_lname"), user.get("last_name")) or ""
    name = f"{fname} {lname}".strip()
    return name or first_text(user.get("email"))


def resolve_applicant_name(src: _Source) -> str:
    user = src.mapping(APPLICANT_PATHS)
    if user is None:
        users = src.submission.get("submission_users") or []
        entries = [u for u in users if isinstance(u, Mapping)] if isinstance(users, list) else []
        chosen = next((u for u in entries if any(u.get(f) for f in APPLICANT_FLAGS)), None)
        if chosen is None:
            chosen = next((u for u in entries if u.get("role") in ("owner", "applicant")), None)
        if chosen is not None:
            user = chosen.get("user") or chosen.get("User")
    return _user_full_name(user) or src.text(("applicant_name",)) or PLACEHOLDER


def resolve_year(src: _Source, year_labels: Optional[Mapping[int, str]] = None) -> Optional[str]:
    for p in YEAR_PATHS:
        value = src.get(p)
        if value is None or isinstance(value, Mapping) or value == "":
            continue
        return str(value)
    year_id = to_number(src.first(YEAR_ID_PATHS))
    if year_labels and year_id is not None:
        return year_labels.get(year_id)
    return None


def requested_summary(src: _Source) -> AmountSummary:
    reward = src.amount(REWARD_PATHS)
    revision = src.amount(REVISION_FEE_PATHS)
    publication = src.amount(PUBLICATION_FEE_PATHS)
    external = src.amount(EXTERNAL_FUNDING_PATHS)

    has_breakdown = any(v is not None for v in (reward, revision, publication))
    if has_breakdown:
        base = (reward or 0.0) + (revision or 0.0) + (publication or 0.0)
    else:
        base = src.amount(REQUESTED_TOTAL_PATHS)
    external = external or 0.0
    if base is None:
        # nothing requested on record: unknown, not zero
        return AmountSummary(external=external)

    if reward is None:
        reward = 0.0 if has_breakdown else base
    return AmountSummary(
        reward=reward,
        revision=revision or 0.0,
        publication=publication or 0.0,
        external=external,
        base_total=base,
        total=max(0.0, base - external),
        has_breakdown=has_breakdown,
    )


def approved_summary(src: _Source, requested: Optional[AmountSummary] = None) -> AmountSummary:
    reward = src.amount(REWARD_APPROVED_PATHS)
    revision = src.amount(REVISION_FEE_APPROVED_PATHS)
    publication = src.amount(PUBLICATION_FEE_APPROVED_PATHS)

    has_breakdown = any(v is not None for v in (reward, revision, publication))
    if has_breakdown:
        base = (reward or 0.0) + (revision or 0.0) + (publication or 0.0)
    else:
        base = src.amount(APPROVED_TOTAL_PATHS)
    if base is None and requested is not None:
        base = requested.base_total

    if requested is not None:
        external = requested.external
    else:
        external = src.amount(EXTERNAL_FUNDING_PATHS) or 0.0

    return AmountSummary(
        reward=reward,
        revision=revision,
        publication=publication,
        external=external,
        base_total=base,
        total=max(0.0, base - external) if base is not None else None,
        has_breakdown=has_breakdown,
    )


def reconcile(raw: Any,
              subcategory_names: Optional[Mapping[str, str]] = None,
              category_names: Optional[Mapping[str, str]] = None,
              statuses: Optional[StatusCatalog] = None,
              year_labels: Optional[Mapping[int, str]] = None) -> SubmissionView:
    """
    Build the canonical view model for one submission payload.

    Never raises: missing data yields None / "-" placeholders.
    """
    if not isinstance(raw, Mapping):
        return SubmissionView()
    try:
        return _reconcile(raw, subcategory_names, category_names, statuses, year_labels)
    except Exception:  # noqa: BLE001
        logger.exception("reconcile failed for submission %r", raw.get("submission_id"))
        return SubmissionView()


def _reconcile(raw: Mapping[str, Any],
               subcategory_names: Optional[Mapping[str, str]],
               category_names: Optional[Mapping[str, str]],
               statuses: Optional[StatusCatalog],
               year_labels: Optional[Mapping[int, str]]) -> SubmissionView:
    submission_type = resolve_type(raw)
    detail = resolve_detail(raw, submission_type)
    src = _Source(raw, detail)

    status_id = to_number(src.first(STATUS_ID_PATHS))
    status_code = src.first(STATUS_CODE_PATHS)
    status_name = src.text(STATUS_NAME_PATHS)
    if statuses is not None and status_id is not None:
        if status_code is None:
            status_code = statuses.code_for(status_id)
        if status_name is None:
            status_name = statuses.label_for(status_id)
    status_code = None if status_code is None else str(status_code)
    status = classify(status_id, status_code, status_name)

    fields: Dict[str, Any] = {
        "submission_id": to_number(src.first(ID_PATHS)),
        "submission_number": src.text(NUMBER_PATHS) or PLACEHOLDER,
        "submission_type": submission_type,
        "title": resolve_title(src, submission_type),
        "category_name": resolve_category_name(src, submission_type, category_names),
        "subcategory_id": resolve_subcategory_id(src),
        "subcategory_name": resolve_subcategory_name(src, subcategory_names),
        "status_id": status_id,
        "status_code": status_code,
        "status_name": status_name,
        "status": status,
        "applicant_name": resolve_applicant_name(src),
        "contact_phone": src.text(CONTACT_PHONE_PATHS),
        "bank_account": src.text(BANK_ACCOUNT_PATHS),
        "bank_account_name": src.text(BANK_ACCOUNT_NAME_PATHS),
        "bank_name": src.text(BANK_NAME_PATHS),
        "main_announcement_id": to_number(src.first(MAIN_ANNOUNCEMENT_PATHS)),
        "activity_announcement_id": to_number(src.first(ACTIVITY_ANNOUNCEMENT_PATHS)),
        "announce_reference": src.text(ANNOUNCE_REFERENCE_PATHS),
        "year": resolve_year(src, year_labels),
        "year_id": to_number(src.first(YEAR_ID_PATHS)),
        "submitted_at": src.text(SUBMITTED_AT_PATHS),
        "head_approved_at": src.text(cased("head_approved_at")),
        "head_rejected_at": src.text(cased("head_rejected_at")),
        "head_rejection_reason": src.text(cased("head_rejection_reason")) or "",
        "admin_approved_at": src.text(cased("admin_approved_at")),
        "admin_rejected_at": src.text(cased("admin_rejected_at")),
        "admin_rejection_reason": src.text(cased("admin_rejection_reason")) or "",
    }

    if submission_type == PUBLICATION_REWARD:
        requested = requested_summary(src)
        fields["requested_summary"] = requested
        fields["requested_amount"] = (
            requested.total if requested.total is not None else src.amount(REQUESTED_AMOUNT_PATHS)
        )
        if status.approved:
            approved = approved_summary(src, requested)
            fields["approved_summary"] = approved
            fields["approved_amount"] = approved.total
    else:
        fields["requested_amount"] = src.amount(REQUESTED_AMOUNT_PATHS)
        if status.approved:
            fields["approved_amount"] = src.amount(APPROVED_AMOUNT_PATHS)

    return SubmissionView(**fields)


def flatten_details(payload: Any) -> dict:
    """Fold a details response (submission, users, documents, details) into one record."""
    if not isinstance(payload, Mapping):
        return {}
    submission = payload.get("submission")
    record = dict(submission) if isinstance(submission, Mapping) else dict(payload)
    for key in ("submission_users", "documents", "details"):
        if payload.get(key) is not None:
            record[key] = payload[key]
    details = payload.get("details")
    if isinstance(details, Mapping):
        detail_type = details.get("type")
        if detail_type and not record.get("submission_type"):
            record["submission_type"] = detail_type
        data = details.get("data")
        if isinstance(data, Mapping):
            if detail_type == FUND_APPLICATION:
                record["FundApplicationDetail"] = data
            elif detail_type == PUBLICATION_REWARD:
                record["PublicationRewardDetail"] = data
    return record
