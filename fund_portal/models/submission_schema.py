from pydantic import BaseModel, Field
from typing import Optional, Any


class Classification(BaseModel):
    approved: bool = False
    key: str = Field("unknown", description="pending|approved|rejected|revision|draft|unknown")
    style: str = ""


class StatusRecord(BaseModel):
    application_status_id: int
    status_code: Optional[str] = None
    status_name: Optional[str] = None


class AmountSummary(BaseModel):
    reward: Optional[float] = None
    revision: Optional[float] = None
    publication: Optional[float] = None
    external: float = 0.0
    base_total: Optional[float] = None
    total: Optional[float] = None
    has_breakdown: bool = False


class Attachment(BaseModel):
    file_id: Optional[int] = None
    original_name: str = ""
    stored_path: str = ""
    download_url: Optional[str] = None
    document_type: Optional[str] = None
    file_size: int = 0
    mime_type: str = ""
    is_public: bool = False
    uploaded_at: Optional[str] = None
    display_order: int = 0

    @property
    def openable(self) -> bool:
        return self.file_id is not None or bool(self.stored_path or self.download_url)


class SubmissionView(BaseModel):
    """Canonical view model consumed by the list and detail screens."""

    submission_id: Optional[int] = None
    submission_number: str = "-"
    submission_type: Optional[str] = None
    title: str = "-"
    category_name: str = "-"
    subcategory_id: Optional[str] = None
    subcategory_name: str = "-"
    status_id: Optional[int] = None
    status_code: Optional[str] = None
    status_name: Optional[str] = None
    status: Classification = Field(default_factory=Classification)
    requested_amount: Optional[float] = None
    approved_amount: Optional[float] = None
    requested_summary: Optional[AmountSummary] = None
    approved_summary: Optional[AmountSummary] = None
    applicant_name: str = "-"
    contact_phone: Optional[str] = None
    bank_account: Optional[str] = None
    bank_account_name: Optional[str] = None
    bank_name: Optional[str] = None
    main_announcement_id: Optional[int] = None
    activity_announcement_id: Optional[int] = None
    announce_reference: Optional[str] = None
    year: Optional[str] = None
    year_id: Optional[int] = None
    submitted_at: Optional[str] = None
    head_approved_at: Optional[str] = None
    head_rejected_at: Optional[str] = None
    head_rejection_reason: str = ""
    admin_approved_at: Optional[str] = None
    admin_rejected_at: Optional[str] = None
    admin_rejection_reason: str = ""


class MergeResult(BaseModel):
    content: bytes
    skipped: list[str] = Field(default_factory=list)
    page_count: int = 0
    media_type: str = "application/pdf"


class ListPage(BaseModel):
    items: list[SubmissionView] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 20
    meta: Optional[dict[str, Any]] = None
