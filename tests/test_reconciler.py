from fund_portal.services.reconciler import (
    PUBLICATION_CATEGORY_LABEL, first_name_segment, flatten_details, reconcile,
)
from fund_portal.services.status_classifier import StatusCatalog


def test_empty_payload_yields_placeholders():
    view = reconcile({})
    assert view.submission_number == "-"
    assert view.title == "-"
    assert view.subcategory_name == "-"
    assert view.category_name == "-"
    assert view.applicant_name == "-"
    assert view.requested_amount is None
    assert view.approved_amount is None
    assert view.status.key == "unknown"


def test_non_mapping_payload_yields_placeholders():
    assert reconcile(None).title == "-"
    assert reconcile(["x"]).submission_number == "-"


def test_fund_application_title_prefers_detail_project_title():
    view = reconcile({
        "submission_type": "fund_application",
        "title": "flat title",
        "FundApplicationDetail": {"project_title": "Detail Project"},
    })
    assert view.title == "Detail Project"


def test_publication_title_prefers_paper_title():
    view = reconcile({
        "submission_type": "publication_reward",
        "title": "flat",
        "PublicationRewardDetail": {"paper_title": "  A Paper  ", "article_title": "ignored"},
    })
    assert view.title == "A Paper"
    assert view.category_name == PUBLICATION_CATEGORY_LABEL


def test_title_falls_back_to_flat_fields():
    view = reconcile({"submission_type": "fund_application", "project_name": "P"})
    assert view.title == "P"


def test_subcategory_name_precedence_detail_then_flat_then_lookup():
    detail_first = reconcile({
        "submission_type": "fund_application",
        "subcategory_name": "Flat",
        "FundApplicationDetail": {"subcategory_name": "Detail"},
    })
    assert detail_first.subcategory_name == "Detail"

    flat = reconcile({"subcategory_name": "Flat", "subcategory_id": 9})
    assert flat.subcategory_name == "Flat"

    nested = reconcile({"Subcategory": {"name_th": "Nested"}})
    assert nested.subcategory_name == "Nested"

    lookup = reconcile({"subcategory_id": 9}, subcategory_names={"9": "From Lookup"})
    assert lookup.subcategory_name == "From Lookup"
    assert lookup.subcategory_id == "9"


def test_subcategory_name_keeps_only_first_segment():
    # pinned: the part after " - " is dropped for every source
    view = reconcile({"subcategory_name": "FUND01 - Research Excellence Grant"})
    assert view.subcategory_name == "FUND01"
    looked_up = reconcile({"subcategory_id": 1}, subcategory_names={"1": "A - B - C"})
    assert looked_up.subcategory_name == "A"
    assert first_name_segment("No separator-here") == "No separator-here"
    assert first_name_segment(" - tail") is None


def test_category_name_from_lookup():
    view = reconcile({"category_id": 4}, category_names={"4": "ทุนวิจัย"})
    assert view.category_name == "ทุนวิจัย"


def test_approved_amount_only_when_approved():
    pending = reconcile({"status_id": 1, "requested_amount": "50,000", "approved_amount": "40,000"})
    assert pending.requested_amount == 50000.0
    assert pending.approved_amount is None

    approved = reconcile({"status_id": 2, "requested_amount": "50,000", "approved_amount": "40,000"})
    assert approved.status.approved
    assert approved.approved_amount == 40000.0


def test_status_resolved_through_catalog():
    catalog = StatusCatalog.from_payload([
        {"application_status_id": 7, "status_code": "approved", "status_name": "Approved"},
    ])
    view = reconcile({"status_id": 7}, statuses=catalog)
    assert view.status_code == "approved"
    assert view.status_name == "Approved"
    assert view.status.approved


def test_publication_requested_summary_subtracts_external_funding():
    view = reconcile({
        "submission_type": "publication_reward",
        "status_id": 1,
        "PublicationRewardDetail": {
            "reward_amount": "20,000", "revision_fee": 3000, "publication_fee": "2000",
            "external_funding_amount": 5000,
        },
    })
    summary = view.requested_summary
    assert summary.has_breakdown
    assert summary.base_total == 25000.0
    assert summary.total == 20000.0
    assert view.requested_amount == 20000.0
    assert view.approved_summary is None


def test_publication_requested_summary_without_breakdown_uses_total():
    view = reconcile({
        "submission_type": "publication_reward",
        "PublicationRewardDetail": {"total_amount": 12000},
    })
    assert view.requested_summary.has_breakdown is False
    assert view.requested_summary.reward == 12000.0
    assert view.requested_amount == 12000.0


def test_publication_approved_summary_when_approved():
    view = reconcile({
        "submission_type": "publication_reward",
        "status_id": 2,
        "PublicationRewardDetail": {
            "reward_amount": 20000, "external_funding_amount": 1000,
            "reward_approve_amount": 15000, "revision_fee_approve_amount": 1000,
        },
    })
    assert view.approved_summary.has_breakdown
    assert view.approved_summary.base_total == 16000.0
    assert view.approved_amount == 15000.0


def test_contact_and_announcements_from_detail():
    view = reconcile({
        "submission_type": "fund_application",
        "FundApplicationDetail": {
            "ContactPhone": "081-000-0000",
            "bank_account": "123-4",
            "main_annoucement": "11",
            "activity_support_announcement": 12,
        },
    })
    assert view.contact_phone == "081-000-0000"
    assert view.bank_account == "123-4"
    assert view.main_announcement_id == 11
    assert view.activity_announcement_id == 12


def test_applicant_from_submission_users():
    view = reconcile({"submission_users": [
        {"is_applicant": False, "user": {"full_name": "Co Author"}},
        {"is_applicant": True, "user": {"user_fname": "Somchai", "user_lname": "Jaidee"}},
    ]})
    assert view.applicant_name == "Somchai Jaidee"


def test_year_label():
    assert reconcile({"Year": {"year": "2568"}}).year == "2568"
    assert reconcile({"year_id": 3}, year_labels={3: "2567"}).year == "2567"


def test_flatten_details_folds_envelope():
    record = flatten_details({
        "submission": {"submission_id": 10, "submission_number": "S-10"},
        "submission_users": [{"user": {"full_name": "X"}}],
        "documents": [{"original_name": "a.pdf"}],
        "details": {"type": "publication_reward", "data": {"paper_title": "T"}},
    })
    assert record["submission_type"] == "publication_reward"
    assert record["PublicationRewardDetail"] == {"paper_title": "T"}
    assert record["documents"] == [{"original_name": "a.pdf"}]
    assert reconcile(record).title == "T"
    assert flatten_details("x") == {}


def test_publication_without_amounts_reports_unknown_not_zero():
    pending = reconcile({"submission_type": "publication_reward"})
    assert pending.requested_amount is None
    assert pending.requested_summary.total is None
    assert pending.requested_summary.base_total is None

    approved = reconcile({"submission_type": "publication_reward", "status_id": 2})
    assert approved.status.approved
    assert approved.requested_amount is None
    assert approved.approved_amount is None
    assert approved.approved_summary.total is None


def test_publication_zero_amount_stays_zero():
    view = reconcile({
        "submission_type": "publication_reward",
        "PublicationRewardDetail": {"total_amount": "0"},
    })
    assert view.requested_amount == 0.0
