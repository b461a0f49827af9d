import fitz
import pytest

from fund_portal.models.submission_schema import Attachment
from fund_portal.services.document_merge import (
    FileFetchError, NoMergeablePagesError, merge_attachments, merged_file_name, select_working_set,
)


def managed(file_id: int) -> str:
    return f"/api/v1/files/managed/{file_id}/download"


async def test_corrupt_member_is_skipped_and_order_preserved(fetcher_factory, pdf_factory, read_pages):
    files = {
        managed(1): pdf_factory("first-a", "first-b"),
        managed(2): b"not a pdf at all",
        managed(3): pdf_factory("third"),
    }
    docs = [
        {"file_id": 1, "original_name": "one.pdf"},
        {"file_id": 2, "original_name": "two.pdf"},
        {"file_id": 3, "original_name": "three.pdf"},
    ]
    async with fetcher_factory(files) as fetcher:
        result = await merge_attachments(docs, fetcher, concurrency=3)

    assert result.skipped == ["two.pdf"]
    assert result.page_count == 3
    assert read_pages(result.content) == ["first-a", "first-b", "third"]


async def test_zero_usable_members_raises_with_full_skip_list(fetcher_factory):
    docs = [
        {"file_id": 1, "original_name": "a.pdf"},
        {"file_id": 2, "original_name": "b.pdf"},
    ]
    async with fetcher_factory({managed(1): 500}) as fetcher:
        with pytest.raises(NoMergeablePagesError) as exc:
            await merge_attachments(docs, fetcher)
    assert exc.value.skipped == ["a.pdf", "b.pdf"]


async def test_managed_failure_falls_back_to_stored_path(fetcher_factory, pdf_factory, read_pages):
    seen = []
    files = {"/uploads/users/4/cv.pdf": pdf_factory("from path")}
    docs = [{"file_id": 4, "original_name": "cv.pdf", "file_path": "uploads/users/4/cv.pdf"}]
    async with fetcher_factory(files, seen) as fetcher:
        result = await merge_attachments(docs, fetcher)

    assert read_pages(result.content) == ["from path"]
    assert [r.url.path for r in seen] == [managed(4), "/uploads/users/4/cv.pdf"]
    assert all(r.headers["Authorization"] == "Bearer tok" for r in seen)


async def test_fetch_without_id_or_path_fails(fetcher_factory):
    async with fetcher_factory({}) as fetcher:
        with pytest.raises(FileFetchError):
            await fetcher.fetch({"original_name": "ghost.pdf"})
        assert fetcher.file_url("https://cdn.test/x.pdf") == "https://cdn.test/x.pdf"
        assert fetcher.file_url("/uploads/x.pdf") == "http://backend.test/uploads/x.pdf"


async def test_accepts_attachment_models(fetcher_factory, pdf_factory):
    files = {managed(9): pdf_factory("model")}
    async with fetcher_factory(files) as fetcher:
        result = await merge_attachments([Attachment(file_id=9, original_name="m.pdf")], fetcher)
    assert result.page_count == 1
    assert result.skipped == []


def test_working_set_prefers_pdf_named_members():
    docs = [{"original_name": "a.docx"}, {"original_name": "b.PDF"}, {"file_name": "c.pdf"}]
    assert [d.get("original_name") or d.get("file_name") for d in select_working_set(docs)] == ["b.PDF", "c.pdf"]
    only_other = [{"original_name": "a.docx"}]
    assert select_working_set(only_other) == only_other


def test_merged_file_name():
    assert merged_file_name("SUB-1", 5) == "merged_documents_SUB-1.pdf"
    assert merged_file_name("-", 5) == "merged_documents_5.pdf"


def encrypted_pdf(text: str, user_pw: str = "") -> bytes:
    doc = fitz.open()
    doc.new_page().insert_text((72, 72), text)
    data = doc.tobytes(encryption=fitz.PDF_ENCRYPT_AES_256, owner_pw="owner", user_pw=user_pw)
    doc.close()
    return data


async def test_user_password_pdf_is_skipped(fetcher_factory, pdf_factory, read_pages):
    files = {
        managed(1): encrypted_pdf("secret", user_pw="user"),
        managed(2): encrypted_pdf("owner only"),
        managed(3): pdf_factory("plain"),
    }
    docs = [
        {"file_id": 1, "original_name": "locked.pdf"},
        {"file_id": 2, "original_name": "restricted.pdf"},
        {"file_id": 3, "original_name": "plain.pdf"},
    ]
    async with fetcher_factory(files) as fetcher:
        result = await merge_attachments(docs, fetcher)

    assert result.skipped == ["locked.pdf"]
    assert read_pages(result.content) == ["owner only", "plain"]
