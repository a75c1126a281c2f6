"""Tests for claim-form generation."""
import pytest

from app.exceptions import FallbackGenerationException
from app.services.fallback_document import (
    ClaimFormPdfGenerator,
    claim_form_document_id,
    claim_form_locator,
    format_cents,
)


@pytest.mark.unit
@pytest.mark.parametrize("amount,expected", [
    (0, "$0.00"),
    (5, "$0.05"),
    (15000, "$150.00"),
    (123456789, "$1,234,567.89"),
])
def test_format_cents(amount, expected):
    assert format_cents(amount) == expected


@pytest.mark.unit
def test_document_id_is_deterministic():
    assert claim_form_document_id("claim-1", "SUB-1") == claim_form_document_id("claim-1", "SUB-1")
    assert claim_form_document_id("claim-1", "SUB-1") != claim_form_document_id("claim-1", "SUB-2")


@pytest.mark.unit
def test_locator_points_at_download_endpoint():
    assert claim_form_locator("claim-1", "SUB-1") == "/api/v1/claims/claim-1/submissions/SUB-1/document"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_generates_pdf(tmp_path, make_claim):
    claim = make_claim(notes="Follow-up visit\nPaid copay")
    generator = ClaimFormPdfGenerator(storage_dir=str(tmp_path), timeout_seconds=10)

    document = await generator.generate(claim, "SUB-ABC")

    path = generator.path_for(str(claim.id), "SUB-ABC")
    assert path.exists()
    assert path.read_bytes().startswith(b"%PDF")
    assert document.document_id == claim_form_document_id(str(claim.id), "SUB-ABC")
    assert document.locator == claim_form_locator(str(claim.id), "SUB-ABC")
    assert [p.name for p in tmp_path.iterdir()] == [path.name]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_existing_form_is_reused(tmp_path, make_claim, monkeypatch):
    claim = make_claim()
    generator = ClaimFormPdfGenerator(storage_dir=str(tmp_path), timeout_seconds=10)
    first = await generator.generate(claim, "SUB-ABC")

    def fail_render(*args):
        raise AssertionError("form should not be rendered twice")

    monkeypatch.setattr(generator, "_render", fail_render)
    second = await generator.generate(claim, "SUB-ABC")

    assert first == second


@pytest.mark.unit
@pytest.mark.asyncio
async def test_render_failure_is_wrapped(tmp_path, make_claim, monkeypatch):
    generator = ClaimFormPdfGenerator(storage_dir=str(tmp_path), timeout_seconds=10)

    def broken_render(*args):
        raise OSError("disk full")

    monkeypatch.setattr(generator, "_render", broken_render)

    with pytest.raises(FallbackGenerationException) as exc_info:
        await generator.generate(make_claim(), "SUB-ABC")

    assert "disk full" in exc_info.value.message
    assert exc_info.value.code == "FALLBACK_GENERATION_FAILED"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_render_timeout_is_wrapped(tmp_path, make_claim, monkeypatch):
    import time

    generator = ClaimFormPdfGenerator(storage_dir=str(tmp_path), timeout_seconds=0.05)
    monkeypatch.setattr(generator, "_render", lambda *args: time.sleep(0.5))

    with pytest.raises(FallbackGenerationException) as exc_info:
        await generator.generate(make_claim(), "SUB-ABC")

    assert "timed out" in exc_info.value.message


@pytest.mark.unit
@pytest.mark.asyncio
async def test_discard_removes_claim_form(tmp_path, make_claim):
    claim = make_claim()
    generator = ClaimFormPdfGenerator(storage_dir=str(tmp_path), timeout_seconds=10)
    await generator.generate(claim, "SUB-ABC")

    await generator.discard(str(claim.id), "SUB-ABC")

    assert not generator.path_for(str(claim.id), "SUB-ABC").exists()
    assert list(tmp_path.iterdir()) == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_discard_missing_form_is_a_no_op(tmp_path):
    generator = ClaimFormPdfGenerator(storage_dir=str(tmp_path), timeout_seconds=10)

    await generator.discard("claim-1", "SUB-NONE")

    assert list(tmp_path.iterdir()) == []
