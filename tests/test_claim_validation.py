"""Tests for claim completeness validation."""
import pytest

from app.models.document import ClaimDocument
from app.models.enums import DocumentType
from app.services.claim_validation import (
    is_valid_cpt_code,
    is_valid_icd10_code,
    validate_claim_completeness,
)


@pytest.mark.unit
def test_complete_claim_has_no_errors(make_claim):
    assert validate_claim_completeness(make_claim()) == []


@pytest.mark.unit
@pytest.mark.parametrize("code,valid", [
    ("99213", True),
    ("00100", True),
    ("9921", False),
    ("992134", False),
    ("9921A", False),
    ("", False),
])
def test_cpt_code_format(code, valid):
    assert is_valid_cpt_code(code) is valid


@pytest.mark.unit
@pytest.mark.parametrize("code,valid", [
    ("J06.9", True),
    ("E11", True),
    ("S72.0012", True),
    ("j06.9", False),
    ("J6.9", False),
    ("J06.", False),
    ("J06.12345", False),
])
def test_icd10_code_format(code, valid):
    assert is_valid_icd10_code(code) is valid


@pytest.mark.unit
def test_missing_cpt_codes(make_claim):
    errors = validate_claim_completeness(make_claim(cpt_codes=[]))

    assert errors == ["At least one CPT code is required"]


@pytest.mark.unit
def test_zero_amount_is_rejected(make_claim):
    errors = validate_claim_completeness(make_claim(amount_cents=0))

    assert errors == ["Valid claim amount is required"]


@pytest.mark.unit
def test_fractional_amount_is_rejected(make_claim):
    claim = make_claim()
    claim.amount_cents = 150.5

    assert validate_claim_completeness(claim) == ["Claim amount must be a whole number of cents"]


@pytest.mark.unit
def test_every_problem_is_reported(make_claim):
    claim = make_claim(
        provider_name=" ",
        date_of_service=None,
        cpt_codes=["ABC"],
        icd_codes=[],
    )
    claim.documents = []

    errors = validate_claim_completeness(claim)

    assert errors == [
        "Provider name is required",
        "Date of service is required",
        "Invalid CPT code format: ABC",
        "At least one ICD-10 code is required",
        "At least one supporting document (receipt, medical record, or insurance card) is required",
    ]


@pytest.mark.unit
def test_non_qualifying_document_does_not_count(make_claim):
    claim = make_claim()
    claim.documents = [
        ClaimDocument(
            claim_id=claim.id,
            document_type=DocumentType.REFERRAL,
            file_name="referral.pdf",
            storage_key="claims/referral.pdf",
        )
    ]

    errors = validate_claim_completeness(claim)

    assert len(errors) == 1
    assert errors[0].startswith("At least one supporting document")


@pytest.mark.unit
@pytest.mark.parametrize("document_type", [
    DocumentType.RECEIPT,
    DocumentType.MEDICAL_RECORD,
    DocumentType.INSURANCE_CARD,
])
def test_each_qualifying_document_type_is_enough(make_claim, document_type):
    claim = make_claim()
    claim.documents = [
        ClaimDocument(
            claim_id=claim.id,
            document_type=document_type,
            file_name="doc",
            storage_key="claims/doc",
        )
    ]

    assert validate_claim_completeness(claim) == []
