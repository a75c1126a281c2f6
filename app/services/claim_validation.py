"""Claim completeness checks run before any clearinghouse is contacted."""
import re
from datetime import date
from typing import List

from app.models.claim import Claim
from app.models.enums import DocumentType, QUALIFYING_DOCUMENT_TYPES

# CPT: five digits. ICD-10: letter, two digits, optional decimal part.
CPT_CODE_PATTERN = re.compile(r"^\d{5}$")
ICD10_CODE_PATTERN = re.compile(r"^[A-Z]\d{2}(\.\d{1,4})?$")


def is_valid_cpt_code(code: str) -> bool:
    """Return True if ``code`` has the CPT format."""
    return isinstance(code, str) and bool(CPT_CODE_PATTERN.match(code))


def is_valid_icd10_code(code: str) -> bool:
    """Return True if ``code`` has the ICD-10 format."""
    return isinstance(code, str) and bool(ICD10_CODE_PATTERN.match(code))


def validate_claim_completeness(claim: Claim) -> List[str]:
    """
    Collect every reason a claim is not ready for submission.

    Checks provider name, date of service, a positive integer amount in
    cents, at least one well-formed CPT and ICD-10 code, and at least one
    qualifying supporting document (receipt, medical record or insurance card).

    Args:
        claim: Claim to check

    Returns:
        List of human-readable problems; empty when the claim is complete
    """
    errors: List[str] = []

    if not (claim.provider_name or "").strip():
        errors.append("Provider name is required")

    if not isinstance(claim.date_of_service, date):
        errors.append("Date of service is required")

    amount = claim.amount_cents
    if isinstance(amount, bool) or not isinstance(amount, int):
        errors.append("Claim amount must be a whole number of cents")
    elif amount <= 0:
        errors.append("Valid claim amount is required")

    cpt_codes = list(claim.cpt_codes or [])
    if not cpt_codes:
        errors.append("At least one CPT code is required")
    for code in cpt_codes:
        if not is_valid_cpt_code(code):
            errors.append(f"Invalid CPT code format: {code}")

    icd_codes = list(claim.icd_codes or [])
    if not icd_codes:
        errors.append("At least one ICD-10 code is required")
    for code in icd_codes:
        if not is_valid_icd10_code(code):
            errors.append(f"Invalid ICD-10 code format: {code}")

    document_types = {DocumentType(doc.document_type) for doc in (claim.documents or [])}
    if not document_types & QUALIFYING_DOCUMENT_TYPES:
        errors.append(
            "At least one supporting document (receipt, medical record, or insurance card) is required"
        )

    return errors
