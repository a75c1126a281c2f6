"""
Fallback claim-form generation.

When a claim cannot be delivered electronically it is rendered as a
printable claim form the patient files with the insurer themselves.
"""
import asyncio
import os
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from html import escape
from pathlib import Path
from typing import List, Optional

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from app.config import settings
from app.exceptions import FallbackGenerationException
from app.models.claim import Claim
from app.utils.logging_config import get_logger

logger = get_logger(__name__)

# Namespace for document IDs derived from (claim, submission)
CLAIM_FORM_NAMESPACE = uuid.UUID("8f2c1d6e-5b3a-4e71-9c0d-2a6b7e4f1c35")


@dataclass(frozen=True)
class GeneratedDocument:
    """A retrievable claim form produced for a submission."""

    document_id: str
    locator: str


def claim_form_document_id(claim_id: str, submission_id: str) -> str:
    """Stable document ID: the same claim and submission always map to the same document."""
    return str(uuid.uuid5(CLAIM_FORM_NAMESPACE, f"{claim_id}:{submission_id}"))


def claim_form_locator(claim_id: str, submission_id: str) -> str:
    """API path the claim form can be downloaded from."""
    return f"{settings.API_PREFIX}/claims/{claim_id}/submissions/{submission_id}/document"


def format_cents(amount_cents: int) -> str:
    """Render minor currency units as dollars without going through float."""
    dollars, cents = divmod(int(amount_cents), 100)
    return f"${dollars:,}.{cents:02d}"


class FallbackDocumentGenerator(ABC):
    """Produces a document record for a claim when electronic delivery is not possible."""

    @abstractmethod
    async def generate(self, claim: Claim, submission_id: str) -> GeneratedDocument:
        """
        Generate (or reuse) the claim form for this claim and submission.

        Raises:
            FallbackGenerationException: If the document cannot be produced
        """

    async def discard(self, claim_id: str, submission_id: str) -> None:
        """Remove a generated document whose submission was never recorded."""


@dataclass
class ClaimFormData:
    """Plain snapshot of the claim fields printed on the form."""

    claim_id: str
    submission_id: str
    provider_name: str
    provider_npi: Optional[str]
    insurer_name: Optional[str]
    date_of_service: Optional[date]
    amount_cents: int
    cpt_codes: List[str] = field(default_factory=list)
    icd_codes: List[str] = field(default_factory=list)
    description: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def from_claim(cls, claim: Claim, submission_id: str) -> "ClaimFormData":
        return cls(
            claim_id=str(claim.id),
            submission_id=submission_id,
            provider_name=claim.provider_name or "Unknown Provider",
            provider_npi=claim.provider_npi,
            insurer_name=claim.insurer_name,
            date_of_service=claim.date_of_service,
            amount_cents=claim.amount_cents,
            cpt_codes=list(claim.cpt_codes or []),
            icd_codes=list(claim.icd_codes or []),
            description=claim.description,
            notes=claim.notes,
        )


class ClaimFormPdfGenerator(FallbackDocumentGenerator):
    """Renders the claim form as a PDF file with reportlab."""

    def __init__(
        self,
        storage_dir: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.storage_dir = Path(storage_dir or settings.DOCUMENT_STORAGE_DIR)
        self.timeout_seconds = timeout_seconds or settings.FALLBACK_TIMEOUT_SECONDS

    def path_for(self, claim_id: str, submission_id: str) -> Path:
        """Where the claim form for this claim and submission lives."""
        return self.storage_dir / f"claim_{claim_id}_{submission_id}.pdf"

    async def generate(self, claim: Claim, submission_id: str) -> GeneratedDocument:
        """
        Render the claim form unless it already exists for this submission.

        Args:
            claim: Claim to render
            submission_id: Stable submission ID, part of the document identity

        Returns:
            GeneratedDocument with a deterministic ID and download locator

        Raises:
            FallbackGenerationException: On timeout or rendering/storage failure
        """
        claim_id = str(claim.id)
        document = GeneratedDocument(
            document_id=claim_form_document_id(claim_id, submission_id),
            locator=claim_form_locator(claim_id, submission_id),
        )
        path = self.path_for(claim_id, submission_id)

        if path.exists():
            logger.info(
                f"Reusing existing claim form for submission {submission_id}",
                extra={"extra_fields": {"claim_id": claim_id, "document_id": document.document_id}},
            )
            return document

        form = ClaimFormData.from_claim(claim, submission_id)
        try:
            await asyncio.wait_for(
                asyncio.to_thread(self._render, form, path),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise FallbackGenerationException(
                f"Claim form generation timed out after {self.timeout_seconds}s",
                details={"claim_id": claim_id, "submission_id": submission_id},
            ) from e
        except Exception as e:
            logger.error(
                f"Claim form generation failed: {str(e)}",
                exc_info=True,
                extra={"extra_fields": {"claim_id": claim_id, "submission_id": submission_id}},
            )
            raise FallbackGenerationException(
                f"Claim form generation failed: {str(e)}",
                details={"claim_id": claim_id, "submission_id": submission_id},
            ) from e

        logger.info(
            f"Claim form generated for submission {submission_id}",
            extra={"extra_fields": {
                "claim_id": claim_id,
                "document_id": document.document_id,
                "path": str(path),
            }},
        )
        return document

    async def discard(self, claim_id: str, submission_id: str) -> None:
        """Delete the claim form; a failure is logged and left for cleanup."""
        path = self.path_for(claim_id, submission_id)
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as e:
            logger.warning(
                f"Could not remove orphaned claim form {path}: {str(e)}",
                extra={"extra_fields": {"claim_id": claim_id, "submission_id": submission_id}},
            )
            return
        logger.info(
            f"Removed claim form for unrecorded submission {submission_id}",
            extra={"extra_fields": {"claim_id": claim_id, "path": str(path)}},
        )

    def _render(self, form: ClaimFormData, path: Path) -> None:
        """Build the PDF into a temp file, then move it into place."""
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(f".{uuid.uuid4().hex}.tmp")

        doc = SimpleDocTemplate(str(tmp_path), pagesize=letter, title="Health Insurance Claim Form")
        styles = getSampleStyleSheet()
        title_style = ParagraphStyle(
            "ClaimFormTitle",
            parent=styles["Heading1"],
            fontSize=16,
            textColor=colors.HexColor("#003366"),
            spaceAfter=20,
            alignment=TA_CENTER,
        )

        story = [
            Paragraph("HEALTH INSURANCE CLAIM FORM", title_style),
            Spacer(1, 0.1 * inch),
        ]

        details = [
            ["Claim ID:", form.claim_id],
            ["Submission ID:", form.submission_id],
            ["Provider:", form.provider_name],
            ["Provider NPI:", form.provider_npi or "-"],
            ["Insurer:", form.insurer_name or "-"],
            ["Date of Service:", form.date_of_service.strftime("%m/%d/%Y") if form.date_of_service else "-"],
            ["Amount Billed:", format_cents(form.amount_cents)],
            ["CPT Codes:", ", ".join(form.cpt_codes) or "-"],
            ["ICD-10 Codes:", ", ".join(form.icd_codes) or "-"],
        ]
        table = Table(details, colWidths=[2 * inch, 4.5 * inch])
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (0, -1), colors.lightgrey),
            ("ALIGN", (0, 0), (0, -1), "RIGHT"),
            ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 10),
            ("GRID", (0, 0), (-1, -1), 1, colors.black),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ]))
        story.append(table)
        story.append(Spacer(1, 0.3 * inch))

        if form.description:
            story.append(Paragraph("<b>DESCRIPTION OF SERVICES:</b>", styles["Heading2"]))
            story.append(Paragraph(escape(form.description), styles["Normal"]))
            story.append(Spacer(1, 0.2 * inch))

        if form.notes:
            story.append(Paragraph("<b>NOTES:</b>", styles["Heading2"]))
            story.append(Paragraph(escape(form.notes).replace("\n", "<br/>"), styles["Normal"]))
            story.append(Spacer(1, 0.2 * inch))

        generated_at = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
        story.append(Paragraph(
            f"Generated {generated_at}. Mail or upload this form to your insurance provider.",
            styles["Italic"],
        ))

        try:
            doc.build(story)
            os.replace(tmp_path, path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()
