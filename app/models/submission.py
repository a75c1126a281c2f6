"""Submission record model."""
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, DateTime, Boolean, ForeignKey, Uuid, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.claim import enum_values
from app.models.enums import SubmissionMethod

if TYPE_CHECKING:
    from app.models.claim import Claim


class SubmissionRecord(Base):
    """
    Outcome of one submission attempt sequence that reached the insurer.

    Rows are insert-only. A resubmission adds a new row that points at the
    record it supersedes; the newest row is the claim's active submission.
    """

    __tablename__ = "submission_records"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        index=True,
    )
    submission_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        index=True,
    )
    claim_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("claims.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    method: Mapped[SubmissionMethod] = mapped_column(
        SAEnum(SubmissionMethod, name="submission_method", values_callable=enum_values),
        nullable=False,
    )
    original_method: Mapped[SubmissionMethod] = mapped_column(
        SAEnum(SubmissionMethod, name="submission_method", values_callable=enum_values),
        nullable=False,
    )
    provider_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    confirmation_number: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    tracking_number: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    fallback_used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    fallback_document_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    fallback_document_locator: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    supersedes_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("submission_records.id", ondelete="SET NULL"),
        nullable=True,
    )
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )

    # Relationships
    claim: Mapped["Claim"] = relationship(
        "Claim",
        back_populates="submissions",
    )

    def __repr__(self) -> str:
        return (
            f"<SubmissionRecord(submission_id={self.submission_id}, claim_id={self.claim_id}, "
            f"method={self.method})>"
        )
