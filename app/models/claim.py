"""Claim model."""
import uuid
from datetime import datetime, date, timezone
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String, DateTime, Date, Integer, Text, JSON, Uuid, CheckConstraint, Enum as SAEnum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.enums import ClaimStatus

if TYPE_CHECKING:
    from app.models.document import ClaimDocument
    from app.models.submission import SubmissionRecord
    from app.models.timeline import ClaimTimelineEvent


# JSONB on PostgreSQL, plain JSON elsewhere
CodeList = JSON().with_variant(JSONB(), "postgresql")


def enum_values(enum_cls) -> List[str]:
    """Persist enum values (not member names) in the database."""
    return [member.value for member in enum_cls]


class Claim(Base):
    """Claim model for storing a patient's medical claim."""

    __tablename__ = "claims"
    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="ck_claims_amount_non_negative"),
        CheckConstraint(
            "paid_amount_cents IS NULL OR paid_amount_cents >= 0",
            name="ck_claims_paid_amount_non_negative",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        index=True,
    )
    user_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    status: Mapped[ClaimStatus] = mapped_column(
        SAEnum(ClaimStatus, name="claim_status", values_callable=enum_values),
        nullable=False,
        default=ClaimStatus.DRAFT,
        index=True,
    )
    # Minor currency units (cents); never floating point
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    paid_amount_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    date_of_service: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    provider_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    provider_npi: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    insurer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    cpt_codes: Mapped[list] = mapped_column(CodeList, nullable=False, default=list)
    icd_codes: Mapped[list] = mapped_column(CodeList, nullable=False, default=list)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    external_claim_number: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    denial_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # Relationships
    documents: Mapped[List["ClaimDocument"]] = relationship(
        "ClaimDocument",
        back_populates="claim",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    submissions: Mapped[List["SubmissionRecord"]] = relationship(
        "SubmissionRecord",
        back_populates="claim",
        cascade="all, delete-orphan",
        order_by="SubmissionRecord.submitted_at.desc()",
    )
    timeline_events: Mapped[List["ClaimTimelineEvent"]] = relationship(
        "ClaimTimelineEvent",
        back_populates="claim",
        cascade="all, delete-orphan",
        order_by="ClaimTimelineEvent.created_at",
    )

    def __repr__(self) -> str:
        return f"<Claim(id={self.id}, status={self.status}, amount_cents={self.amount_cents})>"
