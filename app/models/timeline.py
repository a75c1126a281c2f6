"""Claim timeline event model."""
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, DateTime, Text, JSON, ForeignKey, Uuid, Enum as SAEnum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.claim import enum_values
from app.models.enums import ClaimStatus, TimelineEventType

if TYPE_CHECKING:
    from app.models.claim import Claim


class ClaimTimelineEvent(Base):
    """Append-only audit trail entry for a claim."""

    __tablename__ = "claim_timeline_events"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        index=True,
    )
    claim_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("claims.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    event_type: Mapped[TimelineEventType] = mapped_column(
        SAEnum(TimelineEventType, name="timeline_event_type", values_callable=enum_values),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    previous_status: Mapped[Optional[ClaimStatus]] = mapped_column(
        SAEnum(ClaimStatus, name="claim_status", values_callable=enum_values),
        nullable=True,
    )
    new_status: Mapped[Optional[ClaimStatus]] = mapped_column(
        SAEnum(ClaimStatus, name="claim_status", values_callable=enum_values),
        nullable=True,
    )
    event_metadata: Mapped[dict] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        default=dict,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )

    # Relationships
    claim: Mapped["Claim"] = relationship(
        "Claim",
        back_populates="timeline_events",
    )

    def __repr__(self) -> str:
        return (
            f"<ClaimTimelineEvent(claim_id={self.claim_id}, type={self.event_type}, "
            f"{self.previous_status} -> {self.new_status})>"
        )
