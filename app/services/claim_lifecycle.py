"""
Claim lifecycle state machine.

State diagram:
    DRAFT      -> SUBMITTED | CANCELLED
    SUBMITTED  -> PROCESSING | CANCELLED
    PROCESSING -> APPROVED | DENIED | REJECTED
    APPROVED   -> PAID
    DENIED     -> APPEALED
    APPEALED   -> SUBMITTED
    REJECTED   -> SUBMITTED          (resubmission)
    PAID, CANCELLED                  terminal

Every accepted transition produces exactly one ClaimTimelineEvent. The
lifecycle never writes anything itself; callers persist the new status and
the event together.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Optional

from app.exceptions import IllegalTransitionException
from app.models.claim import Claim
from app.models.enums import ClaimStatus, TimelineEventType
from app.models.timeline import ClaimTimelineEvent


TRANSITIONS: Dict[ClaimStatus, FrozenSet[ClaimStatus]] = {
    ClaimStatus.DRAFT: frozenset({ClaimStatus.SUBMITTED, ClaimStatus.CANCELLED}),
    ClaimStatus.SUBMITTED: frozenset({ClaimStatus.PROCESSING, ClaimStatus.CANCELLED}),
    ClaimStatus.PROCESSING: frozenset({
        ClaimStatus.APPROVED,
        ClaimStatus.DENIED,
        ClaimStatus.REJECTED,
    }),
    ClaimStatus.APPROVED: frozenset({ClaimStatus.PAID}),
    ClaimStatus.DENIED: frozenset({ClaimStatus.APPEALED}),
    ClaimStatus.APPEALED: frozenset({ClaimStatus.SUBMITTED}),
    ClaimStatus.REJECTED: frozenset({ClaimStatus.SUBMITTED}),
    ClaimStatus.PAID: frozenset(),
    ClaimStatus.CANCELLED: frozenset(),
}

# Statuses from which the submission workflow may run
RESUBMITTABLE_STATUSES: FrozenSet[ClaimStatus] = frozenset({
    ClaimStatus.DRAFT,
    ClaimStatus.REJECTED,
})

EVENT_TYPES: Dict[ClaimStatus, TimelineEventType] = {
    ClaimStatus.SUBMITTED: TimelineEventType.SUBMITTED,
    ClaimStatus.PROCESSING: TimelineEventType.PROCESSING,
    ClaimStatus.APPROVED: TimelineEventType.APPROVED,
    ClaimStatus.DENIED: TimelineEventType.DENIED,
    ClaimStatus.APPEALED: TimelineEventType.APPEALED,
    ClaimStatus.PAID: TimelineEventType.PAID,
}

EVENT_TITLES: Dict[ClaimStatus, str] = {
    ClaimStatus.SUBMITTED: "Claim submitted",
    ClaimStatus.PROCESSING: "Claim is being processed",
    ClaimStatus.APPROVED: "Claim approved",
    ClaimStatus.DENIED: "Claim denied",
    ClaimStatus.REJECTED: "Claim rejected",
    ClaimStatus.APPEALED: "Claim appealed",
    ClaimStatus.PAID: "Claim paid",
    ClaimStatus.CANCELLED: "Claim cancelled",
}


@dataclass(frozen=True)
class TransitionResult:
    """Accepted transition: the status to persist and the event to append."""

    previous_status: ClaimStatus
    new_status: ClaimStatus
    event: ClaimTimelineEvent


class ClaimLifecycle:
    """Owns the legal status transitions of a claim."""

    def successors(self, current: ClaimStatus) -> FrozenSet[ClaimStatus]:
        """Statuses directly reachable from ``current``."""
        return TRANSITIONS.get(ClaimStatus(current), frozenset())

    def can_transition(self, current: ClaimStatus, requested: ClaimStatus) -> bool:
        """Return True if ``requested`` is a direct successor of ``current``."""
        return ClaimStatus(requested) in self.successors(current)

    def can_resubmit(self, status: ClaimStatus) -> bool:
        """Return True exactly for statuses the submission workflow may start from."""
        return ClaimStatus(status) in RESUBMITTABLE_STATUSES

    def is_terminal(self, status: ClaimStatus) -> bool:
        """Return True for statuses with no outgoing edge."""
        return not self.successors(status)

    def transition(
        self,
        claim: Claim,
        requested: ClaimStatus,
        cause: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> TransitionResult:
        """
        Validate a status change and build its timeline event.

        The claim object is not modified; the caller persists
        ``result.new_status`` and ``result.event`` in one unit of work.

        Args:
            claim: Claim whose status should change
            requested: Target status
            cause: Human-readable reason, e.g. "submitted electronically via Provider A"
            metadata: Extra context stored on the timeline event

        Returns:
            TransitionResult with previous/new status and the unsaved event

        Raises:
            IllegalTransitionException: If ``requested`` is not a direct successor
        """
        current = ClaimStatus(claim.status)
        requested = ClaimStatus(requested)

        if not self.can_transition(current, requested):
            raise IllegalTransitionException(current.value, requested.value)

        event = ClaimTimelineEvent(
            claim_id=claim.id,
            event_type=EVENT_TYPES.get(requested, TimelineEventType.STATUS_CHANGED),
            title=EVENT_TITLES[requested],
            description=cause,
            previous_status=current,
            new_status=requested,
            event_metadata=dict(metadata or {}),
            created_at=datetime.now(timezone.utc),
        )
        return TransitionResult(previous_status=current, new_status=requested, event=event)

    def creation_event(self, claim: Claim) -> ClaimTimelineEvent:
        """Build the first timeline entry for a newly created draft claim."""
        return ClaimTimelineEvent(
            claim_id=claim.id,
            event_type=TimelineEventType.CREATED,
            title="Claim created",
            description="Claim saved as draft",
            previous_status=None,
            new_status=ClaimStatus(claim.status),
            event_metadata={},
            created_at=datetime.now(timezone.utc),
        )

    def note_event(
        self,
        claim: Claim,
        event_type: TimelineEventType,
        title: str,
        description: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ClaimTimelineEvent:
        """Build a non-transition timeline entry (document added, note added)."""
        status = ClaimStatus(claim.status)
        return ClaimTimelineEvent(
            claim_id=claim.id,
            event_type=event_type,
            title=title,
            description=description,
            previous_status=status,
            new_status=status,
            event_metadata=dict(metadata or {}),
            created_at=datetime.now(timezone.utc),
        )


# Shared stateless instance
claim_lifecycle = ClaimLifecycle()
