"""Claim repository for database operations."""
from typing import Optional, List, Tuple
from uuid import UUID
from datetime import datetime, timezone
from sqlalchemy import select, func, update
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.claim import Claim
from app.models.document import ClaimDocument
from app.models.enums import ClaimStatus
from app.models.submission import SubmissionRecord
from app.models.timeline import ClaimTimelineEvent


class ClaimRepository:
    """
    Repository for Claim model database operations.

    Write methods only stage changes in the session; the caller decides when
    the unit of work is committed or rolled back.
    """

    def __init__(self, db: AsyncSession):
        """Initialize repository with database session."""
        self.db = db

    async def create(self, claim: Claim) -> Claim:
        """
        Stage a new claim and flush it so it receives its defaults.

        Args:
            claim: Unsaved Claim object

        Returns:
            The flushed Claim object
        """
        self.db.add(claim)
        await self.db.flush()
        return claim

    async def get_claim(self, claim_id: UUID, refresh: bool = False) -> Optional[Claim]:
        """
        Get claim by UUID.

        Args:
            claim_id: Claim UUID
            refresh: Re-read the row even if the claim is already in the session

        Returns:
            Claim object or None if not found
        """
        query = select(Claim).where(Claim.id == claim_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def list_claims(
        self,
        skip: int = 0,
        limit: int = 100,
        status: Optional[ClaimStatus] = None,
        user_id: Optional[str] = None,
    ) -> Tuple[List[Claim], int]:
        """
        Get claims with pagination, newest first.

        Args:
            skip: Number of records to skip
            limit: Maximum number of records to return
            status: Only return claims in this status
            user_id: Only return claims owned by this user

        Returns:
            Tuple of (claims for the page, total matching count)
        """
        filters = []
        if status is not None:
            filters.append(Claim.status == status)
        if user_id is not None:
            filters.append(Claim.user_id == user_id)

        total = await self.db.execute(select(func.count(Claim.id)).where(*filters))
        result = await self.db.execute(
            select(Claim)
            .where(*filters)
            .order_by(Claim.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total.scalar() or 0

    async def update_status(
        self,
        claim: Claim,
        status: ClaimStatus,
        expected_status: ClaimStatus,
        submitted_at: Optional[datetime] = None,
        external_claim_number: Optional[str] = None,
    ) -> Optional[Claim]:
        """
        Stage a status change, only if the stored status is still ``expected_status``.

        The write is a conditional UPDATE, so a change committed by another
        session since the claim was read is never overwritten.

        Args:
            claim: Claim to update
            status: New status
            expected_status: Status the change was validated against
            submitted_at: Submission time to record, if any
            external_claim_number: Clearinghouse confirmation number, if any

        Returns:
            The updated Claim object, or None if the stored status has moved on
        """
        values = {"status": status, "updated_at": datetime.now(timezone.utc)}
        if submitted_at is not None:
            values["submitted_at"] = submitted_at
        if external_claim_number is not None:
            values["external_claim_number"] = external_claim_number

        result = await self.db.execute(
            update(Claim)
            .where(Claim.id == claim.id, Claim.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return None

        for key, value in values.items():
            set_committed_value(claim, key, value)
        return claim

    async def get_status(self, claim_id: UUID) -> Optional[ClaimStatus]:
        """Read the stored status, bypassing the session's identity map."""
        result = await self.db.execute(select(Claim.status).where(Claim.id == claim_id))
        return result.scalar_one_or_none()

    async def add_document(self, document: ClaimDocument) -> ClaimDocument:
        """Stage a supporting document reference."""
        self.db.add(document)
        await self.db.flush()
        return document

    async def append_timeline_event(self, event: ClaimTimelineEvent) -> ClaimTimelineEvent:
        """Stage a timeline event. Events are never updated or deleted."""
        self.db.add(event)
        await self.db.flush()
        return event

    async def get_timeline(self, claim_id: UUID) -> List[ClaimTimelineEvent]:
        """
        Get a claim's timeline in the order it happened.

        Args:
            claim_id: Claim UUID

        Returns:
            List of ClaimTimelineEvent objects, oldest first
        """
        result = await self.db.execute(
            select(ClaimTimelineEvent)
            .where(ClaimTimelineEvent.claim_id == claim_id)
            .order_by(ClaimTimelineEvent.created_at, ClaimTimelineEvent.id)
        )
        return list(result.scalars().all())

    async def save_submission_record(self, record: SubmissionRecord) -> SubmissionRecord:
        """Stage a submission record. Records are insert-only."""
        self.db.add(record)
        await self.db.flush()
        return record

    async def get_active_submission(self, claim_id: UUID) -> Optional[SubmissionRecord]:
        """
        Get the newest submission record for a claim.

        Args:
            claim_id: Claim UUID

        Returns:
            SubmissionRecord or None if the claim was never submitted
        """
        result = await self.db.execute(
            select(SubmissionRecord)
            .where(SubmissionRecord.claim_id == claim_id)
            .order_by(SubmissionRecord.submitted_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_submission(self, claim_id: UUID, submission_id: str) -> Optional[SubmissionRecord]:
        """
        Get one submission record of a claim by its submission ID.

        Args:
            claim_id: Claim UUID
            submission_id: Submission ID string

        Returns:
            SubmissionRecord or None if not found
        """
        result = await self.db.execute(
            select(SubmissionRecord).where(
                SubmissionRecord.claim_id == claim_id,
                SubmissionRecord.submission_id == submission_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_submissions(self, claim_id: UUID) -> List[SubmissionRecord]:
        """
        Get every submission record of a claim, newest first.

        Args:
            claim_id: Claim UUID

        Returns:
            List of SubmissionRecord objects
        """
        result = await self.db.execute(
            select(SubmissionRecord)
            .where(SubmissionRecord.claim_id == claim_id)
            .order_by(SubmissionRecord.submitted_at.desc())
        )
        return list(result.scalars().all())

    async def update_submission_details(
        self,
        claim: Claim,
        insurer_name: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Claim:
        """
        Stage insurer and notes supplied at submission time.

        Notes are appended to any existing notes rather than replacing them.
        """
        if insurer_name:
            claim.insurer_name = insurer_name
        if notes:
            addition = f"Submission Notes: {notes}"
            claim.notes = f"{claim.notes}\n\n{addition}" if claim.notes else addition
        await self.db.flush()
        return claim

    async def commit(self) -> None:
        """Commit the unit of work."""
        await self.db.commit()

    async def rollback(self) -> None:
        """Discard every staged change."""
        await self.db.rollback()
