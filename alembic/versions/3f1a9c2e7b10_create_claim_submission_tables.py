"""create_claim_submission_tables

Revision ID: 3f1a9c2e7b10
Revises:
Create Date: 2026-10-18 09:12:44.310528

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f1a9c2e7b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


CLAIM_STATUS = postgresql.ENUM(
    'draft', 'submitted', 'processing', 'approved', 'denied',
    'rejected', 'appealed', 'paid', 'cancelled',
    name='claim_status', create_type=False,
)
SUBMISSION_METHOD = postgresql.ENUM('electronic', 'document', name='submission_method', create_type=False)
TIMELINE_EVENT_TYPE = postgresql.ENUM(
    'created', 'submitted', 'processing', 'approved', 'denied', 'appealed', 'paid',
    'document_added', 'status_changed', 'note_added', 'error_occurred',
    name='timeline_event_type', create_type=False,
)
DOCUMENT_TYPE = postgresql.ENUM(
    'receipt', 'insurance_card', 'medical_record', 'prescription', 'referral',
    'authorization', 'appeal_letter', 'correspondence', 'other',
    name='document_type', create_type=False,
)
ENUM_TYPES = (CLAIM_STATUS, SUBMISSION_METHOD, TIMELINE_EVENT_TYPE, DOCUMENT_TYPE)


def upgrade() -> None:
    """Create claims, documents, submission records and timeline events."""
    bind = op.get_bind()
    # Enum types are shared between tables, so they are created once up front
    for enum_type in ENUM_TYPES:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        'claims',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=True),
        sa.Column('status', CLAIM_STATUS, nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('paid_amount_cents', sa.Integer(), nullable=True),
        sa.Column('date_of_service', sa.Date(), nullable=True),
        sa.Column('provider_name', sa.String(length=255), nullable=True),
        sa.Column('provider_npi', sa.String(length=20), nullable=True),
        sa.Column('insurer_name', sa.String(length=255), nullable=True),
        sa.Column('cpt_codes', postgresql.JSONB(), nullable=False),
        sa.Column('icd_codes', postgresql.JSONB(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('external_claim_number', sa.String(length=255), nullable=True),
        sa.Column('denial_reason', sa.Text(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('amount_cents >= 0', name='ck_claims_amount_non_negative'),
        sa.CheckConstraint(
            'paid_amount_cents IS NULL OR paid_amount_cents >= 0',
            name='ck_claims_paid_amount_non_negative',
        ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_claims_id', 'claims', ['id'], unique=False)
    op.create_index('ix_claims_user_id', 'claims', ['user_id'], unique=False)
    op.create_index('ix_claims_status', 'claims', ['status'], unique=False)

    # Index on created_at for sorting recent claims
    op.create_index('ix_claims_created_at', 'claims', ['created_at'], unique=False)

    op.create_table(
        'claim_documents',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('claim_id', sa.Uuid(), nullable=False),
        sa.Column('document_type', DOCUMENT_TYPE, nullable=False),
        sa.Column('file_name', sa.String(length=255), nullable=False),
        sa.Column('storage_key', sa.String(length=512), nullable=False),
        sa.Column('mime_type', sa.String(length=100), nullable=True),
        sa.Column('file_size', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['claim_id'], ['claims.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_claim_documents_id', 'claim_documents', ['id'], unique=False)
    op.create_index('ix_claim_documents_claim_id', 'claim_documents', ['claim_id'], unique=False)

    op.create_table(
        'submission_records',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('submission_id', sa.String(length=64), nullable=False),
        sa.Column('claim_id', sa.Uuid(), nullable=False),
        sa.Column('method', SUBMISSION_METHOD, nullable=False),
        sa.Column('original_method', SUBMISSION_METHOD, nullable=False),
        sa.Column('provider_name', sa.String(length=255), nullable=True),
        sa.Column('confirmation_number', sa.String(length=255), nullable=True),
        sa.Column('tracking_number', sa.String(length=255), nullable=True),
        sa.Column('fallback_used', sa.Boolean(), nullable=False),
        sa.Column('fallback_document_id', sa.String(length=64), nullable=True),
        sa.Column('fallback_document_locator', sa.String(length=1024), nullable=True),
        sa.Column('supersedes_id', sa.Uuid(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['claim_id'], ['claims.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['supersedes_id'], ['submission_records.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_submission_records_id', 'submission_records', ['id'], unique=False)
    op.create_index(
        'ix_submission_records_submission_id', 'submission_records', ['submission_id'], unique=True
    )
    op.create_index('ix_submission_records_claim_id', 'submission_records', ['claim_id'], unique=False)
    op.create_index(
        'ix_submission_records_submitted_at', 'submission_records', ['submitted_at'], unique=False
    )

    op.create_table(
        'claim_timeline_events',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('claim_id', sa.Uuid(), nullable=False),
        sa.Column('event_type', TIMELINE_EVENT_TYPE, nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('previous_status', CLAIM_STATUS, nullable=True),
        sa.Column('new_status', CLAIM_STATUS, nullable=True),
        sa.Column('event_metadata', postgresql.JSONB(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['claim_id'], ['claims.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_claim_timeline_events_id', 'claim_timeline_events', ['id'], unique=False)
    op.create_index(
        'ix_claim_timeline_events_claim_id', 'claim_timeline_events', ['claim_id'], unique=False
    )
    op.create_index(
        'ix_claim_timeline_events_created_at', 'claim_timeline_events', ['created_at'], unique=False
    )


def downgrade() -> None:
    """Drop all claim submission tables and enum types."""
    op.drop_table('claim_timeline_events')
    op.drop_table('submission_records')
    op.drop_table('claim_documents')
    op.drop_index('ix_claims_created_at', table_name='claims')
    op.drop_table('claims')

    bind = op.get_bind()
    for enum_type in reversed(ENUM_TYPES):
        enum_type.drop(bind, checkfirst=True)
