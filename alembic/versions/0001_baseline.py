"""Baseline migration - tickets, invoices, payment batches, ratings

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-19

Creates:
- tickets, status_history
- payment_batches, invoices, payment_batch_invoices
- ratings, contractor_reputations
- notifications
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TS = sa.DateTime(timezone=True)
MONEY = sa.Numeric(12, 2)


def upgrade() -> None:
    # ==========================================================================
    # tickets
    # ==========================================================================
    op.create_table(
        'tickets',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('ticket_number', sa.String(32), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('priority', sa.String(20), nullable=False),
        sa.Column('status', sa.String(40), nullable=False),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('asset_ref', sa.String(255), nullable=True),
        sa.Column('location', sa.String(255), nullable=True),

        # Actors
        sa.Column('requested_by_user_id', sa.Uuid(), nullable=False),
        sa.Column('assigned_contractor_id', sa.Uuid(), nullable=True),
        sa.Column('assigned_by_user_id', sa.Uuid(), nullable=True),

        # SLA
        sa.Column('response_deadline', TS, nullable=True),
        sa.Column('resolution_deadline', TS, nullable=True),

        # Lifecycle
        sa.Column('assigned_at', TS, nullable=True),
        sa.Column('contractor_accepted_at', TS, nullable=True),
        sa.Column('on_site_at', TS, nullable=True),
        sa.Column('work_started_at', TS, nullable=True),
        sa.Column('work_description_requested_at', TS, nullable=True),
        sa.Column('work_description_submitted_at', TS, nullable=True),
        sa.Column('work_description_approved_at', TS, nullable=True),
        sa.Column('completed_at', TS, nullable=True),
        sa.Column('closed_at', TS, nullable=True),
        sa.Column('cancelled_at', TS, nullable=True),

        sa.Column('job_plan', sa.JSON(), nullable=True),
        sa.Column('scheduled_arrival', TS, nullable=True),
        sa.Column('work_description', sa.Text(), nullable=True),
        sa.Column('work_description_rejection_reason', sa.Text(), nullable=True),
        sa.Column('contractor_decline_reason', sa.Text(), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),

        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', TS, nullable=False),
        sa.Column('updated_at', TS, nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('organization_id', 'ticket_number', name='uq_ticket_number'),
    )
    op.create_index('idx_tickets_org_status', 'tickets', ['organization_id', 'status'])
    op.create_index('idx_tickets_org_contractor', 'tickets', ['organization_id', 'assigned_contractor_id'])
    op.create_index('idx_tickets_org_requester', 'tickets', ['organization_id', 'requested_by_user_id'])
    op.create_index('idx_tickets_org_created', 'tickets', ['organization_id', 'created_at'])

    op.create_table(
        'status_history',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('entity_type', sa.String(30), nullable=False),
        sa.Column('entity_id', sa.Uuid(), nullable=False),
        sa.Column('from_status', sa.String(40), nullable=True),
        sa.Column('to_status', sa.String(40), nullable=False),
        sa.Column('changed_by_user_id', sa.Uuid(), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('recorded_at', TS, nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_status_history_entity', 'status_history', ['entity_type', 'entity_id', 'recorded_at'])
    op.create_index('idx_status_history_org', 'status_history', ['organization_id', 'recorded_at'])

    # ==========================================================================
    # payment_batches (before invoices: invoices.payment_batch_id)
    # ==========================================================================
    op.create_table(
        'payment_batches',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('batch_number', sa.String(32), nullable=False),
        sa.Column('total_amount', MONEY, nullable=False),
        sa.Column('proof_of_payment_url', sa.Text(), nullable=False),
        sa.Column('payment_reference', sa.String(255), nullable=True),
        sa.Column('payment_date', TS, nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('processed_by_user_id', sa.Uuid(), nullable=False),
        sa.Column('created_at', TS, nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('organization_id', 'batch_number', name='uq_payment_batch_number'),
    )
    op.create_index('idx_payment_batches_org_date', 'payment_batches', ['organization_id', 'payment_date'])

    # ==========================================================================
    # invoices
    # ==========================================================================
    op.create_table(
        'invoices',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('ticket_id', sa.Uuid(), nullable=False),
        sa.Column('contractor_id', sa.Uuid(), nullable=False),
        sa.Column('invoice_number', sa.String(100), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('paid_amount', MONEY, nullable=False),
        sa.Column('hours_worked', MONEY, nullable=True),
        sa.Column('hourly_rate', MONEY, nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('work_description', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('clarification_request', sa.Text(), nullable=True),
        sa.Column('clarification_requested_at', TS, nullable=True),
        sa.Column('clarification_response', sa.Text(), nullable=True),
        sa.Column('clarification_responded_at', TS, nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('approved_at', TS, nullable=True),
        sa.Column('approved_by_user_id', sa.Uuid(), nullable=True),
        sa.Column('rejected_at', TS, nullable=True),
        sa.Column('cancelled_at', TS, nullable=True),
        sa.Column('revision_number', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('parent_invoice_id', sa.Uuid(), nullable=True),
        sa.Column('file_url', sa.Text(), nullable=False),
        sa.Column('proof_of_payment_url', sa.Text(), nullable=True),
        sa.Column('payment_reference', sa.String(255), nullable=True),
        sa.Column('paid_date', TS, nullable=True),
        sa.Column('payment_batch_id', sa.Uuid(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', TS, nullable=False),
        sa.Column('updated_at', TS, nullable=False),
        sa.ForeignKeyConstraint(['ticket_id'], ['tickets.id']),
        sa.ForeignKeyConstraint(['parent_invoice_id'], ['invoices.id']),
        sa.ForeignKeyConstraint(['payment_batch_id'], ['payment_batches.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('contractor_id', 'invoice_number', name='uq_invoice_number_per_contractor'),
    )
    # Exactly one active invoice per ticket
    op.create_index(
        'uq_invoices_active_ticket',
        'invoices',
        ['ticket_id'],
        unique=True,
        postgresql_where=sa.text('is_active'),
        sqlite_where=sa.text('is_active'),
    )
    op.create_index('idx_invoices_org_status', 'invoices', ['organization_id', 'status'])
    op.create_index('idx_invoices_org_contractor', 'invoices', ['organization_id', 'contractor_id'])

    op.create_table(
        'payment_batch_invoices',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('batch_id', sa.Uuid(), nullable=False),
        sa.Column('invoice_id', sa.Uuid(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.ForeignKeyConstraint(['batch_id'], ['payment_batches.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('batch_id', 'invoice_id', name='uq_payment_batch_invoice'),
        sa.UniqueConstraint('batch_id', 'position', name='uq_payment_batch_position'),
    )

    # ==========================================================================
    # ratings / reputation
    # ==========================================================================
    op.create_table(
        'ratings',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('ticket_id', sa.Uuid(), nullable=False),
        sa.Column('contractor_id', sa.Uuid(), nullable=False),
        sa.Column('rated_by_user_id', sa.Uuid(), nullable=False),
        sa.Column('checklist', sa.JSON(), nullable=False),
        sa.Column('punctuality_score', sa.Integer(), nullable=False),
        sa.Column('ppe_score', sa.Integer(), nullable=False),
        sa.Column('customer_service_score', sa.Integer(), nullable=False),
        sa.Column('workmanship_score', sa.Integer(), nullable=False),
        sa.Column('site_procedures_score', sa.Integer(), nullable=False),
        sa.Column('overall_percentage', sa.Integer(), nullable=False),
        sa.Column('overall_stars', sa.Integer(), nullable=False),
        sa.Column('ppe_comment', sa.Text(), nullable=True),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('created_at', TS, nullable=False),
        sa.ForeignKeyConstraint(['ticket_id'], ['tickets.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('ticket_id'),
    )
    op.create_index('idx_ratings_contractor', 'ratings', ['contractor_id', 'created_at'])

    op.create_table(
        'contractor_reputations',
        sa.Column('contractor_id', sa.Uuid(), nullable=False),
        sa.Column('rating_count', sa.Integer(), nullable=False),
        sa.Column('avg_punctuality', sa.Numeric(6, 3), nullable=False),
        sa.Column('avg_customer_service', sa.Numeric(6, 3), nullable=False),
        sa.Column('avg_workmanship', sa.Numeric(6, 3), nullable=False),
        sa.Column('avg_overall_stars', sa.Numeric(6, 3), nullable=False),
        sa.Column('avg_overall_percentage', sa.Numeric(6, 3), nullable=False),
        sa.Column('ppe_compliant_count', sa.Integer(), nullable=False),
        sa.Column('procedure_compliant_count', sa.Integer(), nullable=False),
        sa.Column('ppe_compliance_rate', sa.Numeric(6, 2), nullable=False),
        sa.Column('procedure_compliance_rate', sa.Numeric(6, 2), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('updated_at', TS, nullable=False),
        sa.PrimaryKeyConstraint('contractor_id'),
    )

    # ==========================================================================
    # notifications
    # ==========================================================================
    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('entity_type', sa.String(50), nullable=True),
        sa.Column('entity_id', sa.Uuid(), nullable=True),
        sa.Column('read_at', TS, nullable=True),
        sa.Column('created_at', TS, nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_notif_user_unread', 'notifications', ['user_id', 'read_at', 'created_at'])
    op.create_index('idx_notif_org_user', 'notifications', ['organization_id', 'user_id', 'created_at'])


def downgrade() -> None:
    op.drop_table('notifications')
    op.drop_table('contractor_reputations')
    op.drop_table('ratings')
    op.drop_table('payment_batch_invoices')
    op.drop_index('uq_invoices_active_ticket', table_name='invoices')
    op.drop_table('invoices')
    op.drop_table('payment_batches')
    op.drop_table('status_history')
    op.drop_table('tickets')
