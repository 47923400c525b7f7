"""entitlement_core_tables

Revision ID: 3c1e9a7d5b20
Revises: 
Create Date: 2026-10-12 10:04:51.118204

Production-safe migration: Only creates tables that don't exist yet.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '3c1e9a7d5b20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    """Create users, plans, subscriptions, payments, invoices, refunds, jobs and unlocks."""
    if not table_exists('users'):
        op.create_table('users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('full_name', sa.String(), nullable=False),
            sa.Column('email', sa.String(), nullable=True),
            sa.Column('role', sa.String(), nullable=False, server_default='recruiter'),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
        op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)

    if not table_exists('employer_plans'):
        op.create_table('employer_plans',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(), nullable=False),
            sa.Column('display_name', sa.String(), nullable=False),
            sa.Column('description', sa.Text(), nullable=False, server_default=''),
            sa.Column('price_monthly', sa.Numeric(12, 2), nullable=False, server_default='0'),
            sa.Column('price_annual', sa.Numeric(12, 2), nullable=False, server_default='0'),
            sa.Column('currency', sa.String(3), nullable=False, server_default='INR'),
            sa.Column('limit_job_postings', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('limit_featured_jobs', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('limit_resume_credits', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('is_popular', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('name')
        )
        op.create_index(op.f('ix_employer_plans_id'), 'employer_plans', ['id'], unique=False)

    if not table_exists('payments'):
        op.create_table('payments',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('order_id', sa.String(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('plan_id', sa.Integer(), nullable=True),
            sa.Column('amount', sa.Numeric(12, 2), nullable=False),
            sa.Column('currency', sa.String(3), nullable=False, server_default='INR'),
            sa.Column('status', sa.String(), nullable=False, server_default='pending'),
            sa.Column('payment_method', sa.String(), nullable=False, server_default='card'),
            sa.Column('payment_gateway', sa.String(), nullable=False, server_default='stripe'),
            sa.Column('billing_cycle', sa.String(), nullable=True),
            sa.Column('gateway_order_id', sa.String(), nullable=True),
            sa.Column('gateway_payment_id', sa.String(), nullable=True),
            sa.Column('gateway_signature', sa.String(), nullable=True),
            sa.Column('failure_reason', sa.String(), nullable=True),
            sa.Column('refund_id', sa.String(), nullable=True),
            sa.Column('refund_amount', sa.Numeric(12, 2), nullable=True),
            sa.Column('refunded_at', sa.DateTime(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
            sa.ForeignKeyConstraint(['plan_id'], ['employer_plans.id'], ),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('order_id'),
            sa.UniqueConstraint('gateway_order_id')
        )
        op.create_index('idx_payment_user_status', 'payments', ['user_id', 'status'], unique=False)
        op.create_index('idx_payment_created', 'payments', ['created_at'], unique=False)
        op.create_index(op.f('ix_payments_gateway_payment_id'), 'payments', ['gateway_payment_id'], unique=False)
        op.create_index(op.f('ix_payments_id'), 'payments', ['id'], unique=False)

    if not table_exists('subscriptions'):
        op.create_table('subscriptions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('plan_id', sa.Integer(), nullable=False),
            sa.Column('status', sa.String(), nullable=False, server_default='pending'),
            sa.Column('billing_cycle', sa.String(), nullable=False),
            sa.Column('start_date', sa.DateTime(), nullable=False),
            sa.Column('end_date', sa.DateTime(), nullable=False),
            sa.Column('current_period_start', sa.DateTime(), nullable=True),
            sa.Column('current_period_end', sa.DateTime(), nullable=True),
            sa.Column('auto_renew', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('cancelled_at', sa.DateTime(), nullable=True),
            sa.Column('usage_job_postings', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('usage_featured_jobs', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('usage_resume_credits', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('last_payment_id', sa.Integer(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
            sa.ForeignKeyConstraint(['plan_id'], ['employer_plans.id'], ),
            sa.ForeignKeyConstraint(['last_payment_id'], ['payments.id'], ),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('last_payment_id')
        )
        op.create_index('idx_subscription_user_status', 'subscriptions', ['user_id', 'status'], unique=False)
        op.create_index('idx_subscription_end_date', 'subscriptions', ['end_date'], unique=False)
        op.create_index(op.f('ix_subscriptions_id'), 'subscriptions', ['id'], unique=False)

    if not table_exists('invoice_sequences'):
        op.create_table('invoice_sequences',
            sa.Column('month_key', sa.String(6), nullable=False),
            sa.Column('last_value', sa.Integer(), nullable=False, server_default='0'),
            sa.PrimaryKeyConstraint('month_key')
        )

    if not table_exists('invoices'):
        op.create_table('invoices',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('invoice_number', sa.String(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('payment_id', sa.Integer(), nullable=False),
            sa.Column('items', sa.JSON(), nullable=False),
            sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
            sa.Column('tax_rate', sa.Numeric(5, 2), nullable=False, server_default='18'),
            sa.Column('tax_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
            sa.Column('total', sa.Numeric(12, 2), nullable=False),
            sa.Column('currency', sa.String(3), nullable=False, server_default='INR'),
            sa.Column('status', sa.String(), nullable=False, server_default='paid'),
            sa.Column('paid_date', sa.DateTime(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
            sa.ForeignKeyConstraint(['payment_id'], ['payments.id'], ),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('invoice_number'),
            sa.UniqueConstraint('payment_id')
        )
        op.create_index('idx_invoice_user_created', 'invoices', ['user_id', 'created_at'], unique=False)
        op.create_index(op.f('ix_invoices_id'), 'invoices', ['id'], unique=False)

    if not table_exists('refunds'):
        op.create_table('refunds',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('payment_id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('amount', sa.Numeric(12, 2), nullable=False),
            sa.Column('reason', sa.String(), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('status', sa.String(), nullable=False, server_default='pending'),
            sa.Column('processed_by', sa.Integer(), nullable=True),
            sa.Column('processed_at', sa.DateTime(), nullable=True),
            sa.Column('gateway_refund_id', sa.String(), nullable=True),
            sa.Column('rejection_reason', sa.Text(), nullable=True),
            sa.Column('admin_notes', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['payment_id'], ['payments.id'], ),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
            sa.ForeignKeyConstraint(['processed_by'], ['users.id'], ),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('payment_id')
        )
        op.create_index('idx_refund_user_status', 'refunds', ['user_id', 'status'], unique=False)
        op.create_index('idx_refund_status_created', 'refunds', ['status', 'created_at'], unique=False)
        op.create_index(op.f('ix_refunds_id'), 'refunds', ['id'], unique=False)

    if not table_exists('jobs'):
        op.create_table('jobs',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('title', sa.String(), nullable=False),
            sa.Column('company_name', sa.String(), nullable=False),
            sa.Column('created_by', sa.Integer(), nullable=False),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('is_featured', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('featured_until', sa.DateTime(), nullable=True),
            sa.Column('badge', sa.String(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.ForeignKeyConstraint(['created_by'], ['users.id'], ),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('idx_job_featured_until', 'jobs', ['is_featured', 'featured_until'], unique=False)
        op.create_index(op.f('ix_jobs_created_by'), 'jobs', ['created_by'], unique=False)
        op.create_index(op.f('ix_jobs_id'), 'jobs', ['id'], unique=False)

    if not table_exists('unlocked_resumes'):
        op.create_table('unlocked_resumes',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('recruiter_id', sa.Integer(), nullable=False),
            sa.Column('candidate_id', sa.Integer(), nullable=False),
            sa.Column('job_id', sa.Integer(), nullable=True),
            sa.Column('credits_used', sa.Integer(), nullable=False, server_default='1'),
            sa.Column('unlocked_at', sa.DateTime(), nullable=False),
            sa.Column('expires_at', sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(['recruiter_id'], ['users.id'], ),
            sa.ForeignKeyConstraint(['candidate_id'], ['users.id'], ),
            sa.ForeignKeyConstraint(['job_id'], ['jobs.id'], ),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('recruiter_id', 'candidate_id', name='uq_recruiter_candidate')
        )
        op.create_index('idx_recruiter_unlocked_at', 'unlocked_resumes', ['recruiter_id', 'unlocked_at'], unique=False)
        op.create_index(op.f('ix_unlocked_resumes_id'), 'unlocked_resumes', ['id'], unique=False)


def downgrade() -> None:
    """Drop tables in reverse dependency order."""
    op.drop_table('unlocked_resumes')
    op.drop_table('jobs')
    op.drop_table('refunds')
    op.drop_table('invoices')
    op.drop_table('invoice_sequences')
    op.drop_table('subscriptions')
    op.drop_table('payments')
    op.drop_table('employer_plans')
    op.drop_table('users')
