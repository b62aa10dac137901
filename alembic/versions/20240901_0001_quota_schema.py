"""Quota engine schema

Revision ID: 0001
Revises:
Create Date: 2024-09-01

Creates the tables read and written by the quota engine:
- tenants: plan and billing status per tenant
- usage_counters: one row per (tenant, resource, period)
- notification_records: threshold tiers reached per cycle, plus the redelivery outbox
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ==========================================================================
    # TENANTS
    # ==========================================================================
    op.create_table(
        'tenants',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('plan_id', sa.String(50), nullable=False, server_default='solopreneur'),
        sa.Column('billing_status', sa.String(20), nullable=False, server_default='trial'),
        sa.Column('has_payment_method', sa.Boolean(), server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    # ==========================================================================
    # USAGE COUNTERS
    # ==========================================================================
    op.create_table(
        'usage_counters',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('resource', sa.String(32), nullable=False),
        sa.Column('period', sa.String(16), nullable=False),
        sa.Column('count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('period_start', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'resource', 'period', name='uq_usage_counter')
    )
    op.create_index('ix_usage_counters_tenant_id', 'usage_counters', ['tenant_id'])
    op.create_index('ix_usage_counters_period_start', 'usage_counters', ['period_start'])

    # ==========================================================================
    # NOTIFICATION RECORDS
    # ==========================================================================
    op.create_table(
        'notification_records',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('resource', sa.String(32), nullable=False),
        sa.Column('period', sa.String(16), nullable=False),
        sa.Column('tier', sa.String(20), nullable=False),
        sa.Column('period_start', sa.DateTime(), nullable=False),
        sa.Column('emitted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('suppressed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('usage_limit', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('percentage', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sent_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'tenant_id', 'resource', 'period', 'tier', 'period_start',
            name='uq_notification_record'
        )
    )
    op.create_index('ix_notification_records_tenant_id', 'notification_records', ['tenant_id'])
    op.create_index('ix_notification_records_pending', 'notification_records', ['emitted', 'suppressed'])


def downgrade() -> None:
    op.drop_index('ix_notification_records_pending', table_name='notification_records')
    op.drop_index('ix_notification_records_tenant_id', table_name='notification_records')
    op.drop_table('notification_records')
    op.drop_index('ix_usage_counters_period_start', table_name='usage_counters')
    op.drop_index('ix_usage_counters_tenant_id', table_name='usage_counters')
    op.drop_table('usage_counters')
    op.drop_table('tenants')
