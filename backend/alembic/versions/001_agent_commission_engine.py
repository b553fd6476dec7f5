"""Create agent commission engine tables

Revision ID: 001_agent_commission_engine
Revises: None
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = '001_agent_commission_engine'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('first_name', sa.String(), nullable=False),
        sa.Column('last_name', sa.String(), nullable=False),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('role', sa.String(), nullable=False, server_default='owner'),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('must_change_password', sa.Boolean(), server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'tenants',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('first_name', sa.String(), nullable=False),
        sa.Column('last_name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_tenants_owner_id', 'tenants', ['owner_id'])
    op.create_index('ix_tenants_email', 'tenants', ['email'])

    op.create_table(
        'agent_applications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('first_name', sa.String(), nullable=False),
        sa.Column('last_name', sa.String(), nullable=False),
        sa.Column('phone', sa.String(), nullable=False),
        sa.Column('national_id', sa.String()),
        sa.Column('address', sa.String()),
        sa.Column('city', sa.String()),
        sa.Column('motivation', sa.Text()),
        sa.Column('experience', sa.Text()),
        sa.Column('status', sa.String(32), nullable=False, server_default='pending'),
        sa.Column('reviewed_by', sa.Integer(), sa.ForeignKey('users.id')),
        sa.Column('reviewed_at', sa.DateTime(timezone=True)),
        sa.Column('rejection_reason', sa.Text()),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_agent_applications_email', 'agent_applications', ['email'])
    op.create_index('ix_agent_applications_status', 'agent_applications', ['status'])

    op.create_table(
        'commission_rules',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('action_type', sa.String(32), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('commission_type', sa.String(32), nullable=False),
        sa.Column('commission_value', sa.Numeric(12, 2), nullable=False),
        sa.Column('min_amount', sa.BigInteger()),
        sa.Column('max_amount', sa.BigInteger()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
        sa.CheckConstraint('commission_value >= 0', name='ck_commission_rules_value_non_negative'),
    )
    op.create_index('ix_commission_rules_action_type', 'commission_rules', ['action_type'])
    op.create_index('ix_commission_rules_is_active', 'commission_rules', ['is_active'])
    # At most one active rule per action type
    op.create_index(
        'uq_commission_rules_active_action_type', 'commission_rules', ['action_type'],
        unique=True, postgresql_where=sa.text('is_active'),
    )

    op.create_table(
        'agent_transactions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('agent_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('action_type', sa.String(32), nullable=False),
        sa.Column('target_user_type', sa.String(32), nullable=False),
        sa.Column('target_user_id', sa.Integer(), sa.ForeignKey('users.id')),
        sa.Column('target_tenant_id', sa.Integer(), sa.ForeignKey('tenants.id')),
        sa.Column('related_entity_type', sa.String(32)),
        sa.Column('related_entity_id', sa.Integer()),
        sa.Column('description', sa.Text()),
        sa.Column('metadata', sa.JSON()),
        sa.Column('transaction_amount', sa.BigInteger()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(
            "(target_user_type = 'owner' AND target_user_id IS NOT NULL AND target_tenant_id IS NULL)"
            " OR (target_user_type = 'tenant' AND target_tenant_id IS NOT NULL AND target_user_id IS NULL)",
            name='ck_agent_transactions_single_target',
        ),
        sa.CheckConstraint(
            'transaction_amount IS NULL OR transaction_amount >= 0',
            name='ck_agent_transactions_amount_non_negative',
        ),
    )
    op.create_index('ix_agent_transactions_agent_id', 'agent_transactions', ['agent_id'])
    op.create_index('ix_agent_transactions_action_type', 'agent_transactions', ['action_type'])
    op.create_index('ix_agent_transactions_created_at', 'agent_transactions', ['created_at'])

    op.create_table(
        'agent_commissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('agent_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('transaction_id', sa.Integer(), sa.ForeignKey('agent_transactions.id'), nullable=False),
        sa.Column('commission_rule_id', sa.Integer(), sa.ForeignKey('commission_rules.id')),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('rule_snapshot', sa.JSON()),
        sa.Column('status', sa.String(32), nullable=False, server_default='pending'),
        sa.Column('paid_at', sa.DateTime(timezone=True)),
        sa.Column('paid_by', sa.Integer(), sa.ForeignKey('users.id')),
        sa.Column('cancelled_at', sa.DateTime(timezone=True)),
        sa.Column('notes', sa.Text()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
        sa.UniqueConstraint('transaction_id', name='uq_agent_commissions_transaction_id'),
        sa.CheckConstraint('amount >= 0', name='ck_agent_commissions_amount_non_negative'),
    )
    op.create_index('ix_agent_commissions_agent_id', 'agent_commissions', ['agent_id'])
    op.create_index('ix_agent_commissions_commission_rule_id', 'agent_commissions', ['commission_rule_id'])
    op.create_index('ix_agent_commissions_status', 'agent_commissions', ['status'])
    op.create_index('ix_agent_commissions_created_at', 'agent_commissions', ['created_at'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer()),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('entity_type', sa.String(), nullable=False),
        sa.Column('entity_id', sa.Integer()),
        sa.Column('old_values', sa.JSON()),
        sa.Column('new_values', sa.JSON()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_audit_logs_user_id', 'audit_logs', ['user_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_entity_id', 'audit_logs', ['entity_id'])


def downgrade():
    op.drop_table('audit_logs')
    op.drop_table('agent_commissions')
    op.drop_table('agent_transactions')
    op.drop_index('uq_commission_rules_active_action_type', table_name='commission_rules')
    op.drop_table('commission_rules')
    op.drop_table('agent_applications')
    op.drop_table('tenants')
    op.drop_table('users')
