"""initial rbac, audit and targets tables

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-17
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'))


def metric_columns():
    return [
        sa.Column('labour', sa.Float(), nullable=False, server_default='0'),
        sa.Column('parts', sa.Float(), nullable=False, server_default='0'),
        sa.Column('total_vehicles', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('paid_service', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('free_service', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('rr', sa.Integer(), nullable=False, server_default='0'),
    ]


def upgrade():
    op.create_table('accounts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=128), nullable=False, unique=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('account_type', sa.String(length=32), nullable=False),
        sa.Column('city', sa.String(length=64), nullable=True),
        sa.Column('org_id', sa.String(length=64), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        _timestamps(),
    )
    op.create_index('ix_accounts_email', 'accounts', ['email'])

    op.create_table('permissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('key', sa.String(length=64), nullable=False, unique=True),
        sa.Column('display_name', sa.String(length=128), nullable=False),
        _timestamps(),
    )
    op.create_index('ix_permissions_key', 'permissions', ['key'])

    op.create_table('roles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=64), nullable=False, unique=True),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default=sa.text('1')),
        _timestamps(),
    )

    op.create_table('role_permissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('roles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('permission_id', sa.Integer(), sa.ForeignKey('permissions.id', ondelete='CASCADE'), nullable=False),
        sa.UniqueConstraint('role_id', 'permission_id', name='uq_role_permission'),
    )

    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=128), nullable=False, unique=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('username', sa.String(length=128), nullable=False, unique=True),
        sa.Column('org_id', sa.String(length=64), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        _timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'])

    op.create_table('user_roles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('roles.id', ondelete='CASCADE'), nullable=False),
        sa.UniqueConstraint('user_id', 'role_id', name='uq_user_role'),
    )

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_email', sa.String(length=128), nullable=False),
        sa.Column('actor_account_type', sa.String(length=32), nullable=True),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity', sa.String(length=64), nullable=True),
        sa.Column('entity_id', sa.String(length=64), nullable=True),
        sa.Column('perms_snapshot', sa.JSON(), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_audit_logs_actor_email', 'audit_logs', ['actor_email'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_entity', 'audit_logs', ['entity', 'entity_id'])

    op.create_table('city_targets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('city', sa.String(length=64), nullable=False),
        sa.Column('month', sa.String(length=7), nullable=False),
        *metric_columns(),
        sa.Column('created_by', sa.String(length=128), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_city_targets_city', 'city_targets', ['city'])
    op.create_index('ix_city_targets_month', 'city_targets', ['month'])

    op.create_table('advisor_targets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('city', sa.String(length=64), nullable=False),
        sa.Column('month', sa.String(length=7), nullable=False),
        sa.Column('advisor_name', sa.String(length=128), nullable=False),
        sa.Column('advisor_key', sa.String(length=128), nullable=False),
        sa.Column('mode', sa.String(length=16), nullable=False),
        *metric_columns(),
        sa.Column('achieved_snapshot', sa.JSON(), nullable=True),
        sa.Column('created_by', sa.String(length=128), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_advisor_targets_city', 'advisor_targets', ['city'])
    op.create_index('ix_advisor_targets_month', 'advisor_targets', ['month'])
    op.create_index('ix_advisor_targets_advisor_key', 'advisor_targets', ['advisor_key'])

    op.create_table('ro_billing_rows',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('city', sa.String(length=64), nullable=False),
        sa.Column('advisor_name', sa.String(length=128), nullable=False),
        sa.Column('advisor_key', sa.String(length=128), nullable=False),
        sa.Column('labour_amt', sa.Float(), nullable=False, server_default='0'),
        sa.Column('part_amt', sa.Float(), nullable=False, server_default='0'),
        sa.Column('work_type', sa.String(length=64), nullable=False, server_default=''),
        sa.Column('work_category', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('bill_date', sa.String(length=10), nullable=True),
        sa.Column('uploaded_by', sa.String(length=128), nullable=False),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_ro_billing_rows_city', 'ro_billing_rows', ['city'])
    op.create_index('ix_ro_billing_rows_advisor_key', 'ro_billing_rows', ['advisor_key'])


def downgrade():
    for table in ('ro_billing_rows', 'advisor_targets', 'city_targets', 'audit_logs', 'user_roles',
                  'users', 'role_permissions', 'roles', 'permissions', 'accounts'):
        op.drop_table(table)
