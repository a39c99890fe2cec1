"""Initial schema: accounts, subscriptions, quotas, coupons, payments, projects

Revision ID: 0a1b2c3d4e5f
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = '0a1b2c3d4e5f'
down_revision = None
branch_labels = None
depends_on = None


PLAN_VALUES = ('free', 'pro', 'expert')


def upgrade():
    # Shared by three columns: create the type once, then reference it
    subscription_plan = postgresql.ENUM(*PLAN_VALUES, name='subscription_plan', create_type=False)
    subscription_plan.create(op.get_bind(), checkfirst=True)

    # --- Users ---
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(256), nullable=False),
        sa.Column('name', sa.String(100), nullable=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='user'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('credits', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # --- Subscriptions (one per user, optimistic lock on version) ---
    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('plan', subscription_plan, nullable=False, server_default='free'),
        sa.Column(
            'status',
            sa.Enum('active', 'past_due', 'canceled', 'expired', name='subscription_status'),
            nullable=False,
            server_default='active',
        ),
        sa.Column('pending_plan', subscription_plan, nullable=True),
        sa.Column('billing_key', sa.String(512), nullable=True),
        sa.Column('customer_key', sa.String(64), nullable=True),
        sa.Column('current_period_start', sa.DateTime(), nullable=True),
        sa.Column('current_period_end', sa.DateTime(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_subscriptions_user_id', 'subscriptions', ['user_id'], unique=True)
    op.create_index('ix_subscriptions_current_period_end', 'subscriptions', ['current_period_end'])

    # --- Group policies ---
    op.create_table(
        'group_policies',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('group_name', sa.String(20), nullable=False),
        sa.Column('monthly_project_limit', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('monthly_presentation_limit', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('description', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_group_policies_group_name', 'group_policies', ['group_name'], unique=True)

    # --- Monthly usage counters ---
    op.create_table(
        'usage_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('year_month', sa.String(7), nullable=False),
        sa.Column(
            'kind',
            sa.Enum('project', 'presentation', name='usage_kind'),
            nullable=False,
            server_default='project',
        ),
        sa.Column('count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'year_month', 'kind', name='uq_usage_user_month_kind'),
    )
    op.create_index('ix_usage_logs_user_id', 'usage_logs', ['user_id'])

    # --- Coupons ---
    op.create_table(
        'coupons',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(32), nullable=False),
        sa.Column('plan', subscription_plan, nullable=False, server_default='pro'),
        sa.Column('duration_days', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('batch_id', sa.String(40), nullable=True),
        sa.Column('note', sa.String(255), nullable=True),
        sa.Column('redeemed_by_id', sa.String(36), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=True),
        sa.Column('redeemed_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_coupons_code', 'coupons', ['code'], unique=True)
    op.create_index('ix_coupons_batch_id', 'coupons', ['batch_id'])
    op.create_index('ix_coupons_redeemed_by_id', 'coupons', ['redeemed_by_id'])

    # --- Payment logs (append-only) ---
    op.create_table(
        'payment_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(3), nullable=False, server_default='KRW'),
        sa.Column(
            'status',
            sa.Enum('pending', 'completed', 'failed', 'refunded', name='payment_log_status'),
            nullable=False,
            server_default='pending',
        ),
        sa.Column('transaction_id', sa.String(100), nullable=True),
        sa.Column('payment_method', sa.String(50), nullable=True),
        sa.Column('description', sa.String(255), nullable=True),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_payment_logs_user_id', 'payment_logs', ['user_id'])
    op.create_index('ix_payment_logs_status', 'payment_logs', ['status'])
    op.create_index('ix_payment_logs_transaction_id', 'payment_logs', ['transaction_id'])
    op.create_index('ix_payment_logs_paid_at', 'payment_logs', ['paid_at'])

    # --- Pricing catalog ---
    op.create_table(
        'pricing_plans',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(20), nullable=False),
        sa.Column('display_name', sa.String(50), nullable=False),
        sa.Column('price', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('original_price', sa.Integer(), nullable=True),
        sa.Column('currency', sa.String(3), nullable=False, server_default='KRW'),
        sa.Column('monthly_analysis', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('features', sa.JSON(), nullable=False),
        sa.Column('is_popular', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_pricing_plans_name', 'pricing_plans', ['name'], unique=True)

    # --- Projects, files and reports ---
    op.create_table(
        'projects',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('company_name', sa.String(200), nullable=False),
        sa.Column('business_number', sa.String(20), nullable=False, server_default=''),
        sa.Column('representative', sa.String(100), nullable=False),
        sa.Column('industry', sa.String(100), nullable=True),
        sa.Column(
            'status',
            sa.Enum('pending', 'processing', 'completed', 'failed', name='project_status'),
            nullable=False,
            server_default='pending',
        ),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_projects_user_id', 'projects', ['user_id'])
    op.create_index('ix_projects_created_at', 'projects', ['created_at'])

    op.create_table(
        'project_files',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.String(36), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('filename', sa.String(255), nullable=False),
        sa.Column('storage_key', sa.String(512), nullable=False),
        sa.Column('content_type', sa.String(100), nullable=True),
        sa.Column('size', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_project_files_project_id', 'project_files', ['project_id'])

    op.create_table(
        'reports',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.String(36), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column(
            'report_type',
            sa.Enum('analysis', 'presentation', name='report_type'),
            nullable=False,
            server_default='analysis',
        ),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_reports_project_id', 'reports', ['project_id'])
    op.create_index('ix_reports_created_at', 'reports', ['created_at'])


def downgrade():
    op.drop_table('reports')
    op.drop_table('project_files')
    op.drop_table('projects')
    op.drop_table('pricing_plans')
    op.drop_table('payment_logs')
    op.drop_table('coupons')
    op.drop_table('usage_logs')
    op.drop_table('group_policies')
    op.drop_table('subscriptions')
    op.drop_table('users')

    bind = op.get_bind()
    for enum_name in ('report_type', 'project_status', 'payment_log_status',
                      'usage_kind', 'subscription_status', 'subscription_plan'):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
