"""Initial trackd schema

Revision ID: 20261019_0900
Revises:
Create Date: 2026-10-19 09:00:00.000000

Creates the dashboard tables:
- users and their subscription mirror
- customers, jobs, competitors and insights
- AI request ledger
- subscription audit trail and processed webhook ids
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261019_0900'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    ]


def _owner():
    return sa.Column(
        'user_id',
        sa.Uuid,
        sa.ForeignKey('users.id', ondelete='CASCADE'),
        nullable=False,
    )


def upgrade() -> None:
    # Users
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('auth_id', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('username', sa.String(255), nullable=True),

        # Business profile
        sa.Column('business_name', sa.String(255), nullable=True),
        sa.Column('owner_name', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('address', sa.Text, nullable=True),
        sa.Column('postcode', sa.String(20), nullable=True),
        sa.Column('location', sa.String(255), nullable=True),
        sa.Column('service_area', sa.String(255), nullable=True),
        sa.Column('service_area_radius', sa.Integer, nullable=True),
        sa.Column('business_type', sa.String(100), nullable=True),
        sa.Column('business_type_other', sa.String(255), nullable=True),
        sa.Column('specializations', sa.JSON, nullable=False),
        sa.Column('team_size', sa.Integer, nullable=False, server_default='1'),
        sa.Column('years_in_business', sa.Integer, nullable=True),

        # Goals
        sa.Column('target_hourly_rate', sa.Numeric(10, 2), nullable=True),
        sa.Column('monthly_revenue_goal', sa.Numeric(10, 2), nullable=True),
        sa.Column('weekly_hours_target', sa.Integer, nullable=True),

        # Plan & preferences
        sa.Column('subscription_tier', sa.String(50), nullable=False, server_default='trial'),
        sa.Column('preferred_currency', sa.String(3), nullable=False, server_default='GBP'),
        sa.Column('notifications', sa.JSON, nullable=False),
        sa.Column('onboarding_status', sa.String(20), nullable=False, server_default='incomplete'),
        sa.Column('onboarding_step', sa.Integer, nullable=False, server_default='0'),
        *_timestamps(),
    )
    op.create_index('ix_users_auth_id', 'users', ['auth_id'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'])

    # Customers
    op.create_table(
        'customers',
        sa.Column('id', sa.Uuid, primary_key=True),
        _owner(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('address', sa.Text, nullable=True),
        sa.Column('contact_preference', sa.String(20), nullable=False, server_default='email'),
        sa.Column('total_jobs', sa.Integer, nullable=False, server_default='0'),
        sa.Column('total_revenue', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('average_job_value', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('lifetime_value', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('first_job_date', sa.DateTime, nullable=True),
        sa.Column('last_job_date', sa.DateTime, nullable=True),
        sa.Column('satisfaction_score', sa.Integer, nullable=False, server_default='85'),
        sa.Column(
            'status',
            sa.Enum('New', 'Active', 'Inactive', name='customerstatus'),
            nullable=False,
            server_default='New',
        ),
        sa.Column('preferred_services', sa.JSON, nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_customers_user_id', 'customers', ['user_id'])

    # Jobs
    op.create_table(
        'jobs',
        sa.Column('id', sa.Uuid, primary_key=True),
        _owner(),
        sa.Column('customer_id', sa.Uuid, sa.ForeignKey('customers.id', ondelete='SET NULL'), nullable=True),
        sa.Column('customer_name', sa.String(255), nullable=False),
        sa.Column('job_type', sa.String(100), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('revenue', sa.Numeric(10, 2), nullable=False),
        sa.Column('expenses', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('hours', sa.Numeric(6, 2), nullable=False),
        sa.Column('hourly_rate', sa.Numeric(10, 2), nullable=False),
        sa.Column('profit_margin', sa.Numeric(7, 2), nullable=True),
        sa.Column(
            'status',
            sa.Enum('Quoted', 'Booked', 'In Progress', 'Completed', 'Cancelled', name='jobstatus'),
            nullable=False,
            server_default='Quoted',
        ),
        sa.Column('date', sa.DateTime, nullable=False),
        sa.Column('start_date', sa.DateTime, nullable=True),
        sa.Column('estimated_completion_date', sa.DateTime, nullable=True),
        sa.Column('actual_completion_date', sa.DateTime, nullable=True),
        sa.Column('project_duration', sa.String(50), nullable=True),
        sa.Column('location', sa.String(255), nullable=True),
        sa.Column('satisfaction_rating', sa.Integer, nullable=True),
        sa.Column('materials', sa.JSON, nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_jobs_user_id', 'jobs', ['user_id'])
    op.create_index('ix_jobs_customer_id', 'jobs', ['customer_id'])
    op.create_index('ix_jobs_status', 'jobs', ['status'])
    op.create_index('ix_jobs_date', 'jobs', ['date'])

    # Competitors
    op.create_table(
        'competitors',
        sa.Column('id', sa.Uuid, primary_key=True),
        _owner(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('location', sa.String(255), nullable=True),
        sa.Column('services', sa.JSON, nullable=False),
        sa.Column('hourly_rate', sa.Numeric(10, 2), nullable=True),
        sa.Column('average_rate', sa.Numeric(10, 2), nullable=True),
        sa.Column('emergency_callout_fee', sa.Numeric(10, 2), nullable=True),
        sa.Column('callout_fee', sa.Numeric(10, 2), nullable=True),
        sa.Column('market_positioning', sa.String(100), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('website', sa.String(500), nullable=True),
        sa.Column('rating', sa.Numeric(2, 1), nullable=True),
        sa.Column('review_count', sa.Integer, nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.text('true')),
        sa.Column('strengths', sa.JSON, nullable=False),
        sa.Column('weaknesses', sa.JSON, nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_competitors_user_id', 'competitors', ['user_id'])

    # Insights
    op.create_table(
        'insights',
        sa.Column('id', sa.Uuid, primary_key=True),
        _owner(),
        sa.Column(
            'type',
            sa.Enum('pricing', 'efficiency', 'customer', 'market', 'competitor', name='insighttype'),
            nullable=False,
        ),
        sa.Column('priority', sa.Enum('high', 'medium', 'low', name='insightpriority'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('recommendation', sa.Text, nullable=True),
        sa.Column('impact', sa.String(255), nullable=True),
        sa.Column('impact_score', sa.Integer, nullable=True),
        sa.Column('urgency_level', sa.String(50), nullable=True),
        sa.Column('action', sa.Text, nullable=True),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column(
            'status',
            sa.Enum('active', 'completed', 'dismissed', name='insightstatus'),
            nullable=False,
            server_default='active',
        ),
        sa.Column('viewed', sa.Boolean, nullable=False, server_default=sa.text('false')),
        sa.Column('action_taken', sa.Boolean, nullable=False, server_default=sa.text('false')),
        sa.Column('ai_generated', sa.Boolean, nullable=False, server_default=sa.text('false')),
        sa.Column('data', sa.JSON, nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_insights_user_id', 'insights', ['user_id'])

    # Subscriptions
    op.create_table(
        'user_subscriptions',
        sa.Column('id', sa.Uuid, primary_key=True),
        _owner(),
        sa.Column('stripe_customer_id', sa.String(255), nullable=True, unique=True),
        sa.Column('stripe_subscription_id', sa.String(255), nullable=True, unique=True),
        sa.Column('subscription_tier', sa.String(50), nullable=False, server_default='trial'),
        sa.Column('subscription_status', sa.String(30), nullable=False, server_default='trialing'),
        sa.Column('monthly_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('billing_cycle', sa.String(20), nullable=False, server_default='monthly'),
        sa.Column('currency', sa.String(3), nullable=False, server_default='GBP'),
        sa.Column('trial_active', sa.Boolean, nullable=False, server_default=sa.text('false')),
        sa.Column('trial_start_date', sa.DateTime, nullable=True),
        sa.Column('trial_end_date', sa.DateTime, nullable=True),
        sa.Column('trial_converted_to_paid', sa.Boolean, nullable=False, server_default=sa.text('false')),
        sa.Column('trial_conversion_date', sa.DateTime, nullable=True),
        sa.Column('subscription_start_date', sa.DateTime, nullable=True),
        sa.Column('current_period_start', sa.DateTime, nullable=True),
        sa.Column('current_period_end', sa.DateTime, nullable=True),
        sa.Column('last_payment_date', sa.DateTime, nullable=True),
        sa.Column('last_payment_amount', sa.Numeric(10, 2), nullable=True),
        sa.Column('cancel_at_period_end', sa.Boolean, nullable=False, server_default=sa.text('false')),
        sa.Column('canceled_at', sa.DateTime, nullable=True),
        sa.Column('cancellation_reason', sa.Text, nullable=True),
        sa.Column('max_jobs_per_month', sa.Integer, nullable=True),
        sa.Column('max_competitors', sa.Integer, nullable=False, server_default='3'),
        sa.Column('ai_credits_monthly', sa.Integer, nullable=False, server_default='0'),
        *_timestamps(),
    )
    op.create_index('ix_user_subscriptions_user_id', 'user_subscriptions', ['user_id'], unique=True)

    op.create_table(
        'subscription_events',
        sa.Column('id', sa.Uuid, primary_key=True),
        _owner(),
        sa.Column(
            'subscription_id',
            sa.Uuid,
            sa.ForeignKey('user_subscriptions.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('event_type', sa.String(50), nullable=False),
        sa.Column('previous_tier', sa.String(50), nullable=True),
        sa.Column('new_tier', sa.String(50), nullable=True),
        sa.Column('previous_monthly_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('new_monthly_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('mrr_change', sa.Numeric(10, 2), nullable=True),
        sa.Column('stripe_event_id', sa.String(255), nullable=True),
        sa.Column('triggered_by', sa.String(20), nullable=False, server_default='system'),
        sa.Column('notes', sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_subscription_events_user_id', 'subscription_events', ['user_id'])
    op.create_index('ix_subscription_events_subscription_id', 'subscription_events', ['subscription_id'])

    op.create_table(
        'processed_webhook_events',
        sa.Column('event_id', sa.String(255), primary_key=True),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column('processed_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )

    # AI request ledger
    op.create_table(
        'ai_requests',
        sa.Column('id', sa.Uuid, primary_key=True),
        _owner(),
        sa.Column('entitlement_tier', sa.String(50), nullable=False),
        sa.Column('request_type', sa.String(50), nullable=False),
        sa.Column('endpoint', sa.String(255), nullable=True),
        sa.Column('model', sa.String(100), nullable=False),
        sa.Column('provider', sa.String(50), nullable=False, server_default='openai'),
        sa.Column('tokens_input', sa.Integer, nullable=False, server_default='0'),
        sa.Column('tokens_output', sa.Integer, nullable=False, server_default='0'),
        sa.Column('tokens_total', sa.Integer, nullable=False, server_default='0'),
        sa.Column('cost_estimate_gbp', sa.Numeric(10, 6), nullable=True),
        sa.Column('response_time_ms', sa.Integer, nullable=True),
        sa.Column('success', sa.Boolean, nullable=False, server_default=sa.text('true')),
        sa.Column('error_message', sa.Text, nullable=True),
        sa.Column('prompt_length', sa.Integer, nullable=True),
        sa.Column('response_length', sa.Integer, nullable=True),
        sa.Column('temperature', sa.Numeric(3, 2), nullable=True),
        sa.Column('max_tokens', sa.Integer, nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_ai_requests_user_id', 'ai_requests', ['user_id'])
    # Monthly credit counts filter on user, success and created_at
    op.create_index('ix_ai_requests_user_success_created', 'ai_requests', ['user_id', 'success', 'created_at'])


def downgrade() -> None:
    op.drop_table('ai_requests')
    op.drop_table('processed_webhook_events')
    op.drop_table('subscription_events')
    op.drop_table('user_subscriptions')
    op.drop_table('insights')
    op.drop_table('competitors')
    op.drop_table('jobs')
    op.drop_table('customers')
    op.drop_table('users')

    for enum_name in ('insightstatus', 'insightpriority', 'insighttype', 'jobstatus', 'customerstatus'):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
