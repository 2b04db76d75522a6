"""Subscription ledger, number bindings and processed events

Revision ID: 001_initial
Revises:
Create Date: 2025-06-01 00:00:00

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Create subscriptions table
    op.create_table('subscriptions',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('stripe_subscription_id', sa.String(length=100), nullable=False),
    sa.Column('stripe_customer_id', sa.String(length=100), nullable=True),
    sa.Column('user_id', sa.String(length=255), nullable=True),
    sa.Column('status', sa.String(length=20), nullable=False),
    sa.Column('current_period_start', sa.DateTime(), nullable=True),
    sa.Column('current_period_end', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('stripe_subscription_id')
    )
    op.create_index('ix_subscriptions_user_id', 'subscriptions', ['user_id'], unique=False)

    # Create call_forward_numbers table
    op.create_table('call_forward_numbers',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('user_id', sa.String(length=255), nullable=False),
    sa.Column('phone_number', sa.String(length=20), nullable=False),
    sa.Column('phone_number_sid', sa.String(length=100), nullable=True),
    sa.Column('start_at', sa.DateTime(), nullable=False),
    sa.Column('expire_at', sa.DateTime(), nullable=True),
    sa.Column('is_released', sa.Boolean(), nullable=False),
    sa.Column('released_at', sa.DateTime(), nullable=True),
    sa.Column('release_error', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_call_forward_numbers_user_id', 'call_forward_numbers', ['user_id'], unique=False)
    op.create_index('ix_call_forward_numbers_phone_number', 'call_forward_numbers', ['phone_number'], unique=False)
    op.create_index('idx_call_forward_numbers_release_scan', 'call_forward_numbers',
                    ['is_released', 'expire_at'], unique=False)

    # Create processed_events table
    op.create_table('processed_events',
    sa.Column('event_id', sa.String(length=255), nullable=False),
    sa.Column('source', sa.String(length=20), nullable=False),
    sa.Column('event_type', sa.String(length=100), nullable=True),
    sa.Column('received_at', sa.DateTime(), nullable=False),
    sa.PrimaryKeyConstraint('event_id')
    )


def downgrade():
    op.drop_table('processed_events')
    op.drop_index('idx_call_forward_numbers_release_scan', table_name='call_forward_numbers')
    op.drop_index('ix_call_forward_numbers_phone_number', table_name='call_forward_numbers')
    op.drop_index('ix_call_forward_numbers_user_id', table_name='call_forward_numbers')
    op.drop_table('call_forward_numbers')
    op.drop_index('ix_subscriptions_user_id', table_name='subscriptions')
    op.drop_table('subscriptions')
