"""Leave links, leave messages and SMS attempts

Revision ID: 002_leave_links
Revises: 001_initial
Create Date: 2025-07-01 00:00:00

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '002_leave_links'
down_revision = '001_initial'
branch_labels = None
depends_on = None


def upgrade():
    # Create leave_links table
    op.create_table('leave_links',
    sa.Column('token', sa.String(length=64), nullable=False),
    sa.Column('call_sid', sa.String(length=100), nullable=True),
    sa.Column('from_number', sa.String(length=20), nullable=False),
    sa.Column('to_number', sa.String(length=20), nullable=False),
    sa.Column('status', sa.String(length=20), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('expires_at', sa.DateTime(), nullable=False),
    sa.Column('used_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('token')
    )
    op.create_index('ix_leave_links_call_sid', 'leave_links', ['call_sid'], unique=False)

    # Create leave_messages table
    op.create_table('leave_messages',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('token', sa.String(length=64), nullable=False),
    sa.Column('message', sa.Text(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.ForeignKeyConstraint(['token'], ['leave_links.token'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_leave_messages_token', 'leave_messages', ['token'], unique=False)

    # Create message_attempts table
    op.create_table('message_attempts',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('purpose', sa.String(length=30), nullable=False),
    sa.Column('to_number', sa.String(length=20), nullable=False),
    sa.Column('call_sid', sa.String(length=100), nullable=True),
    sa.Column('request_stage', sa.String(length=30), nullable=False),
    sa.Column('message_sid', sa.String(length=100), nullable=True),
    sa.Column('provider_status', sa.String(length=30), nullable=True),
    sa.Column('error_code', sa.String(length=20), nullable=True),
    sa.Column('error_message', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_message_attempts_message_sid', 'message_attempts', ['message_sid'], unique=False)


def downgrade():
    op.drop_index('ix_message_attempts_message_sid', table_name='message_attempts')
    op.drop_table('message_attempts')
    op.drop_index('ix_leave_messages_token', table_name='leave_messages')
    op.drop_table('leave_messages')
    op.drop_index('ix_leave_links_call_sid', table_name='leave_links')
    op.drop_table('leave_links')
