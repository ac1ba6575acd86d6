"""create_integration_tables

Revision ID: a41c9d2e7b13
Revises:
Create Date: 2026-10-19 10:12:41.508213

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'a41c9d2e7b13'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create users table
    op.create_table('users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_admin', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    # Create integrations table
    op.create_table('integrations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('provider', sa.String(length=100), nullable=False),
        sa.Column('environment', sa.String(length=20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('credentials_encrypted', sa.LargeBinary(), nullable=True),
        sa.Column('webhook_url', sa.String(length=500), nullable=True),
        sa.Column('settings', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_integrations_user_type_provider', 'integrations', ['user_id', 'type', 'provider'], unique=False)

    # Create webhooks table
    op.create_table('webhooks',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('secret_key', sa.String(length=128), nullable=False),
        sa.Column('endpoint_url', sa.String(length=500), nullable=True),
        sa.Column('source_type', sa.String(length=20), nullable=False),
        sa.Column('source_provider', sa.String(length=100), nullable=False),
        sa.Column('destination_type', sa.String(length=20), nullable=False),
        sa.Column('destination_provider', sa.String(length=100), nullable=False),
        sa.Column('event_types', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_webhooks_secret_key'), 'webhooks', ['secret_key'], unique=True)
    op.create_index('ix_webhooks_user_source', 'webhooks', ['user_id', 'source_type', 'source_provider'], unique=False)

    # Create webhook_logs table
    op.create_table('webhook_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('webhook_id', sa.Uuid(), nullable=False),
        sa.Column('event_type', sa.String(length=50), nullable=False),
        sa.Column('event_id', sa.String(length=200), nullable=True),
        sa.Column('request_payload', sa.JSON(), nullable=True),
        sa.Column('response_payload', sa.JSON(), nullable=True),
        sa.Column('status_code', sa.Integer(), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('processing_time_ms', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['webhook_id'], ['webhooks.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_webhook_logs_webhook_created', 'webhook_logs', ['webhook_id', 'created_at'], unique=False)
    op.create_index('ix_webhook_logs_webhook_event', 'webhook_logs', ['webhook_id', 'event_id'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_webhook_logs_webhook_event', table_name='webhook_logs')
    op.drop_index('ix_webhook_logs_webhook_created', table_name='webhook_logs')
    op.drop_table('webhook_logs')
    op.drop_index('ix_webhooks_user_source', table_name='webhooks')
    op.drop_index(op.f('ix_webhooks_secret_key'), table_name='webhooks')
    op.drop_table('webhooks')
    op.drop_index('ix_integrations_user_type_provider', table_name='integrations')
    op.drop_table('integrations')
    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_table('users')
