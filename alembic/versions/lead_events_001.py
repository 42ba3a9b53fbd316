"""create lead_events and report_settings tables

Revision ID: lead_events_001
Revises: 
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa

revision = 'lead_events_001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'lead_events',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('event_time', sa.DateTime(), nullable=False),
        sa.Column('event_type', sa.String(255), nullable=False),
        sa.Column('event_label', sa.String(255), nullable=False),
        sa.Column('traffic_type', sa.String(50), nullable=False, server_default=''),
        sa.Column('device_type', sa.String(50), nullable=False, server_default=''),
        sa.Column('utm_source', sa.String(255), nullable=False, server_default=''),
        sa.Column('utm_medium', sa.String(255), nullable=False, server_default=''),
        sa.Column('utm_campaign', sa.String(255), nullable=False, server_default=''),
        sa.Column('utm_term', sa.String(255), nullable=False, server_default=''),
        sa.Column('ad_id', sa.String(255), nullable=False, server_default=''),
        sa.Column('entry_url', sa.Text(), nullable=False, server_default=''),
        sa.Column('submitting_url', sa.Text(), nullable=False, server_default=''),
        sa.Column('page_location', sa.Text(), nullable=False, server_default=''),
    )
    op.create_index('ix_lead_events_time_type', 'lead_events', ['event_time', 'event_type'])

    op.create_table(
        'report_settings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('email', sa.Text(), nullable=False, server_default=''),
        sa.Column('logo_url', sa.Text(), nullable=False, server_default=''),
        sa.Column('instant_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('instant_email', sa.Text(), nullable=False, server_default=''),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table('report_settings')
    op.drop_index('ix_lead_events_time_type')
    op.drop_table('lead_events')
