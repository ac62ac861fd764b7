"""Create calendar_events table

Revision ID: 3f7a91c2d4e8
Revises:
Create Date: 2026-10-17

Stores calendar instances per user. Recurring series are sibling rows
sharing series_id; reminder settings live in the notifications JSON column.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f7a91c2d4e8'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('calendar_events',
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('all_day', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('event_type', sa.String(length=50), nullable=False, server_default='custom'),
        sa.Column('status', sa.String(length=50), nullable=False, server_default='pending'),
        sa.Column('source_id', sa.String(length=255), nullable=True),
        sa.Column('notifications', sa.JSON(), nullable=False),
        sa.Column('recurrence_type', sa.String(length=20), nullable=True),
        sa.Column('recurrence_interval', sa.Integer(), nullable=True),
        sa.Column('recurrence_end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('series_id', sa.String(length=100), nullable=True),
        sa.Column('id', sa.CHAR(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True),
                  server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('calendar_events', schema=None) as batch_op:
        batch_op.create_index('ix_calendar_events_user_start', ['user_id', 'start_date'], unique=False)
        batch_op.create_index('ix_calendar_events_user_series', ['user_id', 'series_id'], unique=False)
        batch_op.create_index('ix_calendar_events_status', ['status'], unique=False)
        batch_op.create_index('ix_calendar_events_deleted', ['deleted_at'], unique=False)


def downgrade() -> None:
    with op.batch_alter_table('calendar_events', schema=None) as batch_op:
        batch_op.drop_index('ix_calendar_events_deleted')
        batch_op.drop_index('ix_calendar_events_status')
        batch_op.drop_index('ix_calendar_events_user_series')
        batch_op.drop_index('ix_calendar_events_user_start')
    op.drop_table('calendar_events')
