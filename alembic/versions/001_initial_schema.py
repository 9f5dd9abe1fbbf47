"""initial schema: users, coach links, protocols, schedules, test sessions

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

coach_athlete carries a unique (coach_id, athlete_id) constraint so two
concurrent requests for the same pair cannot both insert.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'user_account',
        sa.Column('id', sa.Uuid(), primary_key=True),
        *_timestamps(),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('password_hash', sa.Text(), nullable=False),
        sa.Column('role', sa.Enum('ATHLETE', 'COACH', 'ADMIN', name='user_role'), nullable=False),
        sa.Column('height', sa.Float(), nullable=True),
        sa.Column('weight', sa.Float(), nullable=True),
        sa.Column('date_of_birth', sa.Date(), nullable=True),
        sa.Column('gender', sa.Text(), nullable=True),
        sa.UniqueConstraint('email', name='uq_user_account_email'),
    )
    op.create_index('ix_user_account_role', 'user_account', ['role'])

    op.create_table(
        'coach_athlete',
        sa.Column('id', sa.Uuid(), primary_key=True),
        *_timestamps(),
        sa.Column('coach_id', sa.Uuid(), sa.ForeignKey('user_account.id', ondelete='CASCADE'), nullable=False),
        sa.Column('athlete_id', sa.Uuid(), sa.ForeignKey('user_account.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.Enum('PENDING', 'ACCEPTED', name='link_status'), nullable=False),
        sa.UniqueConstraint('coach_id', 'athlete_id', name='uq_coach_athlete_pair'),
    )
    op.create_index('ix_coach_athlete_coach_id', 'coach_athlete', ['coach_id'])
    op.create_index('ix_coach_athlete_athlete_id', 'coach_athlete', ['athlete_id'])

    op.create_table(
        'test_protocol',
        sa.Column('id', sa.Uuid(), primary_key=True),
        *_timestamps(),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('test_type', sa.Enum('TREADMILL', 'SKI_ERG', 'BIKE_ERG', name='test_type'), nullable=False),
        sa.Column('stages', JSON_TYPE, nullable=False),
        sa.Column('created_by', sa.Uuid(), sa.ForeignKey('user_account.id', ondelete='CASCADE'), nullable=False),
    )
    op.create_index('ix_test_protocol_created_by', 'test_protocol', ['created_by'])

    op.create_table(
        'schedule',
        sa.Column('id', sa.Uuid(), primary_key=True),
        *_timestamps(),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('location', sa.Text(), nullable=True),
        sa.Column('type', sa.Enum('TEST_SESSION', 'MEETING', 'TRAINING', 'OTHER', name='schedule_type'), nullable=False),
        sa.Column('status', sa.Enum('ACTIVE', 'CANCELLED', 'COMPLETED', name='schedule_status'), nullable=False),
        sa.Column('created_by', sa.Uuid(), sa.ForeignKey('user_account.id', ondelete='CASCADE'), nullable=False),
    )
    op.create_index('ix_schedule_created_by', 'schedule', ['created_by'])
    op.create_index('ix_schedule_start_time', 'schedule', ['start_time'])

    op.create_table(
        'test_session',
        sa.Column('id', sa.Uuid(), primary_key=True),
        *_timestamps(),
        sa.Column('date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('protocol_id', sa.Uuid(), sa.ForeignKey('test_protocol.id', ondelete='CASCADE'), nullable=False),
        sa.Column('athlete_id', sa.Uuid(), sa.ForeignKey('user_account.id', ondelete='CASCADE'), nullable=False),
        sa.Column('conducted_by_id', sa.Uuid(), sa.ForeignKey('user_account.id', ondelete='CASCADE'), nullable=False),
        sa.Column('schedule_id', sa.Uuid(), sa.ForeignKey('schedule.id', ondelete='SET NULL'), nullable=True),
        sa.Column('data', JSON_TYPE, nullable=False),
        sa.Column(
            'status',
            sa.Enum('SCHEDULED', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED', name='session_status'),
            nullable=False,
        ),
        sa.Column('feedback', sa.Text(), nullable=True),
    )
    op.create_index('ix_test_session_protocol_id', 'test_session', ['protocol_id'])
    op.create_index('ix_test_session_athlete_id', 'test_session', ['athlete_id'])
    op.create_index('ix_test_session_conducted_by_id', 'test_session', ['conducted_by_id'])
    op.create_index('ix_test_session_schedule_id', 'test_session', ['schedule_id'])


def downgrade() -> None:
    op.drop_table('test_session')
    op.drop_table('schedule')
    op.drop_table('test_protocol')
    op.drop_table('coach_athlete')
    op.drop_table('user_account')

    # Native enum types only exist on PostgreSQL
    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        for enum_name in ('session_status', 'schedule_status', 'schedule_type', 'test_type', 'link_status', 'user_role'):
            op.execute(f'DROP TYPE IF EXISTS {enum_name}')
