"""create user, subscription, scoreboard, team and quarter tables

Revision ID: 4c2e9a7d1f03
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c2e9a7d1f03'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(64), nullable=False),
        sa.Column('password_hash', sa.String(256), nullable=False),
    )
    op.create_index('ix_user_username', 'user', ['username'], unique=True)

    op.create_table(
        'subscription',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('plan_tier', sa.String(16), nullable=False, server_default='basic'),
        sa.Column('status', sa.String(32), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'scoreboard',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('user.id', ondelete='CASCADE'), nullable=False),
        sa.Column('share_code', sa.String(16), nullable=True),
        sa.Column('current_quarter', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('timer_duration', sa.Integer(), nullable=False, server_default='720'),
        sa.Column('timer_state', sa.String(16), nullable=False, server_default='stopped'),
        sa.Column('timer_started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('timer_paused_duration', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('venue', sa.String(128), nullable=True),
        sa.Column('game_date', sa.String(16), nullable=True),
        sa.Column('game_start_time', sa.String(8), nullable=True),
        sa.Column('game_end_time', sa.String(8), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_scoreboard_owner_id', 'scoreboard', ['owner_id'])
    op.create_index('ix_scoreboard_share_code', 'scoreboard', ['share_code'], unique=True)

    op.create_table(
        'team',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('scoreboard_id', sa.Integer(), sa.ForeignKey('scoreboard.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(64), nullable=False),
        sa.Column('position', sa.String(8), nullable=False),
        sa.Column('color', sa.String(16), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_team_scoreboard_id', 'team', ['scoreboard_id'])

    op.create_table(
        'quarter',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('team_id', sa.Integer(), sa.ForeignKey('team.id', ondelete='CASCADE'), nullable=False),
        sa.Column('quarter_number', sa.Integer(), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('fouls', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('timeouts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('team_id', 'quarter_number', name='uq_quarter_team_number'),
    )
    op.create_index('ix_quarter_team_id', 'quarter', ['team_id'])


def downgrade():
    op.drop_index('ix_quarter_team_id', table_name='quarter')
    op.drop_table('quarter')
    op.drop_index('ix_team_scoreboard_id', table_name='team')
    op.drop_table('team')
    op.drop_index('ix_scoreboard_share_code', table_name='scoreboard')
    op.drop_index('ix_scoreboard_owner_id', table_name='scoreboard')
    op.drop_table('scoreboard')
    op.drop_table('subscription')
    op.drop_index('ix_user_username', table_name='user')
    op.drop_table('user')
