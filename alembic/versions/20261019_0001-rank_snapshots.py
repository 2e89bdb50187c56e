"""Rank snapshots journal

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261019_0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the append-only rank_snapshots table."""
    op.create_table(
        'rank_snapshots',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('puuid', sa.String(), nullable=False),
        sa.Column('region', sa.String(), nullable=False),
        sa.Column('queue_type', sa.String(), nullable=False),
        sa.Column('tier', sa.String(), nullable=False),
        # NULL pour Master / Grandmaster / Challenger
        sa.Column('division', sa.String(), nullable=True),
        sa.Column('league_points', sa.Integer(), nullable=False),
        sa.Column('wins', sa.Integer(), nullable=False),
        sa.Column('losses', sa.Integer(), nullable=False),
        sa.Column('fetched_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        'ix_rank_snapshots_player_queue_time',
        'rank_snapshots',
        ['puuid', 'region', 'queue_type', 'fetched_at'],
    )


def downgrade() -> None:
    op.drop_index('ix_rank_snapshots_player_queue_time', 'rank_snapshots')
    op.drop_table('rank_snapshots')
