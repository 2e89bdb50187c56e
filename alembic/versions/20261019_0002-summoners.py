"""Summoner search index

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261019_0002'
down_revision: Union[str, None] = '20261019_0001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the summoners table fed by profile views."""
    op.create_table(
        'summoners',
        sa.Column('puuid', sa.String(), nullable=False),
        sa.Column('region', sa.String(), nullable=False),
        sa.Column('riot_id', sa.String(), nullable=False),
        sa.Column('riot_id_lower', sa.String(), nullable=False),
        sa.Column('profile_icon_id', sa.Integer(), nullable=True),
        sa.Column('summoner_level', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('puuid', 'region')
    )
    op.create_index(
        'ix_summoners_region_riot_id_lower',
        'summoners',
        ['region', 'riot_id_lower'],
    )


def downgrade() -> None:
    op.drop_index('ix_summoners_region_riot_id_lower', 'summoners')
    op.drop_table('summoners')
