"""create profile, queue_entry and match tables

Revision ID: 5c2d9e41a7b3
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2d9e41a7b3'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'profile' not in existing_tables:
        op.create_table(
            'profile',
            sa.Column('player_id', sa.String(length=64), primary_key=True),
            sa.Column('display_name', sa.String(length=64), nullable=True),
            sa.Column('locality_label', sa.String(length=128), nullable=True),
        )

    if 'queue_entry' not in existing_tables:
        op.create_table(
            'queue_entry',
            sa.Column('player_id', sa.String(length=64), primary_key=True),
            sa.Column('location_lat', sa.Float(), nullable=True),
            sa.Column('location_lng', sa.Float(), nullable=True),
            sa.Column('wager_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.CheckConstraint('wager_amount >= 0', name='ck_queue_entry_wager_non_negative'),
        )

    if 'match' not in existing_tables:
        op.create_table(
            'match',
            sa.Column('id', sa.String(length=36), primary_key=True),
            sa.Column('player1_id', sa.String(length=64), nullable=False),
            sa.Column('player2_id', sa.String(length=64), nullable=False),
            sa.Column('wager_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
            sa.Column('status', sa.String(length=32), nullable=False, server_default='pending'),
            sa.Column('player1_move', sa.String(length=16), nullable=True),
            sa.Column('player2_move', sa.String(length=16), nullable=True),
            sa.Column('result', sa.String(length=16), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
            sa.CheckConstraint('player1_id <> player2_id', name='ck_match_distinct_players'),
            sa.CheckConstraint('wager_amount >= 0', name='ck_match_wager_non_negative'),
        )
        op.create_index('ix_match_player1_id', 'match', ['player1_id'])
        op.create_index('ix_match_player2_id', 'match', ['player2_id'])


def downgrade():
    op.drop_index('ix_match_player2_id', table_name='match')
    op.drop_index('ix_match_player1_id', table_name='match')
    op.drop_table('match')
    op.drop_table('queue_entry')
    op.drop_table('profile')
