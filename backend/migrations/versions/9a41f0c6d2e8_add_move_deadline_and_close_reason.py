"""add move_deadline and close_reason to match

Revision ID: 9a41f0c6d2e8
Revises: 5c2d9e41a7b3
Create Date: 2026-10-19 12:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '9a41f0c6d2e8'
down_revision = '5c2d9e41a7b3'
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    cols = {c['name'] for c in insp.get_columns('match')}
    with op.batch_alter_table('match') as batch_op:
        if 'move_deadline' not in cols:
            batch_op.add_column(sa.Column('move_deadline', sa.Float(), nullable=True))
        if 'close_reason' not in cols:
            batch_op.add_column(sa.Column('close_reason', sa.String(length=64), nullable=True))


def downgrade():
    with op.batch_alter_table('match') as batch_op:
        batch_op.drop_column('close_reason')
        batch_op.drop_column('move_deadline')
