"""activity_and_progress_columns

Revision ID: 8b2d4f6a1c37
Revises: 3f9c1e7a2b10
Create Date: 2026-10-18 00:02:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8b2d4f6a1c37'
down_revision: Union[str, None] = '3f9c1e7a2b10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Activity timestamps read by the availability check
    op.add_column('users', sa.Column('last_login', sa.DateTime(), nullable=True))
    op.add_column('users', sa.Column('updated_date', sa.DateTime(), nullable=True))

    # Reported progress feeding the project health score
    op.add_column('projects', sa.Column('progress', sa.Float(), nullable=False, server_default='0'))


def downgrade() -> None:
    op.drop_column('projects', 'progress')
    op.drop_column('users', 'updated_date')
    op.drop_column('users', 'last_login')
