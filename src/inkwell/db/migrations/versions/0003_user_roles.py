"""User roles

Learn: Adds users.role with a server default, so every existing account
becomes a plain 'user'. Promote the first admin with
`inkwell-admin set-role <email> admin`.

Revision ID: 0003
Revises: 0002
Create Date: 2026-10-18 09:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0003'
down_revision: Union[str, None] = '0002'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    with op.batch_alter_table('users') as batch:
        batch.add_column(
            sa.Column('role', sa.String(length=30), nullable=False, server_default='user')
        )


def downgrade() -> None:
    with op.batch_alter_table('users') as batch:
        batch.drop_column('role')
