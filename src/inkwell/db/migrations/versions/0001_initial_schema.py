"""Initial schema: users and plaintext journal entries

Learn: This is the schema as it was before field-level encryption. Rows
written under it are the "legacy" rows EntryStore upgrades on read.

Revision ID: 0001
Revises:
Create Date: 2026-09-01 10:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONList = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('display_name', sa.String(length=100), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )

    op.create_table(
        'journal_entries',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('owner_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('mood', sa.String(length=50), nullable=True),
        sa.Column('tags', JSONList, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_journal_entries_owner_id', 'journal_entries', ['owner_id'])
    op.create_index('ix_journal_entries_owner_created', 'journal_entries', ['owner_id', 'created_at'])
    op.create_index('ix_journal_entries_owner_updated', 'journal_entries', ['owner_id', 'updated_at'])


def downgrade() -> None:
    op.drop_index('ix_journal_entries_owner_updated', table_name='journal_entries')
    op.drop_index('ix_journal_entries_owner_created', table_name='journal_entries')
    op.drop_index('ix_journal_entries_owner_id', table_name='journal_entries')
    op.drop_table('journal_entries')
    op.drop_table('users')
