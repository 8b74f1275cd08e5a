"""Field-level encryption columns and entry insights

Learn: Adds nullable nonce/tag columns next to title and content. Existing
rows keep their plaintext with NULL nonce/tag, which is how the codec
recognises a legacy value, so no data is touched here. Existing rows get
encryption_version 0; new rows default to 1.

entry_insights is created directly in its encrypted shape.

Revision ID: 0002
Revises: 0001
Create Date: 2026-09-15 10:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0002'
down_revision: Union[str, None] = '0001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONList = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    # ─── Envelope columns on journal_entries ─────────────
    with op.batch_alter_table('journal_entries') as batch:
        batch.add_column(sa.Column('title_nonce', sa.String(length=64), nullable=True))
        batch.add_column(sa.Column('title_tag', sa.String(length=64), nullable=True))
        batch.add_column(sa.Column('content_nonce', sa.String(length=64), nullable=True))
        batch.add_column(sa.Column('content_tag', sa.String(length=64), nullable=True))
        batch.add_column(
            sa.Column('encryption_version', sa.Integer(), nullable=False, server_default='0')
        )

    with op.batch_alter_table('journal_entries') as batch:
        batch.alter_column('encryption_version', server_default='1')

    # ─── Insights ────────────────────────────────────────
    op.create_table(
        'entry_insights',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('entry_id', sa.Uuid(), nullable=False),
        sa.Column('owner_id', sa.Uuid(), nullable=False),
        sa.Column('summary', sa.Text(), nullable=False),
        sa.Column('summary_nonce', sa.String(length=64), nullable=True),
        sa.Column('summary_tag', sa.String(length=64), nullable=True),
        sa.Column('themes', JSONList, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['entry_id'], ['journal_entries.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('entry_id'),
    )
    op.create_index('ix_entry_insights_owner_id', 'entry_insights', ['owner_id'])


def downgrade() -> None:
    op.drop_index('ix_entry_insights_owner_id', table_name='entry_insights')
    op.drop_table('entry_insights')
    with op.batch_alter_table('journal_entries') as batch:
        batch.drop_column('encryption_version')
        batch.drop_column('content_tag')
        batch.drop_column('content_nonce')
        batch.drop_column('title_tag')
        batch.drop_column('title_nonce')
