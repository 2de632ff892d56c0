"""Approval workflow - clinic category setting, category and macro approval columns

Revision ID: 0002_approval_workflow
Revises: 0001_baseline
Create Date: 2026-10-17

Batch mode keeps the foreign key additions portable to SQLite.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0002_approval_workflow'
down_revision: Union[str, Sequence[str], None] = '0001_baseline'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TS = sa.DateTime(timezone=True)


def upgrade() -> None:
    with op.batch_alter_table('clinics') as batch:
        batch.add_column(
            sa.Column('require_approval_for_categories', sa.Boolean(), server_default=sa.false(), nullable=False)
        )

    with op.batch_alter_table('categories') as batch:
        batch.add_column(
            sa.Column('requires_approval', sa.Boolean(), server_default=sa.false(), nullable=False)
        )

    with op.batch_alter_table('macros') as batch:
        batch.add_column(
            sa.Column('requires_approval', sa.Boolean(), server_default=sa.false(), nullable=False)
        )
        batch.add_column(
            sa.Column('is_approved', sa.Boolean(), server_default=sa.false(), nullable=False)
        )
        batch.add_column(sa.Column('approved_by', sa.Uuid(), nullable=True))
        batch.add_column(sa.Column('approved_at', TS, nullable=True))
        batch.add_column(sa.Column('rejected_by', sa.Uuid(), nullable=True))
        batch.add_column(sa.Column('rejected_at', TS, nullable=True))
        batch.add_column(sa.Column('rejection_reason', sa.Text(), nullable=True))
        batch.create_foreign_key(
            'fk_macros_approved_by_users', 'users', ['approved_by'], ['id'], ondelete='SET NULL'
        )
        batch.create_foreign_key(
            'fk_macros_rejected_by_users', 'users', ['rejected_by'], ['id'], ondelete='SET NULL'
        )


def downgrade() -> None:
    with op.batch_alter_table('macros') as batch:
        batch.drop_constraint('fk_macros_rejected_by_users', type_='foreignkey')
        batch.drop_constraint('fk_macros_approved_by_users', type_='foreignkey')
        for column in (
            'rejection_reason',
            'rejected_at',
            'rejected_by',
            'approved_at',
            'approved_by',
            'is_approved',
            'requires_approval',
        ):
            batch.drop_column(column)

    with op.batch_alter_table('categories') as batch:
        batch.drop_column('requires_approval')

    with op.batch_alter_table('clinics') as batch:
        batch.drop_column('require_approval_for_categories')
