"""Baseline migration - tenancy, catalog, tickets and automation tables

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-17

Portable DDL (PostgreSQL and SQLite). JSON columns become JSONB on PostgreSQL.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")
TS = sa.DateTime(timezone=True)


def _timestamps(with_updated: bool = True) -> list[sa.Column]:
    columns = [sa.Column('created_at', TS, server_default=sa.func.now(), nullable=False)]
    if with_updated:
        columns.append(sa.Column('updated_at', TS, server_default=sa.func.now(), nullable=False))
    return columns


def upgrade() -> None:
    """Create all helpdesk tables."""

    # ==========================================================================
    # Tenancy
    # ==========================================================================
    op.create_table(
        'societies',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('code', sa.String(50), nullable=False, unique=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        'clinics',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('code', sa.String(50), nullable=False, unique=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('allow_public_tickets', sa.Boolean(), server_default=sa.true(), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        'roles',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
        sa.Column('permissions', JSON, nullable=False),
        *_timestamps(with_updated=False),
    )
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('token_version', sa.Integer(), server_default=sa.text('1'), nullable=False),
        sa.Column('role_id', sa.Uuid(), sa.ForeignKey('roles.id', ondelete='SET NULL')),
        sa.Column('clinic_id', sa.Uuid(), sa.ForeignKey('clinics.id', ondelete='SET NULL')),
        *_timestamps(),
    )
    op.create_table(
        'user_clinics',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('clinic_id', sa.Uuid(), sa.ForeignKey('clinics.id', ondelete='CASCADE'), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('assigned_at', TS, server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('user_id', 'clinic_id', name='uq_user_clinic'),
    )
    op.create_index('idx_user_clinics_clinic', 'user_clinics', ['clinic_id', 'is_active'])
    op.create_table(
        'user_societies',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('society_id', sa.Uuid(), sa.ForeignKey('societies.id', ondelete='CASCADE'), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('assigned_at', TS, server_default=sa.func.now(), nullable=False),
        sa.Column('assigned_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.UniqueConstraint('user_id', 'society_id', name='uq_user_society'),
    )
    op.create_index('idx_user_societies_user_active', 'user_societies', ['user_id', 'is_active'])

    # ==========================================================================
    # Catalog
    # ==========================================================================
    op.create_table(
        'categories',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('slug', sa.String(200), nullable=False, unique=True),
        sa.Column('description', sa.Text()),
        sa.Column('parent_id', sa.Uuid(), sa.ForeignKey('categories.id', ondelete='RESTRICT')),
        sa.Column('path', JSON, nullable=False),
        sa.Column('depth', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('order', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('visibility', sa.String(20), nullable=False),
        sa.Column('society_ids', JSON),
        sa.Column('synonyms', JSON, nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('deleted_at', TS),
        *_timestamps(),
    )
    op.create_index('idx_categories_parent', 'categories', ['parent_id'])
    op.create_index('idx_categories_active', 'categories', ['is_active', 'deleted_at'])
    op.create_table(
        'user_competencies',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('category_id', sa.Uuid(), sa.ForeignKey('categories.id', ondelete='CASCADE'), nullable=False),
        *_timestamps(with_updated=False),
        sa.UniqueConstraint('user_id', 'category_id', name='uq_user_competency'),
    )
    op.create_table(
        'ticket_statuses',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('slug', sa.String(50), nullable=False, unique=True),
        sa.Column('color', sa.String(20), nullable=False),
        sa.Column('order', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('is_system', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('is_final', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        *_timestamps(with_updated=False),
    )

    # ==========================================================================
    # Tickets
    # ==========================================================================
    op.create_table(
        'tickets',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('ticket_number', sa.Integer(), nullable=False, unique=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('status', sa.String(50), nullable=False),
        sa.Column('status_id', sa.Uuid(), sa.ForeignKey('ticket_statuses.id', ondelete='SET NULL')),
        sa.Column('category_id', sa.Uuid(), sa.ForeignKey('categories.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('clinic_id', sa.Uuid(), sa.ForeignKey('clinics.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('creator_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('assignee_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('visibility', sa.String(20), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False),
        sa.Column('last_activity_at', TS, server_default=sa.func.now(), nullable=False),
        sa.Column('nudge_count', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('last_nudge_at', TS),
        sa.Column('last_nudge_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL')),
        *_timestamps(),
    )
    op.create_index('idx_tickets_clinic_assignee', 'tickets', ['clinic_id', 'assignee_id'])
    op.create_index('idx_tickets_clinic_category', 'tickets', ['clinic_id', 'category_id'])
    op.create_index('idx_tickets_creator', 'tickets', ['creator_id'])
    op.create_table(
        'ticket_comments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('ticket_id', sa.Uuid(), sa.ForeignKey('tickets.id', ondelete='CASCADE'), nullable=False),
        sa.Column('author_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('is_internal', sa.Boolean(), server_default=sa.false(), nullable=False),
        *_timestamps(with_updated=False),
    )
    op.create_index('idx_ticket_comments_ticket', 'ticket_comments', ['ticket_id', 'created_at'])
    op.create_table(
        'sequence_counters',
        sa.Column('name', sa.String(50), primary_key=True),
        sa.Column('current_value', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('updated_at', TS, server_default=sa.func.now(), nullable=False),
    )

    # ==========================================================================
    # Automation
    # ==========================================================================
    op.create_table(
        'triggers',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('clinic_id', sa.Uuid(), sa.ForeignKey('clinics.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('conditions', JSON, nullable=False),
        sa.Column('actions', JSON, nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('society_ids', JSON),
        sa.Column('position', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('created_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL')),
        *_timestamps(),
    )
    op.create_index('idx_triggers_clinic_active', 'triggers', ['clinic_id', 'is_active', 'position'])
    op.create_table(
        'macros',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('clinic_id', sa.Uuid(), sa.ForeignKey('clinics.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('category', sa.String(200), nullable=False),
        sa.Column('actions', JSON, nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('created_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL')),
        *_timestamps(),
    )
    op.create_index('idx_macros_clinic_category', 'macros', ['clinic_id', 'category', 'is_active'])

    # ==========================================================================
    # Audit
    # ==========================================================================
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.Uuid(), nullable=False),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('changes', JSON),
        *_timestamps(with_updated=False),
    )
    op.create_index('idx_audit_logs_entity', 'audit_logs', ['entity_type', 'entity_id'])


def downgrade() -> None:
    for table in (
        'audit_logs',
        'macros',
        'triggers',
        'sequence_counters',
        'ticket_comments',
        'tickets',
        'ticket_statuses',
        'user_competencies',
        'categories',
        'user_societies',
        'user_clinics',
        'users',
        'roles',
        'clinics',
        'societies',
    ):
        op.drop_table(table)
