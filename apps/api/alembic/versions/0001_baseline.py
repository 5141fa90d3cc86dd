"""Baseline migration - helpdesk tables

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-17

Creates users, tickets, messages, teams, team members, audit logs and
marketplace conversations. Enum columns are VARCHAR + CHECK so the same
schema runs on PostgreSQL and SQLite.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ROLES = ('CUSTOMER', 'AGENT', 'MANAGER', 'ADMIN')
TICKET_STATUSES = ('OPEN', 'IN_PROGRESS', 'PENDING', 'RESOLVED', 'CLOSED')
TICKET_PRIORITIES = ('LOW', 'MEDIUM', 'HIGH', 'URGENT')
AUDIT_ACTIONS = ('CREATE', 'UPDATE', 'DELETE')
AUDIT_ENTITIES = ('TICKET', 'USER', 'TEAM', 'MESSAGE', 'MARKETPLACE_CONVERSATION')
CONVERSATION_STATUSES = ('PENDING', 'PROCESSING', 'COMPLETED', 'ERROR')


def _enum(name: str, values: tuple[str, ...]) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False, length=32, create_constraint=True)


def _timestamps(with_updated: bool = True) -> list[sa.Column]:
    columns = [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]
    if with_updated:
        columns.append(
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())
        )
    return columns


def upgrade() -> None:
    """Create helpdesk tables."""

    # ==========================================================================
    # Users
    # ==========================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('name', sa.String(255)),
        sa.Column('avatar_url', sa.Text()),
        sa.Column('role', _enum('user_role', ROLES), nullable=False, server_default='CUSTOMER'),
        sa.Column('metadata', sa.JSON()),
        sa.Column('test_batch_id', sa.String(64)),
        sa.Column('cleanup_at', sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    op.create_index('idx_users_role', 'users', ['role'])
    op.create_index('idx_users_test_batch', 'users', ['test_batch_id'])

    # ==========================================================================
    # Tickets
    # ==========================================================================
    op.create_table(
        'tickets',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('description_html', sa.Text(), nullable=False, server_default=''),
        sa.Column('status', _enum('ticket_status', TICKET_STATUSES), nullable=False, server_default='OPEN'),
        sa.Column('priority', _enum('ticket_priority', TICKET_PRIORITIES), nullable=False, server_default='MEDIUM'),
        sa.Column('customer_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('assigned_to_id', sa.Uuid(), sa.ForeignKey('users.id')),
        sa.Column('created_by_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('metadata', sa.JSON()),
        sa.Column('test_batch_id', sa.String(64)),
        sa.Column('cleanup_at', sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    op.create_index('idx_tickets_customer', 'tickets', ['customer_id'])
    op.create_index('idx_tickets_assigned', 'tickets', ['assigned_to_id'])
    op.create_index('idx_tickets_created_by', 'tickets', ['created_by_id'])
    op.create_index('idx_tickets_status', 'tickets', ['status'])
    op.create_index('idx_tickets_test_batch', 'tickets', ['test_batch_id'])

    op.create_table(
        'messages',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('ticket_id', sa.Uuid(), sa.ForeignKey('tickets.id', ondelete='CASCADE'), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('content_html', sa.Text(), nullable=False, server_default=''),
        sa.Column('is_internal', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_by_id', sa.Uuid(), sa.ForeignKey('users.id')),
        *_timestamps(with_updated=False),
    )
    op.create_index('idx_messages_ticket_created', 'messages', ['ticket_id', 'created_at'])

    # ==========================================================================
    # Teams
    # ==========================================================================
    op.create_table(
        'teams',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('created_by_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL')),
        *_timestamps(),
    )

    op.create_table(
        'team_members',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('team_id', sa.Uuid(), sa.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        *_timestamps(with_updated=False),
        sa.UniqueConstraint('team_id', 'user_id', name='uq_team_members_team_user'),
    )
    op.create_index('idx_team_members_user', 'team_members', ['user_id'])

    # ==========================================================================
    # Audit
    # ==========================================================================
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('action', _enum('audit_action', AUDIT_ACTIONS), nullable=False),
        sa.Column('entity', _enum('audit_entity', AUDIT_ENTITIES), nullable=False),
        sa.Column('entity_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('old_data', sa.JSON()),
        sa.Column('new_data', sa.JSON()),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('idx_audit_entity', 'audit_logs', ['entity', 'entity_id', 'timestamp'])
    op.create_index('idx_audit_user', 'audit_logs', ['user_id'])

    # ==========================================================================
    # Marketplace
    # ==========================================================================
    op.create_table(
        'marketplace_conversations',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('raw_content', sa.Text(), nullable=False),
        sa.Column('processed_content', sa.JSON()),
        sa.Column(
            'status',
            _enum('conversation_status', CONVERSATION_STATUSES),
            nullable=False,
            server_default='PENDING',
        ),
        sa.Column('error_message', sa.Text()),
        sa.Column('run_id', sa.Uuid()),
        sa.Column('ticket_id', sa.Uuid(), sa.ForeignKey('tickets.id', ondelete='SET NULL')),
        sa.Column('created_by_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        *_timestamps(),
    )
    op.create_index('idx_marketplace_created_by', 'marketplace_conversations', ['created_by_id'])


def downgrade() -> None:
    """Drop helpdesk tables."""
    op.drop_table('marketplace_conversations')
    op.drop_table('audit_logs')
    op.drop_table('team_members')
    op.drop_table('teams')
    op.drop_table('messages')
    op.drop_table('tickets')
    op.drop_table('users')
