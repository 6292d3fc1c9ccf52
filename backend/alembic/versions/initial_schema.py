"""Initial schema: organizations, users, directory, requests, contact messages

Revision ID: initial_schema
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _org_fk():
    return sa.Column(
        'organization_id',
        sa.Integer(),
        sa.ForeignKey('organizations.id', ondelete='CASCADE'),
        nullable=False,
    )


def upgrade() -> None:
    """Create every RequestDesk table."""
    op.create_table(
        'organizations',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False),
        sa.Column('domain', sa.String(255), nullable=True),
        sa.Column('logo_url', sa.String(2000), nullable=True),
        sa.Column('settings', sa.JSON(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_organizations_slug', 'organizations', ['slug'], unique=True)
    op.create_index('ix_organizations_domain', 'organizations', ['domain'])

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=True),
        sa.Column('first_name', sa.String(100), nullable=True),
        sa.Column('last_name', sa.String(100), nullable=True),
        sa.Column('profile_image_url', sa.String(2000), nullable=True),
        sa.Column('role', sa.String(32), nullable=False),
        sa.Column(
            'organization_id',
            sa.Integer(),
            sa.ForeignKey('organizations.id', ondelete='CASCADE'),
            nullable=True,
        ),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_organization_id', 'users', ['organization_id'])

    op.create_table(
        'buildings',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        _org_fk(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('address', sa.String(500), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('room_numbers', sa.JSON(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_buildings_organization_id', 'buildings', ['organization_id'])
    op.create_index('ix_buildings_name', 'buildings', ['name'])

    op.create_table(
        'facilities',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        _org_fk(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('available_items', sa.JSON(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_facilities_organization_id', 'facilities', ['organization_id'])
    op.create_index('ix_facilities_name', 'facilities', ['name'])

    op.create_table(
        'requests',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        _org_fk(),
        sa.Column('request_type', sa.String(32), nullable=False),
        sa.Column('facility', sa.String(255), nullable=False),
        sa.Column('event', sa.String(255), nullable=False),
        sa.Column('event_date', sa.Date(), nullable=False),
        sa.Column('setup_time', sa.Time(), nullable=True),
        sa.Column('start_time', sa.Time(), nullable=True),
        sa.Column('end_time', sa.Time(), nullable=True),
        sa.Column('requestor_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('status', sa.String(32), nullable=False),
        sa.Column('priority', sa.String(32), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_requests_organization_id', 'requests', ['organization_id'])
    op.create_index('ix_requests_request_type', 'requests', ['request_type'])
    op.create_index('ix_requests_requestor_id', 'requests', ['requestor_id'])
    op.create_index('ix_requests_status', 'requests', ['status'])

    op.create_table(
        'request_items',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'request_id', sa.Integer(), sa.ForeignKey('requests.id', ondelete='CASCADE'),
            nullable=False, unique=True,
        ),
        sa.Column('chairs_audience', sa.Boolean(), nullable=False),
        sa.Column('chairs_audience_qty', sa.Integer(), nullable=True),
        sa.Column('chairs_stage', sa.Boolean(), nullable=False),
        sa.Column('chairs_stage_qty', sa.Integer(), nullable=True),
        sa.Column('podium', sa.Boolean(), nullable=False),
        sa.Column('podium_sound', sa.Boolean(), nullable=False),
        sa.Column('podium_location', sa.String(255), nullable=True),
        sa.Column('audio_visual', sa.Boolean(), nullable=False),
        sa.Column('av_other', sa.Boolean(), nullable=False),
        sa.Column('av_other_spec', sa.String(255), nullable=True),
        sa.Column('tables', sa.Boolean(), nullable=False),
        sa.Column('tables_qty', sa.Integer(), nullable=True),
        sa.Column('tables_location', sa.String(255), nullable=True),
        sa.Column('lighting', sa.Boolean(), nullable=False),
        sa.Column('food', sa.Boolean(), nullable=False),
        sa.Column('cleanup', sa.Boolean(), nullable=False),
        sa.Column('other_needs', sa.Text(), nullable=True),
    )

    op.create_table(
        'building_requests',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'request_id', sa.Integer(), sa.ForeignKey('requests.id', ondelete='CASCADE'),
            nullable=False, unique=True,
        ),
        sa.Column('building', sa.String(255), nullable=False),
        sa.Column('room_number', sa.String(50), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
    )
    op.create_index('ix_building_requests_building', 'building_requests', ['building'])
    op.create_index('ix_building_requests_room_number', 'building_requests', ['room_number'])

    op.create_table(
        'assignments',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'request_id', sa.Integer(), sa.ForeignKey('requests.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('assignee_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('assigner_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('assigned_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('internal_notes', sa.Text(), nullable=True),
    )
    op.create_index('ix_assignments_request_id', 'assignments', ['request_id'])
    op.create_index('ix_assignments_assignee_id', 'assignments', ['assignee_id'])

    op.create_table(
        'status_updates',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'request_id', sa.Integer(), sa.ForeignKey('requests.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('status', sa.String(32), nullable=False),
        sa.Column('updated_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_status_updates_request_id', 'status_updates', ['request_id'])

    op.create_table(
        'messages',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'request_id', sa.Integer(), sa.ForeignKey('requests.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('sender_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('sent_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_messages_request_id', 'messages', ['request_id'])

    op.create_table(
        'request_photos',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'request_id', sa.Integer(), sa.ForeignKey('requests.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('filename', sa.String(500), nullable=False, unique=True),
        sa.Column('original_filename', sa.String(500), nullable=True),
        sa.Column('file_path', sa.String(2000), nullable=True),
        sa.Column('photo_url', sa.String(2000), nullable=False),
        sa.Column('mime_type', sa.String(100), nullable=True),
        sa.Column('size', sa.Integer(), nullable=True),
        sa.Column('caption', sa.Text(), nullable=True),
        sa.Column('uploaded_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('storage_state', sa.String(32), nullable=False),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_request_photos_request_id', 'request_photos', ['request_id'])
    op.create_index('ix_request_photos_storage_state', 'request_photos', ['storage_state'])

    op.create_table(
        'contact_messages',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('organization', sa.String(255), nullable=False),
        sa.Column('inquiry', sa.String(100), nullable=True),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    """Drop every RequestDesk table."""
    op.drop_table('contact_messages')
    op.drop_table('request_photos')
    op.drop_table('messages')
    op.drop_table('status_updates')
    op.drop_table('assignments')
    op.drop_table('building_requests')
    op.drop_table('request_items')
    op.drop_table('requests')
    op.drop_table('facilities')
    op.drop_table('buildings')
    op.drop_table('users')
    op.drop_table('organizations')
