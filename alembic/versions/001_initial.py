"""Initial migration

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ENUM_TYPES = [
    'user_role', 'user_status', 'token_purpose', 'theme_status', 'work_status',
    'license_type', 'file_type', 'link_type', 'review_action', 'device_type',
    'referrer_type',
]


def upgrade() -> None:
    # Create users table
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True, index=True),
        sa.Column('name', sa.String(100), nullable=True),
        sa.Column('role', sa.Enum('docente', 'admin', name='user_role'), nullable=False, server_default='docente'),
        sa.Column('status', sa.Enum('active', 'invited', 'suspended', name='user_status'), nullable=False, server_default='invited'),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('profile_image_url', sa.Text(), nullable=True),
        sa.Column('password_hash', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
    )

    # Create api_keys table
    op.create_table(
        'api_keys',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=False), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('key_hash', sa.String(255), nullable=False, unique=True),
        sa.Column('key_prefix', sa.String(12), nullable=False, index=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
    )

    # Create auth_tokens table
    op.create_table(
        'auth_tokens',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=False), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('purpose', sa.Enum('invite', 'recovery', name='token_purpose'), nullable=False),
        sa.Column('token_hash', sa.String(255), nullable=False),
        sa.Column('token_prefix', sa.String(12), nullable=False, index=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
    )

    # Create themes table
    op.create_table(
        'themes',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('title_it', sa.String(100), nullable=False),
        sa.Column('title_en', sa.String(100), nullable=True),
        sa.Column('description_it', sa.Text(), nullable=False),
        sa.Column('description_en', sa.Text(), nullable=True),
        sa.Column('slug', sa.String(120), nullable=False, unique=True, index=True),
        sa.Column('featured_image_url', sa.Text(), nullable=True),
        sa.Column('status', sa.Enum('draft', 'published', 'archived', name='theme_status'), nullable=False, server_default='draft'),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_by', postgresql.UUID(as_uuid=False), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )

    # Create works table
    op.create_table(
        'works',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('title_it', sa.String(200), nullable=False),
        sa.Column('title_en', sa.String(200), nullable=True),
        sa.Column('description_it', sa.Text(), nullable=False, server_default=''),
        sa.Column('description_en', sa.Text(), nullable=True),
        sa.Column('class_name', sa.String(50), nullable=False, server_default=''),
        sa.Column('teacher_name', sa.String(100), nullable=False, server_default=''),
        sa.Column('school_year', sa.String(7), nullable=True, index=True),
        sa.Column('status', sa.Enum('draft', 'pending_review', 'needs_revision', 'published', 'archived', name='work_status'), nullable=False, server_default='draft', index=True),
        sa.Column('license', sa.Enum('none', 'CC BY', 'CC BY-SA', 'CC BY-NC', 'CC BY-NC-SA', name='license_type'), nullable=False, server_default='none'),
        sa.Column('tags', postgresql.JSON(), nullable=True),
        sa.Column('view_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('edit_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_by', postgresql.UUID(as_uuid=False), sa.ForeignKey('users.id'), nullable=False, index=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=True),
    )

    # Create work_themes join table
    op.create_table(
        'work_themes',
        sa.Column('work_id', postgresql.UUID(as_uuid=False), sa.ForeignKey('works.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('theme_id', postgresql.UUID(as_uuid=False), sa.ForeignKey('themes.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Create work_attachments table
    op.create_table(
        'work_attachments',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('work_id', postgresql.UUID(as_uuid=False), sa.ForeignKey('works.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('file_name', sa.String(255), nullable=False),
        sa.Column('file_size_bytes', sa.Integer(), nullable=False),
        sa.Column('file_type', sa.Enum('pdf', 'image', name='file_type'), nullable=False),
        sa.Column('mime_type', sa.String(100), nullable=False),
        sa.Column('storage_path', sa.Text(), nullable=False),
        sa.Column('thumbnail_path', sa.Text(), nullable=True),
        sa.Column('uploaded_by', postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Create work_links table
    op.create_table(
        'work_links',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('work_id', postgresql.UUID(as_uuid=False), sa.ForeignKey('works.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('link_type', sa.Enum('youtube', 'vimeo', 'drive', 'other', name='link_type'), nullable=False),
        sa.Column('custom_label', sa.String(100), nullable=True),
        sa.Column('preview_title', sa.String(200), nullable=True),
        sa.Column('preview_thumbnail_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Create work_reviews table
    op.create_table(
        'work_reviews',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('work_id', postgresql.UUID(as_uuid=False), sa.ForeignKey('works.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('reviewer_id', postgresql.UUID(as_uuid=False), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('action', sa.Enum('approved', 'rejected', name='review_action'), nullable=False),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Create qr_codes table
    op.create_table(
        'qr_codes',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('theme_id', postgresql.UUID(as_uuid=False), sa.ForeignKey('themes.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('short_code', sa.String(6), nullable=False, unique=True, index=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('scan_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('last_scanned_at', sa.DateTime(timezone=True), nullable=True),
    )

    # Create qr_scans table
    op.create_table(
        'qr_scans',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('qr_code_id', postgresql.UUID(as_uuid=False), sa.ForeignKey('qr_codes.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('theme_id', postgresql.UUID(as_uuid=False), nullable=True, index=True),
        sa.Column('scanned_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('hashed_ip', sa.String(64), nullable=False),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('device_type', sa.Enum('mobile', 'tablet', 'desktop', 'unknown', name='device_type'), nullable=False, server_default='unknown'),
        sa.Column('referer', sa.Text(), nullable=True),
    )

    # Create work_views table
    op.create_table(
        'work_views',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('work_id', postgresql.UUID(as_uuid=False), sa.ForeignKey('works.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('viewed_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('hashed_ip', sa.String(64), nullable=False),
        sa.Column('referrer', sa.Enum('theme_page', 'search', 'direct', 'external', name='referrer_type'), nullable=False, server_default='direct'),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('session_id', sa.String(100), nullable=True),
    )

    # Create config table
    op.create_table(
        'config',
        sa.Column('key', sa.String(100), primary_key=True),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_by', postgresql.UUID(as_uuid=False), nullable=True),
    )

    # Create audit_logs table
    op.create_table(
        'audit_logs',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=False), nullable=True, index=True),
        sa.Column('action', sa.String(50), nullable=False, index=True),
        sa.Column('resource_type', sa.String(50), nullable=False),
        sa.Column('resource_id', sa.String(100), nullable=True),
        sa.Column('details', postgresql.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(50), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Create indexes
    op.create_index('ix_works_created_at', 'works', ['created_at'])
    op.create_index('ix_works_published_at', 'works', ['published_at'])
    op.create_index('ix_qr_scans_scanned_at', 'qr_scans', ['scanned_at'])
    op.create_index('ix_work_views_viewed_at', 'work_views', ['viewed_at'])


def downgrade() -> None:
    op.drop_index('ix_work_views_viewed_at')
    op.drop_index('ix_qr_scans_scanned_at')
    op.drop_index('ix_works_published_at')
    op.drop_index('ix_works_created_at')
    op.drop_table('audit_logs')
    op.drop_table('config')
    op.drop_table('work_views')
    op.drop_table('qr_scans')
    op.drop_table('qr_codes')
    op.drop_table('work_reviews')
    op.drop_table('work_links')
    op.drop_table('work_attachments')
    op.drop_table('work_themes')
    op.drop_table('works')
    op.drop_table('themes')
    op.drop_table('auth_tokens')
    op.drop_table('api_keys')
    op.drop_table('users')
    for enum_name in ENUM_TYPES:
        op.execute(f'DROP TYPE IF EXISTS {enum_name}')
