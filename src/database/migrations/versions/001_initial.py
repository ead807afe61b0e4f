"""
Initial migration - Create reports table

Revision ID: 001_initial
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

# Revision identifiers
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the reports table."""

    op.create_table(
        'reports',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('category', sa.String(20), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.Column('location_mode', sa.String(10), nullable=False, server_default='auto'),
        sa.Column('photo_url', sa.Text(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('latitude >= -90 AND latitude <= 90', name='ck_report_latitude'),
        sa.CheckConstraint('longitude >= -180 AND longitude <= 180', name='ck_report_longitude'),
        sa.CheckConstraint('length(photo_url) > 0', name='ck_report_photo_url'),
    )

    op.create_index('idx_report_created_at', 'reports', ['created_at'])
    op.create_index('idx_report_category_status', 'reports', ['category', 'status'])


def downgrade() -> None:
    """Drop the reports table."""
    op.drop_index('idx_report_category_status', table_name='reports')
    op.drop_index('idx_report_created_at', table_name='reports')
    op.drop_table('reports')
