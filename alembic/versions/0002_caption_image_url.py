"""store the resolved image url on captions

Revision ID: 0002_caption_image_url
Revises: 0001_initial
Create Date: 2026-10-19
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = '0002_caption_image_url'
down_revision = '0001_initial'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column('social_media_captions', sa.Column('image_url', sa.Text(), nullable=True))


def downgrade() -> None:
    op.drop_column('social_media_captions', 'image_url')
