"""initial schema

Revision ID: 0001_initial
Revises: 
Create Date: 2026-10-19
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'user_credits',
        sa.Column('user_id', sa.Uuid(), primary_key=True),
        sa.Column('credits', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.CheckConstraint('credits >= 0', name='ck_user_credits_non_negative'),
    )

    op.create_table(
        'business_categories',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.UniqueConstraint('name', name='uq_business_categories_name'),
    )

    op.create_table(
        'model_types',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.UniqueConstraint('name', name='uq_model_types_name'),
    )

    op.create_table(
        'generated_images',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('business_category_id', sa.Uuid(), nullable=True),
        sa.Column('model_type_id', sa.Uuid(), nullable=True),
        sa.Column('original_image_url', sa.Text(), nullable=False),
        sa.Column('generated_image_url', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['business_category_id'], ['business_categories.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['model_type_id'], ['model_types.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_generated_images_user_id', 'generated_images', ['user_id'])

    op.create_table(
        'social_media_captions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('caption', sa.Text(), nullable=False),
        sa.Column('hashtags', sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column(
            'image_ids',
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_social_media_captions_user_id', 'social_media_captions', ['user_id'])


def downgrade() -> None:
    op.drop_index('ix_social_media_captions_user_id', table_name='social_media_captions')
    op.drop_table('social_media_captions')
    op.drop_index('ix_generated_images_user_id', table_name='generated_images')
    op.drop_table('generated_images')
    op.drop_table('model_types')
    op.drop_table('business_categories')
    op.drop_table('user_credits')
