from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, CheckConstraint, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from promoshot.db.base import Base
from promoshot.utils.time import utcnow


JSONArray = JSON().with_variant(JSONB(), 'postgresql')


class UserCredits(Base):
    __tablename__ = 'user_credits'

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    credits: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (
        CheckConstraint('credits >= 0', name='ck_user_credits_non_negative'),
    )


class BusinessCategory(Base):
    __tablename__ = 'business_categories'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(128), unique=True)


class ModelType(Base):
    __tablename__ = 'model_types'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(128), unique=True)


class GeneratedImage(Base):
    __tablename__ = 'generated_images'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True)
    business_category_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey('business_categories.id'), nullable=True
    )
    model_type_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey('model_types.id'), nullable=True)
    original_image_url: Mapped[str] = mapped_column(Text)
    generated_image_url: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    business_category: Mapped['BusinessCategory | None'] = relationship()
    model_type: Mapped['ModelType | None'] = relationship()


class SocialMediaCaption(Base):
    __tablename__ = 'social_media_captions'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True)
    caption: Mapped[str] = mapped_column(Text)
    hashtags: Mapped[str] = mapped_column(Text, default='')
    # Superseded by image_url; still written for older readers.
    image_ids: Mapped[list] = mapped_column(JSONArray, default=list)
    # Added by migration 0002; may be missing on older databases.
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
