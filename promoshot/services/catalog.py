from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from promoshot.db.models import BusinessCategory, ModelType
from promoshot.services.errors import ValidationError
from promoshot.utils.logging import get_logger


logger = get_logger('catalog')

MODEL_REQUIRED_CATEGORIES = frozenset({'Fashion', 'Jewelry', 'Sportswear', 'Beauty & Cosmetics'})


def requires_model_type(category_name: str) -> bool:
    return category_name.strip() in MODEL_REQUIRED_CATEGORIES


def validate_generation_request(
    product_image_url: str,
    category_name: str,
    model_type_name: str | None,
) -> None:
    if not product_image_url.strip():
        raise ValidationError('productImageUrl is required')
    if not category_name.strip():
        raise ValidationError('categoryName is required')
    if requires_model_type(category_name) and not (model_type_name or '').strip():
        raise ValidationError(f'modelTypeName is required for {category_name.strip()}')


class CatalogService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_categories(self) -> list[BusinessCategory]:
        result = await self.session.execute(select(BusinessCategory).order_by(BusinessCategory.name))
        return list(result.scalars().all())

    async def list_model_types(self) -> list[ModelType]:
        result = await self.session.execute(select(ModelType).order_by(ModelType.name))
        return list(result.scalars().all())

    async def category_id(self, name: str) -> Optional[uuid.UUID]:
        result = await self.session.execute(select(BusinessCategory.id).where(BusinessCategory.name == name))
        return result.scalar_one_or_none()

    async def model_type_id(self, name: str | None) -> Optional[uuid.UUID]:
        if not name:
            return None
        result = await self.session.execute(select(ModelType.id).where(ModelType.name == name))
        return result.scalar_one_or_none()

    async def resolve_ids(
        self,
        category_name: str,
        model_type_name: str | None,
    ) -> tuple[Optional[uuid.UUID], Optional[uuid.UUID]]:
        category_id = await self.category_id(category_name)
        model_type_id = await self.model_type_id(model_type_name)
        if category_id is None:
            logger.info('category_not_found', category=category_name)
        if model_type_name and model_type_id is None:
            logger.info('model_type_not_found', model_type=model_type_name)
        return category_id, model_type_id
