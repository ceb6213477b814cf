from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from promoshot.config import Settings, get_settings
from promoshot.db.capabilities import SchemaCapabilities
from promoshot.db.models import BusinessCategory, GeneratedImage, ModelType, SocialMediaCaption
from promoshot.services.storage import StorageClient
from promoshot.utils.text import split_hashtags


class LibraryService:
    """Read-only views over a user's generated images and captions."""

    def __init__(self, session: AsyncSession, storage: StorageClient, settings: Settings | None = None) -> None:
        self.session = session
        self.storage = storage
        self.settings = settings or get_settings()

    async def images(self, user_id: uuid.UUID, limit: int = 50) -> List[Dict[str, Any]]:
        result = await self.session.execute(
            select(GeneratedImage, BusinessCategory.name, ModelType.name)
            .outerjoin(BusinessCategory, BusinessCategory.id == GeneratedImage.business_category_id)
            .outerjoin(ModelType, ModelType.id == GeneratedImage.model_type_id)
            .where(GeneratedImage.user_id == user_id)
            .order_by(GeneratedImage.created_at.desc())
            .limit(limit)
        )
        items = []
        for image, category_name, model_type_name in result.all():
            url = await self.storage.resign(image.generated_image_url, self.settings.caption_url_ttl_seconds)
            items.append(
                {
                    'id': str(image.id),
                    'generated_image_url': url,
                    'original_image_url': image.original_image_url,
                    'category': category_name,
                    'model_type': model_type_name,
                    'created_at': image.created_at.isoformat() if image.created_at else None,
                }
            )
        return items

    async def captions(
        self,
        user_id: uuid.UUID,
        capabilities: SchemaCapabilities,
        image_ids: Optional[List[str]] = None,
        limit: int = 50,
    ) -> List[Dict[str, Any]]:
        """Recent captions, optionally only those covering one of ``image_ids``.

        Captions stored without an ``image_url`` get one from the first image they
        reference, re-signed when it is a storage path.
        """
        columns = [
            SocialMediaCaption.id,
            SocialMediaCaption.caption,
            SocialMediaCaption.hashtags,
            SocialMediaCaption.image_ids,
            SocialMediaCaption.created_at,
        ]
        if capabilities.caption_image_url:
            columns.append(SocialMediaCaption.image_url)
        result = await self.session.execute(
            select(*columns)
            .where(SocialMediaCaption.user_id == user_id)
            .order_by(SocialMediaCaption.created_at.desc())
            .limit(limit)
        )
        rows = result.mappings().all()
        if image_ids:
            wanted = {_normalize_id(value) for value in image_ids}
            rows = [row for row in rows if wanted.intersection(_normalize_id(v) for v in row['image_ids'] or [])]

        fallback_urls = await self._first_image_urls(
            user_id, [row['image_ids'] for row in rows if not row.get('image_url')]
        )
        items = []
        for row in rows:
            linked = list(row['image_ids'] or [])
            image_url = row.get('image_url') or (fallback_urls.get(_normalize_id(linked[0])) if linked else None)
            items.append(
                {
                    'id': str(row['id']),
                    'captionId': str(row['id']),
                    'caption': row['caption'],
                    'hashtags': split_hashtags(row['hashtags'] or ''),
                    'image_ids': linked,
                    'image_url': image_url,
                    'created_at': row['created_at'].isoformat() if row['created_at'] else None,
                }
            )
        return items

    async def _first_image_urls(self, user_id: uuid.UUID, linked: List[Any]) -> Dict[str, str]:
        ids = []
        for values in linked:
            if not values:
                continue
            try:
                ids.append(uuid.UUID(str(values[0])))
            except ValueError:
                continue
        if not ids:
            return {}
        result = await self.session.execute(
            select(GeneratedImage.id, GeneratedImage.generated_image_url).where(
                GeneratedImage.id.in_(list(dict.fromkeys(ids))), GeneratedImage.user_id == user_id
            )
        )
        urls = {}
        for image_id, stored_url in result.all():
            urls[str(image_id)] = await self.storage.resign(stored_url or '', self.settings.caption_url_ttl_seconds)
        return urls


def _normalize_id(value: Any) -> str:
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        return str(value)
