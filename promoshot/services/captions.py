from __future__ import annotations

import asyncio
import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from promoshot.config import Settings, get_settings
from promoshot.db.capabilities import SchemaCapabilities
from promoshot.db.models import BusinessCategory, GeneratedImage, SocialMediaCaption
from promoshot.services.errors import PersistenceError, ValidationError
from promoshot.services.gateway import GatewayClient
from promoshot.services.prompts import build_caption_prompt
from promoshot.services.storage import StorageClient
from promoshot.utils.logging import get_logger
from promoshot.utils.text import first_nonempty_line, join_hashtags, split_hashtags


logger = get_logger('captions')

FALLBACK_CAPTION = 'Check out our amazing product!'
FALLBACK_HASHTAGS = ('marketing', 'product', 'brandnew')
ITEM_FAILURE_CAPTION = 'Failed to generate caption for this image. Please try again.'
ITEM_FAILURE_HASHTAGS = ('error', 'retry')
BATCH_FAILURE_CAPTION = 'Failed to generate caption. Please try again.'
BATCH_FAILURE_HASHTAGS = ('error',)


@dataclass
class CaptionDraft:
    caption: str
    hashtags: List[str] = field(default_factory=list)

    @classmethod
    def fallback(cls) -> 'CaptionDraft':
        return cls(FALLBACK_CAPTION, list(FALLBACK_HASHTAGS))


@dataclass
class CaptionResult:
    image_url: str
    caption: str
    hashtags: List[str]
    caption_id: Optional[uuid.UUID] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'image_url': self.image_url,
            'caption': self.caption,
            'hashtags': list(self.hashtags),
            'captionId': str(self.caption_id) if self.caption_id else None,
        }


@dataclass(frozen=True)
class SourceImage:
    id: uuid.UUID
    url: str
    category_name: Optional[str]


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    decoder = json.JSONDecoder()
    start = text.find('{')
    while start != -1:
        try:
            value, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            value = None
        if isinstance(value, dict):
            return value
        start = text.find('{', start + 1)
    return None


def _normalize_hashtags(value: Any) -> List[str]:
    if isinstance(value, str):
        return split_hashtags(value)
    if isinstance(value, list):
        tags: List[str] = []
        for item in value:
            if isinstance(item, (str, int, float)):
                tags.extend(split_hashtags(str(item)))
        return tags
    return []


def parse_caption_text(text: str) -> CaptionDraft:
    payload = extract_json_object(text or '')
    if payload is None:
        return CaptionDraft(first_nonempty_line(text or '') or FALLBACK_CAPTION, list(FALLBACK_HASHTAGS))
    caption = payload.get('caption')
    caption = caption.strip() if isinstance(caption, str) else ''
    hashtags = _normalize_hashtags(payload.get('hashtags'))
    return CaptionDraft(caption or FALLBACK_CAPTION, hashtags or list(FALLBACK_HASHTAGS))


def _parse_ids(raw_ids: Iterable[Any]) -> List[uuid.UUID]:
    ids: List[uuid.UUID] = []
    for raw in raw_ids:
        try:
            ids.append(uuid.UUID(str(raw)))
        except ValueError:
            logger.info('image_id_ignored', image_id=str(raw))
    return list(dict.fromkeys(ids))


class CaptionService:
    """Captions a batch of the caller's images, one independent task per image.

    Items never fail the batch: gateway errors degrade to the generic caption and
    persistence errors only drop the ``captionId``.
    """

    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        gateway: GatewayClient,
        storage: StorageClient,
        capabilities: SchemaCapabilities,
        settings: Settings | None = None,
    ) -> None:
        self.sessionmaker = sessionmaker
        self.gateway = gateway
        self.storage = storage
        self.capabilities = capabilities
        self.settings = settings or get_settings()

    async def generate(self, user_id: uuid.UUID, image_ids: List[Any]) -> List[CaptionResult]:
        if not image_ids:
            raise ValidationError('No images selected')

        images = await self._fetch_images(user_id, _parse_ids(image_ids))
        outcomes = await asyncio.gather(
            *(self._caption_one(user_id, image) for image in images),
            return_exceptions=True,
        )

        results: List[CaptionResult] = []
        for image, outcome in zip(images, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.error('caption_task_crashed', image_id=str(image.id), error=repr(outcome))
                results.append(
                    CaptionResult(image.url or '', BATCH_FAILURE_CAPTION, list(BATCH_FAILURE_HASHTAGS))
                )
                continue
            results.append(outcome)

        valid = [item for item in results if item.caption and item.image_url]
        if not valid:
            raise PersistenceError('Failed to generate any captions. Please try again.')
        logger.info('captions_generated', user_id=str(user_id), requested=len(image_ids), returned=len(valid))
        return valid

    async def _fetch_images(self, user_id: uuid.UUID, ids: List[uuid.UUID]) -> List[SourceImage]:
        if not ids:
            raise PersistenceError('Failed to fetch images')
        try:
            async with self.sessionmaker() as session:
                result = await session.execute(
                    select(GeneratedImage.id, GeneratedImage.generated_image_url, BusinessCategory.name)
                    .outerjoin(BusinessCategory, BusinessCategory.id == GeneratedImage.business_category_id)
                    .where(GeneratedImage.id.in_(ids), GeneratedImage.user_id == user_id)
                )
                rows = result.all()
        except SQLAlchemyError as exc:
            logger.error('images_fetch_failed', user_id=str(user_id), error=str(exc))
            raise PersistenceError('Failed to fetch images') from exc
        if not rows:
            raise PersistenceError('Failed to fetch images')

        by_id = {row[0]: SourceImage(id=row[0], url=row[1] or '', category_name=row[2]) for row in rows}
        return [by_id[image_id] for image_id in ids if image_id in by_id]

    async def _caption_one(self, user_id: uuid.UUID, image: SourceImage) -> CaptionResult:
        try:
            image_url = await self.storage.resign(image.url, self.settings.caption_url_ttl_seconds)
            draft = await self._draft(image_url, image.category_name)
            caption_id = await self._persist(user_id, image.id, image_url, draft)
            return CaptionResult(image_url, draft.caption, draft.hashtags, caption_id)
        except Exception as exc:
            logger.error('caption_item_failed', image_id=str(image.id), error=str(exc))
            return CaptionResult(image.url, ITEM_FAILURE_CAPTION, list(ITEM_FAILURE_HASHTAGS))

    async def _draft(self, image_url: str, category_name: str | None) -> CaptionDraft:
        prompt = build_caption_prompt(category_name)
        try:
            response = await self.gateway.complete(self.settings.caption_model, prompt, image_url)
        except Exception as exc:
            logger.warning('caption_gateway_failed', error=str(exc))
            return CaptionDraft.fallback()
        return parse_caption_text(response.text())

    async def _persist(
        self,
        user_id: uuid.UUID,
        image_id: uuid.UUID,
        image_url: str,
        draft: CaptionDraft,
    ) -> Optional[uuid.UUID]:
        values: Dict[str, Any] = {
            'user_id': user_id,
            'caption': draft.caption,
            'hashtags': join_hashtags(draft.hashtags),
            'image_ids': [str(image_id)],
        }
        if self.capabilities.caption_image_url:
            values['image_url'] = image_url
        try:
            async with self.sessionmaker() as session:
                result = await session.execute(
                    insert(SocialMediaCaption).values(**values).returning(SocialMediaCaption.id)
                )
                caption_id = result.scalar_one()
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error('caption_save_failed', image_id=str(image_id), error=str(exc))
            return None
        return caption_id
