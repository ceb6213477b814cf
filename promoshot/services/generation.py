from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from promoshot.config import Settings, get_settings
from promoshot.db.models import GeneratedImage
from promoshot.services.catalog import CatalogService
from promoshot.services.credits import CreditsService
from promoshot.services.errors import InsufficientCredits, PersistenceError
from promoshot.services.gateway import GatewayClient
from promoshot.services.prompts import build_marketing_prompt
from promoshot.services.storage import StorageClient
from promoshot.utils.logging import get_logger
from promoshot.utils.time import epoch_millis, utcnow


logger = get_logger('generation')

IMAGE_EXTENSIONS = {'image/png': 'png', 'image/jpeg': 'jpg', 'image/webp': 'webp', 'image/gif': 'gif'}


@dataclass
class GenerationResult:
    image_id: uuid.UUID
    image_url: str
    credits_remaining: int


class ImageGenerationService:
    def __init__(
        self,
        session: AsyncSession,
        gateway: GatewayClient,
        storage: StorageClient,
        settings: Settings | None = None,
    ) -> None:
        self.session = session
        self.gateway = gateway
        self.storage = storage
        self.settings = settings or get_settings()

    async def generate(
        self,
        user_id: uuid.UUID,
        product_image_url: str,
        category_name: str,
        model_type_name: str | None = None,
    ) -> GenerationResult:
        credits = CreditsService(self.session)
        balance = await credits.require_credit(user_id)
        logger.info(
            'generation_started',
            user_id=str(user_id),
            category=category_name,
            model_type=model_type_name,
            balance=balance,
        )

        reserved_remaining: int | None = None
        if self.settings.reserve_credits_upfront:
            reserved_remaining = await credits.debit(user_id)
            if reserved_remaining is None:
                await self.session.rollback()
                raise InsufficientCredits()
            await self.session.commit()

        try:
            image = await self._produce(user_id, product_image_url, category_name, model_type_name)
        except BaseException:
            # Runs on cancellation as well.
            refund = reserved_remaining is not None and self.settings.refund_on_fail
            await asyncio.shield(self._recover(user_id, refund))
            raise

        await self.session.commit()
        if reserved_remaining is not None:
            remaining = reserved_remaining
        else:
            remaining = await self._debit_after_success(user_id, balance)

        logger.info('generation_complete', user_id=str(user_id), image_id=str(image.id), credits_remaining=remaining)
        return GenerationResult(image_id=image.id, image_url=image.generated_image_url, credits_remaining=remaining)

    async def _produce(
        self,
        user_id: uuid.UUID,
        product_image_url: str,
        category_name: str,
        model_type_name: str | None,
    ) -> GeneratedImage:
        input_image_url = await self.storage.inline_private_image(product_image_url)
        prompt = build_marketing_prompt(category_name, model_type_name)

        image_bytes, mime = await self.gateway.generate_image(self.settings.image_model, prompt, input_image_url)
        logger.info('image_generated', user_id=str(user_id), size=len(image_bytes), mime=mime)

        bucket = self.settings.generated_images_bucket
        if mime not in IMAGE_EXTENSIONS:
            mime = 'image/png'
        extension = IMAGE_EXTENSIONS[mime]
        path = f'{user_id}/{epoch_millis()}-generated.{extension}'
        await self.storage.upload(bucket, path, image_bytes, mime)
        signed_url = await self.storage.create_signed_url(bucket, path, self.settings.generated_url_ttl_seconds)
        logger.info('image_stored', bucket=bucket, path=path)

        category_id, model_type_id = await self._resolve_reference_ids(category_name, model_type_name)

        image = GeneratedImage(
            user_id=user_id,
            business_category_id=category_id,
            model_type_id=model_type_id,
            original_image_url=product_image_url,
            generated_image_url=signed_url,
            created_at=utcnow(),
        )
        try:
            self.session.add(image)
            await self.session.flush()
        except SQLAlchemyError as exc:
            logger.error('image_record_insert_failed', user_id=str(user_id), path=path, error=str(exc))
            raise PersistenceError('Failed to save image record') from exc
        return image

    async def _resolve_reference_ids(self, category_name: str, model_type_name: str | None):
        try:
            return await CatalogService(self.session).resolve_ids(category_name, model_type_name)
        except SQLAlchemyError as exc:
            logger.warning('reference_lookup_failed', error=str(exc))
            await self.session.rollback()
            return None, None

    async def _recover(self, user_id: uuid.UUID, refund: bool) -> None:
        try:
            await self.session.rollback()
        except SQLAlchemyError as exc:
            logger.warning('generation_rollback_failed', user_id=str(user_id), error=str(exc))
        if refund:
            await self._refund(user_id)

    async def _refund(self, user_id: uuid.UUID) -> None:
        async with AsyncSession(self.session.bind, expire_on_commit=False) as session:
            try:
                await CreditsService(session).refund(user_id)
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.error('credit_refund_failed', user_id=str(user_id), error=str(exc))
                return
        logger.info('credit_refunded', user_id=str(user_id))

    async def _debit_after_success(self, user_id: uuid.UUID, balance: int) -> int:
        # The image is already recorded; a failed debit is logged, never surfaced.
        try:
            remaining = await CreditsService(self.session).debit(user_id)
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.error('credit_debit_failed', user_id=str(user_id), error=str(exc))
            return balance - 1
        if remaining is None:
            logger.error('credit_debit_skipped', user_id=str(user_id), balance=balance)
            return balance - 1
        return remaining
