from __future__ import annotations

import asyncio

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from promoshot.config import get_settings
from promoshot.db.models import BusinessCategory, ModelType
from promoshot.db.session import create_engine, create_sessionmaker
from promoshot.utils.logging import configure_logging, get_logger


DEFAULT_CATEGORIES = [
    'Fashion',
    'Jewelry',
    'Sportswear',
    'Beauty & Cosmetics',
    'Electronics',
    'Home & Living',
    'Food & Beverage',
    'Other',
]

DEFAULT_MODEL_TYPES = ['Male', 'Female', 'Kid', 'Mannequin']

logger = get_logger('seed')


async def seed(sessionmaker: async_sessionmaker[AsyncSession]) -> int:
    created = 0
    async with sessionmaker() as session:
        for model, names in ((BusinessCategory, DEFAULT_CATEGORIES), (ModelType, DEFAULT_MODEL_TYPES)):
            result = await session.execute(select(model.name).where(model.name.in_(names)))
            existing = set(result.scalars().all())
            for name in names:
                if name in existing:
                    continue
                session.add(model(name=name))
                created += 1
        await session.commit()
    return created


async def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    engine = create_engine(settings)
    sessionmaker = create_sessionmaker(engine)
    created = await seed(sessionmaker)
    logger.info('seed_complete', created=created)
    await engine.dispose()


def run() -> None:
    asyncio.run(main())


if __name__ == '__main__':
    run()
