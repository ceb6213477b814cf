from sqlalchemy import func, select

from promoshot.db.models import BusinessCategory, ModelType
from promoshot.scripts.seed import DEFAULT_CATEGORIES, DEFAULT_MODEL_TYPES, seed


async def test_seed_is_idempotent(sessionmaker, catalog):
    first = await seed(sessionmaker)
    second = await seed(sessionmaker)

    assert first == len(DEFAULT_CATEGORIES) + len(DEFAULT_MODEL_TYPES) - len(catalog)
    assert second == 0
    async with sessionmaker() as session:
        categories = await session.scalar(select(func.count()).select_from(BusinessCategory))
        model_types = await session.scalar(select(func.count()).select_from(ModelType))
    assert categories == len(DEFAULT_CATEGORIES)
    assert model_types == len(DEFAULT_MODEL_TYPES)
