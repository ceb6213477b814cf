from sqlalchemy import text
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from promoshot.db.capabilities import probe_capabilities


async def test_image_url_column_detected(sessionmaker):
    caps = await probe_capabilities(sessionmaker)
    assert caps.caption_image_url is True


async def test_missing_image_url_column(sessionmaker):
    async with sessionmaker() as session:
        await session.execute(text('ALTER TABLE social_media_captions DROP COLUMN image_url'))
        await session.commit()

    caps = await probe_capabilities(sessionmaker)
    assert caps.caption_image_url is False


async def test_missing_table(tmp_path):
    engine = create_async_engine(f'sqlite+aiosqlite:///{tmp_path / "empty.db"}')
    caps = await probe_capabilities(async_sessionmaker(engine, expire_on_commit=False))
    await engine.dispose()
    assert caps.caption_image_url is False
