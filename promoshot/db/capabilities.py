from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import inspect
from sqlalchemy.engine import Connection
from sqlalchemy.exc import NoSuchTableError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from promoshot.db.models import SocialMediaCaption
from promoshot.utils.logging import get_logger


logger = get_logger('capabilities')


@dataclass(frozen=True)
class SchemaCapabilities:
    caption_image_url: bool


def _caption_columns(connection: Connection) -> set[str]:
    try:
        columns = inspect(connection).get_columns(SocialMediaCaption.__tablename__)
    except NoSuchTableError:
        return set()
    return {column['name'] for column in columns}


async def probe_capabilities(sessionmaker: async_sessionmaker[AsyncSession]) -> SchemaCapabilities:
    async with sessionmaker() as session:
        connection = await session.connection()
        columns = await connection.run_sync(_caption_columns)
    caps = SchemaCapabilities(caption_image_url='image_url' in columns)
    if not caps.caption_image_url:
        logger.warning('caption_image_url_column_missing')
    logger.info('schema_capabilities', caption_image_url=caps.caption_image_url)
    return caps
