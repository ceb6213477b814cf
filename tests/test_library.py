import uuid

from conftest import SUPABASE_URL
from promoshot.db.capabilities import SchemaCapabilities
from promoshot.db.models import GeneratedImage, SocialMediaCaption
from promoshot.services.library import LibraryService
from promoshot.services.storage import StorageClient


WITH_COLUMN = SchemaCapabilities(caption_image_url=True)
WITHOUT_COLUMN = SchemaCapabilities(caption_image_url=False)


async def _add_image(sessionmaker, user_id, url):
    image = GeneratedImage(user_id=user_id, original_image_url='https://cdn.test/o.png', generated_image_url=url)
    async with sessionmaker() as session:
        session.add(image)
        await session.commit()
    return image.id


async def _add_caption(sessionmaker, user_id, image_ids, image_url=None, caption='Hello'):
    row = SocialMediaCaption(
        user_id=user_id,
        caption=caption,
        hashtags='summer sale',
        image_ids=[str(image_id) for image_id in image_ids],
        image_url=image_url,
    )
    async with sessionmaker() as session:
        session.add(row)
        await session.commit()
    return row.id


async def _captions(settings, sessionmaker, upstream, user_id, capabilities, image_ids=None):
    storage = StorageClient(settings, transport=upstream.transport)
    try:
        async with sessionmaker() as session:
            return await LibraryService(session, storage, settings).captions(
                user_id, capabilities, image_ids=image_ids
            )
    finally:
        await storage.close()


async def test_filter_by_image_ids(settings, sessionmaker, upstream):
    user_id = uuid.uuid4()
    first, second = uuid.uuid4(), uuid.uuid4()
    wanted = await _add_caption(sessionmaker, user_id, [first], 'https://cdn.test/first.png', caption='First')
    await _add_caption(sessionmaker, user_id, [second], 'https://cdn.test/second.png', caption='Second')

    items = await _captions(settings, sessionmaker, upstream, user_id, WITH_COLUMN, image_ids=[str(first)])

    assert [item['captionId'] for item in items] == [str(wanted)]
    assert items[0]['image_url'] == 'https://cdn.test/first.png'
    assert items[0]['hashtags'] == ['summer', 'sale']
    assert upstream.signed == []


async def test_without_filter_lists_recent_captions(settings, sessionmaker, upstream):
    user_id = uuid.uuid4()
    await _add_caption(sessionmaker, user_id, [uuid.uuid4()], 'https://cdn.test/a.png', caption='Older')
    await _add_caption(sessionmaker, user_id, [uuid.uuid4()], 'https://cdn.test/b.png', caption='Newer')
    await _add_caption(sessionmaker, uuid.uuid4(), [uuid.uuid4()], 'https://cdn.test/c.png', caption='Foreign')

    items = await _captions(settings, sessionmaker, upstream, user_id, WITH_COLUMN)

    assert [item['caption'] for item in items] == ['Newer', 'Older']


async def test_missing_column_resolves_url_from_first_image(settings, sessionmaker, upstream):
    user_id = uuid.uuid4()
    stored = await _add_image(sessionmaker, user_id, f'generated-images/{user_id}/7-generated.png')
    absolute = await _add_image(sessionmaker, user_id, 'https://cdn.test/absolute.png')
    await _add_caption(sessionmaker, user_id, [stored], caption='Stored path')
    await _add_caption(sessionmaker, user_id, [absolute], caption='Absolute')

    items = await _captions(settings, sessionmaker, upstream, user_id, WITHOUT_COLUMN, image_ids=[str(stored)])

    [item] = items
    assert item['caption'] == 'Stored path'
    assert item['image_url'] == (
        f'{SUPABASE_URL}/storage/v1/object/sign/generated-images/{user_id}/7-generated.png?token=signed'
    )
    assert upstream.signed == [('generated-images', f'{user_id}/7-generated.png', 3600)]

    items = await _captions(settings, sessionmaker, upstream, user_id, WITHOUT_COLUMN, image_ids=[str(absolute)])
    assert [item['image_url'] for item in items] == ['https://cdn.test/absolute.png']


async def test_missing_column_ignores_other_users_images(settings, sessionmaker, upstream):
    user_id = uuid.uuid4()
    foreign = await _add_image(sessionmaker, uuid.uuid4(), 'https://cdn.test/foreign.png')
    await _add_caption(sessionmaker, user_id, [foreign])

    [item] = await _captions(settings, sessionmaker, upstream, user_id, WITHOUT_COLUMN)

    assert item['image_url'] is None
