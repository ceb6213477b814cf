from __future__ import annotations

import base64
import json
import uuid
from typing import Any, Callable, Dict, List, Tuple

import httpx
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from promoshot.config import Settings
from promoshot.db.base import Base
from promoshot.db.models import BusinessCategory, ModelType, UserCredits


SUPABASE_URL = 'https://project.supabase.test'
GATEWAY_HOST = 'gateway.test'
GATEWAY_URL = f'https://{GATEWAY_HOST}/v1/chat/completions'
PNG_BYTES = b'\x89PNG\r\n\x1a\nfake-image'


def image_reply(data: bytes = PNG_BYTES, mime: str = 'image/png') -> httpx.Response:
    encoded = base64.b64encode(data).decode('ascii')
    return httpx.Response(
        200,
        json={
            'choices': [
                {
                    'message': {
                        'content': 'Here is your image.',
                        'images': [{'type': 'image_url', 'image_url': {'url': f'data:{mime};base64,{encoded}'}}],
                    }
                }
            ]
        },
    )


def text_reply(text: str) -> httpx.Response:
    return httpx.Response(200, json={'choices': [{'message': {'content': text}}]})


def caption_reply(caption: str, hashtags: List[str]) -> httpx.Response:
    return text_reply(json.dumps({'caption': caption, 'hashtags': hashtags}))


def prompt_image_url(body: Dict[str, Any]) -> str:
    return body['messages'][0]['content'][1]['image_url']['url']


class FakeUpstream:
    """Auth, storage and AI gateway endpoints behind one ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.users: Dict[str, uuid.UUID] = {}
        self.objects: Dict[Tuple[str, str], Tuple[bytes, str]] = {}
        self.uploads: List[Tuple[str, str]] = []
        self.signed: List[Tuple[str, str, int]] = []
        self.gateway_calls: List[Dict[str, Any]] = []
        self.gateway: Callable[[Dict[str, Any]], httpx.Response] = lambda body: image_reply()
        self.fail_sign = False
        self.fail_upload = False
        self.fail_download = False

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def add_user(self, token: str | None = None) -> Tuple[str, uuid.UUID]:
        token = token or f'token-{uuid.uuid4().hex}'
        user_id = uuid.uuid4()
        self.users[token] = user_id
        return token, user_id

    def handle(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == GATEWAY_HOST:
            body = json.loads(request.content)
            self.gateway_calls.append(body)
            return self.gateway(body)

        path = request.url.path
        if path == '/auth/v1/user':
            token = request.headers.get('authorization', '')[len('Bearer '):]
            user_id = self.users.get(token)
            if user_id is None:
                return httpx.Response(401, json={'msg': 'invalid JWT'})
            return httpx.Response(200, json={'id': str(user_id), 'aud': 'authenticated'})

        prefix = '/storage/v1/object/'
        if not path.startswith(prefix):
            return httpx.Response(404, json={'error': 'not found'})
        rest = path[len(prefix):]

        if rest.startswith('sign/'):
            bucket, _, key = rest[len('sign/'):].partition('/')
            if request.method == 'GET':
                if (bucket, key) not in self.objects:
                    return httpx.Response(404, json={'error': 'not found'})
                data, mime = self.objects[(bucket, key)]
                return httpx.Response(200, content=data, headers={'content-type': mime})
            if self.fail_sign:
                return httpx.Response(500, json={'error': 'sign failed'})
            expires_in = json.loads(request.content)['expiresIn']
            self.signed.append((bucket, key, expires_in))
            return httpx.Response(200, json={'signedURL': f'/object/sign/{bucket}/{key}?token=signed'})

        if rest.startswith('authenticated/'):
            bucket, _, key = rest[len('authenticated/'):].partition('/')
            if self.fail_download or (bucket, key) not in self.objects:
                return httpx.Response(404, json={'error': 'not found'})
            data, mime = self.objects[(bucket, key)]
            return httpx.Response(200, content=data, headers={'content-type': mime})

        bucket, _, key = rest.partition('/')
        if self.fail_upload:
            return httpx.Response(500, json={'error': 'upload failed'})
        mime = request.headers.get('content-type', 'application/octet-stream')
        self.objects[(bucket, key)] = (request.content, mime)
        self.uploads.append((bucket, key))
        return httpx.Response(200, json={'Key': f'{bucket}/{key}'})


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL=f'sqlite+aiosqlite:///{tmp_path / "promoshot.db"}',
        SUPABASE_URL=SUPABASE_URL,
        SUPABASE_ANON_KEY='anon-key',
        SUPABASE_SERVICE_ROLE_KEY='service-key',
        SUPABASE_JWT_SECRET='',
        AI_GATEWAY_URL=GATEWAY_URL,
        AI_GATEWAY_API_KEY='gateway-key',
        LOG_LEVEL='WARNING',
    )


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
async def sessionmaker(settings):
    engine = create_async_engine(settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def catalog(sessionmaker) -> Dict[str, uuid.UUID]:
    rows = [BusinessCategory(name=name) for name in ('Fashion', 'Electronics')]
    rows += [ModelType(name=name) for name in ('Female', 'Male')]
    async with sessionmaker() as session:
        session.add_all(rows)
        await session.commit()
    return {row.name: row.id for row in rows}


async def set_credits(sessionmaker, user_id: uuid.UUID, credits: int) -> None:
    async with sessionmaker() as session:
        row = await session.get(UserCredits, user_id)
        if row is None:
            session.add(UserCredits(user_id=user_id, credits=credits))
        else:
            row.credits = credits
        await session.commit()


async def get_credits(sessionmaker, user_id: uuid.UUID) -> int | None:
    async with sessionmaker() as session:
        row = await session.get(UserCredits, user_id)
        return None if row is None else row.credits
