from __future__ import annotations

import uuid
from typing import Any, Dict

import httpx
import jwt

from promoshot.config import Settings
from promoshot.services.errors import Unauthorized
from promoshot.utils.logging import get_logger


logger = get_logger('auth')


def bearer_token(header: str | None) -> str:
    raw = (header or '').strip()
    if raw[:7].lower() == 'bearer ':
        return raw[7:].strip()
    return ''


def _as_user_id(value: Any) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise Unauthorized('Invalid token') from None


class AuthClient:
    """Resolves the caller behind a bearer token.

    Tokens are decoded locally when the JWT secret is configured; otherwise the
    auth service's ``/user`` endpoint is asked, which is also what the caption
    handler always uses.
    """

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.settings = settings
        self._client = httpx.AsyncClient(timeout=30, transport=transport)

    async def close(self) -> None:
        await self._client.aclose()

    def decode_token(self, token: str) -> uuid.UUID:
        if not token:
            raise Unauthorized()
        try:
            payload = jwt.decode(
                token,
                self.settings.supabase_jwt_secret,
                algorithms=['HS256'],
                audience=self.settings.supabase_jwt_audience,
            )
        except jwt.PyJWTError as exc:
            logger.info('token_rejected', reason=str(exc))
            raise Unauthorized('Invalid token') from exc
        sub = payload.get('sub')
        if not sub:
            raise Unauthorized()
        return _as_user_id(sub)

    async def get_user(self, token: str) -> Dict[str, Any]:
        if not token:
            raise Unauthorized()
        headers = {
            'Authorization': f'Bearer {token}',
            'apikey': self.settings.supabase_anon_key,
        }
        try:
            resp = await self._client.get(f'{self.settings.auth_base_url}/user', headers=headers)
        except httpx.HTTPError as exc:
            logger.warning('auth_lookup_failed', error=str(exc))
            raise Unauthorized() from exc
        if resp.status_code != 200:
            raise Unauthorized()
        data = resp.json()
        if not isinstance(data, dict) or not data.get('id'):
            raise Unauthorized()
        return data

    async def current_user_id(self, token: str) -> uuid.UUID:
        user = await self.get_user(token)
        return _as_user_id(user['id'])

    async def resolve_user_id(self, token: str) -> uuid.UUID:
        if self.settings.supabase_jwt_secret:
            return self.decode_token(token)
        if not token:
            raise Unauthorized()
        return await self.current_user_id(token)
