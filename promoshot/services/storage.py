from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Dict
from urllib.parse import quote, unquote, urlparse

import httpx

from promoshot.config import Settings
from promoshot.services.errors import StorageError
from promoshot.utils.logging import get_logger
from promoshot.utils.text import clamp_text


logger = get_logger('storage')

OBJECT_ACCESS_MARKERS = {'public', 'authenticated', 'sign'}
DEFAULT_IMAGE_MIME = 'image/png'


@dataclass(frozen=True)
class StorageObject:
    bucket: str
    path: str


def parse_storage_url(url: str) -> StorageObject | None:
    """Map an object-store URL (``…/object/<access>/<bucket>/<path>``) to its object."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if parsed.scheme not in ('http', 'https'):
        return None
    segments = parsed.path.split('/')
    for idx, segment in enumerate(segments):
        if segment not in OBJECT_ACCESS_MARKERS or idx == 0 or segments[idx - 1] != 'object':
            continue
        rest = segments[idx + 1:]
        if len(rest) >= 2 and rest[0] and rest[1]:
            return StorageObject(bucket=rest[0], path=unquote('/'.join(rest[1:])))
        return None
    return None


def is_absolute_url(value: str) -> bool:
    return value.startswith('http://') or value.startswith('https://')


class StorageClient:
    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.settings = settings
        self.base_url = settings.storage_base_url
        self._client = httpx.AsyncClient(timeout=60, transport=transport)

    async def close(self) -> None:
        await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        key = self.settings.supabase_service_role_key
        return {
            'Authorization': f'Bearer {key}',
            'apikey': key,
        }

    def _object_url(self, kind: str, bucket: str, path: str) -> str:
        prefix = f'{self.base_url}/object'
        if kind:
            prefix = f'{prefix}/{kind}'
        return f'{prefix}/{bucket}/{quote(path)}'

    async def upload(self, bucket: str, path: str, data: bytes, content_type: str = DEFAULT_IMAGE_MIME) -> str:
        headers = self._headers()
        headers['Content-Type'] = content_type
        headers['x-upsert'] = 'false'
        try:
            resp = await self._client.post(self._object_url('', bucket, path), headers=headers, content=data)
        except httpx.HTTPError as exc:
            logger.error('storage_upload_failed', bucket=bucket, path=path, error=str(exc))
            raise StorageError('Failed to upload generated image') from exc
        if resp.status_code >= 400:
            logger.error(
                'storage_upload_failed',
                bucket=bucket,
                path=path,
                status=resp.status_code,
                body=clamp_text(resp.text, 500),
            )
            raise StorageError('Failed to upload generated image')
        return path

    async def download(self, bucket: str, path: str) -> tuple[bytes, str]:
        try:
            resp = await self._client.get(self._object_url('authenticated', bucket, path), headers=self._headers())
        except httpx.HTTPError as exc:
            raise StorageError('Failed to download object') from exc
        if resp.status_code >= 400:
            raise StorageError(f'Failed to download object: {resp.status_code}')
        content_type = resp.headers.get('content-type', DEFAULT_IMAGE_MIME).split(';')[0].strip()
        return resp.content, content_type or DEFAULT_IMAGE_MIME

    async def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        try:
            resp = await self._client.post(
                self._object_url('sign', bucket, path),
                headers=self._headers(),
                json={'expiresIn': int(expires_in)},
            )
        except httpx.HTTPError as exc:
            logger.error('storage_sign_failed', bucket=bucket, path=path, error=str(exc))
            raise StorageError('Failed to create signed URL') from exc
        if resp.status_code >= 400:
            logger.error(
                'storage_sign_failed',
                bucket=bucket,
                path=path,
                status=resp.status_code,
                body=clamp_text(resp.text, 500),
            )
            raise StorageError('Failed to create signed URL')
        data = resp.json()
        signed = str((data or {}).get('signedURL') or (data or {}).get('signedUrl') or '').strip()
        if not signed:
            raise StorageError('Failed to create signed URL')
        if is_absolute_url(signed):
            return signed
        return f'{self.base_url}/{signed.lstrip("/")}'

    async def inline_private_image(self, url: str) -> str:
        """Return ``url`` as a base64 data URI when it points into the object store.

        The AI gateway cannot read private objects, so their bytes are fetched with
        the service key. Any failure keeps the original URL.
        """
        target = parse_storage_url(url)
        if target is None:
            return url
        try:
            data, content_type = await self.download(target.bucket, target.path)
        except StorageError as exc:
            logger.warning('product_image_inline_failed', bucket=target.bucket, path=target.path, error=str(exc))
            return url
        encoded = base64.b64encode(data).decode('ascii')
        return f'data:{content_type};base64,{encoded}'

    async def resign(self, value: str, expires_in: int) -> str:
        if not value or is_absolute_url(value):
            return value
        path = '/'.join(value.split('/')[-2:])
        try:
            return await self.create_signed_url(self.settings.generated_images_bucket, path, expires_in)
        except StorageError as exc:
            logger.warning('resign_failed', path=path, error=str(exc))
            return value
