from __future__ import annotations

import base64
import binascii
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ValidationError

from promoshot.config import Settings
from promoshot.services.errors import UpstreamGatewayError
from promoshot.utils.logging import get_logger
from promoshot.utils.text import clamp_text


logger = get_logger('gateway')


class ImageRef(BaseModel):
    url: str


class GatewayImage(BaseModel):
    image_url: ImageRef


class GatewayMessage(BaseModel):
    content: Optional[str] = None
    images: Optional[List[GatewayImage]] = None


class GatewayChoice(BaseModel):
    message: GatewayMessage


class GatewayResponse(BaseModel):
    """``{"choices": [{"message": {"content"?: str, "images"?: [{"image_url": {"url"}}]}}]}``"""

    choices: List[GatewayChoice]

    @property
    def message(self) -> GatewayMessage:
        if not self.choices:
            raise UpstreamGatewayError('Unexpected AI gateway response')
        return self.choices[0].message

    def text(self) -> str:
        return self.message.content or ''

    def first_image_url(self) -> str | None:
        images = self.message.images
        if not images:
            return None
        return images[0].image_url.url or None


def decode_data_uri(value: str) -> tuple[bytes, str]:
    """Split a ``data:<mime>;base64,<payload>`` URI into bytes and mime type."""
    header, sep, payload = value.partition(',')
    if not sep or not header.startswith('data:'):
        raise UpstreamGatewayError('No image generated from AI')
    mime = header[5:].split(';')[0] or 'image/png'
    try:
        return base64.b64decode(payload, validate=True), mime
    except (binascii.Error, ValueError) as exc:
        raise UpstreamGatewayError('No image generated from AI') from exc


def build_messages(prompt: str, image_url: str) -> List[Dict[str, Any]]:
    return [
        {
            'role': 'user',
            'content': [
                {'type': 'text', 'text': prompt},
                {'type': 'image_url', 'image_url': {'url': image_url}},
            ],
        }
    ]


class GatewayClient:
    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.url = settings.ai_gateway_url
        self.api_key = settings.ai_gateway_api_key
        self._client = httpx.AsyncClient(timeout=settings.ai_gateway_timeout_seconds, transport=transport)

    async def close(self) -> None:
        await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        return {
            'Authorization': f'Bearer {self.api_key}',
            'Content-Type': 'application/json',
        }

    async def complete(
        self,
        model: str,
        prompt: str,
        image_url: str,
        modalities: List[str] | None = None,
    ) -> GatewayResponse:
        if not self.api_key:
            raise UpstreamGatewayError('AI gateway key not configured')
        body: Dict[str, Any] = {
            'model': model,
            'messages': build_messages(prompt, image_url),
        }
        if modalities:
            body['modalities'] = modalities
        try:
            resp = await self._client.post(self.url, headers=self._headers(), json=body)
        except httpx.HTTPError as exc:
            logger.error('gateway_request_failed', model=model, error=str(exc))
            raise UpstreamGatewayError('AI gateway request failed') from exc
        if resp.status_code >= 400:
            logger.error('gateway_error', model=model, status=resp.status_code, body=clamp_text(resp.text, 500))
            raise UpstreamGatewayError(f'AI generation failed: {resp.status_code}')
        try:
            return GatewayResponse.model_validate(resp.json())
        except (ValidationError, ValueError) as exc:
            logger.error('gateway_schema_mismatch', model=model, error=clamp_text(str(exc), 500))
            raise UpstreamGatewayError('Unexpected AI gateway response') from exc

    async def generate_image(self, model: str, prompt: str, image_url: str) -> tuple[bytes, str]:
        response = await self.complete(model, prompt, image_url, modalities=['image', 'text'])
        generated = response.first_image_url()
        if not generated:
            raise UpstreamGatewayError('No image generated from AI')
        return decode_data_uri(generated)
