from __future__ import annotations

import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from promoshot.config import Settings, get_settings
from promoshot.db.capabilities import SchemaCapabilities, probe_capabilities
from promoshot.db.session import create_engine, create_sessionmaker
from promoshot.services.auth import AuthClient, bearer_token
from promoshot.services.captions import CaptionService
from promoshot.services.catalog import CatalogService, requires_model_type, validate_generation_request
from promoshot.services.credits import CreditsService
from promoshot.services.errors import PromoShotError, Unauthorized, ValidationError
from promoshot.services.gateway import GatewayClient
from promoshot.services.generation import ImageGenerationService
from promoshot.services.library import LibraryService
from promoshot.services.storage import StorageClient
from promoshot.utils.logging import bind_request, configure_logging, get_logger


CORS_ALLOW_HEADERS = 'authorization, x-client-info, apikey, content-type'
logger = get_logger('web')


async def _json_body(request: Request) -> Dict[str, Any]:
    try:
        data = await request.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _error_response(exc: PromoShotError) -> JSONResponse:
    return JSONResponse({'error': exc.message}, status_code=exc.status_code)


async def _respond(action: Callable[[], Awaitable[Any]]) -> Any:
    try:
        return await action()
    except PromoShotError as exc:
        if exc.status_code >= 500:
            logger.error('request_failed', error=exc.message, status=exc.status_code)
        else:
            logger.info('request_rejected', error=exc.message, status=exc.status_code)
        return _error_response(exc)
    except Exception as exc:
        logger.exception('request_crashed')
        return JSONResponse({'error': str(exc) or 'Internal server error'}, status_code=500)


def _text_field(body: Dict[str, Any], key: str) -> str:
    value = body.get(key)
    return value.strip() if isinstance(value, str) else ''


def create_app(
    settings: Settings | None = None,
    sessionmaker: async_sessionmaker[AsyncSession] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    app = FastAPI(title='PromoShot')
    app.state.settings = settings
    # Only an engine built here is disposed at shutdown.
    app.state.engine = None
    if sessionmaker is None:
        app.state.engine = create_engine(settings)
        sessionmaker = create_sessionmaker(app.state.engine)
    app.state.sessionmaker = sessionmaker
    app.state.capabilities = None
    cors_headers = {
        'Access-Control-Allow-Origin': settings.cors_allow_origin,
        'Access-Control-Allow-Headers': CORS_ALLOW_HEADERS,
    }

    @app.on_event('startup')
    async def startup() -> None:
        try:
            app.state.capabilities = await probe_capabilities(app.state.sessionmaker)
        except SQLAlchemyError as exc:
            logger.warning('capability_probe_failed', error=str(exc))

    @app.on_event('shutdown')
    async def shutdown() -> None:
        if app.state.engine is not None:
            await app.state.engine.dispose()

    async def get_capabilities() -> SchemaCapabilities:
        if app.state.capabilities is None:
            app.state.capabilities = await probe_capabilities(app.state.sessionmaker)
        return app.state.capabilities

    @app.middleware('http')
    async def cors_and_context(request: Request, call_next):
        bind_request(request.headers.get('x-request-id') or uuid.uuid4().hex, request.url.path)
        if request.method == 'OPTIONS':
            response = Response(status_code=200)
        else:
            response = await call_next(request)
        response.headers.update(cors_headers)
        return response

    async def user_from_request(request: Request) -> uuid.UUID:
        auth = AuthClient(settings, transport=transport)
        try:
            return await auth.resolve_user_id(bearer_token(request.headers.get('authorization')))
        finally:
            await auth.close()

    @app.get('/health')
    async def health():
        return {'status': 'ok'}

    @app.post('/functions/v1/generate-marketing-image')
    async def generate_marketing_image(request: Request):
        body = await _json_body(request)

        async def run():
            product_image_url = _text_field(body, 'productImageUrl')
            category_name = _text_field(body, 'categoryName')
            model_type_name = _text_field(body, 'modelTypeName') or None
            validate_generation_request(product_image_url, category_name, model_type_name)

            user_id = await user_from_request(request)
            gateway = GatewayClient(settings, transport=transport)
            storage = StorageClient(settings, transport=transport)
            try:
                async with app.state.sessionmaker() as session:
                    service = ImageGenerationService(session, gateway, storage, settings)
                    result = await service.generate(user_id, product_image_url, category_name, model_type_name)
            finally:
                await gateway.close()
                await storage.close()
            return {'success': True, 'imageUrl': result.image_url, 'creditsRemaining': result.credits_remaining}

        return await _respond(run)

    @app.post('/functions/v1/generate-social-caption')
    async def generate_social_caption(request: Request):
        body = await _json_body(request)

        async def run():
            image_ids = body.get('imageIds')
            if not isinstance(image_ids, list) or not image_ids:
                raise ValidationError('No images selected')
            header = request.headers.get('authorization')
            if not header:
                raise Unauthorized('No authorization header')

            auth = AuthClient(settings, transport=transport)
            try:
                user_id = await auth.current_user_id(bearer_token(header))
            finally:
                await auth.close()

            capabilities = await get_capabilities()
            gateway = GatewayClient(settings, transport=transport)
            storage = StorageClient(settings, transport=transport)
            try:
                service = CaptionService(app.state.sessionmaker, gateway, storage, capabilities, settings)
                results = await service.generate(user_id, image_ids)
            finally:
                await gateway.close()
                await storage.close()
            return {'captions': [item.to_dict() for item in results]}

        return await _respond(run)

    @app.get('/api/catalog')
    async def api_catalog():
        async def run():
            async with app.state.sessionmaker() as session:
                catalog = CatalogService(session)
                categories = await catalog.list_categories()
                model_types = await catalog.list_model_types()
            return {
                'categories': [
                    {'id': str(item.id), 'name': item.name, 'requiresModel': requires_model_type(item.name)}
                    for item in categories
                ],
                'modelTypes': [{'id': str(item.id), 'name': item.name} for item in model_types],
            }

        return await _respond(run)

    @app.get('/api/credits')
    async def api_credits(request: Request):
        async def run():
            user_id = await user_from_request(request)
            async with app.state.sessionmaker() as session:
                balance = await CreditsService(session).get_balance(user_id)
            return {'credits': balance or 0}

        return await _respond(run)

    @app.get('/api/images')
    async def api_images(request: Request, limit: int = Query(50, ge=1, le=200)):
        async def run():
            user_id = await user_from_request(request)
            storage = StorageClient(settings, transport=transport)
            try:
                async with app.state.sessionmaker() as session:
                    images = await LibraryService(session, storage, settings).images(user_id, limit=limit)
            finally:
                await storage.close()
            return {'images': images}

        return await _respond(run)

    @app.get('/api/captions')
    async def api_captions(
        request: Request,
        limit: int = Query(50, ge=1, le=200),
        image_ids: Optional[List[str]] = Query(None, alias='imageIds'),
    ):
        async def run():
            user_id = await user_from_request(request)
            capabilities = await get_capabilities()
            storage = StorageClient(settings, transport=transport)
            try:
                async with app.state.sessionmaker() as session:
                    library = LibraryService(session, storage, settings)
                    captions = await library.captions(user_id, capabilities, image_ids=image_ids, limit=limit)
            finally:
                await storage.close()
            return {'captions': captions}

        return await _respond(run)

    return app
