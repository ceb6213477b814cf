from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    # Database
    database_url: str = Field(..., alias='DATABASE_URL')

    # Supabase (auth + storage)
    supabase_url: str = Field(..., alias='SUPABASE_URL')
    supabase_anon_key: str = Field('', alias='SUPABASE_ANON_KEY')
    supabase_service_role_key: str = Field('', alias='SUPABASE_SERVICE_ROLE_KEY')
    supabase_jwt_secret: str = Field('', alias='SUPABASE_JWT_SECRET')
    supabase_jwt_audience: str = Field('authenticated', alias='SUPABASE_JWT_AUDIENCE')

    # AI gateway
    ai_gateway_url: str = Field('https://ai.gateway.lovable.dev/v1/chat/completions', alias='AI_GATEWAY_URL')
    ai_gateway_api_key: str = Field('', alias='AI_GATEWAY_API_KEY')
    ai_gateway_timeout_seconds: float = Field(120.0, alias='AI_GATEWAY_TIMEOUT_SECONDS')
    image_model: str = Field('google/gemini-2.5-flash-image-preview', alias='IMAGE_MODEL')
    caption_model: str = Field('google/gemini-2.5-flash', alias='CAPTION_MODEL')

    # Storage
    generated_images_bucket: str = Field('generated-images', alias='GENERATED_IMAGES_BUCKET')
    generated_url_ttl_seconds: int = Field(60 * 60 * 24 * 7, alias='GENERATED_URL_TTL_SECONDS')
    caption_url_ttl_seconds: int = Field(3600, alias='CAPTION_URL_TTL_SECONDS')

    # Credits
    reserve_credits_upfront: bool = Field(True, alias='RESERVE_CREDITS_UPFRONT')
    refund_on_fail: bool = Field(True, alias='REFUND_ON_FAIL')

    # Web
    web_host: str = Field('127.0.0.1', alias='WEB_HOST')
    web_port: int = Field(9020, alias='WEB_PORT')
    cors_allow_origin: str = Field('*', alias='CORS_ALLOW_ORIGIN')

    # Logging
    log_level: str = Field('INFO', alias='LOG_LEVEL')

    @property
    def storage_base_url(self) -> str:
        return f'{self.supabase_url.rstrip("/")}/storage/v1'

    @property
    def auth_base_url(self) -> str:
        return f'{self.supabase_url.rstrip("/")}/auth/v1'


@lru_cache

def get_settings() -> Settings:
    return Settings()
