from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SLIDESHOW_SERVICE_", env_file=".env", env_file_encoding="utf-8")

    app_name: str = "slideshow-service"

    # Local output served as static files when no publisher is configured
    output_dir: str = "uploads/videos"
    static_url_prefix: str = "/uploads/videos"
    ffmpeg_binary: str = "ffmpeg"

    # Render defaults frozen into every job at submission
    default_slide_duration: float = 3.0
    default_transition_duration: float = 0.5
    default_transition_type: str = "fade"
    video_fps: int = 30
    video_width: int = 1080
    video_height: int = 1920

    # "" keeps videos local, otherwise "s3" or "supabase"
    publish_provider: str = ""
    publish_folder: str = "category-videos"

    # Object storage configuration
    s3_endpoint_url: str = ""
    s3_region: str | None = None
    s3_public_url: str = ""
    s3_bucket: str = "category-videos"
    s3_access_key: str = ""
    s3_secret_key: str = ""
    s3_addressing_style: str | None = None

    # Supabase: product catalog (PostgREST) and optional storage bucket
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_public_url: str = ""
    supabase_bucket: str = "videos"
    products_table: str = "products"
    product_media_table: str = "product_media"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
