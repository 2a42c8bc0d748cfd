"""
Configuration and settings for the character wiki backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL, make_url

DEFAULT_IMAGE_MIMES = [
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/tiff",
    "image/tif",
    "image/avif",
    "image/heic",
    "image/heif",
]


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")

    # Database. database_url wins over the individual connection fields.
    database_url: Optional[str] = Field(default=None)
    db_driver: str = Field(default="mysql+pymysql")
    db_host: str = Field(default="localhost")
    db_port: int = Field(default=3306)
    db_user: str = Field(default="root")
    db_password: str = Field(default="123456")
    db_name: str = Field(default="skullgirls")
    db_charset: str = Field(default="utf8mb4")
    db_collation: str = Field(default="utf8mb4_unicode_ci")

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Single operator account
    admin_username: str = Field(default="admin")
    admin_password: str = Field(default="admin")

    # Bearer tokens
    jwt_secret: str = Field(default="change-me")
    jwt_algorithm: str = Field(default="HS256")
    jwt_expires_days: int = Field(default=365)

    bcrypt_rounds: int = Field(default=10, ge=4, le=31)

    # Uploads
    static_dir: str = Field(default="static")
    upload_max_file_size: int = Field(default=99 * 1024 * 1024 * 1024)
    upload_max_files: int = Field(default=999)
    allowed_image_mimes: list[str] = Field(
        default_factory=lambda: list(DEFAULT_IMAGE_MIMES)
    )

    # Image compression
    image_max_width: int = Field(default=200, ge=1)
    image_compression_workers: int = Field(default=1, ge=1)
    jpeg_quality: int = Field(default=80, ge=1, le=100)
    jpeg_progressive: bool = Field(default=True)
    png_compress_level: int = Field(default=9, ge=0, le=9)
    webp_quality: int = Field(default=80, ge=1, le=100)
    webp_method: int = Field(default=6, ge=0, le=6)
    tiff_compression: str = Field(default="tiff_lzw")
    avif_quality: int = Field(default=80, ge=1, le=100)
    avif_speed: int = Field(default=4, ge=0, le=10)
    heif_quality: int = Field(default=80, ge=1, le=100)

    # Edit permission flag values
    edit_permission_enabled: int = Field(default=1)
    edit_permission_disabled: int = Field(default=0)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def sqlalchemy_url(self) -> URL:
        """Return the SQLAlchemy URL, composing it from the db_* fields if needed."""
        if self.database_url:
            return make_url(self.database_url)
        return URL.create(
            self.db_driver,
            username=self.db_user,
            password=self.db_password,
            host=self.db_host,
            port=self.db_port,
            database=self.db_name,
            query={"charset": self.db_charset},
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
