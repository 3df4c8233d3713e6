"""
Environment-driven settings for the Locl API
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import computed_field
from functools import lru_cache
from typing import List, Set, Optional
from urllib.parse import quote_plus


def _split_csv(raw: str) -> List[str]:
    return [part.strip() for part in raw.split(',') if part.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Postgres connection parts; SQLALCHEMY_DATABASE_URI wins when set (sqlite:// in tests)
    db_host: str
    db_port: int
    db_name: str
    db_user: str
    db_password: str
    db_driver: str = "postgresql"
    sqlalchemy_database_uri: Optional[str] = None

    @computed_field
    @property
    def database_url(self) -> str:
        if self.sqlalchemy_database_uri:
            return self.sqlalchemy_database_uri
        credentials = f"{quote_plus(self.db_user)}:{quote_plus(self.db_password)}"
        return f"{self.db_driver}://{credentials}@{self.db_host}:{self.db_port}/{self.db_name}"

    # Tokens
    secret_key: str
    algorithm: str
    access_token_expire_minutes: int
    refresh_token_expire_days: int

    app_name: str
    debug: bool
    allowed_origins: str

    # Object storage
    aws_access_key_id: str
    aws_secret_access_key: str
    aws_region: str = "us-east-1"
    s3_bucket_name: str
    s3_base_url: str
    avatars_bucket: str = "avatars"
    listings_bucket: str = "listings"
    default_avatar_url: str = "https://ui-avatars.com/api/?name=User&background=random"
    max_upload_size: int
    allowed_image_extensions: str = "jpg,jpeg,png,gif,webp"
    upload_max_attempts: int = 3
    upload_retry_delay_seconds: float = 1.0

    # Location fixes and reverse geocoding (Nominatim compatible)
    geocoding_base_url: str = "https://nominatim.openstreetmap.org"
    geocoding_user_agent: str = "Locl App"
    geocoding_timeout_seconds: float = 3.0
    location_resolve_timeout_seconds: float = 5.0
    location_cache_seconds: int = 300
    geocode_cache_seconds: int = 86400

    default_search_radius_km: float = 5.0
    fallback_distance_km: float = 5.0

    log_level: str
    log_format: str
    log_to_file: bool
    log_file_path: str
    log_max_size_mb: int
    log_backup_count: int
    log_to_console: bool
    log_verbosity: str = "minimal"  # "full" also echoes SQL

    def get_allowed_origins(self) -> List[str]:
        return _split_csv(self.allowed_origins)

    def get_allowed_image_extensions(self) -> Set[str]:
        """Lower-cased extensions without the dot"""
        return {ext.lower() for ext in _split_csv(self.allowed_image_extensions)}


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()
