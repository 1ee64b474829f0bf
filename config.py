"""Configuration settings for the Image Host server."""
import re
from pathlib import Path
from typing import List, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Accepted upload types
ALLOWED_MIME_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})

# Identifier constraints
MAX_ID_LENGTH = 200
ID_PATTERN = re.compile(r'[A-Za-z0-9_-]+')
EXTENSION_PATTERN = re.compile(r'\.[a-z0-9]+')

# Streaming
CHUNK_SIZE = 8192  # 8KB

CACHE_CONTROL = "public, max-age=31536000, immutable"
AUTH_REALM = "Uploader"

DEFAULT_MAX_UPLOAD_SIZE = 10 * 1024 * 1024  # 10MB


class Settings(BaseSettings):
    """Server settings read from the environment and an optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    port: int = Field(default=3000, description="Listening port")
    host: str = Field(default="0.0.0.0", description="Bind address")
    base_url: str = Field(default="", description="Externally visible base URL, defaults to http://localhost:<port>")
    upload_dir: Path = Field(default=Path("./uploads"), description="Directory holding blobs and metadata")
    temp_dir: Optional[Path] = Field(default=None, description="In-flight uploads, defaults to <upload_dir>/.tmp")
    admin_user: str = Field(default="admin", description="Admin username")
    admin_pass: str = Field(default="password", description="Admin password")
    max_upload_size: int = Field(default=DEFAULT_MAX_UPLOAD_SIZE, gt=0, description="Maximum request body in bytes")
    log_dir: Path = Field(default=Path("logs"), description="Log file directory")
    log_level: str = Field(default="INFO", description="Console logging level")
    cors_origins: str = Field(default="*", description="Comma separated allowed CORS origins")

    @model_validator(mode="after")
    def fill_derived(self) -> 'Settings':
        self.base_url = (self.base_url or f"http://localhost:{self.port}").rstrip("/")
        # Temp files must live on the same filesystem as the uploads for rename to be atomic
        if self.temp_dir is None:
            self.temp_dir = self.upload_dir / ".tmp"
        self.log_level = self.log_level.upper()
        return self

    @property
    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
