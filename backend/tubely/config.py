"""
Tubely Configuration Management Module

This module provides configuration management for the Tubely media ingestion
service using Pydantic Settings. It loads and validates all environment
variables required for:
- Application settings (name, environment, debug mode, logging, public address)
- MongoDB connection and pooling for video metadata
- S3/MinIO object storage for published video files
- Local HS256 bearer-token authentication
- Upload limits, asset and staging directories, storage key size
- Metadata consistency policy after a successful storage commit

All settings support environment variable overrides and .env file loading with
validation and type safety.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


MIB = 1024 * 1024


class Settings(BaseSettings):
    """
    Configuration settings for the Tubely ingestion service.

    Configuration Categories:
    - Application: Core app settings and the public address used in asset URLs
    - MongoDB: Database connection URI and connection pool settings
    - S3/MinIO: Object storage credentials and bucket configuration
    - Auth: Bearer token signing secret, algorithm, issuer and lifetime
    - Upload: Size ceilings, assets root, staging directory, key entropy
    - Consistency: Behaviour when the video record cannot be updated

    Example usage:
        ```python
        from tubely.config import Settings

        settings = Settings(port=8091)
        print(settings.public_base_url)  # http://localhost:8091
        ```
    """

    # =========================================================================
    # Application Settings
    # =========================================================================

    app_name: str = Field(
        default="Tubely",
        description="Application name displayed in API documentation and logs",
    )

    app_env: str = Field(
        default="development",
        description="Application environment (development, staging, production, testing)",
    )

    debug: bool = Field(default=False, description="Enable debug mode and verbose logging")

    log_level: str = Field(
        default="info", description="Logging level (debug, info, warning, error, critical)"
    )

    json_logs: bool = Field(
        default=True, description="Emit structured JSON log lines instead of plain text"
    )

    host: str = Field(default="0.0.0.0", description="Host address for the API server to bind to")

    port: int = Field(default=8091, description="Port number for the API server", ge=1, le=65535)

    public_host: str = Field(
        default="localhost",
        description="Host name clients use to reach this server; used in local asset URLs",
    )

    public_base_url_override: str | None = Field(
        default=None,
        alias="public_base_url",
        description="Explicit public base URL for local assets (e.g. https://cdn.example.com)",
    )

    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="List of allowed CORS origins for frontend access",
    )

    # =========================================================================
    # MongoDB Configuration
    # =========================================================================

    mongodb_uri: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI (e.g., mongodb://localhost:27017)",
    )

    mongodb_db_name: str = Field(
        default="tubely", description="MongoDB database name holding the videos collection"
    )

    mongodb_min_pool_size: int = Field(
        default=1, description="Minimum number of connections in MongoDB connection pool", ge=0
    )

    mongodb_max_pool_size: int = Field(
        default=50, description="Maximum number of connections in MongoDB connection pool", ge=1
    )

    # =========================================================================
    # S3/MinIO Storage Configuration
    # =========================================================================

    s3_endpoint_url: str | None = Field(
        default=None, description="S3-compatible endpoint URL for MinIO (None for AWS S3)"
    )

    s3_access_key_id: str | None = Field(
        default=None,
        description="S3/MinIO access key ID (None to use the default AWS credential chain)",
    )

    s3_secret_access_key: str | None = Field(
        default=None,
        description="S3/MinIO secret access key (None to use the default AWS credential chain)",
    )

    s3_bucket_name: str = Field(
        default="tubely-videos", description="S3 bucket receiving published video files"
    )

    s3_region: str = Field(default="us-east-1", description="AWS region of the S3 bucket")

    # =========================================================================
    # Authentication
    # =========================================================================

    secret_key: str = Field(
        default="development-secret-key-change-in-production-32chars",
        description="Secret key for bearer token signing. Must be a secure random string.",
        min_length=32,
    )

    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")

    jwt_issuer: str = Field(default="tubely-access", description="Expected JWT issuer claim")

    jwt_expiration_hours: int = Field(
        default=1, description="Lifetime of issued access tokens in hours", ge=1, le=168
    )

    # =========================================================================
    # Upload Settings
    # =========================================================================

    assets_root: str = Field(
        default="./assets", description="Directory holding thumbnails served under /assets"
    )

    staging_dir: str | None = Field(
        default=None,
        description="Directory for video scratch files (None for the system temp directory)",
    )

    max_thumbnail_size_bytes: int = Field(
        default=10 * MIB, description="Upper bound on a thumbnail request body (10 MiB)", ge=1
    )

    max_video_size_bytes: int = Field(
        default=1024 * MIB, description="Upper bound on a video request body (1 GiB)", ge=1
    )

    storage_key_bytes: int = Field(
        default=9,
        description="Random bytes per storage key; 9 bytes give a 12 character token",
        ge=4,
        le=64,
    )

    # =========================================================================
    # Consistency Policy
    # =========================================================================

    strict_metadata_sync: bool = Field(
        default=False,
        description=(
            "Fail the request when the video record cannot be updated after the asset "
            "was stored. When False the failure is logged and the request succeeds."
        ),
    )

    delete_superseded_assets: bool = Field(
        default=False,
        description="Delete the previously referenced asset after a successful re-upload",
    )

    # =========================================================================
    # Model Configuration
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"debug", "info", "warning", "error", "critical"}
        normalized = v.lower()
        if normalized not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {', '.join(valid_levels)}")
        return normalized

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate that app_env is a valid environment name."""
        valid_envs = {"development", "staging", "production", "testing"}
        normalized = v.lower()
        if normalized not in valid_envs:
            raise ValueError(f"Invalid app_env '{v}'. Must be one of: {', '.join(valid_envs)}")
        return normalized

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        """Only symmetric algorithms are usable with a shared secret."""
        valid_algorithms = {"HS256", "HS384", "HS512"}
        if v.upper() not in valid_algorithms:
            raise ValueError(
                f"Invalid jwt_algorithm '{v}'. Must be one of: {', '.join(valid_algorithms)}"
            )
        return v.upper()

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from comma-separated string if provided as string."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("public_base_url_override")
    @classmethod
    def validate_public_base_url(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"public_base_url must be an absolute http(s) URL, got '{v}'")
        return v.rstrip("/")

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def public_base_url(self) -> str:
        """
        Base URL under which locally stored assets are reachable.

        Defaults to ``http://{public_host}:{port}`` so that a thumbnail written
        under the assets root resolves to ``http://localhost:8091/assets/<key>``.
        """
        if self.public_base_url_override:
            return self.public_base_url_override
        return f"http://{self.public_host}:{self.port}"


@lru_cache
def get_settings() -> Settings:
    """
    Get the process-wide Settings instance.

    The settings are read once from the environment and reused. The
    application factory stores the instance it was built with on
    ``app.state.settings``; request handlers read it from there.

    Returns:
        Settings: The cached configuration instance.
    """
    return Settings()
