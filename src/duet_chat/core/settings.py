"""Application settings and configuration.

This module defines all configuration options for the Duet Chat service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Duet Chat", alias="APP_NAME")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    debug: bool = Field(default=False, alias="DEBUG")

    # Database configuration
    database_url: str = Field(default="sqlite:///./duet_chat.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Redis backs the sign-in throttle when configured
    redis_url: str | None = Field(default=None, alias="REDIS_URL")
    login_max_attempts: int = Field(default=5, alias="LOGIN_MAX_ATTEMPTS")
    login_lockout_seconds: int = Field(default=300, alias="LOGIN_LOCKOUT_SECONDS")

    # JWT session settings. "Remember me" sign-ins get the durable lifetime,
    # the rest only last for a browsing session.
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 30,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )
    session_token_expire_minutes: int = Field(
        default=60 * 12,
        alias="SESSION_TOKEN_EXPIRE_MINUTES",
    )
    min_password_length: int = Field(default=6, alias="MIN_PASSWORD_LENGTH")

    # Google sign-in
    google_client_id: str | None = Field(default=None, alias="GOOGLE_CLIENT_ID")
    google_jwks_url: str = Field(
        default="https://www.googleapis.com/oauth2/v3/certs",
        alias="GOOGLE_JWKS_URL",
    )
    google_issuers: list[str] = Field(
        default=["accounts.google.com", "https://accounts.google.com"],
        alias="GOOGLE_ISSUERS",
    )

    # ImageKit image hosting
    imagekit_public_key: str = Field(default="", alias="IMAGEKIT_PUBLIC_KEY")
    imagekit_private_key: str = Field(default="", alias="IMAGEKIT_PRIVATE_KEY")
    imagekit_url_endpoint: str = Field(default="", alias="IMAGEKIT_URL_ENDPOINT")
    imagekit_upload_url: str = Field(
        default="https://upload.imagekit.io/api/v1/files/upload",
        alias="IMAGEKIT_UPLOAD_URL",
    )
    imagekit_api_url: str = Field(
        default="https://api.imagekit.io/v1",
        alias="IMAGEKIT_API_URL",
    )
    imagekit_timeout_seconds: float = Field(default=30.0, alias="IMAGEKIT_TIMEOUT_SECONDS")
    imagekit_auth_ttl_seconds: int = Field(default=1800, alias="IMAGEKIT_AUTH_TTL_SECONDS")
    image_folder: str = Field(default="chat_images", alias="IMAGE_FOLDER")

    # Bulk deletion batch size for clearing a chat
    delete_batch_size: int = Field(default=500, alias="DELETE_BATCH_SIZE")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PATCH", "PUT", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url


settings = Settings()
