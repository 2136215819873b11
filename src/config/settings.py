"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock modes enable local development without Snowflake, R2, SES or FFmpeg.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEV_JWT_SECRET = "dev-only-change-me"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "SportsTalent API"
    api_version: str = "v1"
    environment: str = Field(
        default="development",
        description="development or production. Development exposes debug OTPs and the email-exists probe."
    )

    # Authentication
    jwt_secret: str = Field(
        default=DEV_JWT_SECRET,
        description="HMAC secret used to sign access tokens"
    )
    jwt_algorithm: str = Field(default="HS256")
    jwt_expire_days: int = Field(
        default=7,
        description="Access token lifetime in days"
    )

    # Password reset
    otp_ttl_minutes: int = Field(
        default=10,
        description="Minutes before a password-reset code expires"
    )
    otp_max_attempts: int = Field(
        default=3,
        description="Wrong guesses allowed before a code is discarded"
    )

    # Snowflake Configuration
    snowflake_account: str = Field(
        default="",
        description="Snowflake account identifier"
    )
    snowflake_user: str = Field(
        default="",
        description="Snowflake service account username"
    )
    snowflake_password: str = Field(
        default="",
        description="Snowflake service account password"
    )
    snowflake_private_key_path: Optional[str] = Field(
        default=None,
        description="Path to RSA private key file for key-pair authentication"
    )
    snowflake_private_key_base64: Optional[str] = Field(
        default=None,
        description="Base64-encoded private key (for deployment, alternative to file path)"
    )
    snowflake_database: str = Field(
        default="SPORTS_TALENT",
        description="Snowflake database name"
    )
    snowflake_schema: str = Field(
        default="PLATFORM",
        description="Snowflake schema name"
    )
    snowflake_warehouse: str = Field(
        default="COMPUTE_WH",
        description="Snowflake warehouse for query execution"
    )
    snowflake_role: Optional[str] = Field(
        default=None,
        description="Snowflake role to use (optional)"
    )
    snowflake_mock_mode: bool = Field(
        default=False,
        description="Use in-memory tables instead of a real Snowflake connection."
    )

    # R2/S3 Storage Configuration
    r2_account_id: str = Field(
        default="",
        description="Cloudflare account ID for R2"
    )
    r2_access_key_id: str = Field(
        default="",
        description="R2 access key ID"
    )
    r2_secret_access_key: str = Field(
        default="",
        description="R2 secret access key"
    )
    r2_bucket_name: str = Field(
        default="sports-talent-media",
        description="R2 bucket name for videos and thumbnails"
    )
    r2_endpoint_url: Optional[str] = Field(
        default=None,
        description="R2 endpoint URL. Auto-constructed from account_id if not provided."
    )
    r2_public_url: Optional[str] = Field(
        default=None,
        description="Public base URL of the bucket. Without it, media URLs use the s3:// form."
    )
    r2_mock_mode: bool = Field(
        default=False,
        description="Use in-memory storage instead of R2 and local disk."
    )

    # Local disk fallback
    local_storage_dir: str = Field(
        default="uploads",
        description="Directory used when R2 is not configured or an upload to R2 fails"
    )
    local_max_upload_size_mb: int = Field(
        default=200,
        description="Largest file the local disk fallback accepts"
    )

    # Uploads
    max_video_size_mb: int = Field(
        default=500,
        description="Maximum video upload size in MB"
    )
    allowed_video_types: str = Field(
        default="video/mp4,video/webm,video/quicktime,video/x-msvideo,video/avi,video/x-matroska",
        description="Comma-separated MIME types accepted for video uploads"
    )

    # Email (password reset)
    email_from: str = Field(
        default="no-reply@sportstalent.local",
        description="Sender address for transactional email"
    )
    ses_region: str = Field(
        default="ap-south-1",
        description="AWS region for SES"
    )
    email_mock_mode: bool = Field(
        default=False,
        description="Keep outgoing email in memory instead of sending through SES"
    )

    # Video processing
    video_processor_mock_mode: bool = Field(
        default=False,
        description="Skip FFmpeg and return fixed metadata and a placeholder thumbnail"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def allowed_video_types_list(self) -> list[str]:
        """Parse comma-separated MIME types into a list."""
        return [t.strip().lower() for t in self.allowed_video_types.split(",") if t.strip()]

    @property
    def r2_configured(self) -> bool:
        return bool(self.r2_account_id and self.r2_access_key_id and self.r2_secret_access_key)

    @property
    def r2_endpoint(self) -> str:
        """
        Construct R2 endpoint URL from account ID.

        R2 endpoints follow the pattern: https://{account_id}.r2.cloudflarestorage.com
        """
        if self.r2_endpoint_url:
            return self.r2_endpoint_url
        return f"https://{self.r2_account_id}.r2.cloudflarestorage.com"

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on whether we're in mock mode.

        R2 is optional: without credentials uploads go to local disk.
        """
        missing = []

        if not self.is_development and self.jwt_secret == DEV_JWT_SECRET:
            missing.append("JWT_SECRET")

        # Snowflake only required if not in mock mode
        if not self.snowflake_mock_mode:
            if not self.snowflake_account:
                missing.append("SNOWFLAKE_ACCOUNT")
            if not self.snowflake_user:
                missing.append("SNOWFLAKE_USER")
            if (
                not self.snowflake_password
                and not self.snowflake_private_key_path
                and not self.snowflake_private_key_base64
            ):
                missing.append("SNOWFLAKE_PASSWORD or SNOWFLAKE_PRIVATE_KEY_PATH")

        if not self.email_mock_mode and not self.email_from:
            missing.append("EMAIL_FROM")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, call get_settings.cache_clear() to reset.
    """
    return Settings()
