"""
Configuration management using environment variables.
Handles database, token, rate limiting and logging settings with validation and defaults.
"""

from typing import Optional

from pydantic import Field, validator
from pydantic_settings import BaseSettings

INSECURE_SECRET_KEY = "your-secret-key-change-in-production"


class AppConfig(BaseSettings):
    """
    Configuration class for the book portal.
    Uses pydantic BaseSettings for environment variable management.
    """

    # MongoDB Configuration
    mongodb_url: str = Field(default="mongodb://localhost:27017/?replicaSet=rs0", env="MONGODB_URL")
    mongodb_database: str = Field(default="book_portal", env="MONGODB_DATABASE")
    # Multi-document transactions need a replica set; disable for a standalone dev server
    mongodb_transactions: bool = Field(default=True, env="MONGODB_TRANSACTIONS")

    # Token Configuration
    secret_key: str = Field(default=INSECURE_SECRET_KEY, env="SECRET_KEY")
    algorithm: str = Field(default="HS256", env="ALGORITHM")
    access_token_expire_minutes: int = Field(default=60 * 24, env="ACCESS_TOKEN_EXPIRE_MINUTES")

    # Password Hashing
    bcrypt_rounds: int = Field(default=12, env="BCRYPT_ROUNDS")

    # Feedback Rate Limiting
    feedback_rate_limit_window_seconds: int = Field(default=60, env="FEEDBACK_RATE_LIMIT_WINDOW_SECONDS")

    # Pagination cap applied to every listing
    max_page_size: int = Field(default=100, env="MAX_PAGE_SIZE")

    # Server Settings
    api_title: str = Field(default="Book Portal API", env="API_TITLE")
    api_version: str = Field(default="1.0.0", env="API_VERSION")
    api_prefix: str = Field(default="/api", env="API_PREFIX")
    host: str = Field(default="0.0.0.0", env="HOST")
    port: int = Field(default=3001, env="PORT")

    # Logging Configuration
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    log_format: str = Field(default="json", env="LOG_FORMAT")
    log_file: Optional[str] = Field(default=None, env="LOG_FILE")

    # Development/Testing
    debug: bool = Field(default=False, env="DEBUG")
    test_mode: bool = Field(default=False, env="TEST_MODE")

    @validator('access_token_expire_minutes')
    def validate_token_expiry(cls, v):
        """Ensure tokens expire eventually."""
        if v < 1:
            raise ValueError('access_token_expire_minutes must be at least 1')
        return v

    @validator('bcrypt_rounds')
    def validate_bcrypt_rounds(cls, v):
        """Ensure bcrypt cost is within the range bcrypt accepts."""
        if v < 4 or v > 31:
            raise ValueError('bcrypt_rounds must be between 4 and 31')
        return v

    @validator('feedback_rate_limit_window_seconds')
    def validate_rate_limit_window(cls, v):
        """Ensure the rate limit window is positive."""
        if v < 1:
            raise ValueError('feedback_rate_limit_window_seconds must be positive')
        return v

    @validator('max_page_size')
    def validate_max_page_size(cls, v):
        """Ensure page size cap is reasonable."""
        if v < 1 or v > 1000:
            raise ValueError('max_page_size must be between 1 and 1000')
        return v

    @validator('log_level')
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of: {valid_levels}')
        return v.upper()

    @validator('log_format')
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ['json', 'console']
        if v.lower() not in valid_formats:
            raise ValueError(f'log_format must be one of: {valid_formats}')
        return v.lower()

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Ignore extra fields from .env

    def is_production(self) -> bool:
        """Check if running in production mode."""
        return not self.debug and not self.test_mode


# Global configuration instance
config = AppConfig()
