"""
Configuration management using environment variables.
Handles catalog storage, pagination and logging settings with validation and defaults.
"""

from typing import Optional
from pydantic import Field, validator
from pydantic_settings import BaseSettings
from pathlib import Path


class CatalogConfig(BaseSettings):
    """
    Configuration class for the catalog core.
    Uses pydantic BaseSettings for environment variable management.
    """

    # MongoDB Configuration
    mongodb_url: str = Field(default="mongodb://localhost:27017", env="MONGODB_URL")
    mongodb_database: str = Field(default="book_reviews", env="MONGODB_DATABASE")
    books_collection: str = Field(default="books", env="BOOKS_COLLECTION")
    reviews_collection: str = Field(default="reviews", env="REVIEWS_COLLECTION")
    users_collection: str = Field(default="users", env="USERS_COLLECTION")
    tokens_collection: str = Field(default="access_tokens", env="TOKENS_COLLECTION")

    # Pagination
    default_books_page_size: int = Field(default=5, env="DEFAULT_BOOKS_PAGE_SIZE")
    default_reviews_page_size: int = Field(default=10, env="DEFAULT_REVIEWS_PAGE_SIZE")
    max_page_size: int = Field(default=100, env="MAX_PAGE_SIZE")

    # Consistency hardening (both off by default)
    enforce_unique_reviews: bool = Field(default=False, env="ENFORCE_UNIQUE_REVIEWS")
    use_transactions: bool = Field(default=False, env="USE_TRANSACTIONS")

    # Access tokens
    token_expire_hours: Optional[int] = Field(default=None, env="TOKEN_EXPIRE_HOURS")

    # Logging Configuration
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    log_format: str = Field(default="json", env="LOG_FORMAT")
    log_file: Optional[str] = Field(default=None, env="LOG_FILE")

    # Development/Testing
    debug: bool = Field(default=False, env="DEBUG")

    @validator('default_books_page_size', 'default_reviews_page_size')
    def validate_page_size(cls, v):
        """Ensure default page sizes are reasonable."""
        if v < 1 or v > 100:
            raise ValueError('default page size must be between 1 and 100')
        return v

    @validator('max_page_size')
    def validate_max_page_size(cls, v):
        """Ensure the page size cap is reasonable."""
        if v < 1 or v > 500:
            raise ValueError('max_page_size must be between 1 and 500')
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

    def get_log_file_path(self) -> Optional[Path]:
        """Get log file path as Path object."""
        if self.log_file:
            return Path(self.log_file)
        return None


# Global configuration instance
config = CatalogConfig()
