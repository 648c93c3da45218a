"""
API configuration settings.
"""

from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class APIConfig(BaseSettings):
    """API configuration settings.

    Built once at startup and handed to the services that need it. Instances
    are frozen so request handlers cannot mutate shared configuration.
    """

    # API Settings
    api_title: str = "Minimal Books API"
    api_version: str = "1.0.0"
    api_description: str = "CRUD operations over books with JWT bearer authentication"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Database Settings
    database_url: str = "sqlite:///./books.db"

    # JWT Settings
    jwt_key: str = ""
    jwt_issuer: str = ""
    jwt_audience: str = ""
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # Users allowed to log in, comma-separated "username:password" pairs
    auth_users: str = ""

    # Route names that require a valid bearer token
    protected_routes: List[str] = ["Authorized"]

    # CORS Settings
    cors_origins: list = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list = ["*"]
    cors_allow_headers: list = ["*"]

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"
    log_file: Optional[str] = None

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
        "frozen": True,
    }

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ["json", "console"]
        if v.lower() not in valid_formats:
            raise ValueError(f"log_format must be one of: {valid_formats}")
        return v.lower()

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, v):
        """Tokens are always signed with HMAC-SHA-256."""
        if v.upper() != "HS256":
            raise ValueError("jwt_algorithm must be HS256")
        return v.upper()

    @field_validator("access_token_expire_minutes")
    @classmethod
    def validate_token_lifetime(cls, v):
        if v < 1:
            raise ValueError("access_token_expire_minutes must be positive")
        return v

    def get_user_credentials(self) -> dict:
        """
        Parse the configured users into a username -> password mapping.

        Entries without a ``:`` separator or with an empty username are skipped.
        """
        credentials = {}
        for entry in self.auth_users.split(","):
            username, sep, password = entry.strip().partition(":")
            if sep and username:
                credentials[username] = password
        return credentials

    def is_sqlite(self) -> bool:
        """Check if the configured database is SQLite."""
        return self.database_url.startswith("sqlite")
