"""
Runtime configuration of the Food Delivery API.

One Settings object, read from the environment when the process starts,
drives the whole service: where it listens, which MongoDB it connects to,
and how each request policy (security headers, rate limiting, CORS, body
limits) behaves.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import AliasChoices, Field, ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Accepted values of enumerated settings, normalised to the given case
CHOICES = {
    "log_level": (str.upper, ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")),
    "environment": (str.lower, ("development", "staging", "production")),
    "log_format": (str.lower, ("json", "text")),
    "rate_limit_strategy": (str.lower, ("fixed-window", "moving-window")),
}


class Settings(BaseSettings):
    """
    Service settings.

    Every field maps to a FOOD_API_-prefixed environment variable
    (FOOD_API_RATE_LIMIT_REQUESTS, ...) or a .env entry. The listening
    port and the MongoDB URI also honour the conventional PORT and
    MONGODB_URI variables.
    """

    # =========================================================================
    # API Settings
    # =========================================================================

    app_name: str = Field(
        default="Food Delivery API",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="API version"
    )
    api_prefix: str = Field(
        default="/api",
        description="URL prefix shared by every route group"
    )

    debug: bool = Field(
        default=False,
        description="Debug mode - enables auto-reload and verbose logging"
    )
    environment: str = Field(
        default="production",
        description="Environment: development|staging|production"
    )
    docs_enabled: bool = Field(
        default=False,
        description="Serve /docs, /redoc and /openapi.json"
    )

    host: str = Field(
        default="0.0.0.0",
        description="API bind host"
    )
    port: int = Field(
        default=5000,
        description="API bind port",
        gt=0,
        lt=65536,
        validation_alias=AliasChoices("FOOD_API_PORT", "PORT"),
    )

    # =========================================================================
    # Database Settings (MongoDB)
    # =========================================================================

    mongodb_uri: str = Field(
        default="mongodb://localhost:27017/food-delivery",
        description="MongoDB connection URI",
        validation_alias=AliasChoices("FOOD_API_MONGODB_URI", "MONGODB_URI"),
    )
    mongodb_database: str = Field(
        default="food-delivery",
        description="Database used when the URI does not name one"
    )
    mongodb_server_selection_timeout_ms: int = Field(
        default=30000,
        description="How long the connection attempt waits for a usable server (ms)",
        gt=0
    )
    mongodb_connect_timeout_ms: int = Field(
        default=10000,
        description="Socket connect timeout (ms)",
        gt=0
    )

    # =========================================================================
    # CORS Settings
    # =========================================================================

    cors_enabled: bool = Field(
        default=True,
        description="Enable CORS middleware"
    )
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins"
    )
    cors_allow_credentials: bool = Field(
        default=True,
        description="Allow credentials (cookies, authorization headers) in CORS"
    )
    cors_allow_methods: List[str] = Field(
        default=["GET", "HEAD", "PUT", "PATCH", "POST", "DELETE"],
        description="Allowed HTTP methods"
    )
    cors_allow_headers: List[str] = Field(
        default=["*"],
        description="Allowed HTTP headers"
    )
    cors_max_age: int = Field(
        default=600,
        description="CORS preflight cache duration (seconds)"
    )

    # =========================================================================
    # Rate Limiting Settings
    # =========================================================================

    rate_limit_enabled: bool = Field(
        default=True,
        description="Enable rate limiting"
    )
    rate_limit_requests: int = Field(
        default=100,
        description="Max requests per window per client",
        gt=0,
        le=100000
    )
    rate_limit_window: int = Field(
        default=15 * 60,
        description="Rate limit window (seconds)",
        gt=0,
        le=86400
    )
    rate_limit_message: str = Field(
        default="Too many requests from this IP, please try again later.",
        description="Plain-text body sent with 429 responses"
    )
    rate_limit_path_prefix: Optional[str] = Field(
        default=None,
        description="Path prefix the limiter applies to (defaults to api_prefix)"
    )
    rate_limit_exempt_paths: List[str] = Field(
        default=[],
        description="Exact paths under the prefix that are never counted"
    )
    rate_limit_strategy: str = Field(
        default="fixed-window",
        description="Counting strategy: fixed-window|moving-window"
    )
    rate_limit_storage_url: str = Field(
        default="async+memory://",
        description="limits storage URI (e.g. async+redis://redis:6379 for shared counters)"
    )
    rate_limit_headers_enabled: bool = Field(
        default=True,
        description="Send X-RateLimit-* headers on limited paths"
    )

    # =========================================================================
    # Request Body Settings
    # =========================================================================

    body_json_limit: int = Field(
        default=10 * 1024 * 1024,  # 10 MB
        description="Maximum JSON request body size in bytes",
        gt=0
    )
    body_form_limit: int = Field(
        default=10 * 1024 * 1024,  # 10 MB
        description="Maximum URL-encoded request body size in bytes",
        gt=0
    )

    # =========================================================================
    # Security Settings
    # =========================================================================

    security_headers_enabled: bool = Field(
        default=True,
        description="Enable security headers (X-Frame-Options, etc.)"
    )
    security_hsts_max_age: int = Field(
        default=31536000,  # 1 year
        description="HSTS max age (seconds), 0 disables the header",
        ge=0
    )
    security_csp_enabled: bool = Field(
        default=True,
        description="Enable Content Security Policy header"
    )
    security_csp: str = Field(
        default=(
            "default-src 'self';base-uri 'self';font-src 'self' https: data:;"
            "form-action 'self';frame-ancestors 'self';img-src 'self' data:;"
            "object-src 'none';script-src 'self';script-src-attr 'none';"
            "style-src 'self' https: 'unsafe-inline';upgrade-insecure-requests"
        ),
        description="Content Security Policy header value"
    )

    # =========================================================================
    # Monitoring and Observability
    # =========================================================================

    metrics_enabled: bool = Field(
        default=False,
        description="Expose Prometheus metrics"
    )
    metrics_endpoint: str = Field(
        default="/metrics",
        description="Metrics endpoint path"
    )

    # =========================================================================
    # Logging Settings
    # =========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level: DEBUG|INFO|WARNING|ERROR|CRITICAL"
    )
    log_format: str = Field(
        default="json",
        description="Log format: json|text"
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator(*CHOICES)
    @classmethod
    def validate_choice(cls, v: str, info: ValidationInfo) -> str:
        """Normalise an enumerated setting and reject unknown values."""
        normalise, allowed = CHOICES[info.field_name]
        if normalise(v) not in allowed:
            raise ValueError(f"{info.field_name} must be one of {list(allowed)}, got: {v}")
        return normalise(v)

    @field_validator("api_prefix")
    @classmethod
    def validate_api_prefix(cls, v: str) -> str:
        """Normalise the prefix to a leading slash and no trailing slash."""
        v = "/" + v.strip("/")
        if v == "/":
            raise ValueError("api_prefix must not be empty")
        return v

    @model_validator(mode="after")
    def validate_cors(self) -> "Settings":
        """Credentialed CORS cannot be combined with a wildcard origin."""
        if self.cors_allow_credentials and "*" in self.cors_origins:
            raise ValueError("cors_origins cannot contain '*' when credentials are allowed")
        return self

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def rate_limit_prefix(self) -> str:
        """Path prefix guarded by the rate limiter."""
        return self.rate_limit_path_prefix or self.api_prefix

    # =========================================================================
    # Model Config
    # =========================================================================

    model_config = SettingsConfigDict(
        env_prefix="FOOD_API_",  # Environment variable prefix
        env_file=".env",         # Load from .env file
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",          # Ignore extra environment variables
        validate_default=True,   # Validate default values
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """Settings of the running process, read from the environment once."""
    return Settings()


def clear_settings_cache() -> None:
    """Forget cached settings so the next get_settings() re-reads the environment."""
    get_settings.cache_clear()
