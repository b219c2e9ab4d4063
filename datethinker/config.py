"""
Centralized configuration management with validation and type conversion.

Every tunable of the venue discovery service is read here from environment
variables (optionally loaded from a ``.env`` file) so the rest of the code
never calls ``os.getenv`` directly:
- Provider API keys (a missing key disables that provider)
- Timeouts for outbound provider calls
- Pool, cache and rate limit settings
- Logging
"""

import os
import logging
from typing import Optional, Dict, Any
from dataclasses import dataclass, field
from enum import Enum

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


class Environment(Enum):
    """Application environment types."""
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


@dataclass
class TimeoutConfig:
    """Timeout configuration for different operations."""
    provider: float = 8.0
    geocode: float = 8.0
    photo: float = 10.0
    api: float = 30.0

    def get(self, operation: str) -> float:
        """Get timeout for a specific operation.

        Args:
            operation: Operation name

        Returns:
            Timeout value in seconds
        """
        return getattr(self, operation, self.api)


@dataclass
class RedisConfig:
    """Redis configuration."""
    url: str
    socket_timeout: float = 5.0
    socket_connect_timeout: float = 5.0


@dataclass
class ProviderConfig:
    """Provider keys and search tuning."""
    google_api_key: Optional[str] = None
    geoapify_api_key: Optional[str] = None
    yelp_api_key: Optional[str] = None
    eventbrite_api_key: Optional[str] = None
    ticketmaster_api_key: Optional[str] = None

    geoapify_radius_m: int = 10000
    geoapify_discovery_radius_m: int = 15000
    google_max_results: int = 20
    yelp_max_results: int = 50

    def keys_present(self) -> Dict[str, bool]:
        """Report which provider keys are configured (never the values)."""
        return {
            'GOOGLE_API_KEY': bool(self.google_api_key),
            'GEOAPIFY_API_KEY': bool(self.geoapify_api_key),
            'YELP_API_KEY': bool(self.yelp_api_key),
            'EVENTBRITE_API_KEY': bool(self.eventbrite_api_key),
            'TICKETMASTER_API_KEY': bool(self.ticketmaster_api_key),
        }


@dataclass
class PoolConfig:
    """Per-city venue pool configuration."""
    batch_size: int = 20
    max_rounds: int = 3
    ttl: int = 0  # seconds, 0 disables expiry


@dataclass
class CacheConfig:
    """Response cache configuration."""
    ttl_discovery: int = 180  # 3 minutes
    explore_max_age: int = 300  # 5 minutes
    photo_max_age: int = 86400  # 24 hours


@dataclass
class RateLimitConfig:
    """Per-client request limits (calls per window)."""
    enabled: bool = True
    window_seconds: float = 60.0
    limits: Dict[str, int] = field(default_factory=lambda: {
        'search': 10,
        'refresh': 20,
        'explore': 150,
        'discovery': 150,
        'details': 60,
    })


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None
    max_bytes: int = 10485760  # 10MB
    backup_count: int = 5


class Config:
    """Centralized configuration with validation and type conversion."""

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.environment = self._get_environment()
        self.debug = self._get_bool("DEBUG", False)
        self.debug_endpoints = self._get_bool("DEBUG_ENDPOINTS", self.environment != Environment.PRODUCTION)

        # URLs
        self.redis_url: str = self._get_optional("REDIS_URL") or ""
        self.cors_origins = self._get_list("CORS_ORIGINS", ["*"])

        # Timeouts
        self.timeout_config = TimeoutConfig(
            provider=self._get_float("TIMEOUT_PROVIDER", 8.0),
            geocode=self._get_float("TIMEOUT_GEOCODE", 8.0),
            photo=self._get_float("TIMEOUT_PHOTO", 10.0),
            api=self._get_float("TIMEOUT_API", 30.0),
        )

        # Redis
        self.redis_config = RedisConfig(
            url=self.redis_url,
            socket_timeout=self._get_float("REDIS_SOCKET_TIMEOUT", 5.0),
            socket_connect_timeout=self._get_float("REDIS_SOCKET_CONNECT_TIMEOUT", 5.0),
        )

        # Providers
        self.provider_config = ProviderConfig(
            google_api_key=self._get_optional("GOOGLE_API_KEY"),
            geoapify_api_key=self._get_optional("GEOAPIFY_API_KEY"),
            yelp_api_key=self._get_optional("YELP_API_KEY"),
            eventbrite_api_key=self._get_optional("EVENTBRITE_API_KEY"),
            ticketmaster_api_key=self._get_optional("TICKETMASTER_API_KEY"),
            geoapify_radius_m=self._get_int("GEOAPIFY_RADIUS_M", 10000),
            geoapify_discovery_radius_m=self._get_int("GEOAPIFY_DISCOVERY_RADIUS_M", 15000),
            google_max_results=self._get_int("GOOGLE_MAX_RESULTS", 20),
            yelp_max_results=self._get_int("YELP_MAX_RESULTS", 50),
        )

        # Pool
        self.pool_config = PoolConfig(
            batch_size=self._get_int("POOL_BATCH_SIZE", 20),
            max_rounds=self._get_int("POOL_MAX_ROUNDS", 3),
            ttl=self._get_int("POOL_TTL_SECONDS", 0),
        )

        # Cache
        self.cache_config = CacheConfig(
            ttl_discovery=self._get_int("CACHE_TTL_DISCOVERY", 180),
            explore_max_age=self._get_int("CACHE_EXPLORE_MAX_AGE", 300),
            photo_max_age=self._get_int("CACHE_PHOTO_MAX_AGE", 86400),
        )

        # Rate limiting
        self.rate_limit_config = RateLimitConfig(
            enabled=self._get_bool("RATE_LIMIT_ENABLED", True),
            window_seconds=self._get_float("RATE_LIMIT_WINDOW", 60.0),
            limits={
                'search': self._get_int("RATE_LIMIT_SEARCH", 10),
                'refresh': self._get_int("RATE_LIMIT_REFRESH", 20),
                'explore': self._get_int("RATE_LIMIT_EXPLORE", 150),
                'discovery': self._get_int("RATE_LIMIT_DISCOVERY", 150),
                'details': self._get_int("RATE_LIMIT_DETAILS", 60),
            },
        )

        # Logging
        self.logging_config = LoggingConfig(
            level=self._get_str("LOG_LEVEL", "INFO"),
            format=self._get_str("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
            file=self._get_optional("LOG_FILE"),
            max_bytes=self._get_int("LOG_MAX_BYTES", 10485760),
            backup_count=self._get_int("LOG_BACKUP_COUNT", 5),
        )

        # Validation
        self._validate()

    def _get_environment(self) -> Environment:
        """Get application environment."""
        env_str = self._get_str("ENVIRONMENT", "development").lower()
        try:
            return Environment(env_str)
        except ValueError:
            raise ValueError(f"Invalid environment: {env_str}")

    def _get_optional(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get optional environment variable.

        Args:
            key: Environment variable name
            default: Default value if not found

        Returns:
            Environment variable value or default
        """
        return os.getenv(key) or default

    def _get_str(self, key: str, default: str) -> str:
        """Get string environment variable with default."""
        return os.getenv(key, default)

    def _get_int(self, key: str, default: int) -> int:
        """Get integer environment variable with default.

        Raises:
            ValueError: If value cannot be converted to int
        """
        value = os.getenv(key)
        if value is None or value == "":
            return default
        try:
            return int(value)
        except ValueError:
            raise ValueError(f"Invalid integer for {key}: {value}")

    def _get_float(self, key: str, default: float) -> float:
        """Get float environment variable with default.

        Raises:
            ValueError: If value cannot be converted to float
        """
        value = os.getenv(key)
        if value is None or value == "":
            return default
        try:
            return float(value)
        except ValueError:
            raise ValueError(f"Invalid float for {key}: {value}")

    def _get_bool(self, key: str, default: bool) -> bool:
        """Get boolean environment variable with default."""
        value = os.getenv(key)
        if value is None or value == "":
            return default
        return value.lower() in ('1', 'true', 'yes', 'on')

    def _get_list(self, key: str, default: list) -> list:
        """Get comma separated list environment variable with default."""
        value = os.getenv(key)
        if value is None:
            return default
        return [item.strip() for item in value.split(',') if item.strip()]

    def _validate(self):
        """Validate configuration values."""
        for attr_name in ['provider', 'geocode', 'photo', 'api']:
            timeout = getattr(self.timeout_config, attr_name)
            if timeout <= 0:
                raise ValueError(f"Invalid timeout for {attr_name}: {timeout}")

        # Validate Redis URL only if provided
        if self.redis_url and not self.redis_url.startswith(('redis://', 'rediss://')):
            raise ValueError(f"Invalid Redis URL: {self.redis_url}")

        if self.pool_config.batch_size <= 0:
            raise ValueError(f"Invalid pool batch size: {self.pool_config.batch_size}")

        # Missing keys only degrade the matching provider
        missing = [k for k, v in self.provider_config.keys_present().items() if not v]
        if missing and not self.is_testing():
            logger.warning("Provider keys not set, these providers will return no results: %s", ", ".join(missing))

    def get_timeout(self, operation: str) -> float:
        """Get timeout for a specific operation."""
        return self.timeout_config.get(operation)

    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == Environment.DEVELOPMENT

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.environment == Environment.TESTING

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for debugging.

        API keys are reported as present/absent only.
        """
        return {
            'environment': self.environment.value,
            'debug': self.debug,
            'redis_url': self.redis_url,
            'timeout_config': {
                'provider': self.timeout_config.provider,
                'geocode': self.timeout_config.geocode,
                'photo': self.timeout_config.photo,
                'api': self.timeout_config.api,
            },
            'pool_config': {
                'batch_size': self.pool_config.batch_size,
                'max_rounds': self.pool_config.max_rounds,
                'ttl': self.pool_config.ttl,
            },
            'cache_config': {
                'ttl_discovery': self.cache_config.ttl_discovery,
                'explore_max_age': self.cache_config.explore_max_age,
            },
            'rate_limit': {
                'enabled': self.rate_limit_config.enabled,
                'window_seconds': self.rate_limit_config.window_seconds,
                'limits': dict(self.rate_limit_config.limits),
            },
            'providers': self.provider_config.keys_present(),
        }


# Global configuration instance
config = Config()


def get_config() -> Config:
    """Get the global configuration instance.

    Returns:
        Configuration instance
    """
    return config


def reload_config() -> Config:
    """Re-read the environment into a fresh global configuration (used by tests)."""
    global config
    config = Config()
    return config


def setup_logging():
    """Set up logging based on configuration."""
    from logging.handlers import RotatingFileHandler

    config = get_config()

    logging.basicConfig(
        level=getattr(logging, config.logging_config.level.upper()),
        format=config.logging_config.format,
    )

    # Add file handler if configured
    if config.logging_config.file:
        file_handler = RotatingFileHandler(
            config.logging_config.file,
            maxBytes=config.logging_config.max_bytes,
            backupCount=config.logging_config.backup_count,
        )
        file_handler.setFormatter(logging.Formatter(config.logging_config.format))
        logging.getLogger().addHandler(file_handler)

    # Quiet noisy client libraries
    logging.getLogger('aiohttp').setLevel(logging.WARNING)
    logging.getLogger('asyncio').setLevel(logging.WARNING)

    if config.is_development() and config.debug:
        logging.getLogger().setLevel(logging.DEBUG)
    elif config.is_production():
        logging.getLogger().setLevel(logging.INFO)
