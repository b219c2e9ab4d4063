"""
Provider base interfaces and abstract classes.

Every venue source (Google Places, Geoapify, Yelp, Eventbrite,
Ticketmaster) implements ``VenueProvider``. The public ``fetch_venues``
method is the adapter boundary:
- A missing API key turns the provider into an empty source
- Each call runs under an explicit timeout
- Any failure is logged and becomes an empty list, never an exception
"""

from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any, Tuple
from dataclasses import dataclass
from enum import Enum
import asyncio
import time
import logging

import aiohttp

from datethinker.config import get_config
from datethinker.models import Venue, VenueDetails


class ProviderStatus(Enum):
    """Provider health status."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class HealthCheckResult:
    """Result of a provider health check."""
    status: ProviderStatus
    latency_ms: float
    message: str
    details: Optional[Dict[str, Any]] = None

    @property
    def is_healthy(self) -> bool:
        """Check if provider is healthy."""
        return self.status == ProviderStatus.HEALTHY

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'latency_ms': round(self.latency_ms, 2),
            'message': self.message,
            'details': self.details or {},
        }


@dataclass
class ProviderMetadata:
    """Metadata about a provider."""
    name: str
    version: str
    description: str
    capabilities: List[str]
    rate_limit: Optional[int] = None  # requests per minute


class VenueProvider(ABC):
    """Base venue provider interface.

    Subclasses set ``name`` (also the venue id prefix), the venue
    ``categories`` they can serve and implement ``_fetch``. ``_fetch`` may
    raise; ``fetch_venues`` never does.
    """

    name: str = "provider"
    categories: Tuple[str, ...] = ()
    # Whether free-text queries change what the upstream API returns
    supports_query: bool = False

    def __init__(self, api_key: Optional[str] = None, timeout: Optional[float] = None):
        """Initialize the provider.

        Args:
            api_key: Upstream API key; None disables the provider
            timeout: Per-call timeout in seconds, defaults to TIMEOUT_PROVIDER
        """
        self.logger = logging.getLogger(self.__class__.__name__)
        self.api_key = api_key
        self.timeout = timeout if timeout is not None else get_config().get_timeout('provider')
        self._metadata: Optional[ProviderMetadata] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def supports(self, category: str) -> bool:
        return category in self.categories

    async def fetch_venues(
        self,
        city: str,
        category: str,
        limit: int,
        offset: int = 0,
        query: Optional[str] = None,
        price: Optional[int] = None,
        discovery: bool = False,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> List[Venue]:
        """Fetch normalized venues for a city.

        Args:
            city: Free-text city name
            category: Venue category ('restaurant', 'activity', 'outdoor', 'event')
            limit: Requested number of venues
            offset: Upstream pagination offset
            query: Optional free-text query for query-capable providers
            price: Optional price tier filter (0-4) for providers that support it
            discovery: Widen the upstream search (larger radius, more pages)
            session: Shared aiohttp session

        Returns:
            List of venues; empty when the provider is unconfigured or fails
        """
        if limit <= 0 or not self.supports(category):
            return []
        if not self.is_configured:
            self.logger.warning("%s API key not configured; returning no %s venues", self.name, category)
            return []
        try:
            return await asyncio.wait_for(
                self._fetch(city, category, limit, offset=offset, query=query,
                            price=price, discovery=discovery, session=session),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            self.logger.warning("%s timed out after %.1fs for %s/%s", self.name, self.timeout, city, category)
        except ProviderError as e:
            self.logger.warning("%s failed for %s/%s: %s", self.name, city, category, e)
        except Exception:
            self.logger.exception("%s raised unexpectedly for %s/%s", self.name, city, category)
        await self._record_error()
        return []

    async def fetch_details(
        self,
        venue_id: str,
        category: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> Optional[VenueDetails]:
        """Look up one venue by its upstream id (the venue id without prefix).

        Same boundary as ``fetch_venues``: None when the provider is
        unconfigured, has no details lookup, or the call fails.
        """
        if not venue_id:
            return None
        if not self.is_configured:
            self.logger.warning("%s API key not configured; no details for %s", self.name, venue_id)
            return None
        try:
            return await asyncio.wait_for(
                self._fetch_details(venue_id, category=category, session=session),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            self.logger.warning("%s details timed out after %.1fs for %s", self.name, self.timeout, venue_id)
        except ProviderError as e:
            self.logger.warning("%s details failed for %s: %s", self.name, venue_id, e)
        except Exception:
            self.logger.exception("%s details raised unexpectedly for %s", self.name, venue_id)
        await self._record_error()
        return None

    async def _fetch_details(self, venue_id: str, category: Optional[str] = None,
                             session: Optional[aiohttp.ClientSession] = None) -> Optional[VenueDetails]:
        """Upstream details lookup. Providers without one return None.

        Raises:
            ProviderError: If the upstream call fails
        """
        return None

    async def _record_error(self) -> None:
        from datethinker.src.metrics import increment
        await increment(f"provider.{self.name}.errors")

    @abstractmethod
    async def _fetch(
        self,
        city: str,
        category: str,
        limit: int,
        offset: int = 0,
        query: Optional[str] = None,
        price: Optional[int] = None,
        discovery: bool = False,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> List[Venue]:
        """Perform the upstream call(s) and normalize the records.

        Raises:
            ProviderError: If the upstream call fails
        """
        pass

    @abstractmethod
    async def get_metadata(self) -> ProviderMetadata:
        """Get provider metadata.

        Returns:
            Provider metadata including name, version, capabilities
        """
        pass

    async def health_check(self) -> HealthCheckResult:
        """Check provider health.

        Runs a one-venue fetch for a well known city through ``_fetch`` so
        upstream errors surface instead of being swallowed.
        """
        if not self.is_configured:
            return HealthCheckResult(
                status=ProviderStatus.DEGRADED,
                latency_ms=0.0,
                message=f"Provider {self.name} has no API key",
            )
        start_time = time.time()
        try:
            venues = await asyncio.wait_for(
                self._fetch("New York", self.categories[0], 1),
                timeout=self.timeout,
            )
            latency_ms = (time.time() - start_time) * 1000
            return HealthCheckResult(
                status=ProviderStatus.HEALTHY,
                latency_ms=latency_ms,
                message=f"Provider {self.name} is healthy",
                details={"latency_ms": latency_ms, "results": len(venues)}
            )
        except Exception as e:
            latency_ms = (time.time() - start_time) * 1000
            return HealthCheckResult(
                status=ProviderStatus.UNHEALTHY,
                latency_ms=latency_ms,
                message=f"Provider health check failed: {str(e)}",
                details={"error": str(e)}
            )

    async def is_available(self) -> bool:
        """Check if provider is available.

        Returns:
            True if provider is available and healthy
        """
        result = await self.health_check()
        return result.is_healthy

    async def close(self) -> None:
        """Release provider resources. Providers with caches override this."""
        return None


class ProviderError(Exception):
    """Base exception for provider errors."""

    def __init__(self, message: str, provider_name: Optional[str] = None, details: Optional[Dict] = None):
        """Initialize provider error.

        Args:
            message: Error message
            provider_name: Name of the provider that failed
            details: Additional error details
        """
        super().__init__(message)
        self.provider_name = provider_name
        self.details = details or {}


class ProviderNotAvailableError(ProviderError):
    """Raised when a provider is not available."""
    pass


class ProviderRateLimitError(ProviderError):
    """Raised when provider rate limit is exceeded."""
    pass


class ProviderTimeoutError(ProviderError):
    """Raised when provider request times out."""
    pass
