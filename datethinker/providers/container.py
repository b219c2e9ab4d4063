"""
Provider container for dependency injection and provider management.

This module provides a centralized registry for all venue providers, enabling:
- Dependency injection (tests register fakes, the app registers real adapters)
- Category lookup in a fixed call order
- Health monitoring
- Lifecycle management
"""

from typing import Dict, List, Optional, Type
import logging

from datethinker.config import Config, get_config
from .base import VenueProvider, ProviderStatus, HealthCheckResult


class ProviderContainer:
    """Container for managing provider instances.

    Registration order is the provider call order: results are merged in
    this order, so it decides which provider's venues come first.
    """

    def __init__(self):
        """Initialize the provider container."""
        self.logger = logging.getLogger(__name__)
        self._providers: Dict[str, VenueProvider] = {}
        self._provider_classes: Dict[str, Type[VenueProvider]] = {}
        self._health_status: Dict[str, HealthCheckResult] = {}

    def register(
        self,
        name: str,
        provider_class: Type[VenueProvider],
        instance: Optional[VenueProvider] = None,
    ) -> None:
        """Register a provider with the container.

        Args:
            name: Provider name/identifier
            provider_class: Provider class type
            instance: Optional pre-created instance
        """
        self._provider_classes[name] = provider_class

        if instance:
            self._providers[name] = instance

        self.logger.info(f"Registered provider: {name}")

    def get(self, name: str) -> Optional[VenueProvider]:
        """Get a provider by name.

        Args:
            name: Provider name

        Returns:
            Provider instance or None if not found
        """
        # Return existing instance if available
        if name in self._providers:
            return self._providers[name]

        # Create instance if class is registered
        if name in self._provider_classes:
            provider_class = self._provider_classes[name]
            instance = provider_class()
            self._providers[name] = instance
            return instance

        return None

    def providers_for(self, category: str, query_capable: bool = False) -> List[VenueProvider]:
        """Providers serving a venue category, in registration order.

        Args:
            category: Venue category
            query_capable: Only providers whose results depend on a free-text query
        """
        providers = []
        for name in self._provider_classes:
            provider = self.get(name)
            if provider is None or not provider.supports(category):
                continue
            if query_capable and not provider.supports_query:
                continue
            providers.append(provider)
        return providers

    async def health_check_all(self) -> Dict[str, HealthCheckResult]:
        """Run health checks on all registered providers.

        Returns:
            Dictionary mapping provider names to health check results
        """
        results = {}

        for name in self._provider_classes:
            provider = self.get(name)
            try:
                result = await provider.health_check()
                results[name] = result
                self._health_status[name] = result
            except Exception as e:
                self.logger.error(f"Health check failed for {name}: {e}")
                results[name] = HealthCheckResult(
                    status=ProviderStatus.UNHEALTHY,
                    latency_ms=0,
                    message=f"Health check error: {str(e)}"
                )

        return results

    def get_healthy_providers(self) -> List[str]:
        """Names of providers whose last health check passed."""
        return [name for name, status in self._health_status.items() if status.is_healthy]

    def list_providers(self) -> List[str]:
        """List all registered provider names.

        Returns:
            List of provider names
        """
        return list(self._provider_classes.keys())

    async def close_all(self) -> None:
        """Close all provider connections and cleanup resources."""
        for name, provider in self._providers.items():
            try:
                await provider.close()
                self.logger.info(f"Closed provider: {name}")
            except Exception as e:
                self.logger.error(f"Error closing provider {name}: {e}")


def build_default_container(cfg: Optional[Config] = None) -> ProviderContainer:
    """Create a container with every venue provider wired to its API key."""
    from .yelp_provider import YelpProvider
    from .google_places_provider import GooglePlacesProvider
    from .geoapify_provider import GeoapifyProvider
    from .eventbrite_provider import EventbriteProvider
    from .ticketmaster_provider import TicketmasterProvider

    cfg = cfg or get_config()
    pc = cfg.provider_config
    timeout = cfg.get_timeout('provider')

    container = ProviderContainer()
    container.register("yelp", YelpProvider, YelpProvider(api_key=pc.yelp_api_key, timeout=timeout))
    container.register("google", GooglePlacesProvider, GooglePlacesProvider(
        api_key=pc.google_api_key, timeout=timeout, max_results=pc.google_max_results))
    container.register("geoapify", GeoapifyProvider, GeoapifyProvider(
        api_key=pc.geoapify_api_key, timeout=timeout,
        radius_m=pc.geoapify_radius_m, discovery_radius_m=pc.geoapify_discovery_radius_m))
    container.register("eventbrite", EventbriteProvider, EventbriteProvider(
        api_key=pc.eventbrite_api_key, timeout=timeout))
    container.register("ticketmaster", TicketmasterProvider, TicketmasterProvider(
        api_key=pc.ticketmaster_api_key, timeout=timeout))
    return container


# Global container instance
_container: Optional[ProviderContainer] = None


def get_container() -> ProviderContainer:
    """Get the global provider container, building the default one on first use.

    Returns:
        ProviderContainer instance
    """
    global _container
    if _container is None:
        _container = build_default_container()
    return _container


def set_container(container: ProviderContainer) -> None:
    """Install a container as the global one (tests inject fakes this way)."""
    global _container
    _container = container


def reset_container() -> None:
    """Reset the global container (useful for testing)."""
    global _container
    _container = None


def register_provider(
    name: str,
    provider_class: Type[VenueProvider],
    instance: Optional[VenueProvider] = None,
) -> None:
    """Register a provider with the global container."""
    get_container().register(name, provider_class, instance)


def get_provider(name: str) -> Optional[VenueProvider]:
    """Get a provider from the global container."""
    return get_container().get(name)
