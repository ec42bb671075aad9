"""
Venue adapter registry with dependency injection.

Adapters register themselves with the ``@register(Venue.X)`` decorator
when their module is imported. The registry builds adapters with the
collaborators the caller supplies, filling in the environment credentials,
the default httpx transport and the system clock for anything omitted.
"""

from collections.abc import Callable
from typing import TypeVar

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from src.exchange.config import AdapterConfig, Credentials, CredentialsSettings
from src.exchange.enums import Venue
from src.exchange.protocols.venue import ClockProtocol, HTTPClientProtocol
from src.exchange.signing.clock import SystemClock
from src.exchange.transport.http import HttpxClient

T = TypeVar("T")


class RegistryConfig(BaseSettings):
    """Registry configuration using Pydantic Settings."""

    enabled_venues: list[Venue] = Field(
        default_factory=lambda: list(Venue),
        description="Venues whose adapters may be registered",
    )

    model_config = {"env_prefix": "EXCHANGE_REGISTRY_"}


class AdapterRegistry(BaseModel):
    """
    Registry mapping venues to adapter classes.

    Follows Pydantic philosophy - the model IS the configuration.
    Provides clean dependency injection and test isolation.
    """

    config: RegistryConfig = Field(default_factory=RegistryConfig)
    adapters: dict[Venue, type] = Field(default_factory=dict, exclude=True)

    model_config = {"arbitrary_types_allowed": True}

    @classmethod
    def default(cls) -> "AdapterRegistry":
        """
        Get default registry.

        Used for production scenarios where adapters register themselves.
        """
        global _default_registry
        if _default_registry is None:
            _default_registry = cls()
        return _default_registry

    @classmethod
    def testing(cls) -> "AdapterRegistry":
        """Get an isolated, empty registry for testing."""
        return cls()

    def register(self, venue: Venue) -> Callable[[type[T]], type[T]]:
        """
        Register an adapter class for a venue.

        Only registers if the venue is in the enabled list.

        Args:
            venue: Venue the adapter talks to

        Returns:
            Decorator function

        """

        def decorator(adapter_class: type[T]) -> type[T]:
            if venue in self.config.enabled_venues:
                if venue in self.adapters:
                    raise ValueError(f"Adapter for '{venue.value}' already registered")
                self.adapters[venue] = adapter_class
            return adapter_class

        return decorator

    def get(self, venue: Venue | str) -> type:
        """
        Get the adapter class of a venue.

        Args:
            venue: Venue or its name

        Returns:
            Adapter class

        Raises:
            KeyError: If no adapter is registered for the venue

        """
        key = _as_venue(venue)
        if key not in self.adapters:
            raise KeyError(f"No adapter registered for '{key.value}'")
        return self.adapters[key]

    def has(self, venue: Venue | str) -> bool:
        """Check if a venue has a registered adapter."""
        try:
            return _as_venue(venue) in self.adapters
        except KeyError:
            return False

    def list_venues(self) -> list[Venue]:
        """List registered venues, sorted by name."""
        return sorted(self.adapters, key=lambda v: v.value)

    def clear(self) -> None:
        """Clear all registrations (mainly for testing)."""
        self.adapters.clear()

    def create(
        self,
        venue: Venue | str,
        credentials: Credentials | None = None,
        http: HTTPClientProtocol | None = None,
        clock: ClockProtocol | None = None,
        config: AdapterConfig | None = None,
        **kwargs: object,
    ) -> object:
        """
        Build an adapter for a venue.

        Args:
            venue: Venue or its name
            credentials: Credential set, read from ``EXCHANGE_<VENUE>_*`` if None
            http: HTTP capability, a new HttpxClient if None
            clock: Clock, the system clock if None
            config: Adapter settings, read from the environment if None
            **kwargs: Extra adapter constructor arguments (e.g. ``base_url``)

        Returns:
            Adapter instance

        Raises:
            KeyError: If no adapter is registered for the venue

        """
        key = _as_venue(venue)
        adapter_class = self.get(key)
        return adapter_class(
            credentials=credentials or CredentialsSettings.for_venue(key),
            http=http or HttpxClient(),
            clock=clock or SystemClock(),
            config=config or AdapterConfig(),
            **kwargs,
        )


def _as_venue(venue: Venue | str) -> Venue:
    if isinstance(venue, Venue):
        return venue
    try:
        return Venue(venue.lower())
    except ValueError as e:
        raise KeyError(f"Unknown venue '{venue}'") from e


_default_registry: AdapterRegistry | None = None


def get_default_registry() -> AdapterRegistry:
    """Get or create the default registry singleton."""
    global _default_registry
    if _default_registry is None:
        _default_registry = AdapterRegistry.default()
    return _default_registry


def register(venue: Venue) -> Callable[[type[T]], type[T]]:
    """
    Register an adapter with the default registry.

    Example:
        @register(Venue.BINANCE)
        class BinanceAdapter:
            ...

    """
    return get_default_registry().register(venue)
