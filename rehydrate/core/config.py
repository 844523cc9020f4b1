from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from rehydrate.core.cache import DenormalizationCache
from rehydrate.core.interfaces import (AbstractGraphDenormalizer,
                                       AbstractNormalizedRepository,
                                       StatusApplier)
from rehydrate.core.telemetry import TelemetryContext, create_telemetry_context


class AppConfig(ABC):
    """
    Global configuration for the system.
    Developers configure:
      - The normalized repository the denormalizers read from
      - The graph denormalizer expanding references (defaults to GraphDenormalizer)
      - The status applier stamping status metadata (defaults to apply_status)

    The config owns one DenormalizationCache; every denormalizer built from it
    shares that cache until it is flushed.
    """

    repository: Optional[AbstractNormalizedRepository] = None
    graph: Optional[AbstractGraphDenormalizer] = None
    status_applier: Optional[StatusApplier] = None
    cache: Optional[DenormalizationCache] = None

    # Telemetry for debugging
    enable_telemetry: bool = False

    def configure(self, **kwargs) -> None:
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)
            else:
                raise AttributeError(f"Invalid configuration key: {key}")

    @abstractmethod
    def initialize(self) -> None:
        """
        Initialize the global configuration for the system.

        Sets up the repository and any other collaborator the application needs
        before the first denormalization. Must be implemented by each subclass.

        Raises:
            NotImplementedError: If the method is not implemented in a subclass.
        """
        pass

    def build_denormalizer(self):
        """
        Create a Denormalizer wired to this configuration and its shared cache.
        """
        from rehydrate.core.denormalizer import Denormalizer

        if self.cache is None:
            self.cache = DenormalizationCache()
        return Denormalizer(
            repository=self.repository,
            cache=self.cache,
            graph=self.graph,
            status_applier=self.status_applier,
        )

    def start_telemetry(self) -> TelemetryContext:
        """Activate a telemetry context honouring `enable_telemetry`."""
        return create_telemetry_context(enabled=self.enable_telemetry)
