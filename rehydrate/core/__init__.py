"""
rehydrate: incremental denormalization of normalized, reference-based data.
"""

from rehydrate.core.cache import CacheEntry, DenormalizationCache
from rehydrate.core.config import AppConfig
from rehydrate.core.denormalizer import Denormalizer
from rehydrate.core.descriptors import (build_collection_descriptor,
                                        build_item_descriptor)
from rehydrate.core.exceptions import (AmbiguousSchemaError, ConfigError,
                                       EntityNotFoundError,
                                       MalformedReferenceError,
                                       RehydrateError)
from rehydrate.core.graph import GraphDenormalizer
from rehydrate.core.interfaces import (AbstractGraphDenormalizer,
                                       AbstractNormalizedRepository)
from rehydrate.core.repository import (InMemoryRepository, StoreRepository,
                                       create_schemas_map)
from rehydrate.core.resolver import CacheResolver, ResolutionState
from rehydrate.core.status import CollectionStatus, StatusMetadata, apply_status
from rehydrate.core.types import (CollectionReference, DenormalizedCollection,
                                  DenormalizedEntity, Descriptor, Id,
                                  NormalizedEntity, Reference)

__all__ = [
    # Types
    "CollectionReference",
    "DenormalizedCollection",
    "DenormalizedEntity",
    "Descriptor",
    "Id",
    "NormalizedEntity",
    "Reference",
    "StatusMetadata",
    "CollectionStatus",
    # Configuration
    "AppConfig",
    # Denormalization
    "Denormalizer",
    "DenormalizationCache",
    "CacheEntry",
    "CacheResolver",
    "ResolutionState",
    "GraphDenormalizer",
    "InMemoryRepository",
    "StoreRepository",
    "create_schemas_map",
    "apply_status",
    "build_item_descriptor",
    "build_collection_descriptor",
    # Abstract Base Classes
    "AbstractGraphDenormalizer",
    "AbstractNormalizedRepository",
    # Errors
    "RehydrateError",
    "MalformedReferenceError",
    "AmbiguousSchemaError",
    "EntityNotFoundError",
    "ConfigError",
]

__version__ = "0.1.0"
