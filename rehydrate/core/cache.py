"""
Denormalization cache store.

Holds, per entity descriptor, the last denormalized value together with the
status tokens observed when it was computed:

- own_status: the entity's own status token
- observed_status: relationship name -> status token(s) of the referenced entities
- observed_references: relationship name -> the referenced descriptor(s)

Collections are stored separately, keyed by (schema, tag), together with the
exact ordered membership they were built from.

Entries are replaced wholesale on recomputation and are only removed by a full
flush. There is no eviction and no locking: one cache object is shared by every
denormalizer it is handed to, and the host serializes access.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from rehydrate.core.types import (
    CollectionDescriptor,
    DenormalizedCollection,
    DenormalizedEntity,
    Descriptor,
    NormalizedEntity,
    RelationshipRef,
)

logger = logging.getLogger(__name__)

CollectionKey = Tuple[Optional[str], Optional[str]]


@dataclass(frozen=True)
class CacheEntry:
    descriptor: Descriptor
    value: DenormalizedEntity
    own_status: Any
    observed_status: Mapping[str, Any] = field(default_factory=dict)
    observed_references: Mapping[str, RelationshipRef] = field(default_factory=dict)


@dataclass(frozen=True)
class CollectionRecord:
    key: CollectionKey
    membership: Tuple[Descriptor, ...]
    value: DenormalizedCollection
    status: Any = None


class DenormalizationCache:
    """
    Process-lifetime store of denormalized entities and collections.

    Construct one explicitly and pass it to every denormalizer that should share
    results; independent caches (per test, per tenant) can coexist.
    """

    def __init__(self) -> None:
        self._items: Dict[Descriptor, CacheEntry] = {}
        self._collections: Dict[CollectionKey, CollectionRecord] = {}

    def get_item(self, descriptor: Descriptor) -> Optional[CacheEntry]:
        return self._items.get(descriptor)

    def cache_item(
        self,
        entity: NormalizedEntity,
        value: DenormalizedEntity,
        observed_status: Mapping[str, Any],
        observed_references: Mapping[str, RelationshipRef],
    ) -> DenormalizedEntity:
        """
        Store `value` as the single authoritative entry for `entity` and return it.
        """
        descriptor = entity.descriptor
        self._items[descriptor] = CacheEntry(
            descriptor=descriptor,
            value=value,
            own_status=entity.status,
            observed_status=dict(observed_status),
            observed_references=dict(observed_references),
        )
        logger.debug("Cached %s", descriptor)
        return value

    def get_collection(self, key: CollectionKey) -> Optional[CollectionRecord]:
        return self._collections.get(key)

    def cache_collection(
        self, descriptor: CollectionDescriptor, value: DenormalizedCollection
    ) -> DenormalizedCollection:
        self._collections[descriptor.key] = CollectionRecord(
            key=descriptor.key,
            membership=tuple(descriptor.members),
            value=value,
            status=descriptor.status,
        )
        logger.debug(
            "Cached collection schema=%s tag=%s (%d members)",
            descriptor.schema,
            descriptor.tag,
            len(value),
        )
        return value

    def flush(self) -> None:
        """Drop every entry and collection record."""
        self._items = {}
        self._collections = {}
        logger.info("Denormalization cache flushed")

    def __contains__(self, descriptor: Descriptor) -> bool:
        return descriptor in self._items

    def __len__(self) -> int:
        return len(self._items)

    @property
    def collection_count(self) -> int:
        return len(self._collections)
