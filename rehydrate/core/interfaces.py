from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Mapping, Optional

from rehydrate.core.types import (
    DenormalizedEntity,
    Descriptor,
    Identifier,
    NormalizedEntity,
)

# Resolves one descriptor to its expanded value (or a bare reference when the
# entity is absent). The cache-aware facade passes itself in through this.
ResolveCallable = Callable[[Descriptor], Any]

# Stamps status metadata from a normalized source onto a denormalized target.
StatusApplier = Callable[[Any, Any], Any]


class AbstractNormalizedRepository(ABC):
    """
    Read access to the externally owned, normalized data repository.
    """

    @abstractmethod
    def get_normalized_entity(
        self, schema: str, entity_id: Identifier
    ) -> Optional[NormalizedEntity]:
        """
        Return the current normalized entity, or None when it is absent.
        """
        pass

    @abstractmethod
    def get_storage_partition(self, schema: str) -> Mapping[str, NormalizedEntity]:
        """
        Return every entity currently stored for `schema`, keyed by string id.
        """
        pass

    def snapshot(self) -> "AbstractNormalizedRepository":
        """
        Return a view that stays consistent for the duration of one top-level
        denormalization call. Repositories that are replaced atomically between
        calls can return themselves.
        """
        return self

    def get(self, descriptor: Descriptor) -> Optional[NormalizedEntity]:
        return self.get_normalized_entity(descriptor.type, descriptor.id)


class AbstractGraphDenormalizer(ABC):
    """
    Turns references into expanded values by walking relationship references.
    """

    @abstractmethod
    def denormalize_attributes_only(self, entity: NormalizedEntity) -> Dict[str, Any]:
        """
        Return `id`, `type` and the entity's own attributes, without relationships.
        """
        pass

    @abstractmethod
    def denormalize_relationships(
        self, entity: NormalizedEntity, resolve: ResolveCallable
    ) -> Dict[str, Any]:
        """
        Expand every relationship of `entity`, resolving each target via `resolve`.
        """
        pass

    @abstractmethod
    def denormalize_full(
        self,
        descriptor: Descriptor,
        repository: AbstractNormalizedRepository,
        resolve: Optional[ResolveCallable] = None,
        memo: Optional[Dict[Descriptor, Any]] = None,
    ) -> Any:
        """
        Fully expand `descriptor` and everything reachable from it.

        `resolve`, when given, expands nested references instead of the
        denormalizer itself. `memo` maps descriptors already resolved (or under
        construction) in the current call to their values.
        """
        pass

    @abstractmethod
    def merge(
        self,
        entity: NormalizedEntity,
        attributes: Mapping[str, Any],
        relationships: Mapping[str, Any],
        target: Optional[DenormalizedEntity] = None,
    ) -> DenormalizedEntity:
        """
        Combine attribute data and relationship data into one expanded entity.
        """
        pass
