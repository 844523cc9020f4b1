from typing import Any, Dict, Mapping, Optional

from rehydrate.core.interfaces import (
    AbstractGraphDenormalizer,
    AbstractNormalizedRepository,
    ResolveCallable,
)
from rehydrate.core.types import (
    DenormalizedEntity,
    Descriptor,
    NormalizedEntity,
    RelationshipRef,
)


def bare_reference(descriptor: Descriptor) -> DenormalizedEntity:
    """Value used for a reference whose entity is not in storage."""
    return DenormalizedEntity(descriptor.as_reference())


def expand_reference(ref: RelationshipRef, resolve: ResolveCallable) -> Any:
    """Expand a to-one, to-many or empty relationship reference."""
    if ref is None:
        return None
    if isinstance(ref, tuple):
        return [resolve(item) for item in ref]
    return resolve(ref)


class GraphDenormalizer(AbstractGraphDenormalizer):
    """
    Expands normalized entities by following their relationship references.

    Used on its own, `denormalize_full` walks the whole reachable graph with a
    memo keyed by descriptor: an entity is registered before its relationships
    are expanded, so a cycle (A -> B -> A) resolves to a back-reference to the
    object under construction instead of recursing forever.

    The cache-aware Denormalizer passes its own `resolve` so that every nested
    reference goes through the cache, and shares its per-call memo.
    """

    def denormalize_attributes_only(self, entity: NormalizedEntity) -> Dict[str, Any]:
        data = dict(entity.attributes)
        data["id"] = entity.id
        data["type"] = entity.type
        return data

    def denormalize_relationships(
        self, entity: NormalizedEntity, resolve: ResolveCallable
    ) -> Dict[str, Any]:
        return {
            name: expand_reference(ref, resolve)
            for name, ref in entity.relationships.items()
        }

    def merge(
        self,
        entity: NormalizedEntity,
        attributes: Mapping[str, Any],
        relationships: Mapping[str, Any],
        target: Optional[DenormalizedEntity] = None,
    ) -> DenormalizedEntity:
        merged = target if target is not None else DenormalizedEntity()
        merged.update(attributes)
        merged.update(relationships)
        return merged

    def denormalize_full(
        self,
        descriptor: Descriptor,
        repository: AbstractNormalizedRepository,
        resolve: Optional[ResolveCallable] = None,
        memo: Optional[Dict[Descriptor, Any]] = None,
    ) -> Any:
        memo = memo if memo is not None else {}

        def _resolve(ref: Descriptor) -> Any:
            if ref in memo:
                return memo[ref]
            entity = repository.get(ref)
            if entity is None:
                return bare_reference(ref)

            # Register before recursing so cycles find the placeholder
            placeholder = DenormalizedEntity()
            memo[ref] = placeholder
            return self.merge(
                entity,
                self.denormalize_attributes_only(entity),
                self.denormalize_relationships(entity, resolve or _resolve),
                target=placeholder,
            )

        return _resolve(descriptor)
