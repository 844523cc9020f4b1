import logging
from typing import Any, Callable, Mapping, Optional, Union

from rehydrate.core.cache import DenormalizationCache
from rehydrate.core.descriptors import build_collection_descriptor, build_item_descriptor
from rehydrate.core.exceptions import ConfigError, EntityNotFoundError
from rehydrate.core.graph import GraphDenormalizer, bare_reference
from rehydrate.core.interfaces import (
    AbstractGraphDenormalizer,
    AbstractNormalizedRepository,
    StatusApplier,
)
from rehydrate.core.repository import InMemoryRepository, SchemaPath, StoreRepository
from rehydrate.core.resolver import (
    CacheResolver,
    ItemResolution,
    ResolutionContext,
    observe_relationships,
)
from rehydrate.core.status import apply_status, collection_status, entity_status
from rehydrate.core.telemetry import get_telemetry_context
from rehydrate.core.types import (
    DenormalizedCollection,
    DenormalizedEntity,
    Descriptor,
    NormalizedEntity,
)

logger = logging.getLogger(__name__)

Storage = Union[AbstractNormalizedRepository, Mapping[str, Mapping[Any, Any]]]


class Denormalizer:
    """
    Returns normalized data in denormalized form, reusing cached results.

    The denormalizer works in one of two modes:

    - Find storage: constructed with a repository (or via `from_store` with a
      function returning the latest store and a `{schema: path}` map). Every
      call reads the current state from it.
    - Provide storage: constructed without a repository; every call passes
      `storage`, either a repository or `{schema: {id: entity}}` partitions.

    Parameters:
    -----------
    repository: AbstractNormalizedRepository, optional
        Normalized data to read from when a call does not provide storage.
    cache: DenormalizationCache, optional
        Cache to read and write. Share one cache between denormalizers to share
        results; a fresh cache is created when omitted.
    graph: AbstractGraphDenormalizer, optional
        Expands entities and relationships. Defaults to GraphDenormalizer.
    status_applier: callable, optional
        `(source, target) -> target` stamping status metadata onto results.
    """

    def __init__(
        self,
        repository: Optional[AbstractNormalizedRepository] = None,
        cache: Optional[DenormalizationCache] = None,
        graph: Optional[AbstractGraphDenormalizer] = None,
        status_applier: Optional[StatusApplier] = None,
    ) -> None:
        self.repository = repository
        self.cache = cache if cache is not None else DenormalizationCache()
        self.graph = graph if graph is not None else GraphDenormalizer()
        self.apply_status = status_applier or apply_status
        self.resolver = CacheResolver(self.cache)

    @classmethod
    def from_store(
        cls,
        get_store: Callable[[], Mapping[str, Any]],
        schema_paths: Mapping[str, SchemaPath],
        **kwargs,
    ) -> "Denormalizer":
        """Create a denormalizer that finds each schema's partition in the latest store."""
        return cls(repository=StoreRepository(get_store, schema_paths), **kwargs)

    def create_context(self, storage: Optional[Storage] = None) -> ResolutionContext:
        """
        Start a resolution over one snapshot of `storage` (or the configured
        repository). Every top-level call creates its own context.
        """
        if storage is None:
            repository = self.repository
        elif isinstance(storage, AbstractNormalizedRepository):
            repository = storage
        else:
            repository = InMemoryRepository(storage)

        if repository is None:
            raise ConfigError(
                "No repository configured. Construct the Denormalizer with a repository "
                "or pass storage to each call."
            )

        # One snapshot per top-level call; nested resolutions share it.
        context = ResolutionContext(repository=repository.snapshot(), resolve=None)
        context.resolve = lambda descriptor: self._resolve(descriptor, context)
        context.resolve_required = lambda descriptor: self._resolve(
            descriptor, context, strict=True
        )
        return context

    def denormalize_item(
        self, target: Any, schema: Optional[str] = None, storage: Optional[Storage] = None
    ) -> DenormalizedEntity:
        """
        Denormalize a single entity.

        Args:
            target: a reference carrying id and type, or a bare id when `schema`
                is given.
            schema: schema of a bare id.
            storage: storage for this call only (provide storage mode).

        Raises:
            MalformedReferenceError: if `target` cannot be turned into a descriptor.
            EntityNotFoundError: if the entity is neither stored nor cached.
        """
        descriptor = build_item_descriptor(target, schema)
        context = self.create_context(storage)
        return self._converge(context, lambda: context.resolve_required(descriptor))

    def denormalize_collection(
        self, items: Any, schema: Optional[str] = None, storage: Optional[Storage] = None
    ) -> DenormalizedCollection:
        """
        Denormalize an ordered collection of ids or references.

        Collection schema and tag come from the collection's own metadata unless
        `schema` is given. The result keeps the requested order.

        Raises:
            MalformedReferenceError: if a member cannot be turned into a descriptor.
            AmbiguousSchemaError: if members disagree on schema and none was given.
        """
        descriptor = build_collection_descriptor(items, schema)
        context = self.create_context(storage)
        resolution = self._converge(
            context, lambda: self.resolver.resolve_collection(descriptor, context)
        )

        telemetry = get_telemetry_context()
        if telemetry:
            telemetry.record_collection(
                descriptor.schema, descriptor.tag, resolution.state.value, len(resolution.members)
            )

        if resolution.is_valid():
            return resolution.value

        collection = DenormalizedCollection(
            resolution.members, schema=descriptor.schema, tag=descriptor.tag
        )
        self.apply_status(
            collection_status(
                descriptor.status, collection, complete=not resolution.missing_members
            ),
            collection,
        )
        return self.cache.cache_collection(descriptor, collection)

    def flush_cache(self) -> None:
        """Clear every cached entity and collection."""
        self.cache.flush()
        telemetry = get_telemetry_context()
        if telemetry:
            telemetry.record_event("flush", "Denormalization cache flushed")

    def _converge(self, context: ResolutionContext, run: Callable[[], Any]) -> Any:
        # Every pass forces at least one more entity stale, so this terminates.
        while True:
            result = run()
            if not context.invalidated:
                return result
            logger.debug(
                "Back-references to rebuilt entities were reused by %s, resolving again",
                sorted(str(descriptor) for descriptor in context.invalidated),
            )
            telemetry = get_telemetry_context()
            if telemetry:
                telemetry.record_event(
                    "reresolve",
                    "Cycle members rebuilt on another pass",
                    {"descriptors": sorted(str(d) for d in context.invalidated)},
                )
            context.restart()

    def _resolve(
        self, descriptor: Descriptor, context: ResolutionContext, strict: bool = False
    ) -> Any:
        if descriptor in context.resolved:
            return context.resolved[descriptor]

        entity = context.repository.get(descriptor)
        if entity is None:
            return self._resolve_absent(descriptor, context, strict)

        placeholder = None
        entry = self.cache.get_item(descriptor)
        if entry is not None:
            # Cycles reaching this entity while it is validated see the placeholder
            placeholder = DenormalizedEntity()
            context.begin(descriptor, placeholder, entry.value)

        value = None
        try:
            resolution = self.resolver.resolve_item(entity, context)
            telemetry = get_telemetry_context()
            if resolution.is_valid():
                value = resolution.value
                if telemetry:
                    telemetry.record_cache_hit(descriptor)
            elif resolution.is_cached():
                value = self._denormalize_from_cache(entity, resolution, target=placeholder)
                if telemetry:
                    telemetry.record_stale(descriptor, resolution.changed_relationships)
            else:
                value = self._denormalize_missing(entity, context)
                if telemetry:
                    telemetry.record_cache_miss(descriptor)
        finally:
            if placeholder is not None:
                rebuilt = value is not None and value is not entry.value
                context.finish(descriptor, placeholder, rebuilt=rebuilt)

        context.resolved[descriptor] = value
        return value

    def _resolve_absent(
        self, descriptor: Descriptor, context: ResolutionContext, strict: bool
    ) -> Any:
        entry = self.cache.get_item(descriptor)
        if entry is not None:
            logger.warning(
                "%s is no longer in storage, serving the last cached value", descriptor
            )
            telemetry = get_telemetry_context()
            if telemetry:
                telemetry.record_fallback(descriptor)
            context.resolved[descriptor] = entry.value
            return entry.value

        if strict:
            raise EntityNotFoundError(f"{descriptor} was not found.", descriptor=descriptor)

        logger.debug("%s is not in storage, leaving it as a reference", descriptor)
        value = bare_reference(descriptor)
        context.resolved[descriptor] = value
        return value

    def _denormalize_from_cache(
        self,
        entity: NormalizedEntity,
        resolution: ItemResolution,
        target: Optional[DenormalizedEntity] = None,
    ) -> DenormalizedEntity:
        # Own status equality is authoritative: attributes are only re-read here.
        merged = self.graph.merge(
            entity,
            self.graph.denormalize_attributes_only(entity),
            resolution.relationships,
            target=target,
        )
        return self._stamp_and_cache(
            entity, merged, resolution.observed_status, resolution.observed_references
        )

    def _denormalize_missing(
        self, entity: NormalizedEntity, context: ResolutionContext
    ) -> DenormalizedEntity:
        value = self.graph.denormalize_full(
            entity.descriptor,
            context.repository,
            resolve=context.resolve,
            memo=context.resolved,
        )
        observed_status, observed_references = observe_relationships(
            entity, context.repository
        )
        return self._stamp_and_cache(entity, value, observed_status, observed_references)

    def _stamp_and_cache(
        self,
        entity: NormalizedEntity,
        value: DenormalizedEntity,
        observed_status: Mapping[str, Any],
        observed_references: Mapping[str, Any],
    ) -> DenormalizedEntity:
        self.apply_status(entity_status(entity.status, observed_status), value)
        return self.cache.cache_item(entity, value, observed_status, observed_references)
