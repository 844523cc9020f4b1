"""
Staleness detection for cached denormalized values.

An item is judged against the status tokens observed when its cached value was
computed: its own token, and for every direct relationship the referenced
descriptor(s) and their tokens. Tokens are compared for equality only.

Nested staleness is structural. Every relationship is resolved through the
cache-aware `resolve` of the current call; a nested entity that is itself still
valid resolves to the identical cached object, so a relationship is only
reported changed at this level when its reference or the referenced token
changed, or when resolving the target produced a different object.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Set, Tuple

from rehydrate.core.cache import DenormalizationCache
from rehydrate.core.graph import expand_reference
from rehydrate.core.interfaces import AbstractNormalizedRepository, ResolveCallable
from rehydrate.core.types import (
    CollectionDescriptor,
    DenormalizedCollection,
    DenormalizedEntity,
    Descriptor,
    NormalizedEntity,
    RelationshipRef,
)

logger = logging.getLogger(__name__)

_ABSENT = object()


class ResolutionState(Enum):
    MISSING = "missing"
    VALID = "valid"
    STALE = "stale"


@dataclass
class ResolutionContext:
    """
    State of one top-level denormalization call.

    `repository` is the snapshot every nested resolution reads from, `resolve`
    the cache-aware resolution of a single descriptor (absent entities become
    bare references) and `resolve_required` the same resolution raising
    EntityNotFoundError for absent, never cached entities. `resolved` holds the
    values produced (or under construction) so far in this pass, keyed by
    descriptor.

    Cached entities being validated are registered in `pending` with an empty
    placeholder: a cycle reaching one of them gets the placeholder, which is
    filled in place if the entity turns out stale. Comparing such a placeholder
    against the cached back-reference counts as unchanged, and the entities
    relying on that are recorded in `assumed`. When the pending entity is then
    rebuilt, those entities end up in `invalidated`; the call is resolved
    again with them in `force_stale` until no assumption fails.
    """

    repository: AbstractNormalizedRepository
    resolve: ResolveCallable
    resolve_required: Optional[ResolveCallable] = None
    resolved: Dict[Descriptor, Any] = field(default_factory=dict)
    pending: Dict[int, Tuple[Descriptor, Any]] = field(default_factory=dict)
    assumed: Dict[Descriptor, Set[Descriptor]] = field(default_factory=dict)
    invalidated: Set[Descriptor] = field(default_factory=set)
    force_stale: Set[Descriptor] = field(default_factory=set)

    def begin(self, descriptor: Descriptor, placeholder: Any, cached: Any) -> None:
        self.resolved[descriptor] = placeholder
        self.pending[id(placeholder)] = (descriptor, cached)

    def finish(self, descriptor: Descriptor, placeholder: Any, rebuilt: bool) -> None:
        del self.pending[id(placeholder)]
        dependants = self.assumed.pop(descriptor, set())
        if rebuilt:
            self.invalidated |= dependants

    def assume_unchanged(self, current: Any, cached: Any, dependant: Descriptor) -> bool:
        pending = self.pending.get(id(current))
        if pending is None or pending[1] is not cached:
            return False
        self.assumed.setdefault(pending[0], set()).add(dependant)
        return True

    def restart(self) -> None:
        """Start another pass over the same snapshot."""
        self.force_stale |= self.invalidated
        self.resolved = {}
        self.pending = {}
        self.assumed = {}
        self.invalidated = set()


@dataclass(frozen=True)
class ItemResolution:
    state: ResolutionState
    value: Optional[DenormalizedEntity] = None
    changed_relationships: FrozenSet[str] = frozenset()
    # Merged relationship values: cached objects for unchanged relationships,
    # freshly resolved ones for changed relationships.
    relationships: Mapping[str, Any] = field(default_factory=dict)
    observed_status: Mapping[str, Any] = field(default_factory=dict)
    observed_references: Mapping[str, RelationshipRef] = field(default_factory=dict)

    def is_cached(self) -> bool:
        return self.state is not ResolutionState.MISSING

    def is_valid(self) -> bool:
        return self.state is ResolutionState.VALID


@dataclass(frozen=True)
class CollectionResolution:
    state: ResolutionState
    value: Optional[DenormalizedCollection] = None
    members: Tuple[Any, ...] = ()
    membership_changed: bool = True
    missing_members: Tuple[Descriptor, ...] = ()

    def is_cached(self) -> bool:
        return self.state is not ResolutionState.MISSING

    def is_valid(self) -> bool:
        return self.state is ResolutionState.VALID


def _status_of(ref: RelationshipRef, repository: AbstractNormalizedRepository) -> Any:
    if ref is None:
        return None
    if isinstance(ref, tuple):
        return tuple(_status_of(item, repository) for item in ref)
    target = repository.get(ref)
    return target.status if target is not None else None


def observe_relationships(
    entity: NormalizedEntity, repository: AbstractNormalizedRepository
) -> Tuple[Dict[str, Any], Dict[str, RelationshipRef]]:
    """
    Read the current status token(s) of every directly referenced entity.

    Returns (observed_status, observed_references) keyed by relationship name.
    """
    observed_status = {
        name: _status_of(ref, repository) for name, ref in entity.relationships.items()
    }
    return observed_status, dict(entity.relationships)


def _is_bare_reference(value: Any) -> bool:
    return (
        isinstance(value, DenormalizedEntity)
        and value.status is None
        and set(value) == {"id", "type"}
    )


SameCheck = Callable[[Any, Any], bool]


def _same_item(current: Any, cached: Any, assume: Optional[SameCheck] = None) -> bool:
    if current is cached:
        return True
    if assume is not None and assume(current, cached):
        return True
    # References to entities missing from storage are rebuilt on every call
    return _is_bare_reference(current) and _is_bare_reference(cached) and current == cached


def _same_value(current: Any, cached: Any, assume: Optional[SameCheck] = None) -> bool:
    if isinstance(current, list) and isinstance(cached, list):
        return len(current) == len(cached) and all(
            _same_item(a, b, assume) for a, b in zip(current, cached)
        )
    return _same_item(current, cached, assume)


class CacheResolver:
    """
    Classifies cached items and collections as missing, valid or stale and
    computes the relationship delta of stale items.
    """

    def __init__(self, cache: DenormalizationCache):
        self.cache = cache

    def resolve_item(
        self, entity: NormalizedEntity, context: ResolutionContext
    ) -> ItemResolution:
        entry = self.cache.get_item(entity.descriptor)
        if entry is None:
            return ItemResolution(ResolutionState.MISSING)

        # Attribute changes cannot be merged against a relationship delta, so an
        # own status change reports every relationship as changed.
        own_changed = (
            entry.own_status != entity.status or entity.descriptor in context.force_stale
        )
        observed_status, observed_references = observe_relationships(
            entity, context.repository
        )
        cached_value = entry.value

        def assume(current: Any, cached: Any) -> bool:
            return context.assume_unchanged(current, cached, entity.descriptor)

        changed = {
            name for name in entry.observed_references if name not in entity.relationships
        }
        relationships: Dict[str, Any] = {}
        for name, ref in entity.relationships.items():
            cached_relationship = cached_value.get(name, _ABSENT)
            reference_changed = (
                own_changed
                or name not in entry.observed_references
                or entry.observed_references[name] != ref
                or entry.observed_status.get(name) != observed_status[name]
            )
            current = expand_reference(ref, context.resolve)
            if reference_changed or not _same_value(current, cached_relationship, assume):
                changed.add(name)
                relationships[name] = current
            else:
                relationships[name] = cached_relationship

        if not own_changed and not changed:
            logger.debug("Cache valid for %s", entity.descriptor)
            return ItemResolution(ResolutionState.VALID, value=cached_value)

        logger.debug(
            "Cache stale for %s (own status changed: %s, relationships: %s)",
            entity.descriptor,
            own_changed,
            sorted(changed),
        )
        return ItemResolution(
            ResolutionState.STALE,
            value=cached_value,
            changed_relationships=frozenset(changed),
            relationships=relationships,
            observed_status=observed_status,
            observed_references=observed_references,
        )

    def _missing_members(
        self, descriptor: CollectionDescriptor, repository: AbstractNormalizedRepository
    ) -> Tuple[Descriptor, ...]:
        partition = (
            repository.get_storage_partition(descriptor.schema)
            if descriptor.schema is not None
            else {}
        )
        missing: List[Descriptor] = []
        for member in descriptor.members:
            if member.type == descriptor.schema:
                stored = partition.get(member.id) is not None
            else:
                stored = repository.get(member) is not None
            if not stored:
                missing.append(member)
        return tuple(missing)

    def resolve_collection(
        self, descriptor: CollectionDescriptor, context: ResolutionContext
    ) -> CollectionResolution:
        """
        Resolve every member in order and compare against the cached record.

        A different membership (set or order) or a different collection status
        always rebuilds the sequence; members are still served by their own,
        possibly cached, resolution.
        """
        resolve_member = context.resolve_required or context.resolve
        members = tuple(resolve_member(member) for member in descriptor.members)
        missing = self._missing_members(descriptor, context.repository)
        record = self.cache.get_collection(descriptor.key)

        if record is None:
            return CollectionResolution(
                ResolutionState.MISSING, members=members, missing_members=missing
            )

        membership_changed = record.membership != descriptor.members
        if (
            not membership_changed
            and not missing
            and record.status == descriptor.status
            and _same_value(list(members), list(record.value))
        ):
            logger.debug(
                "Collection cache valid for schema=%s tag=%s",
                descriptor.schema,
                descriptor.tag,
            )
            return CollectionResolution(
                ResolutionState.VALID,
                value=record.value,
                members=members,
                membership_changed=False,
                missing_members=missing,
            )

        logger.debug(
            "Collection cache stale for schema=%s tag=%s (membership changed: %s)",
            descriptor.schema,
            descriptor.tag,
            membership_changed,
        )
        return CollectionResolution(
            ResolutionState.STALE,
            value=record.value,
            members=members,
            membership_changed=membership_changed,
            missing_members=missing,
        )
