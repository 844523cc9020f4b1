"""
Normalized repository accessors.

Two ways of pointing the denormalizer at storage are supported:

- Provide storage: the caller hands over `{schema: {id: entity}}` partitions
  (InMemoryRepository), either once or on every call.
- Find storage: the caller hands over a function returning the latest store
  plus a `{schema: path}` map saying where each schema lives inside it
  (StoreRepository). The store is read once per top-level call.

Stored entities may be NormalizedEntity instances or JSON:API shaped dicts.
"""
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Union

from cytoolz import get_in, valmap

from rehydrate.core.interfaces import AbstractNormalizedRepository
from rehydrate.core.types import Identifier, NormalizedEntity

SchemaPath = Union[str, Sequence[Any]]


def _split_path(path: SchemaPath) -> Sequence[Any]:
    if isinstance(path, str):
        return path.split(".")
    return list(path)


def create_schemas_map(store: Mapping[str, Any], schema_paths: Mapping[str, SchemaPath]) -> Dict[str, Any]:
    """
    Locate every schema's storage partition inside `store`.

    Paths are dotted strings ("api.articles") or key sequences. Schemas whose
    path does not exist map to None.
    """
    return valmap(lambda path: get_in(_split_path(path), store), dict(schema_paths))


def as_normalized_entity(raw: Any, schema: str) -> Optional[NormalizedEntity]:
    if raw is None or isinstance(raw, NormalizedEntity):
        return raw
    return NormalizedEntity.from_dict(raw, schema=schema)


class InMemoryRepository(AbstractNormalizedRepository):
    """
    Repository over plain `{schema: {id: entity}}` partitions.
    """

    def __init__(self, partitions: Optional[Mapping[str, Mapping[Any, Any]]] = None):
        self.partitions = partitions if partitions is not None else {}

    def _raw_partition(self, schema: str) -> Mapping[Any, Any]:
        return self.partitions.get(schema) or {}

    def get_normalized_entity(self, schema: str, entity_id: Identifier) -> Optional[NormalizedEntity]:
        partition = self._raw_partition(schema)
        key = str(entity_id)
        raw = partition.get(key)
        if raw is None and key not in partition:
            # Partitions keyed by integer ids
            raw = next(
                (value for stored_id, value in partition.items() if str(stored_id) == key),
                None,
            )
        return as_normalized_entity(raw, schema)

    def get_storage_partition(self, schema: str) -> Dict[str, NormalizedEntity]:
        return {
            str(entity_id): as_normalized_entity(raw, schema)
            for entity_id, raw in self._raw_partition(schema).items()
        }

    def snapshot(self) -> "MemoizedRepository":
        return MemoizedRepository(self)


class StoreRepository(AbstractNormalizedRepository):
    """
    Repository that finds schema partitions inside the latest store.

    Args:
        get_store: returns the current store.
        schema_paths: `{schema: path}` where path is a dotted string or key list.
    """

    def __init__(self, get_store: Callable[[], Mapping[str, Any]], schema_paths: Mapping[str, SchemaPath]):
        self.get_store = get_store
        self.schema_paths = dict(schema_paths)

    def _current(self) -> InMemoryRepository:
        return InMemoryRepository(create_schemas_map(self.get_store(), self.schema_paths))

    def get_normalized_entity(self, schema: str, entity_id: Identifier) -> Optional[NormalizedEntity]:
        return self._current().get_normalized_entity(schema, entity_id)

    def get_storage_partition(self, schema: str) -> Dict[str, NormalizedEntity]:
        return self._current().get_storage_partition(schema)

    def snapshot(self) -> "MemoizedRepository":
        return MemoizedRepository(self._current())


class MemoizedRepository(AbstractNormalizedRepository):
    """
    Remembers every read of the wrapped repository so that one top-level call
    observes a single consistent state and converts each entity only once.
    """

    def __init__(self, repository: AbstractNormalizedRepository):
        self.repository = repository
        self._entities: Dict[Any, Optional[NormalizedEntity]] = {}
        self._partitions: Dict[str, Mapping[str, NormalizedEntity]] = {}

    def get_normalized_entity(self, schema: str, entity_id: Identifier) -> Optional[NormalizedEntity]:
        key = (schema, str(entity_id))
        if key not in self._entities:
            self._entities[key] = self.repository.get_normalized_entity(schema, entity_id)
        return self._entities[key]

    def get_storage_partition(self, schema: str) -> Mapping[str, NormalizedEntity]:
        if schema not in self._partitions:
            self._partitions[schema] = self.repository.get_storage_partition(schema)
        return self._partitions[schema]

    def snapshot(self) -> "MemoizedRepository":
        return self
