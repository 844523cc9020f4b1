"""
Turn caller requests into uniform `{id, type}` descriptors.

A request names an entity either as a typed reference (a Descriptor, an `Id`,
a mapping with `id` and `type` keys, or an already normalized/denormalized
entity) or as a bare identifier accompanied by an explicit schema. Resolving
this once at the API boundary keeps the rest of the pipeline working on
descriptors only.
"""
from typing import Any, Iterable, List, Mapping, Optional

from rehydrate.core.exceptions import AmbiguousSchemaError, MalformedReferenceError
from rehydrate.core.types import (
    CollectionDescriptor,
    Descriptor,
    Id,
    NormalizedEntity,
)


def _is_typed(value: Any) -> bool:
    if isinstance(value, (Descriptor, Id, NormalizedEntity)):
        return True
    return isinstance(value, Mapping) and value.get("type") is not None


def _bare_id(value: Any) -> Any:
    if isinstance(value, Id):
        return value.value
    if isinstance(value, (Descriptor, NormalizedEntity)):
        return value.id
    if isinstance(value, Mapping):
        return value.get("id")
    return value


def _typed_descriptor(value: Any) -> Descriptor:
    if isinstance(value, Descriptor):
        return value
    if isinstance(value, Id):
        return value.to_descriptor()
    if isinstance(value, NormalizedEntity):
        return value.descriptor
    if isinstance(value, Mapping) and value.get("id") is not None:
        return Descriptor(value["id"], value["type"])
    raise MalformedReferenceError(f"Reference {value!r} does not carry an id.")


def build_item_descriptor(target: Any, schema: Optional[str] = None) -> Descriptor:
    """
    Build the descriptor for a single entity request.

    With an explicit `schema`, `target` is read as a bare identifier and bound to
    it. Without one, `target` must carry its own type.

    Raises:
        MalformedReferenceError: if no type can be determined or the id is missing.
    """
    if schema is not None:
        entity_id = _bare_id(target)
        if entity_id is None:
            raise MalformedReferenceError(f"Cannot build a {schema} reference without an id.")
        return Descriptor(entity_id, schema)

    if not _is_typed(target):
        raise MalformedReferenceError(
            f"Reference {target!r} has no type and no schema was supplied."
        )
    return _typed_descriptor(target)


def build_collection_descriptor(
    items: Iterable[Any], schema: Optional[str] = None
) -> CollectionDescriptor:
    """
    Build the descriptor of an ordered collection request.

    Schema, tag and status are taken from the collection's own metadata (see
    CollectionReference) unless `schema` overrides the schema. Bare ids are
    bound to the collection schema; typed references keep their type unless an
    explicit schema was given.

    Raises:
        MalformedReferenceError: if a bare id has no schema to bind to.
        AmbiguousSchemaError: if members disagree on type and nothing names the
            collection schema.
    """
    metadata_schema = getattr(items, "schema", None)
    tag = getattr(items, "tag", None)
    status = getattr(items, "status", None)

    members: List[Descriptor] = []
    for item in items:
        if schema is not None:
            members.append(build_item_descriptor(item, schema))
        elif _is_typed(item):
            members.append(_typed_descriptor(item))
        elif metadata_schema is not None:
            members.append(build_item_descriptor(item, metadata_schema))
        else:
            raise MalformedReferenceError(
                f"Collection member {item!r} has no type and the collection has no schema."
            )

    collection_schema = schema or metadata_schema
    if collection_schema is None:
        member_types = sorted({member.type for member in members})
        if len(member_types) > 1:
            raise AmbiguousSchemaError(
                f"Collection mixes schemas {member_types}; pass an explicit schema."
            )
        collection_schema = member_types[0] if member_types else None

    return CollectionDescriptor(
        schema=collection_schema,
        tag=tag,
        members=tuple(members),
        status=status,
    )
