from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

from fastapi.encoders import jsonable_encoder

from rehydrate.core.exceptions import MalformedReferenceError

Identifier = Union[str, int]
# Opaque value owned by the repository; compared by equality only.
StatusToken = Any


@dataclass(frozen=True)
class Descriptor:
    """Identity of one entity, independent of its expansion state."""

    id: str
    type: str

    def __post_init__(self) -> None:
        # Storages key entities by string id, so 1 and "1" are the same entity.
        object.__setattr__(self, "id", str(self.id))

    def as_reference(self) -> Dict[str, str]:
        return {"id": self.id, "type": self.type}

    def __str__(self) -> str:
        return f"{self.type}#{self.id}"


# A typed reference supplied by a caller is simply a descriptor.
Reference = Descriptor


@dataclass(frozen=True)
class Id:
    """A bare identifier bound to the schema it belongs to."""

    value: Identifier
    schema: str

    def to_descriptor(self) -> Descriptor:
        return Descriptor(self.value, self.schema)


RelationshipRef = Union[Descriptor, Tuple[Descriptor, ...], None]


def compute_status_token(payload: Any) -> str:
    """Content digest used as the status of entities stored without one."""
    encoded = json.dumps(jsonable_encoder(payload), sort_keys=True, default=str)
    return hashlib.sha256(encoded.encode()).hexdigest()


def _coerce_reference(value: Any) -> RelationshipRef:
    if value is None:
        return None
    if isinstance(value, Descriptor):
        return value
    if isinstance(value, Mapping):
        if "data" in value and "id" not in value:
            return _coerce_reference(value["data"])
        if value.get("id") is None or value.get("type") is None:
            raise MalformedReferenceError(
                f"Relationship reference {value!r} must carry both an id and a type."
            )
        return Descriptor(value["id"], value["type"])
    if isinstance(value, (list, tuple)):
        return tuple(_coerce_reference(item) for item in value)
    raise MalformedReferenceError(f"Cannot interpret {value!r} as a relationship reference.")


def _has_linkage(value: Any) -> bool:
    # JSON:API relationship objects may carry only `links` or `meta`
    if isinstance(value, Mapping):
        return any(key in value for key in ("data", "id", "type"))
    return True


@dataclass(frozen=True)
class NormalizedEntity:
    """
    An entity as the repository stores it: attributes plus references.

    `relationships` maps a relationship name to a descriptor (to-one), a tuple
    of descriptors (to-many) or None (empty to-one).
    """

    id: Identifier
    type: str
    attributes: Mapping[str, Any] = field(default_factory=dict)
    relationships: Mapping[str, RelationshipRef] = field(default_factory=dict)
    status: StatusToken = None

    @property
    def descriptor(self) -> Descriptor:
        return Descriptor(self.id, self.type)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], schema: Optional[str] = None) -> "NormalizedEntity":
        """
        Build an entity from a JSON:API shaped mapping.

        Accepts `{"id", "type", "attributes", "relationships", "status"}` where each
        relationship is either a reference, a list of references, or wrapped in
        `{"data": ...}`. Relationship objects carrying only `links` or `meta` are
        left out. Entities stored without a status get a content digest.
        """
        entity_type = data.get("type") or schema
        if entity_type is None or data.get("id") is None:
            raise MalformedReferenceError(
                f"Stored entity {data!r} is missing its id or type."
            )
        attributes = dict(data.get("attributes") or {})
        relationships = {
            name: _coerce_reference(value)
            for name, value in (data.get("relationships") or {}).items()
            if _has_linkage(value)
        }
        status = data.get("status")
        if status is None:
            status = entity_status_token(attributes, relationships)
        return cls(
            id=data["id"],
            type=entity_type,
            attributes=attributes,
            relationships=relationships,
            status=status,
        )


def _reference_payload(ref: RelationshipRef) -> Any:
    if ref is None:
        return None
    if isinstance(ref, tuple):
        return [item.as_reference() for item in ref]
    return ref.as_reference()


def entity_status_token(
    attributes: Mapping[str, Any], relationships: Mapping[str, RelationshipRef]
) -> str:
    """Status token derived from the stored content of an entity."""
    return compute_status_token(
        {
            "attributes": attributes,
            "relationships": {
                name: _reference_payload(ref) for name, ref in relationships.items()
            },
        }
    )


class DenormalizedEntity(dict):
    """
    Expanded entity: `id`, `type`, attributes and expanded relationships.

    Status metadata stamped at computation time is available as `status`.
    Values are treated as immutable once cached; recomputation produces a
    new object.
    """

    status: Any = None


class DenormalizedCollection(list):
    """Ordered sequence of denormalized entities plus collection metadata."""

    def __init__(
        self,
        items: Iterable[Any] = (),
        schema: Optional[str] = None,
        tag: Optional[str] = None,
        status: Any = None,
    ):
        super().__init__(items)
        self.schema = schema
        self.tag = tag
        self.status = status


class CollectionReference(list):
    """
    A caller-side ordered collection of ids or references that carries its own
    metadata: the schema of its members, a tag distinguishing views of the same
    schema, and the status the repository attached to the collection.
    """

    def __init__(
        self,
        items: Iterable[Any] = (),
        schema: Optional[str] = None,
        tag: Optional[str] = None,
        status: Any = None,
    ):
        super().__init__(items)
        self.schema = schema
        self.tag = tag
        self.status = status


@dataclass(frozen=True)
class CollectionDescriptor:
    schema: Optional[str]
    tag: Optional[str]
    members: Tuple[Descriptor, ...]
    status: Any = None

    @property
    def key(self) -> Tuple[Optional[str], Optional[str]]:
        return (self.schema, self.tag)
