"""
Status metadata stamped onto denormalized results.

Entities carry the status token of their own normalized form plus the tokens
observed for each direct relationship. Collections carry the status of the
requested collection and an aggregate validity: a collection is only valid when
every member is.
"""
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Tuple


@dataclass(frozen=True)
class StatusMetadata:
    token: Any
    relationships: Mapping[str, Any] = field(default_factory=dict)
    valid: bool = True


@dataclass(frozen=True)
class CollectionStatus:
    token: Any
    members: Tuple[Any, ...] = ()
    valid: bool = True


def is_valid_status(status: Any) -> bool:
    """Tokens without a validity flag are considered valid."""
    if status is None:
        return True
    return bool(getattr(status, "valid", True))


def entity_status(token: Any, relationships: Mapping[str, Any]) -> StatusMetadata:
    return StatusMetadata(
        token=token,
        relationships=dict(relationships),
        valid=is_valid_status(token),
    )


def collection_status(token: Any, members: Iterable[Any], complete: bool = True) -> CollectionStatus:
    """
    Aggregate status of a collection. `complete` is False when some member is
    no longer in storage and was served from a previous result.
    """
    member_statuses = tuple(getattr(member, "status", None) for member in members)
    return CollectionStatus(
        token=token,
        members=member_statuses,
        valid=complete
        and is_valid_status(token)
        and all(is_valid_status(s) for s in member_statuses),
    )


def apply_status(source: Any, target: Any) -> Any:
    """
    Copy status from `source` onto `target` and return `target`.

    `source` is either status metadata itself or any object exposing `status`.
    """
    if isinstance(source, (StatusMetadata, CollectionStatus)):
        target.status = source
    else:
        target.status = getattr(source, "status", None)
    return target
