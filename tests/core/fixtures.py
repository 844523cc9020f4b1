import copy
from typing import Any, Dict, Optional


def person(
    person_id: str,
    status: str,
    name: str,
    mentor: Optional[str] = None,
    friend: Optional[str] = None,
) -> Dict[str, Any]:
    relationships = {}
    if mentor is not None:
        relationships["mentor"] = {"data": {"id": mentor, "type": "people"}}
    if friend is not None:
        relationships["friend"] = {"data": {"id": friend, "type": "people"}}
    return {
        "id": person_id,
        "type": "people",
        "status": status,
        "attributes": {"name": name},
        "relationships": relationships,
    }


def article(
    article_id: str,
    status: str,
    title: str,
    author: Optional[str] = "7",
    editor: Optional[str] = "8",
    tags=None,
) -> Dict[str, Any]:
    relationships: Dict[str, Any] = {}
    if author is not None:
        relationships["author"] = {"data": {"id": author, "type": "people"}}
    if editor is not None:
        relationships["editor"] = {"data": {"id": editor, "type": "people"}}
    if tags is not None:
        relationships["tags"] = {"data": [{"id": tag, "type": "tags"} for tag in tags]}
    return {
        "id": article_id,
        "type": "articles",
        "status": status,
        "attributes": {"title": title},
        "relationships": relationships,
    }


def build_storage() -> Dict[str, Dict[str, Any]]:
    """
    Three articles written by Ada (people#7) and edited by Grace (people#8).
    """
    return {
        "articles": {
            "1": article("1", "S0", "Normalization", tags=["t1", "t2"]),
            "2": article("2", "S0", "Caching"),
            "3": article("3", "S0", "Merging"),
        },
        "people": {
            "7": person("7", "P0", "Ada"),
            "8": person("8", "Q0", "Grace"),
        },
        "tags": {
            "t1": {"id": "t1", "type": "tags", "status": "T0", "attributes": {"label": "data"}},
            "t2": {"id": "t2", "type": "tags", "status": "T0", "attributes": {"label": "graphs"}},
        },
    }


def replace(storage: Dict[str, Dict[str, Any]], schema: str, entity: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Return a new storage with one entity replaced, leaving `storage` untouched."""
    updated = copy.deepcopy(storage)
    updated[schema][entity["id"]] = entity
    return updated


def remove(storage: Dict[str, Dict[str, Any]], schema: str, entity_id: str) -> Dict[str, Dict[str, Any]]:
    updated = copy.deepcopy(storage)
    del updated[schema][entity_id]
    return updated
