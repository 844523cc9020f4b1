import logging
from typing import Any, Dict, Mapping, Optional, Type, Union

import networkx as nx
from django.apps import apps
from django.core.exceptions import ValidationError
from django.db import models

from rehydrate.core.exceptions import ConfigError
from rehydrate.core.interfaces import AbstractNormalizedRepository
from rehydrate.core.repository import MemoizedRepository
from rehydrate.core.types import (
    Descriptor,
    Identifier,
    NormalizedEntity,
    entity_status_token,
)

logger = logging.getLogger(__name__)

ModelReference = Union[str, Type[models.Model]]


def get_model_name(model: Union[models.Model, Type[models.Model]]) -> str:
    """Retrieve the model name for the given model class or instance."""
    if not isinstance(model, type):
        model = model.__class__
    if hasattr(model, "_meta"):
        return f"{model._meta.app_label}.{model._meta.model_name}"
    raise ValueError(
        f"Cannot determine model name from {model} of type {type(model)}: _meta attribute is missing from the model."
    )


class DjangoModelRepository(AbstractNormalizedRepository):
    """
    Normalized view over Django models.

    Each schema maps to one model. Concrete fields become attributes, forward
    foreign keys and one-to-one fields become to-one references and many-to-many
    fields become to-many references ordered by primary key. Relations to models
    that are not mapped to a schema are left out.

    The status token is the value of `status_field` when given (e.g. a version
    counter or an auto_now timestamp), otherwise a digest of the entity content.

    Args:
        schemas: {schema: model class or "app_label.ModelName"}
        status_field: optional model field holding the status token
    """

    def __init__(self, schemas: Mapping[str, ModelReference], status_field: Optional[str] = None):
        self.models: Dict[str, Type[models.Model]] = {
            schema: self._resolve_model(model) for schema, model in schemas.items()
        }
        self.schema_by_model: Dict[Type[models.Model], str] = {
            model: schema for schema, model in self.models.items()
        }
        self.status_field = status_field

    @staticmethod
    def _resolve_model(model: ModelReference) -> Type[models.Model]:
        if isinstance(model, str):
            try:
                return apps.get_model(model)
            except (LookupError, ValueError) as e:
                raise ConfigError(
                    f"Model '{model}' must be in the format 'app_label.ModelName' and installed: {e}"
                )
        return model

    def get_model(self, schema: str) -> Type[models.Model]:
        model = self.models.get(schema)
        if model is None:
            raise ConfigError(f"Schema '{schema}' is not mapped to a Django model.")
        return model

    def _queryset(self, model: Type[models.Model]):
        many_to_many = [
            field.name
            for field in model._meta.many_to_many
            if field.related_model in self.schema_by_model
        ]
        return model._default_manager.prefetch_related(*many_to_many)

    def get_normalized_entity(self, schema: str, entity_id: Identifier) -> Optional[NormalizedEntity]:
        model = self.get_model(schema)
        try:
            instance = self._queryset(model).filter(pk=entity_id).first()
        except (ValueError, ValidationError):
            # Ids that cannot be cast to the primary key type match nothing
            instance = None
        if instance is None:
            logger.debug("%s#%s not found in %s", schema, entity_id, get_model_name(model))
            return None
        return self.to_normalized_entity(instance, schema)

    def get_storage_partition(self, schema: str) -> Dict[str, NormalizedEntity]:
        model = self.get_model(schema)
        return {
            str(instance.pk): self.to_normalized_entity(instance, schema)
            for instance in self._queryset(model)
        }

    def to_normalized_entity(self, instance: models.Model, schema: str) -> NormalizedEntity:
        attributes: Dict[str, Any] = {}
        relationships: Dict[str, Any] = {}

        for field in instance._meta.concrete_fields:
            if field.primary_key:
                continue
            if field.is_relation:
                related_schema = self.schema_by_model.get(field.related_model)
                if related_schema is None:
                    continue
                related_id = getattr(instance, field.attname)
                relationships[field.name] = (
                    Descriptor(related_id, related_schema) if related_id is not None else None
                )
            else:
                attributes[field.name] = field.value_from_object(instance)

        for field in instance._meta.many_to_many:
            related_schema = self.schema_by_model.get(field.related_model)
            if related_schema is None:
                continue
            # .all() is served from the prefetch cache
            related_ids = sorted(related.pk for related in getattr(instance, field.name).all())
            relationships[field.name] = tuple(
                Descriptor(related_id, related_schema) for related_id in related_ids
            )

        if self.status_field:
            status = getattr(instance, self.status_field)
        else:
            status = entity_status_token(attributes, relationships)

        return NormalizedEntity(
            id=instance.pk,
            type=schema,
            attributes=attributes,
            relationships=relationships,
            status=status,
        )

    def snapshot(self) -> MemoizedRepository:
        return MemoizedRepository(self)

    def build_schema_graph(self) -> nx.MultiDiGraph:
        """
        Build a directed graph of schemas and their relation fields.

        Nodes are model names; every relation field adds an edge to the related
        model with `field` and `schema` (None when the related model is unmapped)
        as edge data.
        """
        schema_graph = nx.MultiDiGraph()
        for schema, model in self.models.items():
            model_name = get_model_name(model)
            schema_graph.add_node(model_name, schema=schema)
            relation_fields = [
                field for field in model._meta.concrete_fields if field.is_relation
            ] + list(model._meta.many_to_many)
            for field in relation_fields:
                related_name = get_model_name(field.related_model)
                if not schema_graph.has_node(related_name):
                    schema_graph.add_node(
                        related_name, schema=self.schema_by_model.get(field.related_model)
                    )
                schema_graph.add_edge(
                    model_name,
                    related_name,
                    field=field.name,
                    schema=self.schema_by_model.get(field.related_model),
                )
        return schema_graph
