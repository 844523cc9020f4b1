import logging
import warnings

import networkx as nx
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

from rehydrate.core.cache import DenormalizationCache
from rehydrate.core.config import AppConfig
from rehydrate.core.exceptions import ConfigError

logger = logging.getLogger(__name__)


class DjangoLocalConfig(AppConfig):
    def __init__(self):
        self.enable_telemetry = getattr(settings, "REHYDRATE_ENABLE_TELEMETRY", False)
        self.status_field = getattr(settings, "REHYDRATE_STATUS_FIELD", None)

    def initialize(self):
        from rehydrate.adaptors.django.repository import DjangoModelRepository

        schemas = getattr(settings, "REHYDRATE_SCHEMAS", None)
        if not isinstance(schemas, dict) or not schemas:
            raise ImproperlyConfigured(
                "REHYDRATE_SCHEMAS must be a non-empty dict mapping schema names to "
                "'app_label.ModelName' strings."
            )

        try:
            self.repository = DjangoModelRepository(schemas, status_field=self.status_field)
        except ConfigError as e:
            raise ImproperlyConfigured(str(e))

        status_applier = getattr(settings, "REHYDRATE_STATUS_APPLIER", None)
        if status_applier:
            try:
                self.status_applier = import_string(status_applier)
            except ImportError:
                raise ImproperlyConfigured(
                    f"Could not import REHYDRATE_STATUS_APPLIER '{status_applier}'."
                )

        # A fresh cache per initialization; denormalizers built afterwards share it.
        self.cache = DenormalizationCache()
        self.validate_schemas()

    def validate_schemas(self) -> nx.MultiDiGraph:
        """
        Warn about relations that point at models not mapped to a schema; those
        relations are left out of every normalized entity.
        """
        if self.repository is None:
            raise ValueError("Repository must be initialized before validation")

        schema_graph = self.repository.build_schema_graph()
        for model_name, related_name, data in schema_graph.edges(data=True):
            if data["schema"] is None and schema_graph.nodes[model_name].get("schema"):
                warnings.warn(
                    f"Model '{model_name}' relation '{data['field']}' points to "
                    f"'{related_name}', which is not in REHYDRATE_SCHEMAS. "
                    f"The relation will not be denormalized."
                )

        cycles = list(nx.simple_cycles(nx.DiGraph(schema_graph)))
        if cycles:
            logger.debug("Schema relations contain cycles: %s", cycles)
        return schema_graph


config = DjangoLocalConfig()
