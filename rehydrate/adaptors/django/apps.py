import logging
import warnings

from django.apps import AppConfig as DjangoAppConfig
from django.conf import settings

from rehydrate.adaptors.django.config import config

logger = logging.getLogger(__name__)


class RehydrateDjangoConfig(DjangoAppConfig):
    name = "rehydrate.adaptors.django"
    verbose_name = "Rehydrate Django Integration"
    label = "rehydrate"

    def ready(self):
        if not hasattr(settings, "REHYDRATE_SCHEMAS"):
            warnings.warn(
                "You have not added REHYDRATE_SCHEMAS to your settings.py. "
                "No Django models will be available for denormalization."
            )
            return

        # Once all the apps are imported, the schema models can be resolved.
        config.initialize()

        schemas = ", ".join(
            f"{schema} ({model.__name__})"
            for schema, model in config.repository.models.items()
        )
        logger.info("Rehydrate is running. Denormalizing schemas: %s", schemas)
