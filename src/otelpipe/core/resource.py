"""Resource tagging applied to records at creation time."""

import os
import uuid
from collections.abc import Mapping
from dataclasses import replace

from otelpipe.core.config import parse_key_value_list
from otelpipe.core.models import Record, Resource

_SERVICE_VARIABLES = {
    "OTEL_SERVICE_NAME": "service.name",
    "OTEL_SERVICE_VERSION": "service.version",
    "OTEL_DEPLOYMENT_ENVIRONMENT": "deployment.environment",
}


class ResourceTagger:
    """Attaches one process-wide Resource to every record.

    Tagging happens when a record is created, never at export time, so a
    record keeps the identity it was created with. Resource attributes win
    over record attributes with the same key.
    """

    def __init__(self, resource: Resource) -> None:
        self._resource = resource

    @property
    def resource(self) -> Resource:
        return self._resource

    def tag(self, record: Record) -> Record:
        """Return a copy of ``record`` carrying the resource and its attributes."""
        if record.resource is self._resource:
            return record
        merged = {**record.attributes, **self._resource.attributes}
        return replace(record, attributes=merged, resource=self._resource)


def resource_from_env(environ: Mapping[str, str] | None = None) -> Resource:
    """Build a Resource from OTEL_SERVICE_NAME and friends.

    Reads ``OTEL_SERVICE_NAME``, ``OTEL_SERVICE_VERSION``,
    ``OTEL_DEPLOYMENT_ENVIRONMENT`` and ``OTEL_RESOURCE_ATTRIBUTES``
    (``k1=v1,k2=v2``). Explicit service variables win over the same keys in
    ``OTEL_RESOURCE_ATTRIBUTES``.
    """
    env = os.environ if environ is None else environ
    attributes: dict[str, str] = {
        "service.name": "otelpipe-demo",
        "service.version": "1.0.0",
        "deployment.environment": "development",
        **parse_key_value_list(env.get("OTEL_RESOURCE_ATTRIBUTES", "")),
    }
    for variable, key in _SERVICE_VARIABLES.items():
        if env.get(variable):
            attributes[key] = env[variable]
    attributes.setdefault("service.instance.id", str(uuid.uuid4()))
    return Resource.default().merge(Resource(attributes))
