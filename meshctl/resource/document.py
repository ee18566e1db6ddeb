"""Resource document model shared by the decoder and the mesh client."""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from jsonschema import ValidationError, validate

from ..errors import DecodeError

DEFAULT_API_VERSION = "mesh.megaease.com/v1alpha1"

TOP_LEVEL_FIELDS = ("apiVersion", "kind", "metadata", "spec")

RESOURCE_SCHEMA = {
    "type": "object",
    "properties": {
        "apiVersion": {"type": "string"},
        "kind": {"type": "string", "minLength": 1},
        "metadata": {
            "type": "object",
            "properties": {
                "name": {"type": "string", "minLength": 1},
                "namespace": {"type": "string"},
                "labels": {"type": "object"},
            },
            "required": ["name"]
        },
        "spec": {"type": ["object", "null"]}
    },
    "required": ["kind", "metadata"]
}


@dataclass
class ResourceDocument:
    """A decoded, kind-tagged unit of mesh configuration.

    ``metadata`` keeps the metadata fields other than name and namespace
    (labels, annotations); ``extra`` keeps unknown top-level fields, so a
    decoded manifest renders back unchanged.
    """
    kind: str
    name: str = ""
    namespace: Optional[str] = None
    spec: Dict[str, Any] = field(default_factory=dict)
    api_version: str = DEFAULT_API_VERSION
    metadata: Dict[str, Any] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)
    source: str = field(default="", compare=False)

    @property
    def key(self) -> Tuple[str, str, Optional[str]]:
        return (self.kind, self.name, self.namespace)

    @property
    def labels(self) -> Dict[str, str]:
        return self.metadata.get("labels") or {}

    def to_dict(self) -> Dict[str, Any]:
        metadata = {"name": self.name}
        if self.namespace:
            metadata["namespace"] = self.namespace
        metadata.update(self.metadata)
        data = {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": metadata,
            "spec": self.spec,
        }
        data.update(self.extra)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: str = "") -> "ResourceDocument":
        """Build a document from a decoded manifest.

        Raises:
            DecodeError: If the manifest does not look like a mesh resource
        """
        try:
            validate(instance=data, schema=RESOURCE_SCHEMA)
        except ValidationError as ve:
            where = f" in {source}" if source else ""
            raise DecodeError(f"invalid resource{where}: {ve.message}") from ve

        metadata = dict(data["metadata"])
        name = metadata.pop("name")
        namespace = metadata.pop("namespace", None)
        extra = {k: v for k, v in data.items() if k not in TOP_LEVEL_FIELDS}
        return cls(
            kind=data["kind"],
            name=name,
            namespace=namespace,
            spec=data.get("spec") or {},
            api_version=data.get("apiVersion", DEFAULT_API_VERSION),
            metadata=metadata,
            extra=extra,
            source=source,
        )

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.kind}/{self.namespace}/{self.name}"
        return f"{self.kind}/{self.name}"
