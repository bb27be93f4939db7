"""Resource identities and the parsed primary resource."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .api_models import CitusClusterSpec, CitusClusterStatus
from .errors import MissingObjectKey

# (namespace, name)
ObjectKey = tuple[str, str]


@dataclass(frozen=True)
class ResourceDescriptor:
    """A resource kind, optionally narrowed to one object.

    The kind is looked up through API discovery at runtime, so types that
    are not known to this package (the CloudNativePG cluster) work the same
    way as our own.
    """

    group: str
    version: str
    kind: str
    namespace: str | None = None
    name: str | None = None

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version

    def named(self, name: str | None, namespace: str | None = None) -> ResourceDescriptor:
        return ResourceDescriptor(self.group, self.version, self.kind, namespace, name)

    def __str__(self) -> str:
        where = f" {self.namespace}/{self.name}" if self.name else ""
        return f"{self.api_version} {self.kind}{where}"


CITUS_GROUP = "citus.dev"
CITUS_VERSION = "v1"
CITUS_KIND = "Cluster"
CITUS_PLURAL = "clusters"
CRD_NAME = f"{CITUS_PLURAL}.{CITUS_GROUP}"

PRIMARY = ResourceDescriptor(CITUS_GROUP, CITUS_VERSION, CITUS_KIND)
DEPENDENT = ResourceDescriptor("postgresql.cnpg.io", "v1", "Cluster")
CRD = ResourceDescriptor("apiextensions.k8s.io", "v1", "CustomResourceDefinition")

MANAGED_BY = "citus-operator"


def _require(obj: dict[str, Any], key: str, path: str | None = None) -> Any:
    if not isinstance(obj, dict) or obj.get(key) is None:
        raise MissingObjectKey(path or key)
    return obj[key]


@dataclass(frozen=True)
class PrimaryResource:
    namespace: str
    name: str
    uid: str
    generation: int
    spec: CitusClusterSpec
    status: CitusClusterStatus
    # False until both status fields have been written once.
    has_status: bool = False

    @property
    def key(self) -> ObjectKey:
        return (self.namespace, self.name)

    @classmethod
    def from_object(cls, obj: dict[str, Any]) -> PrimaryResource:
        """Parse a raw ``citus.dev/v1 Cluster`` object.

        Raises MissingObjectKey when an expected key is absent and
        pydantic.ValidationError when a present field has the wrong type.
        """
        meta = _require(obj, "metadata")
        spec = _require(obj, "spec")
        _require(spec, "nodeCount", "spec.nodeCount")
        _require(spec, "nodeSpec", "spec.nodeSpec")
        raw_status = obj.get("status") or {}
        return cls(
            namespace=_require(meta, "namespace", "metadata.namespace"),
            name=_require(meta, "name", "metadata.name"),
            uid=meta.get("uid") or "",
            generation=int(meta.get("generation") or 0),
            spec=CitusClusterSpec.model_validate(spec),
            status=CitusClusterStatus.model_validate(raw_status),
            has_status={"isHealthy", "observedNodeCount"} <= raw_status.keys(),
        )

    def owner_reference(self) -> dict[str, Any]:
        return {
            "apiVersion": PRIMARY.api_version,
            "kind": PRIMARY.kind,
            "name": self.name,
            "uid": self.uid,
            "controller": True,
            "blockOwnerDeletion": True,
        }


def owner_key(obj: dict[str, Any]) -> ObjectKey | None:
    """Return the key of the citus cluster controlling ``obj``, if any."""
    meta = obj.get("metadata") or {}
    namespace = meta.get("namespace")
    for ref in meta.get("ownerReferences") or []:
        if ref.get("apiVersion") == PRIMARY.api_version and ref.get("kind") == PRIMARY.kind and ref.get("controller"):
            if namespace and ref.get("name"):
                return (namespace, ref["name"])
    return None
