from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any

from .resources import DEPENDENT, MANAGED_BY, PrimaryResource, ResourceDescriptor
from .settings import settings


@dataclass(frozen=True)
class DesiredState:
    target: ResourceDescriptor
    body: dict[str, Any]


def dependent_name(primary: PrimaryResource, pinned: str | None = None) -> str:
    """Name of the CloudNativePG cluster owned by ``primary``.

    A pinned name (CITUS_DEPENDENT_NAME) makes every primary share one
    dependent, so it is only useful with a single cluster per namespace.
    """
    if pinned is None:
        pinned = settings.dependent_name
    return pinned or f"{primary.name}-inner"


def project(primary: PrimaryResource, pinned_name: str | None = None) -> DesiredState:
    """Map a citus cluster to the CloudNativePG cluster it should own.

    Deterministic and side-effect free; ``primary`` is never mutated.
    ``nodeSpec`` is copied as-is; the CNPG admission webhook validates it.
    """
    name = dependent_name(primary, pinned_name)
    target = DEPENDENT.named(name, primary.namespace)
    body = {
        "apiVersion": target.api_version,
        "kind": target.kind,
        "metadata": {
            "name": name,
            "namespace": primary.namespace,
            "labels": {
                "app.kubernetes.io/managed-by": MANAGED_BY,
                "citus.dev/cluster": primary.name,
            },
            "ownerReferences": [primary.owner_reference()],
        },
        "spec": copy.deepcopy(primary.spec.node_spec),
    }
    return DesiredState(target=target, body=body)
