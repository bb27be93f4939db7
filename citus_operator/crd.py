"""Registration of the ``clusters.citus.dev`` CustomResourceDefinition."""
from __future__ import annotations

import time
from threading import Event
from typing import Any

from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from . import db
from .errors import EstablishTimeout, RegistrationError
from .kube import KubeClient
from .resources import CITUS_GROUP, CITUS_KIND, CITUS_PLURAL, CITUS_VERSION, CRD, CRD_NAME

POLL_INTERVAL_S = 0.5


def _spec_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "required": ["nodeCount", "nodeSpec"],
        "properties": {
            "nodeCount": {"type": "integer", "minimum": 0, "description": "Desired number of database nodes."},
            "nodeSpec": {
                "type": "object",
                "description": "postgresql.cnpg.io/v1 Cluster spec, forwarded unmodified.",
                "x-kubernetes-preserve-unknown-fields": True,
            },
        },
    }


def _status_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "isHealthy": {"type": "boolean"},
            "observedNodeCount": {"type": "integer", "minimum": 0},
        },
    }


def build_crd() -> dict[str, Any]:
    return {
        "apiVersion": CRD.api_version,
        "kind": CRD.kind,
        "metadata": {"name": CRD_NAME},
        "spec": {
            "group": CITUS_GROUP,
            "scope": "Namespaced",
            "names": {
                "kind": CITUS_KIND,
                "plural": CITUS_PLURAL,
                "singular": "cluster",
                "shortNames": ["cc"],
            },
            "versions": [
                {
                    "name": CITUS_VERSION,
                    "served": True,
                    "storage": True,
                    "schema": {
                        "openAPIV3Schema": {
                            "type": "object",
                            "required": ["spec"],
                            "properties": {"spec": _spec_schema(), "status": _status_schema()},
                        }
                    },
                    "subresources": {
                        "status": {},
                        "scale": {
                            "specReplicasPath": ".spec.nodeCount",
                            "statusReplicasPath": ".status.observedNodeCount",
                        },
                    },
                    "additionalPrinterColumns": [
                        {"name": "Nodes", "type": "integer", "jsonPath": ".spec.nodeCount"},
                        {"name": "Ready", "type": "integer", "jsonPath": ".status.observedNodeCount"},
                        {"name": "Healthy", "type": "boolean", "jsonPath": ".status.isHealthy"},
                        {"name": "Age", "type": "date", "jsonPath": ".metadata.creationTimestamp"},
                    ],
                }
            ],
        },
    }


def register_crd(kube: KubeClient) -> dict[str, Any]:
    """Create or update the CRD; our field manager takes ownership of every field."""
    try:
        applied = kube.apply(CRD.named(CRD_NAME), build_crd(), force=True)
    except (ApiException, HTTPError) as e:
        raise RegistrationError(f"applying CustomResourceDefinition '{CRD_NAME}' failed: {e}") from e
    db.log_event("INFO", f"Applied CustomResourceDefinition {CRD_NAME}")
    return applied


def is_established(crd: dict[str, Any] | None) -> bool:
    for cond in ((crd or {}).get("status") or {}).get("conditions") or []:
        if cond.get("type") == "Established":
            return cond.get("status") == "True"
    return False


def wait_established(kube: KubeClient, timeout_s: float, stop: Event | None = None) -> None:
    """Poll the CRD until it is Established or ``timeout_s`` runs out.

    Raises EstablishTimeout on timeout, and also when ``stop`` is set first:
    either way the operator cannot start.
    """
    stop = stop or Event()
    deadline = time.monotonic() + timeout_s
    while True:
        try:
            crd = kube.get(CRD.named(CRD_NAME))
        except (ApiException, HTTPError) as e:
            raise RegistrationError(f"reading CustomResourceDefinition '{CRD_NAME}' failed: {e}") from e
        if is_established(crd):
            db.log_event("INFO", f"CustomResourceDefinition {CRD_NAME} established")
            return
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise EstablishTimeout(CRD_NAME, timeout_s)
        if stop.wait(min(POLL_INTERVAL_S, remaining)):
            raise EstablishTimeout(CRD_NAME, timeout_s)
