from __future__ import annotations

import copy
import queue
from dataclasses import replace
from typing import Any

import pytest

from citus_operator import db
from citus_operator.kube import Context
from citus_operator.resources import CRD, CRD_NAME, DEPENDENT, PRIMARY, ResourceDescriptor
from citus_operator.settings import settings


class FakeKube:
    """In-memory stand-in for KubeClient.

    Objects are keyed by (apiVersion, kind, namespace, name). ``failures``
    maps an operation name to a list of exceptions raised on the next calls.
    """

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str, str | None, str], dict[str, Any]] = {}
        self.installed = {(PRIMARY.api_version, PRIMARY.kind), (DEPENDENT.api_version, DEPENDENT.kind), (CRD.api_version, CRD.kind)}
        self.failures: dict[str, list[Exception]] = {}
        self.calls: list[tuple[str, str]] = []
        self.events: dict[str, queue.Queue] = {}
        self.stopped = False
        self.watch_versions: list[str | None] = []
        self.ready_instances: int | None = None
        self.establish_after: int | None = 0  # None: never established
        self._crd_reads = 0

    def _maybe_fail(self, op: str) -> None:
        pending = self.failures.get(op)
        if pending:
            raise pending.pop(0)

    @staticmethod
    def _k(desc: ResourceDescriptor) -> tuple[str, str, str | None, str]:
        return (desc.api_version, desc.kind, desc.namespace, desc.name or "")

    def resolve(self, desc: ResourceDescriptor) -> tuple[str, str]:
        self.calls.append(("resolve", str(desc)))
        self._maybe_fail("resolve")
        if (desc.api_version, desc.kind) not in self.installed:
            raise LookupError(f"no resource {desc.api_version} {desc.kind}")
        return (desc.api_version, desc.kind)

    def get(self, desc: ResourceDescriptor) -> dict[str, Any] | None:
        self.calls.append(("get", str(desc)))
        self._maybe_fail("get")
        obj = self.objects.get(self._k(desc))
        if obj is not None and desc.kind == CRD.kind and desc.name == CRD_NAME:
            self._crd_reads += 1
            if self.establish_after is not None and self._crd_reads > self.establish_after:
                obj.setdefault("status", {})["conditions"] = [{"type": "Established", "status": "True"}]
        return copy.deepcopy(obj)

    def list(self, desc: ResourceDescriptor) -> tuple[list[dict[str, Any]], str | None]:
        self.calls.append(("list", str(desc)))
        items = [
            copy.deepcopy(o)
            for (api_version, kind, ns, _), o in self.objects.items()
            if (api_version, kind) == (desc.api_version, desc.kind) and (desc.namespace is None or ns == desc.namespace)
        ]
        return items, "1"

    def watch(self, desc: ResourceDescriptor, resource_version: str | None, timeout_s: int):
        self.calls.append(("watch", str(desc)))
        self.watch_versions.append(resource_version)
        self._maybe_fail("watch")
        q = self.events.setdefault(desc.api_version, queue.Queue())
        while not self.stopped:
            try:
                yield q.get(timeout=0.05)
            except queue.Empty:
                return

    def push_event(self, desc: ResourceDescriptor, event_type: str, obj: dict[str, Any]) -> None:
        self.events.setdefault(desc.api_version, queue.Queue()).put((event_type, copy.deepcopy(obj)))

    def stop_watches(self) -> None:
        self.stopped = True

    def apply(self, desc: ResourceDescriptor, body: dict[str, Any], force: bool = True) -> dict[str, Any]:
        self.calls.append(("apply", str(desc)))
        self._maybe_fail("apply")
        key = self._k(desc)
        current = self.objects.get(key)
        obj = copy.deepcopy(body)
        meta = obj.setdefault("metadata", {})
        if current is None:
            meta["uid"] = f"uid-{len(self.objects) + 1}"
            meta["generation"] = 1
        else:
            meta["uid"] = current["metadata"]["uid"]
            changed = current.get("spec") != obj.get("spec")
            meta["generation"] = current["metadata"]["generation"] + (1 if changed else 0)
            if "status" in current:
                obj["status"] = current["status"]
        if desc.kind == DEPENDENT.kind and desc.api_version == DEPENDENT.api_version and self.ready_instances is not None:
            obj["status"] = {"readyInstances": self.ready_instances}
        self.objects[key] = obj
        return copy.deepcopy(obj)

    def patch_status(self, desc: ResourceDescriptor, status: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(("patch_status", str(desc)))
        self._maybe_fail("patch_status")
        obj = self.objects[self._k(desc)]
        obj.setdefault("status", {}).update(status)
        return copy.deepcopy(obj)

    # helpers

    def dependents(self) -> list[dict[str, Any]]:
        return [o for (api_version, kind, _, _), o in self.objects.items() if (api_version, kind) == (DEPENDENT.api_version, DEPENDENT.kind)]

    def count(self, op: str) -> int:
        return sum(1 for name, _ in self.calls if name == op)


def citus_cluster(
    name: str = "analytics",
    namespace: str = "db",
    node_count: int = 3,
    node_spec: dict[str, Any] | None = None,
    generation: int = 1,
    uid: str = "uid-primary",
) -> dict[str, Any]:
    return {
        "apiVersion": "citus.dev/v1",
        "kind": "Cluster",
        "metadata": {"name": name, "namespace": namespace, "uid": uid, "generation": generation},
        "spec": {
            "nodeCount": node_count,
            "nodeSpec": node_spec if node_spec is not None else {"instances": 3, "storage": {"size": "10Gi"}},
        },
    }


@pytest.fixture
def kube() -> FakeKube:
    return FakeKube()


@pytest.fixture
def cfg():
    return replace(settings, dependent_name="", requeue_s=10.0, error_requeue_s=1.0, workers=2, watch_namespace="")


@pytest.fixture
def ctx(kube, cfg) -> Context:
    return Context(kube=kube, settings=cfg)


@pytest.fixture(autouse=True)
def journal(tmp_path, monkeypatch):
    """Point the event journal at a throwaway sqlite file."""
    monkeypatch.setattr(db, "settings", replace(settings, db_path=str(tmp_path / "journal.db"), enable_journal=True))
    db.init_db()
    return db


@pytest.fixture
def add_primary(kube):
    def _add(**kwargs) -> dict[str, Any]:
        obj = citus_cluster(**kwargs)
        meta = obj["metadata"]
        kube.objects[(PRIMARY.api_version, PRIMARY.kind, meta["namespace"], meta["name"])] = obj
        return obj

    return _add
