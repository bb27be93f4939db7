from __future__ import annotations

import logging
from dataclasses import dataclass, field
from threading import Event, Lock
from typing import Any, Iterator

from kubernetes import client, config, watch
from kubernetes.client.exceptions import ApiException
from kubernetes.config.config_exception import ConfigException
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import NotFoundError

from .errors import BootstrapError
from .resources import ResourceDescriptor
from .settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)

MERGE_PATCH = "application/merge-patch+json"


class WatchExpired(Exception):
    """The watch resource version is too old; relist and start over."""


def load_config() -> None:
    """In-cluster service account first, then the local kubeconfig."""
    try:
        config.load_incluster_config()
        logger.info("using in-cluster kubernetes configuration")
    except ConfigException:
        try:
            config.load_kube_config()
        except (ConfigException, OSError) as e:
            raise BootstrapError(f"no kubernetes credentials found: {e}") from e
        logger.info("using kubeconfig")


class KubeClient:
    """Generic access to any resource kind through API discovery.

    One instance is shared by every thread; the underlying ApiClient uses a
    thread-safe urllib3 pool.
    """

    def __init__(self, dynamic: DynamicClient, field_manager: str):
        self.dynamic = dynamic
        self.field_manager = field_manager
        self._watchers: set[watch.Watch] = set()
        self._lock = Lock()

    @classmethod
    def from_env(cls, field_manager: str | None = None) -> KubeClient:
        load_config()
        return cls(DynamicClient(client.ApiClient()), field_manager or default_settings.field_manager)

    def resolve(self, desc: ResourceDescriptor) -> Any:
        """Look up the API resource for ``desc`` by group/version/kind."""
        return self.dynamic.resources.get(api_version=desc.api_version, kind=desc.kind)

    def get(self, desc: ResourceDescriptor) -> dict[str, Any] | None:
        try:
            obj = self.dynamic.get(self.resolve(desc), name=desc.name, namespace=desc.namespace)
        except NotFoundError:
            return None
        return obj.to_dict()

    def list(self, desc: ResourceDescriptor) -> tuple[list[dict[str, Any]], str | None]:
        """Return (items, resourceVersion). No namespace lists across all namespaces."""
        result = self.dynamic.get(self.resolve(desc), namespace=desc.namespace or None).to_dict()
        return result.get("items") or [], (result.get("metadata") or {}).get("resourceVersion")

    def watch(
        self,
        desc: ResourceDescriptor,
        resource_version: str | None,
        timeout_s: int,
    ) -> Iterator[tuple[str, dict[str, Any]]]:
        """Yield (event type, raw object) until the server closes the stream."""
        resource = self.resolve(desc)
        w = watch.Watch()
        with self._lock:
            self._watchers.add(w)
        try:
            for event in self.dynamic.watch(
                resource,
                namespace=desc.namespace or None,
                resource_version=resource_version,
                timeout=timeout_s,
                watcher=w,
            ):
                raw = event.get("raw_object") or {}
                if event.get("type") == "ERROR":
                    if raw.get("code") == 410:
                        raise WatchExpired(raw.get("message", "resource version expired"))
                    raise ApiException(status=raw.get("code"), reason=raw.get("message"))
                yield event["type"], raw
        except ApiException as e:
            if e.status == 410:
                raise WatchExpired(str(e.reason)) from e
            raise
        finally:
            with self._lock:
                self._watchers.discard(w)

    def stop_watches(self) -> None:
        with self._lock:
            watchers = list(self._watchers)
        for w in watchers:
            w.stop()

    def apply(self, desc: ResourceDescriptor, body: dict[str, Any], force: bool = True) -> dict[str, Any]:
        """Server-side apply; with ``force`` our field manager wins conflicts."""
        obj = self.dynamic.server_side_apply(
            self.resolve(desc),
            body=body,
            name=desc.name,
            namespace=desc.namespace,
            field_manager=self.field_manager,
            force_conflicts=force,
        )
        return obj.to_dict()

    def patch_status(self, desc: ResourceDescriptor, status: dict[str, Any]) -> dict[str, Any]:
        resource = self.resolve(desc)
        obj = self.dynamic.patch(
            resource.subresources["status"],
            body={"status": status},
            name=desc.name,
            namespace=desc.namespace,
            content_type=MERGE_PATCH,
        )
        return obj.to_dict()


@dataclass
class Context:
    """Shared by the reconciler, the workers and the watches."""

    kube: KubeClient
    settings: Settings = default_settings
    stop: Event = field(default_factory=Event)
