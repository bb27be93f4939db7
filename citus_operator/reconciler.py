from __future__ import annotations

from typing import Any

from .api_models import CitusClusterStatus
from .kube import Context
from .policy import Action, on_success
from .projector import project
from .resources import PRIMARY, PrimaryResource


def desired_instances(primary: PrimaryResource) -> int:
    instances = primary.spec.node_spec.get("instances")
    if isinstance(instances, int) and not isinstance(instances, bool):
        return instances
    return primary.spec.node_count


def observe_status(primary: PrimaryResource, applied: dict[str, Any]) -> CitusClusterStatus:
    """Derive the citus cluster status from the applied CNPG cluster."""
    ready = (applied.get("status") or {}).get("readyInstances") or 0
    want = desired_instances(primary)
    return CitusClusterStatus(is_healthy=want > 0 and ready >= want, observed_node_count=ready)


def reconcile(primary: PrimaryResource, ctx: Context) -> Action:
    """Drive the CNPG cluster of ``primary`` to its projected state.

    Holds no state between calls, so it can run concurrently for different
    clusters and repeatedly for the same one. Platform errors propagate; the
    caller turns them into a retry.
    """
    desired = project(primary, ctx.settings.dependent_name)

    # Fails with ResourceNotFoundError when the CNPG CRDs are not installed.
    ctx.kube.resolve(desired.target)
    applied = ctx.kube.apply(desired.target, desired.body, force=True)

    status = observe_status(primary, applied)
    if not primary.has_status or status != primary.status:
        ctx.kube.patch_status(
            PRIMARY.named(primary.name, primary.namespace),
            status.model_dump(by_alias=True),
        )
    return on_success(ctx.settings)
