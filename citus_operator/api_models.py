from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CitusClusterSpec(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    node_count: int = Field(..., alias="nodeCount", ge=0, description="Desired number of database nodes")
    node_spec: dict[str, Any] = Field(
        ..., alias="nodeSpec", description="CloudNativePG Cluster spec, forwarded unmodified"
    )


class CitusClusterStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    is_healthy: bool = Field(False, alias="isHealthy")
    observed_node_count: int = Field(0, alias="observedNodeCount", ge=0)


class EventOut(BaseModel):
    id: int
    ts: str
    level: str
    namespace: str | None = None
    name: str | None = None
    message: str


class ProbeOut(BaseModel):
    status: str = Field(..., description="ok|starting|stopping")
    crd_established: bool = False
    watching: bool = False
