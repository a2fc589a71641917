from __future__ import annotations

from pydantic import BaseModel, Field


class TriggerResponse(BaseModel):
    message: str
    service: str
    gateway: str


class HealthResponse(BaseModel):
    status: str = "ok"
    services: int = Field(..., ge=0, description="Number of services the cluster API reported")


class RolloutStatusModel(BaseModel):
    id: str
    service: str
    gateway: str
    state: str = Field(..., description="running|done|failed")
    message: str
    containers_total: int = 0
    containers_done: int = 0
    started_at: str
    updated_at: str


class StatusResponse(BaseModel):
    running: bool
    rerun_requested: bool
    rollouts: list[RolloutStatusModel]


class JournalEntry(BaseModel):
    ts: str
    level: str
    service_name: str | None = None
    container: str | None = None
    message: str
