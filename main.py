from __future__ import annotations

import logging
import secrets

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from seqredeploy.api_models import HealthResponse, JournalEntry, RolloutStatusModel, StatusResponse, TriggerResponse
from seqredeploy.cluster import DockerCluster
from seqredeploy.errors import RedeployError, Unauthorized
from seqredeploy.journal import latest_events, setup_logging
from seqredeploy.rollouts import RolloutOrchestrator
from seqredeploy.runtime import RuntimeState
from seqredeploy.settings import settings
from seqredeploy.trigger import TriggerCoalescer

logger = logging.getLogger("seqredeploy.http")

app = FastAPI(title="Sequential Redeploy")

runtime = RuntimeState()
cluster = DockerCluster()
orchestrator = RolloutOrchestrator(cluster, runtime)
coalescer = TriggerCoalescer(orchestrator.rollout, runtime.coordinator)


@app.on_event("startup")
def startup() -> None:
    setup_logging()
    logger.info("starting http server now...")


@app.exception_handler(Unauthorized)
def unauthorized_handler(request: Request, exc: Unauthorized) -> JSONResponse:
    return JSONResponse(status_code=401, content={"detail": str(exc)})


# --- AUTH ---
def check_secret(secret: str = Query(..., description="Shared secret (SEQREDEPLOY_SECRET)")) -> None:
    expected = settings.secret
    if not expected:
        raise Unauthorized("missing env SEQREDEPLOY_SECRET")
    if not secrets.compare_digest(expected, secret):
        raise Unauthorized("bad secret")


# --- ROUTES ---
# example: /redeploy/?service=tuerauf-prod&haproxy=tuerauf-haproxy&secret=secret_abc123
@app.get("/redeploy/", response_model=TriggerResponse, dependencies=[Depends(check_secret)])
def trigger_redeploy(
    request: Request,
    service: str = Query(..., min_length=1, description="Service to redeploy"),
    haproxy: str = Query(..., min_length=1, description="Gateway service in front of it"),
) -> TriggerResponse:
    logger.info("got request %s", request.url.path)
    coalescer.trigger(service, haproxy)
    return TriggerResponse(message=f"redeploy service {service} triggered", service=service, gateway=haproxy)


# example: /redeploy/health/?secret=secret_abc123
@app.get("/redeploy/health/", response_model=HealthResponse, dependencies=[Depends(check_secret)])
def cluster_health() -> HealthResponse:
    try:
        services = cluster.list_services()
    except RedeployError as e:
        logger.error("cluster problem: %s", e)
        raise HTTPException(status_code=500, detail="cluster problem")
    return HealthResponse(services=len(services))


@app.get("/redeploy/status/", response_model=StatusResponse, dependencies=[Depends(check_secret)])
def rollout_status() -> StatusResponse:
    rollouts = sorted(runtime.list_rollouts(), key=lambda r: r.started_at, reverse=True)
    return StatusResponse(
        running=runtime.coordinator.running,
        rerun_requested=runtime.coordinator.rerun_requested,
        rollouts=[RolloutStatusModel(**vars(r)) for r in rollouts],
    )


@app.get("/redeploy/status/{rollout_id}", response_model=RolloutStatusModel, dependencies=[Depends(check_secret)])
def rollout_detail(rollout_id: str) -> RolloutStatusModel:
    st = runtime.get_rollout(rollout_id)
    if st is None:
        raise HTTPException(status_code=404, detail="rollout not found")
    return RolloutStatusModel(**vars(st))


@app.get("/redeploy/events/", response_model=list[JournalEntry], dependencies=[Depends(check_secret)])
def journal(limit: int = Query(50, ge=1, le=1000)) -> list[JournalEntry]:
    return [JournalEntry(**e) for e in latest_events(limit)]


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8080)
