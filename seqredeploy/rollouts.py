from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Callable

import httpx

from .cluster import ClusterClient
from .errors import NotFound, RedeployError
from .health import await_healthy, parse_http_check
from .journal import log_event
from .models import Container, Service
from .runtime import RolloutStatus, RuntimeState
from .settings import settings
from .watcher import await_replacement

logger = logging.getLogger(__name__)


def find_service(name: str, services: list[Service]) -> Service:
    for service in services:
        if service.name == name:
            return service
    raise NotFound(f"Service {name} not found")


class RolloutOrchestrator:
    """Redeploys a service's containers one by one, gated on health."""

    def __init__(
        self,
        cluster: ClusterClient,
        runtime: RuntimeState | None = None,
        settle_delay_s: float = settings.settle_delay_s,
        check_interval_s: float = settings.check_interval_s,
        check_timeout_s: float = settings.check_timeout_s,
        watch_timeout_s: float | None = settings.watch_timeout_s,
        request_timeout_s: float = settings.request_timeout_s,
        host_ip: str | None = settings.host_ip,
        check_env: str = settings.check_env,
        reuse_volumes: bool = settings.reuse_volumes,
        http_client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cluster = cluster
        self.runtime = runtime or RuntimeState()
        self.settle_delay_s = max(0.0, float(settle_delay_s))
        self.check_interval_s = check_interval_s
        self.check_timeout_s = check_timeout_s
        self.watch_timeout_s = watch_timeout_s
        self.request_timeout_s = request_timeout_s
        self.host_ip = host_ip
        self.check_env = check_env
        self.reuse_volumes = reuse_volumes
        self.http_client = http_client
        self.sleep = sleep
        self.clock = clock

    def rollout(self, service_name: str, gateway_name: str) -> RolloutStatus:
        """Run one full rollout; raises the first ``RedeployError`` hit."""
        st = RolloutStatus(
            id=secrets.token_hex(6),
            service=service_name,
            gateway=gateway_name,
            state="running",
            message="Resolving services",
        )
        self.runtime.upsert_rollout(st)
        try:
            self._run(st)
        except RedeployError as e:
            st.state = "failed"
            st.message = f"{type(e).__name__}: {e}"
            self.runtime.upsert_rollout(st)
            log_event("ERROR", f"Rollout {st.id} failed after {st.containers_done} container(s): {st.message}",
                      service_name=service_name)
            raise
        st.state = "done"
        st.message = "Rollout completed."
        self.runtime.upsert_rollout(st)
        return st

    def _run(self, st: RolloutStatus) -> None:
        services = self.cluster.list_services()
        target = find_service(st.service, services)
        gateway = find_service(st.gateway, services)
        gateway_container = self._first_container_id(gateway)
        service = self.cluster.get_service(target.id)

        st.containers_total = len(service.containers)
        st.message = f"Redeploying {st.containers_total} container(s)"
        self.runtime.upsert_rollout(st)
        log_event(
            "INFO",
            f"redeploying service {service.name} ({service.id}) via gateway {gateway.name} "
            f"({gateway.id}, container {gateway_container})",
            service_name=service.name,
        )

        for idx, container_id in enumerate(service.containers):
            if idx > 0 and self.settle_delay_s > 0:
                self.sleep(self.settle_delay_s)
            self.redeploy_container(container_id, service)
            st.containers_done = idx + 1
            st.message = f"{st.containers_done}/{st.containers_total} container(s) redeployed"
            self.runtime.upsert_rollout(st)

        log_event(
            "INFO",
            f"successfully redeployed service {service.name} ({service.id}) via gateway {gateway.name} ({gateway.id})",
            service_name=service.name,
        )

    def _first_container_id(self, service: Service) -> str:
        full = self.cluster.get_service(service.id)
        if not full.containers:
            raise NotFound(f"Service {service.name} has no containers")
        return full.containers[0]

    def redeploy_container(self, container_id: str, parent: Service) -> Container:
        """Redeploy one container, wait for its replacement and gate on health."""
        container = self.cluster.get_container(container_id)
        check_path = parse_http_check(container.env_value(self.check_env), container)

        log_event("INFO", f"redeploying container {container.name}", service_name=parent.name, container=container.id)

        # Subscribe first so the termination event cannot slip past us.
        feed = self.cluster.subscribe_events()
        try:
            self.cluster.redeploy(container.id, reuse_volumes=self.reuse_volumes)
            new_container = await_replacement(
                container,
                parent,
                feed,
                self.cluster,
                timeout_s=self.watch_timeout_s,
                clock=self.clock,
            )
        finally:
            feed.close()

        await_healthy(
            check_path,
            new_container,
            timeout_s=self.check_timeout_s,
            interval_s=self.check_interval_s,
            host_ip=self.host_ip,
            request_timeout_s=self.request_timeout_s,
            client=self.http_client,
            sleep=self.sleep,
            clock=self.clock,
        )
        log_event("INFO", f"container {new_container.name} checked ok", service_name=parent.name, container=new_container.id)
        return new_container
