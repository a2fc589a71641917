from __future__ import annotations

import logging
import secrets
from collections.abc import Iterator
from contextlib import contextmanager
from threading import Thread
from typing import Any, Protocol

import docker
import requests
from docker.errors import DockerException
from docker.errors import NotFound as DockerNotFound

from .errors import NotFound, Transport
from .models import KIND_CONTAINER, STATE_RUNNING, STATE_TERMINATED, Container, Event, Service
from .settings import settings
from .watcher import EventFeed

logger = logging.getLogger(__name__)

# docker event action -> lifecycle state
_ACTION_STATES = {
    "die": STATE_TERMINATED,
    "destroy": STATE_TERMINATED,
    "start": STATE_RUNNING,
}


class ClusterClient(Protocol):
    """What the rollout core needs from the cluster management API."""

    def list_services(self) -> list[Service]: ...

    def get_service(self, service_id: str) -> Service: ...

    def get_container(self, container_id: str) -> Container: ...

    def redeploy(self, container_id: str, reuse_volumes: bool = True) -> None: ...

    def subscribe_events(self) -> EventFeed: ...


@contextmanager
def _transport(action: str) -> Iterator[None]:
    """Translate docker SDK failures into the rollout error taxonomy."""
    try:
        yield
    except DockerNotFound as e:
        raise NotFound(f"{action}: {e}") from e
    except (DockerException, requests.exceptions.RequestException) as e:
        raise Transport(f"{action}: {type(e).__name__}: {e}") from e


def _env_dict(raw: list[str] | None) -> dict[str, str]:
    out: dict[str, str] = {}
    for item in raw or []:
        key, sep, value = item.partition("=")
        if sep:
            out[key] = value
    return out


def event_from_docker(raw: dict[str, Any], service_label: str) -> Event:
    """Map one decoded docker event onto the cluster-neutral ``Event``."""
    actor = raw.get("Actor") or {}
    attrs = actor.get("Attributes") or {}
    action = str(raw.get("Action") or raw.get("status") or "")
    # exec_start: ..., health_status: healthy, etc.
    action = action.split(":", 1)[0].strip()
    parent = attrs.get(service_label)
    return Event(
        kind=str(raw.get("Type") or "other"),
        state=_ACTION_STATES.get(action, action),
        resource_uri=str(actor.get("ID") or raw.get("id") or ""),
        parents=(parent,) if parent else (),
    )


class DockerCluster:
    """``ClusterClient`` backed by a local Docker Engine.

    A service is the set of containers sharing ``service_label``; the label
    value is both the service id and its name. Containers are ordered by
    creation time.
    """

    def __init__(self, client: docker.DockerClient | None = None, service_label: str | None = None):
        self._client = client
        self.service_label = service_label or settings.service_label

    @property
    def client(self) -> docker.DockerClient:
        if self._client is None:
            with _transport("connect to docker"):
                self._client = docker.from_env()
        return self._client

    def _service_containers(self) -> dict[str, list[Any]]:
        with _transport("list containers"):
            found = self.client.containers.list(all=False, filters={"label": self.service_label})
        by_service: dict[str, list[Any]] = {}
        for c in found:
            name = (c.labels or {}).get(self.service_label)
            if name:
                by_service.setdefault(name, []).append(c)
        for items in by_service.values():
            items.sort(key=lambda c: c.attrs.get("Created", ""))
        return by_service

    def list_services(self) -> list[Service]:
        return [
            Service(id=name, name=name, containers=tuple(c.id for c in items))
            for name, items in sorted(self._service_containers().items())
        ]

    def get_service(self, service_id: str) -> Service:
        items = self._service_containers().get(service_id)
        if not items:
            raise NotFound(f"Service {service_id} not found")
        return Service(id=service_id, name=service_id, containers=tuple(c.id for c in items))

    def get_container(self, container_id: str) -> Container:
        with _transport(f"get container {container_id}"):
            c = self.client.containers.get(container_id)
        return self._to_container(c)

    def _to_container(self, c: Any) -> Container:
        attrs = c.attrs or {}
        net = attrs.get("NetworkSettings") or {}
        private_ip = net.get("IPAddress") or None
        for info in (net.get("Networks") or {}).values():
            if info.get("IPAddress"):
                private_ip = private_ip or info["IPAddress"]
                break

        ports: list[int] = []
        private_port: int | None = None
        for port_spec, bindings in sorted((net.get("Ports") or {}).items()):
            if private_port is None:
                private_port = int(port_spec.split("/", 1)[0])
            for b in bindings or []:
                if b.get("HostPort"):
                    ports.append(int(b["HostPort"]))
                    break

        return Container(
            id=c.id,
            name=c.name,
            service_id=(c.labels or {}).get(self.service_label, ""),
            private_ip=private_ip,
            ports=tuple(ports),
            private_port=private_port,
            env=_env_dict((attrs.get("Config") or {}).get("Env")),
        )

    def redeploy(self, container_id: str, reuse_volumes: bool = True) -> None:
        """Recreate a container from its own configuration.

        The old container is renamed and stopped (``die``), the replacement is
        started under the original name (``start``), then the old one is
        removed. With ``reuse_volumes`` the replacement mounts the old
        container's volumes. If the replacement fails to start, the old
        container gets its name back and is started again before the error
        propagates.
        """
        with _transport(f"redeploy container {container_id}"):
            old = self.client.containers.get(container_id)
            attrs = old.attrs or {}
            cfg = attrs.get("Config") or {}
            host = attrs.get("HostConfig") or {}
            name = old.name

            kwargs: dict[str, Any] = {
                "command": cfg.get("Cmd"),
                "entrypoint": cfg.get("Entrypoint"),
                "environment": cfg.get("Env") or [],
                "labels": cfg.get("Labels") or {},
                "working_dir": cfg.get("WorkingDir") or None,
                "user": cfg.get("User") or None,
                "detach": True,
                "name": name,
            }
            if host.get("Binds"):
                kwargs["volumes"] = host["Binds"]
            if reuse_volumes:
                kwargs["volumes_from"] = [old.id]
            port_bindings = host.get("PortBindings") or {}
            if port_bindings:
                kwargs["ports"] = {
                    port_spec: (int(b[0]["HostPort"]) if b and b[0].get("HostPort") else None)
                    for port_spec, b in port_bindings.items()
                }
            network_mode = host.get("NetworkMode")
            if network_mode and network_mode != "default":
                kwargs["network"] = network_mode
            if host.get("RestartPolicy", {}).get("Name"):
                kwargs["restart_policy"] = host["RestartPolicy"]

            old.rename(f"{name}-old-{secrets.token_hex(3)}")
            old.stop()
            try:
                self.client.containers.run(cfg.get("Image"), **kwargs)
            except Exception:
                logger.error("replacement for %s failed to start; restoring %s", name, container_id)
                old.rename(name)
                old.start()
                raise
            old.remove()
        logger.info("recreated container %s (%s)", name, container_id)

    def subscribe_events(self) -> EventFeed:
        with _transport("subscribe to docker events"):
            stream = self.client.events(decode=True)
        feed = EventFeed(on_close=stream.close)

        def _pump() -> None:
            try:
                for raw in stream:
                    if raw.get("Type") != KIND_CONTAINER:
                        continue
                    feed.put_event(event_from_docker(raw, self.service_label))
            except Exception as e:
                if not feed.closed:
                    feed.put_error(e)
                return
            if not feed.closed:
                feed.put_error(Transport("docker event stream ended"))

        Thread(target=_pump, name="docker-events", daemon=True).start()
        return feed
