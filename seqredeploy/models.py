from __future__ import annotations

from dataclasses import dataclass, field

# Event resource kinds
KIND_CONTAINER = "container"
KIND_SERVICE = "service"

# Event lifecycle states
STATE_TERMINATED = "Terminated"
STATE_RUNNING = "Running"


@dataclass(frozen=True)
class Service:
    id: str
    name: str
    containers: tuple[str, ...] = ()  # container ids, in inventory order


@dataclass(frozen=True)
class Container:
    id: str
    name: str
    service_id: str
    private_ip: str | None = None
    ports: tuple[int, ...] = ()  # published (outer) ports
    private_port: int | None = None
    env: dict[str, str] = field(default_factory=dict)

    def env_value(self, key: str) -> str | None:
        return self.env.get(key)


@dataclass(frozen=True)
class Event:
    kind: str  # container|service|...
    state: str  # Terminated|Running|...
    resource_uri: str
    parents: tuple[str, ...] = ()

    def refers_to(self, resource_id: str) -> bool:
        return _same_resource(self.resource_uri, resource_id)

    def has_parent(self, parent_id: str) -> bool:
        return any(_same_resource(p, parent_id) for p in self.parents)


def _same_resource(uri: str, resource_id: str) -> bool:
    """Bare id equality, or ``resource_id`` as the last path segment of a URI."""
    if not resource_id or not uri:
        return False
    return uri == resource_id or uri.rstrip("/").endswith("/" + resource_id)
