from __future__ import annotations

import logging
import time
from collections.abc import Callable

import httpx

from .errors import NotFound, Timeout, UnsupportedCheck
from .models import Container

logger = logging.getLogger(__name__)


def parse_http_check(definition: str | None, container: Container) -> str:
    """Return the path from a ``GET <path>`` health-check definition."""
    if definition is None:
        raise UnsupportedCheck(f"container {container.name} ({container.id}) declares no health check")
    parts = definition.split()
    if len(parts) < 2 or parts[0] != "GET":
        raise UnsupportedCheck(
            f"container {container.name} ({container.id}) has bad health check '{definition}' (not implemented)"
        )
    return parts[1]


def check_url(check_path: str, container: Container, host_ip: str | None = None) -> str:
    """Build the readiness URL.

    With a host override the first published port is used; otherwise the
    container's private address with its private port (falling back to the
    published one).
    """
    host = host_ip or container.private_ip
    if not host:
        raise NotFound(f"container {container.name} ({container.id}) has no address to check")
    port = container.ports[0] if container.ports else None
    if not host_ip and container.private_port is not None:
        port = container.private_port
    if port is None:
        raise NotFound(f"container {container.name} ({container.id}) exposes no port to check")
    if not check_path.startswith("/"):
        check_path = "/" + check_path
    return f"http://{host}:{int(port)}{check_path}"


def check_health(url: str, client: httpx.Client) -> tuple[bool, str, float | None]:
    """Call a readiness endpoint once.

    Any 2xx is ready; other statuses and transport errors are "not yet".
    Returns (is_ready, message, latency_ms).
    """
    start = time.time()
    try:
        resp = client.get(url)
        latency_ms = round((time.time() - start) * 1000.0, 2)
        if 200 <= resp.status_code < 300:
            return True, f"HTTP {resp.status_code}", latency_ms
        return False, f"HTTP {resp.status_code}", latency_ms
    except httpx.HTTPError as e:
        latency_ms = round((time.time() - start) * 1000.0, 2)
        return False, f"Error: {type(e).__name__}: {e}", latency_ms


def await_healthy(
    check_path: str,
    container: Container,
    timeout_s: float = 600,
    interval_s: float = 5,
    host_ip: str | None = None,
    request_timeout_s: float = 2.0,
    client: httpx.Client | None = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> int:
    """Poll the container's check endpoint until it answers 2xx.

    The budget is only checked after a failed attempt, so at least one attempt
    always happens. Returns the number of attempts made; raises ``Timeout``.
    """
    url = check_url(check_path, container, host_ip)
    started_at = clock()
    attempts = 0
    own_client = client is None
    if client is None:
        client = httpx.Client(timeout=request_timeout_s, follow_redirects=False)
    try:
        while True:
            attempts += 1
            logger.info("container %s (%s): calling %s", container.name, container.id, url)
            ok, msg, _latency = check_health(url, client)
            if ok:
                return attempts
            logger.info("container %s (%s): not ready yet (%s)", container.name, container.id, msg)
            if clock() - started_at >= timeout_s:
                raise Timeout(f"container {container.name} ({container.id}): timeout calling {url}")
            sleep(interval_s)
    finally:
        if own_client:
            client.close()
