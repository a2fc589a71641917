from __future__ import annotations

import logging
import time
from collections.abc import Callable
from queue import Empty, Queue
from typing import Any, Protocol

from .errors import Timeout, Transport
from .models import KIND_CONTAINER, STATE_RUNNING, STATE_TERMINATED, Container, Event, Service

logger = logging.getLogger(__name__)

_EVENT = "event"
_ERROR = "error"


class ContainerLookup(Protocol):
    def get_container(self, container_id: str) -> Container: ...


class EventFeed:
    """One queue carrying both cluster events and transport errors.

    Producers (usually a reader thread) call ``put_event`` / ``put_error``;
    the consumer takes whichever arrived first.
    """

    def __init__(self, on_close: Callable[[], Any] | None = None) -> None:
        self._q: Queue[tuple[str, Any]] = Queue()
        self._on_close = on_close
        self.closed = False

    def put_event(self, event: Event) -> None:
        self._q.put((_EVENT, event))

    def put_error(self, err: BaseException) -> None:
        self._q.put((_ERROR, err))

    def next_event(self, timeout: float | None = None) -> Event:
        """Block for the next item; errors are raised as ``Transport``.

        Raises ``queue.Empty`` when nothing arrives within ``timeout``.
        """
        tag, item = self._q.get(timeout=timeout)
        if tag == _ERROR:
            if isinstance(item, Transport):
                raise item
            raise Transport(f"event stream failed: {type(item).__name__}: {item}") from item
        return item

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._on_close is not None:
            self._on_close()


def await_replacement(
    old_container: Container,
    parent_service: Service,
    feed: EventFeed,
    cluster: ContainerLookup,
    timeout_s: float | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> Container:
    """Wait until ``old_container`` has terminated and a sibling is running.

    Two states: waiting for the Terminated event of the old container, then
    waiting for the first Running container event under ``parent_service``.
    Running events seen before the termination never match. Unrelated events
    are skipped. With ``timeout_s`` set the whole wait is bounded and raises
    ``Timeout``.
    """
    logger.info("waiting for container %s (%s) to terminate and reappear", old_container.name, old_container.id)
    started_at = clock()
    did_terminate = False

    while True:
        remaining: float | None = None
        if timeout_s is not None:
            remaining = timeout_s - (clock() - started_at)
            if remaining <= 0:
                phase = "reappear" if did_terminate else "terminate"
                raise Timeout(
                    f"container {old_container.name} ({old_container.id}): "
                    f"timeout after {timeout_s}s waiting to {phase}"
                )
        try:
            event = feed.next_event(timeout=remaining)
        except Empty:
            continue

        if event.kind != KIND_CONTAINER:
            continue

        if not did_terminate:
            if event.state == STATE_TERMINATED and event.refers_to(old_container.id):
                logger.info("got container Terminated event on container %s", old_container.id)
                did_terminate = True
            continue

        if event.state == STATE_RUNNING and event.has_parent(parent_service.id):
            new_container = cluster.get_container(event.resource_uri)
            logger.info("got container Running event on new container (%s)", new_container.id)
            return new_container
