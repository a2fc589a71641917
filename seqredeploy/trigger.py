from __future__ import annotations

import logging
from collections.abc import Callable
from threading import Thread
from typing import Any

from .journal import log_event
from .runtime import RedeployCoordinator

logger = logging.getLogger(__name__)

RolloutFn = Callable[[str, str], Any]


class TriggerCoalescer:
    """Entry point for redeploy requests.

    At most one rollout runs per process. Requests arriving meanwhile are
    folded into a single rerun that starts as soon as the current run ends.
    """

    def __init__(self, rollout: RolloutFn, coordinator: RedeployCoordinator):
        self.rollout = rollout
        self.coordinator = coordinator

    def trigger(self, service_name: str, gateway_name: str) -> Thread:
        """Fire-and-forget: hand the request to a background thread."""
        log_event("INFO", f"trigger to redeploy via {gateway_name}", service_name=service_name)
        thr = Thread(
            target=self.request_redeploy,
            args=(service_name, gateway_name),
            name=f"redeploy-{service_name}",
            daemon=True,
        )
        thr.start()
        return thr

    def request_redeploy(self, service_name: str, gateway_name: str) -> int:
        """Run now, defer into the pending rerun, or do nothing.

        Returns how many rollouts this call executed (0 when the request was
        coalesced). Rollout failures are logged, never raised.
        """
        if self.coordinator.rerun_requested:
            log_event("INFO", "already redeploying and registered to redeploy once again", service_name=service_name)
            return 0

        if not self.coordinator.claim_or_request_rerun():
            log_event("INFO", "already redeploying: registered to redeploy once again later",
                      service_name=service_name)
            return 0

        executed = 0
        while True:
            try:
                self.rollout(service_name, gateway_name)
            except Exception as e:
                logger.exception("redeploy service %s failed", service_name)
                log_event("ERROR", f"redeploy resulted in error: {type(e).__name__}: {e}", service_name=service_name)
            except BaseException:
                self.coordinator.release()
                raise
            executed += 1
            if not self.coordinator.finish_run():
                return executed
            log_event("INFO", "redeploy done. Now run again...", service_name=service_name)
