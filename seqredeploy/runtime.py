from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock

from .journal import utc_now
from .settings import settings


@dataclass
class RolloutStatus:
    id: str
    service: str
    gateway: str
    state: str  # running|done|failed
    message: str
    containers_total: int = 0
    containers_done: int = 0
    started_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)


class RedeployCoordinator:
    """Single-flight flags for the whole process.

    ``running`` is held for exactly one orchestration at a time.
    ``rerun_requested`` is a level: any number of requests during a run
    collapse into one rerun. It is only ever set while ``running`` is held,
    so a pending rerun always has a holder that will pick it up. The methods
    below are the only way to mutate either flag; each is one lock hold.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._running = False
        self._rerun_requested = False

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def rerun_requested(self) -> bool:
        with self._lock:
            return self._rerun_requested

    def claim_or_request_rerun(self) -> bool:
        """Claim ``running`` if free, else mark a rerun for the holder.

        Returns True when the caller now holds the run.
        """
        with self._lock:
            if not self._running:
                self._running = True
                return True
            self._rerun_requested = True
            return False

    def finish_run(self) -> bool:
        """End the holder's run.

        With a rerun pending it is consumed and ``running`` stays claimed
        (returns True: run again); otherwise ``running`` is cleared.
        """
        with self._lock:
            if self._rerun_requested:
                self._rerun_requested = False
                return True
            self._running = False
            return False

    def release(self) -> None:
        """Drop the claim and any pending rerun; only for aborting the holder."""
        with self._lock:
            self._running = False
            self._rerun_requested = False


class RuntimeState:
    """In-memory rollout bookkeeping; nothing survives a restart.

    Only the latest ``history`` rollouts are kept, oldest dropped first.
    """

    def __init__(self, history: int | None = None) -> None:
        self.lock = Lock()
        self.coordinator = RedeployCoordinator()
        self.history = max(1, history if history is not None else settings.rollout_history)
        self.rollouts: dict[str, RolloutStatus] = {}

    def upsert_rollout(self, st: RolloutStatus) -> None:
        with self.lock:
            st.updated_at = utc_now()
            self.rollouts[st.id] = st
            while len(self.rollouts) > self.history:
                del self.rollouts[next(iter(self.rollouts))]

    def get_rollout(self, rollout_id: str) -> RolloutStatus | None:
        with self.lock:
            return self.rollouts.get(rollout_id)

    def list_rollouts(self) -> list[RolloutStatus]:
        with self.lock:
            return list(self.rollouts.values())
