"""
In-process registry of live allocation runs for the HTTP layer.

Each run is created fresh per POST /allocations and dropped on confirm or
cancel. Idle runs expire after SESSION_TTL_SECONDS. Runs live in this process
only: a restart discards them, which equals an operator cancel (no side effects).

Requests touching the same run are serialized through checkout(), which holds
that run's own lock; different runs never wait on each other.
"""
import logging
import threading
import time
import uuid
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Optional

from pharma_erp.core.exceptions import NotFoundError
from pharma_erp.services.lot_allocation import LotAllocationWorkflow

logger = logging.getLogger(__name__)

SESSION_TTL_SECONDS = 30 * 60


class _Entry:
    __slots__ = ("workflow", "lock", "touched")

    def __init__(self, workflow: LotAllocationWorkflow, touched: float):
        self.workflow = workflow
        self.lock = threading.Lock()
        self.touched = touched


class AllocationSessionRegistry:
    def __init__(self, ttl_seconds: int = SESSION_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._sessions: Dict[str, _Entry] = {}
        # Guards the dict only; each entry's lock guards its workflow
        self._lock = threading.Lock()

    def add(self, workflow: LotAllocationWorkflow) -> str:
        session_id = uuid.uuid4().hex
        with self._lock:
            self._purge_expired()
            self._sessions[session_id] = _Entry(workflow, self.clock())
        return session_id

    def _entry(self, session_id: str) -> _Entry:
        with self._lock:
            self._purge_expired()
            entry = self._sessions.get(session_id)
            if entry is None:
                raise NotFoundError(f"Allocation session {session_id}")
            entry.touched = self.clock()
            return entry

    def get(self, session_id: str) -> LotAllocationWorkflow:
        return self._entry(session_id).workflow

    @contextmanager
    def checkout(self, session_id: str) -> Iterator[LotAllocationWorkflow]:
        """
        Exclusive use of one run for the duration of the block.

        Raises NotFoundError if the run is unknown, expired, or was discarded
        by the request that held it before us.
        """
        entry = self._entry(session_id)
        with entry.lock:
            with self._lock:
                if self._sessions.get(session_id) is not entry:
                    raise NotFoundError(f"Allocation session {session_id}")
            yield entry.workflow

    def discard(self, session_id: str) -> Optional[LotAllocationWorkflow]:
        with self._lock:
            entry = self._sessions.pop(session_id, None)
        return entry.workflow if entry else None

    def __len__(self) -> int:
        return len(self._sessions)

    def _purge_expired(self) -> None:
        cutoff = self.clock() - self.ttl_seconds
        expired = [sid for sid, entry in self._sessions.items() if entry.touched < cutoff]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info(f"Expired {len(expired)} idle allocation sessions")


allocation_sessions = AllocationSessionRegistry()
