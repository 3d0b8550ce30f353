"""Jobs that run only after the enclosing database transaction commits.

Services call :func:`enqueue_after_commit` while they write. When the session
commits, the queued jobs are handed to the installed dispatcher; on rollback
they are discarded. Job failures are logged and kept for :meth:`retry_failed`,
they never reach the write path that queued them.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy import event
from sqlalchemy.orm import Session

logger = logging.getLogger("clinic_feedback.side_effects")

_PENDING_KEY = "post_commit_jobs"


@dataclass
class SideEffectJob:
    name: str
    run: Callable[[], object]
    attempts: int = 0
    last_error: str | None = None
    queued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SideEffectDispatcher:
    def __init__(self, *, inline: bool = False, max_workers: int = 4, max_failed: int = 200) -> None:
        self.inline = inline
        self._executor = None if inline else ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="side-effect"
        )
        self._lock = threading.Lock()
        self.failed: deque[SideEffectJob] = deque(maxlen=max_failed)
        self.stats = {"dispatched": 0, "succeeded": 0, "failed": 0}

    def submit(self, job: SideEffectJob) -> None:
        with self._lock:
            self.stats["dispatched"] += 1
        if self._executor is None:
            self._run(job)
        else:
            self._executor.submit(self._run, job)

    def _run(self, job: SideEffectJob) -> bool:
        job.attempts += 1
        try:
            job.run()
        except Exception as exc:
            job.last_error = f"{type(exc).__name__}: {exc}"
            logger.exception("Side effect %s failed (attempt %s)", job.name, job.attempts)
            with self._lock:
                self.stats["failed"] += 1
                self.failed.append(job)
            return False
        with self._lock:
            self.stats["succeeded"] += 1
        return True

    def retry_failed(self) -> int:
        """Re-run failed jobs inline; returns how many succeeded this time."""
        with self._lock:
            pending = list(self.failed)
            self.failed.clear()
        return sum(1 for job in pending if self._run(job))

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)


_dispatcher = SideEffectDispatcher(inline=True)


def install_dispatcher(dispatcher: SideEffectDispatcher) -> SideEffectDispatcher:
    global _dispatcher
    previous = _dispatcher
    _dispatcher = dispatcher
    return previous


def get_dispatcher() -> SideEffectDispatcher:
    return _dispatcher


def enqueue_after_commit(session: Session, name: str, run: Callable[[], object]) -> SideEffectJob:
    job = SideEffectJob(name=name, run=run)
    session.info.setdefault(_PENDING_KEY, []).append(job)
    return job


@event.listens_for(Session, "after_commit")
def _dispatch_after_commit(session: Session) -> None:
    # Savepoint releases also fire after_commit; only the outermost commit counts.
    if session.in_nested_transaction():
        return
    jobs = session.info.pop(_PENDING_KEY, [])
    for job in jobs:
        _dispatcher.submit(job)


def _discard(session: Session) -> None:
    jobs = session.info.pop(_PENDING_KEY, [])
    if jobs:
        logger.info("Discarded %s side effect(s); transaction did not commit", len(jobs))


@event.listens_for(Session, "after_rollback")
def _discard_after_rollback(session: Session) -> None:
    if session.in_nested_transaction():
        return
    _discard(session)


@event.listens_for(Session, "after_transaction_end")
def _discard_after_close(session: Session, transaction) -> None:
    if transaction.parent is None:
        _discard(session)
