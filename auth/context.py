"""
auth/context.py -- Per-call cancellation and deadline carrier.

AuthService performs no I/O of its own; every blocking step happens inside a
collaborator. A RequestContext lets the caller abort an operation between
those steps: the service calls ctx.check() before each collaborator call and
stops with OperationCancelled if the context was cancelled or its deadline has
passed. It does not interrupt a collaborator call already in progress --
collaborators enforce their own timeouts (e.g. the SQLAlchemy pool timeout).

A context is created per request and may be cancelled from another thread.
Over HTTP only the deadline is wired: auth/dependencies.get_request_context()
builds the context from REQUEST_TIMEOUT_SECONDS, and a client disconnect does
not call cancel(). cancel() is for callers that embed AuthService directly
(workers, scripts) and own their own cancellation signal.
"""

from __future__ import annotations

import threading
import time

from auth.errors import OperationCancelled


class RequestContext:
    """Cancellation flag plus an optional monotonic deadline.

    Usage:
        ctx = RequestContext.with_timeout(5.0)
        service.login(credentials, ctx)
    """

    def __init__(self, deadline: float | None = None) -> None:
        self.deadline = deadline
        self._cancelled = threading.Event()

    @classmethod
    def with_timeout(cls, seconds: float) -> RequestContext:
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set() or self.expired

    def check(self) -> None:
        """Raise OperationCancelled if the context is no longer live."""
        if self._cancelled.is_set():
            raise OperationCancelled("Operation cancelled by caller.")
        if self.expired:
            raise OperationCancelled("Operation deadline exceeded.")
