"""Location-source collaborator interface and a push-style implementation.

The session never talks to GPS hardware. It subscribes to something that
delivers LocationFix events and, on failure, a LocationError value.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Protocol

from run_tracker.models import LocationFix, SignalStatus

logger = logging.getLogger(__name__)


class LocationError(Exception):
    """Failure reported by the location source (delivered as a value, not raised)."""

    def __init__(self, kind: SignalStatus, message: str = "") -> None:
        if kind is SignalStatus.OK:
            raise ValueError("LocationError 不能使用 SignalStatus.OK")
        super().__init__(message or kind.value)
        self.kind = kind


FixCallback = Callable[[LocationFix], None]
ErrorCallback = Callable[[LocationError], None]


class Subscription(Protocol):
    def cancel(self) -> None:
        """Stop delivery. Synchronous and idempotent."""


class LocationSource(Protocol):
    def subscribe(self, on_fix: FixCallback, on_error: ErrorCallback) -> Subscription:
        """Start delivering fixes to ``on_fix`` and failures to ``on_error``."""


class _PushSubscription:
    def __init__(self, source: PushLocationSource, on_fix: FixCallback, on_error: ErrorCallback) -> None:
        self._source = source
        self.on_fix = on_fix
        self.on_error = on_error
        self.active = True

    def cancel(self) -> None:
        self._source._detach(self)


class PushLocationSource:
    """A feed driven by external code calling ``emit`` / ``fail``.

    Used by the replay driver, the dashboard and tests. Delivery happens on the
    caller's thread; ``cancel`` takes the same lock as delivery, so once it returns
    no callback of that subscription is running or will run.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._subs: list[_PushSubscription] = []

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subs)

    def subscribe(self, on_fix: FixCallback, on_error: ErrorCallback) -> Subscription:
        sub = _PushSubscription(self, on_fix, on_error)
        with self._lock:
            self._subs.append(sub)
        return sub

    def _detach(self, sub: _PushSubscription) -> None:
        with self._lock:
            sub.active = False
            if sub in self._subs:
                self._subs.remove(sub)

    def emit(self, fix: LocationFix) -> int:
        """Deliver a fix to every active subscriber.

        Returns:
            Number of subscribers the fix reached.
        """

        with self._lock:
            targets = list(self._subs)
            for sub in targets:
                if sub.active:
                    sub.on_fix(fix)
            return len(targets)

    def fail(self, kind: SignalStatus, message: str = "") -> int:
        """Deliver a failure signal to every active subscriber."""

        error = LocationError(kind, message)
        logger.warning("定位源异常：%s", error)
        with self._lock:
            targets = list(self._subs)
            for sub in targets:
                if sub.active:
                    sub.on_error(error)
            return len(targets)
