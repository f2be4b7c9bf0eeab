from __future__ import annotations

import logging
from typing import Any, Callable, Generic, TypeVar

from .clock import Clock, TimerHandle
from .logging_utils import debug_enabled

_LOGGER = logging.getLogger("promptdj.throttle")

T = TypeVar("T")


class Throttle(Generic[T]):
    """Run ``func`` at most once per ``interval`` seconds.

    Calls inside the window return the last result and leave one trailing call
    armed with the newest arguments, so the final state is always processed.
    """

    def __init__(self, func: Callable[..., T], interval: float, clock: Clock) -> None:
        self._func = func
        self._interval = max(0.0, interval)
        self._clock = clock
        self._last_call: float | None = None
        self._last_result: T | None = None
        self._pending: tuple[tuple[Any, ...], dict[str, Any]] | None = None
        self._timer: TimerHandle | None = None

    @property
    def last_result(self) -> T | None:
        return self._last_result

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def __call__(self, *args: Any, **kwargs: Any) -> T | None:
        now = self._clock.now()
        if self._last_call is None or now - self._last_call >= self._interval:
            self._cancel()
            return self._invoke(now, args, kwargs)
        self._pending = (args, kwargs)
        if self._timer is None:
            delay = self._interval - (now - self._last_call)
            self._timer = self._clock.call_later(delay, self._flush)
        return self._last_result

    def cancel(self) -> None:
        self._cancel()

    def _flush(self) -> None:
        self._timer = None
        pending = self._pending
        if pending is None:
            return
        args, kwargs = pending
        try:
            self._invoke(self._clock.now(), args, kwargs)
        except Exception as exc:
            _LOGGER.warning("Throttled call failed: %s", exc, exc_info=debug_enabled())

    def _invoke(self, now: float, args: tuple[Any, ...], kwargs: dict[str, Any]) -> T:
        self._pending = None
        self._last_call = now
        self._last_result = self._func(*args, **kwargs)
        return self._last_result

    def _cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending = None
