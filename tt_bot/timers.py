from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Protocol


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Timers(Protocol):
    def after(self, delay_seconds: float, callback: Callable[[], None]) -> Cancellable: ...


class ThreadTimers:
    """Real timers: one daemon `threading.Timer` per call."""

    def __init__(self, *, name: str = 'tt-timer') -> None:
        self._name = name

    def after(self, delay_seconds: float, callback: Callable[[], None]) -> Cancellable:
        t = threading.Timer(max(0.0, float(delay_seconds)), callback)
        t.name = self._name
        t.daemon = True
        t.start()
        return t
