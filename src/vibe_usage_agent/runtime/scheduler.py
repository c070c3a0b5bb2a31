from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from vibe_usage_agent.runtime.contracts import (
    SchedulerEvent,
    SchedulerState,
    transition_scheduler_state,
)


class SyncScheduler:
    """Fires an action every ``interval_seconds`` until stopped.

    The first fire happens one interval after ``start()``; an immediate run is
    the caller's job. Each fire dispatches the action on its own thread without
    waiting for it, so the action must guard itself against overlap.

    A fire may land up to ``leeway_seconds`` late and still keep the original
    grid. Anything later restarts the grid from that fire.
    """

    def __init__(
        self,
        action: Callable[[], object],
        interval_seconds: float = 300.0,
        leeway_seconds: float = 10.0,
        on_error: Optional[Callable[[BaseException], None]] = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if leeway_seconds < 0:
            raise ValueError("leeway_seconds must not be negative")

        self.action = action
        self.interval_seconds = interval_seconds
        self.leeway_seconds = min(leeway_seconds, interval_seconds)
        self.on_error = on_error

        self.state: SchedulerState = SchedulerState.STOPPED
        self.fire_count = 0
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._timer_thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self.state == SchedulerState.RUNNING

    def start(self) -> None:
        """Arm the repeating timer; a no-op when already running."""
        with self._state_lock:
            if self.state == SchedulerState.RUNNING:
                return
            self.state = transition_scheduler_state(self.state, SchedulerEvent.START)
            self._stop_event = threading.Event()
            self._timer_thread = threading.Thread(
                target=self._timer_loop,
                args=(self._stop_event,),
                name="sync-scheduler",
                daemon=True,
            )
            self._timer_thread.start()

    def stop(self, timeout: float = 1.0) -> None:
        """Cancel the timer; a no-op when already stopped."""
        with self._state_lock:
            if self.state == SchedulerState.STOPPED:
                return
            self.state = transition_scheduler_state(self.state, SchedulerEvent.STOP)
            self._stop_event.set()
            timer_thread = self._timer_thread
            self._timer_thread = None

        if timer_thread is not None and timer_thread is not threading.current_thread():
            timer_thread.join(timeout=timeout)

    def next_deadline(self, scheduled: float, now: float) -> float:
        """Return when to fire next, given the deadline just served and the current time."""
        if now - scheduled > self.leeway_seconds:
            # Missed ticks (e.g. after host sleep) collapse into one.
            return now + self.interval_seconds
        return scheduled + self.interval_seconds

    def _timer_loop(self, stop_event: threading.Event) -> None:
        next_fire = time.monotonic() + self.interval_seconds
        while not stop_event.wait(max(next_fire - time.monotonic(), 0.0)):
            self._dispatch()
            next_fire = self.next_deadline(next_fire, time.monotonic())

    def _dispatch(self) -> None:
        self.fire_count += 1
        worker = threading.Thread(
            target=self._run_action,
            name=f"sync-scheduler-fire-{self.fire_count}",
            daemon=True,
        )
        worker.start()

    def _run_action(self) -> None:
        try:
            self.action()
        except Exception as exc:
            # Failures end this fire only; the timer keeps running.
            if self.on_error is None:
                raise
            self.on_error(exc)
