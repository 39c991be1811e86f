"""Countdown timer engine.

The engine owns the countdown state and a background tick loop. All reads and
writes of ``remaining``, ``phase`` and the loop generation happen under a
single lock.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

from pomidoras.constants import APP_NAME

if TYPE_CHECKING:
    from pomidoras.automation.notifier import NotificationSink

logger = logging.getLogger(__name__)

EXPIRED_TITLE = APP_NAME
EXPIRED_MESSAGE = "Time's up!"


class Phase(Enum):
    """Coarse timer mode."""

    IDLE = "idle"
    COUNTING = "countdown"


@dataclass(frozen=True)
class TimerStatus:
    """Atomically observed (phase, remaining) pair."""

    phase: Phase
    remaining: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert status to its wire dictionary."""
        return {"state": self.phase.value, "duration": self.remaining}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimerStatus":
        """Create status from its wire dictionary."""
        return cls(phase=Phase(data["state"]), remaining=int(data["duration"]))


class TimerEngine:
    """Countdown state machine with a self-driven tick loop.

    Each (re)start of counting bumps a generation counter. A tick loop only
    decrements while its generation is still the current one, so a loop
    superseded by ``reset`` or ``add_seconds`` can never touch the state again.
    """

    def __init__(
        self,
        initial_seconds: int = 0,
        notifier: Optional["NotificationSink"] = None,
        tick_interval: float = 1.0,
        title: str = EXPIRED_TITLE,
        message: str = EXPIRED_MESSAGE,
    ):
        """Initialize timer engine.

        Args:
            initial_seconds: Duration restored by ``reset`` (negative clamps to 0)
            notifier: Sink invoked once when the countdown reaches zero
            tick_interval: Seconds of wall-clock time per tick
            title: Notification title on expiry
            message: Notification message on expiry
        """
        self._initial = max(0, int(initial_seconds))
        self.notifier = notifier
        self.tick_interval = tick_interval
        self.title = title
        self.message = message

        self._lock = threading.Lock()
        self._remaining = self._initial
        self._phase = Phase.IDLE
        self._generation = 0
        self._wakeup: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def initial(self) -> int:
        """Duration the timer was constructed with."""
        return self._initial

    @property
    def generation(self) -> int:
        """Generation of the most recently started or stopped tick loop."""
        with self._lock:
            return self._generation

    @property
    def tick_loop_active(self) -> bool:
        """Whether a current-generation tick loop is running."""
        with self._lock:
            return self._loop_active_locked()

    def start(self) -> None:
        """Begin counting if the initial duration is positive."""
        with self._lock:
            if self._initial > 0:
                self._start_loop_locked()
                logger.info(f"Timer started with {self._initial} seconds")
            else:
                self._phase = Phase.IDLE
                logger.info("Timer started idle")

    def add_seconds(self, delta: int) -> None:
        """Add a signed number of seconds to the countdown.

        Args:
            delta: Seconds to add; negative values subtract and clamp at zero
        """
        delta = int(delta)
        if delta == 0:
            return

        expired = False
        with self._lock:
            self._remaining = max(0, self._remaining + delta)

            if self._phase == Phase.COUNTING and self._remaining == 0:
                self._stop_loop_locked()
                self._phase = Phase.IDLE
                expired = True
                logger.info(f"Added {delta} seconds, countdown finished")
            elif self._phase == Phase.IDLE and self._remaining > 0:
                self._start_loop_locked()
                logger.info(f"Added {delta} seconds, countdown started")
            else:
                logger.info(f"Added {delta} seconds")

        if expired:
            self._notify_expired()

    def reset(self) -> None:
        """Restore the initial duration, restarting or stopping the loop."""
        with self._lock:
            self._stop_loop_locked()
            self._remaining = self._initial
            if self._initial > 0:
                self._start_loop_locked()
                logger.info(f"Timer reset to {self._initial} seconds")
            else:
                self._phase = Phase.IDLE
                logger.info("Timer reset to idle")

    def snapshot(self) -> TimerStatus:
        """Return the current (phase, remaining) pair."""
        with self._lock:
            return TimerStatus(phase=self._phase, remaining=self._remaining)

    def shutdown(self) -> None:
        """Stop any active tick loop and leave the timer idle."""
        with self._lock:
            self._stop_loop_locked()
            self._phase = Phase.IDLE

    def _loop_active_locked(self) -> bool:
        return (
            self._wakeup is not None
            and not self._wakeup.is_set()
            and self._thread is not None
            and self._thread.is_alive()
        )

    def _start_loop_locked(self) -> None:
        """Supersede any running loop and start a fresh one (lock held)."""
        self._stop_loop_locked()
        self._phase = Phase.COUNTING
        wakeup = threading.Event()
        self._wakeup = wakeup
        self._thread = threading.Thread(
            target=self._run,
            args=(self._generation, wakeup),
            name=f"pomidoras-tick-{self._generation}",
            daemon=True,
        )
        self._thread.start()

    def _stop_loop_locked(self) -> None:
        """Invalidate the current loop generation (lock held)."""
        self._generation += 1
        if self._wakeup is not None:
            self._wakeup.set()
        self._wakeup = None
        self._thread = None

    def _run(self, generation: int, wakeup: threading.Event) -> None:
        """Tick loop body for one generation."""
        logger.debug(f"Tick loop {generation} started")
        while not wakeup.wait(self.tick_interval):
            if not self._tick(generation):
                break
        logger.debug(f"Tick loop {generation} exited")

    def _tick(self, generation: int) -> bool:
        """Advance the countdown by one second.

        Args:
            generation: Generation of the calling tick loop

        Returns:
            True if the loop should keep running
        """
        with self._lock:
            if generation != self._generation or self._phase != Phase.COUNTING:
                return False

            self._remaining -= 1
            if self._remaining > 0:
                logger.debug(f"Tick: {self._remaining} seconds remaining")
                return True

            self._remaining = 0
            self._phase = Phase.IDLE
            self._stop_loop_locked()

        logger.info("Countdown finished")
        self._notify_expired()
        return False

    def _notify_expired(self) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.notify(self.title, self.message)
        except Exception as e:
            logger.error(f"Error sending notification: {e}")
