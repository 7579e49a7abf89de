"""Quarter clock math and the owner-side optimistic timer controller.

Remaining time is never stored. It is derived from the persisted tuple
``(state, started_at, duration, paused_accum)`` and the reader's ``now``,
so every device computes the same value from the same row.
"""

import enum
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Optional

from hoopboard.errors import InvalidTransition, PermissionDenied, PersistenceError

logger = logging.getLogger(__name__)


class ClockState(str, enum.Enum):
    STOPPED = 'stopped'
    RUNNING = 'running'
    PAUSED = 'paused'


@dataclass(frozen=True)
class GameClock:
    duration_seconds: int
    state: ClockState = ClockState.STOPPED
    started_at: Optional[datetime] = None
    paused_accum_seconds: int = 0

    def to_fields(self) -> dict:
        """Column values for the scoreboard row."""
        return {
            'timer_state': self.state.value,
            'timer_started_at': self.started_at,
            'timer_paused_duration': self.paused_accum_seconds,
        }


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _elapsed_since(started_at: datetime, now: datetime) -> int:
    # whole seconds, never negative when a device clock lags the writer's
    return max(0, int((now - started_at).total_seconds() // 1))


def remaining(clock: GameClock, now: datetime) -> int:
    if clock.state is ClockState.STOPPED or clock.started_at is None:
        return clock.duration_seconds
    if clock.state is ClockState.PAUSED:
        return max(0, clock.duration_seconds - clock.paused_accum_seconds)
    elapsed = clock.paused_accum_seconds + _elapsed_since(clock.started_at, now)
    return max(0, clock.duration_seconds - elapsed)


def format_clock(seconds: int) -> str:
    if seconds <= 0:
        return '00:00'
    mins, secs = divmod(int(seconds), 60)
    return f"{mins:02d}:{secs:02d}"


def start(clock: GameClock, now: datetime) -> GameClock:
    """Start a stopped clock or resume a paused one.

    Starting a clock that is already running returns it unchanged; the
    current interval keeps its anchor so no elapsed time is lost.
    """
    if clock.state is ClockState.RUNNING:
        return clock
    accum = clock.paused_accum_seconds if clock.state is ClockState.PAUSED else 0
    return replace(clock, state=ClockState.RUNNING, started_at=now, paused_accum_seconds=accum)


def pause(clock: GameClock, now: datetime) -> GameClock:
    if clock.state is not ClockState.RUNNING or clock.started_at is None:
        raise InvalidTransition(f"cannot pause a {clock.state.value} clock")
    accum = clock.paused_accum_seconds + _elapsed_since(clock.started_at, now)
    return replace(clock, state=ClockState.PAUSED, paused_accum_seconds=accum)


def reset(clock: GameClock) -> GameClock:
    return replace(clock, state=ClockState.STOPPED, started_at=None, paused_accum_seconds=0)


class TimerClock:
    """Owner-side controller applying clock commands optimistically.

    Each command replaces the local clock first, then persists it through
    ``persist(clock)``. If persisting raises ``PersistenceError`` the local
    clock goes back to the pre-command value and the error propagates.
    Timer commands are never retried.
    """

    def __init__(self, clock: GameClock, persist: Callable[[GameClock], None], *,
                 is_owner: bool = True, now: Callable[[], datetime] = utcnow,
                 scoreboard_id: Optional[int] = None):
        self.clock = clock
        self._persist = persist
        self._is_owner = is_owner
        self._now = now
        self._scoreboard_id = scoreboard_id

    def remaining(self) -> int:
        return remaining(self.clock, self._now())

    def display(self) -> str:
        return format_clock(self.remaining())

    def start(self) -> GameClock:
        self._check_owner()
        if self.clock.state is ClockState.RUNNING:
            logger.info(f"[timer-start-skip] scoreboard={self._scoreboard_id} already running")
            return self.clock
        return self._apply('start', lambda c: start(c, self._now()))

    def pause(self) -> GameClock:
        return self._apply('pause', lambda c: pause(c, self._now()))

    def reset(self) -> GameClock:
        return self._apply('reset', reset)

    def _check_owner(self) -> None:
        if not self._is_owner:
            raise PermissionDenied('only the scoreboard owner may control the clock')

    def _apply(self, name: str, command: Callable[[GameClock], GameClock]) -> GameClock:
        self._check_owner()
        previous = self.clock
        self.clock = command(previous)
        try:
            self._persist(self.clock)
        except PersistenceError as exc:
            self.clock = previous
            logger.error(f"[timer-{name}-failed] scoreboard={self._scoreboard_id} rolled back: {exc}")
            raise
        logger.info(
            f"[timer-{name}] scoreboard={self._scoreboard_id} state={self.clock.state.value} "
            f"paused_accum={self.clock.paused_accum_seconds}"
        )
        return self.clock
