"""A live view of one scoreboard kept consistent with the database.

Push events and the fallback poll both end in ``reconcile``, which swaps
local state only when the fetched snapshot differs from what is cached.
Push lowers latency; the poll guarantees convergence within one interval.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from hoopboard.errors import ScoreboardError, NotFoundError
from hoopboard.live.channel import ChangeFeed, Subscription
from hoopboard.live.clock import ClockState, GameClock, TimerClock, format_clock, remaining, utcnow
from hoopboard.live.gateway import ScoreboardGateway
from hoopboard.live.ledger import MAX_POINTS, QUARTER_COUNT, ScoreLedger
from hoopboard.live.rows import QuarterRow, ScoreboardRow

logger = logging.getLogger(__name__)


class LiveScoreboard:
    """Observe (and, for the owner, control) a single scoreboard.

    ``scheduler`` must provide ``start_background_task(fn, *args)`` and
    ``sleep(seconds)``; a ``flask_socketio.SocketIO`` instance does. Without
    one, no background tasks run and callers drive ``poll_once`` and
    ``tick`` themselves.
    """

    def __init__(self, gateway: ScoreboardGateway, *, scoreboard_id: Optional[int] = None,
                 share_code: Optional[str] = None, viewer_id: Optional[int] = None,
                 feed: Optional[ChangeFeed] = None, scheduler: Any = None,
                 now: Callable[[], datetime] = utcnow,
                 poll_interval: float = 10.0, tick_interval: float = 0.1,
                 max_points: int = MAX_POINTS, quarter_count: int = QUARTER_COUNT,
                 on_change: Optional[Callable[['LiveScoreboard'], None]] = None,
                 on_tick: Optional[Callable[[str], None]] = None):
        if scoreboard_id is None and not share_code:
            raise ValueError('scoreboard_id or share_code is required')
        self.gateway = gateway
        self.scoreboard_id = scoreboard_id
        self.share_code = share_code.upper() if share_code else None
        self.viewer_id = viewer_id
        self.feed = feed
        self.scheduler = scheduler
        self.now = now
        self.poll_interval = poll_interval
        self.tick_interval = tick_interval
        self.max_points = max_points
        self.quarter_count = quarter_count
        self.on_change = on_change
        self.on_tick = on_tick

        self.scoreboard: Optional[ScoreboardRow] = None
        self.timer: Optional[TimerClock] = None
        self.ledger: Optional[ScoreLedger] = None
        self._subscriptions: List[Subscription] = []
        self._open = False
        # bumped on close so stale loops exit after their next sleep
        self._generation = 0
        # generation of the live tick loop, if any
        self._tick_generation: Optional[int] = None

    # ---- state ----

    @property
    def is_owner(self) -> bool:
        return bool(self.scoreboard and self.viewer_id is not None
                    and self.viewer_id == self.scoreboard.owner_id)

    @property
    def clock(self) -> GameClock:
        return self.timer.clock

    def remaining(self) -> int:
        return remaining(self.clock, self.now())

    def display(self) -> str:
        return format_clock(self.remaining())

    def snapshot(self) -> Tuple[ScoreboardRow, Tuple[QuarterRow, ...]]:
        return self.scoreboard.with_clock(self.timer.clock), tuple(self.ledger.all_quarters)

    # ---- loading and reconciliation ----

    def _fetch_scoreboard(self) -> ScoreboardRow:
        if self.scoreboard_id is not None:
            return self.gateway.fetch_by_id(self.scoreboard_id)
        return self.gateway.fetch_by_share_code(self.share_code)

    def load(self) -> 'LiveScoreboard':
        row = self._fetch_scoreboard()
        quarters = self.gateway.fetch_quarters(row.team_ids) if row.teams else []
        self._install(row, quarters)
        return self

    def _install(self, row: ScoreboardRow, quarters: List[QuarterRow]) -> None:
        self.scoreboard = row
        self.scoreboard_id = row.id
        self.timer = TimerClock(row.clock, self._persist_clock, is_owner=self.is_owner,
                                now=self.now, scoreboard_id=row.id)
        self.ledger = ScoreLedger(self.gateway, row.id, row.team_ids,
                                  current_quarter=row.current_quarter, is_owner=self.is_owner,
                                  max_points=self.max_points, quarter_count=self.quarter_count)
        self.ledger.replace_all(quarters)

    def reconcile(self, row: ScoreboardRow, quarters: Optional[List[QuarterRow]] = None) -> bool:
        """Replace local state with ``row`` (and ``quarters``) if they differ.

        Returns True when anything was replaced.
        """
        if self.scoreboard is None:
            self._install(row, quarters or [])
            self._changed()
            return True

        changed = False
        current_row, current_quarters = self.snapshot()
        if row.model_dump() != current_row.model_dump():
            self.scoreboard = row
            self.timer.clock = row.clock
            if (row.team_ids != self.ledger.team_ids
                    or row.current_quarter != self.ledger.current_quarter):
                self.ledger.team_ids = row.team_ids
                self.ledger.current_quarter = row.current_quarter
                self.ledger.replace_all(current_quarters)
            changed = True
        if quarters is not None:
            incoming = tuple(sorted((q for q in quarters if q.team_id in row.team_ids),
                                    key=lambda r: (r.quarter_number, r.team_id)))
            if [q.model_dump() for q in incoming] != [q.model_dump() for q in self.ledger.all_quarters]:
                self.ledger.replace_all(incoming)
                changed = True
        if changed:
            logger.debug(f"[reconcile] scoreboard={row.id} replaced local state")
            self._changed()
        return changed

    def refetch(self) -> bool:
        row = self._fetch_scoreboard()
        quarters = self.gateway.fetch_quarters(row.team_ids) if row.teams else []
        return self.reconcile(row, quarters)

    def poll_once(self) -> bool:
        try:
            return self.refetch()
        except NotFoundError:
            logger.warning(f"[poll] scoreboard={self.scoreboard_id} no longer exists")
            return False
        except ScoreboardError as exc:
            logger.error(f"[poll-failed] scoreboard={self.scoreboard_id}: {exc}")
            return False

    # ---- push handlers ----

    def handle_scoreboard_event(self, table: str, event: str, row: Dict[str, Any]) -> None:
        # Refetch the full row rather than applying the partial payload
        try:
            fresh = self._fetch_scoreboard()
            quarters = self.gateway.fetch_quarters(fresh.team_ids) if fresh.teams else None
            self.reconcile(fresh, quarters)
        except ScoreboardError as exc:
            logger.error(f"[push-failed] scoreboard={self.scoreboard_id} event={event}: {exc}")

    def handle_quarter_event(self, table: str, event: str, row: Dict[str, Any]) -> None:
        if self.scoreboard is None or row.get('team_id') not in self.scoreboard.team_ids:
            return
        try:
            quarters = self.gateway.fetch_quarters(self.scoreboard.team_ids)
            self.reconcile(self.scoreboard.with_clock(self.timer.clock), quarters)
        except ScoreboardError as exc:
            logger.error(f"[push-failed] scoreboard={self.scoreboard_id} event={event}: {exc}")

    # ---- owner commands ----

    def _persist_clock(self, clock: GameClock) -> None:
        self.gateway.update_scoreboard(self.scoreboard_id, **clock.to_fields())

    def _after_clock_command(self) -> GameClock:
        self.scoreboard = self.scoreboard.with_clock(self.timer.clock)
        self._changed()
        return self.timer.clock

    def start_timer(self) -> GameClock:
        self.timer.start()
        return self._after_clock_command()

    def pause_timer(self) -> GameClock:
        self.timer.pause()
        return self._after_clock_command()

    def reset_timer(self) -> GameClock:
        self.timer.reset()
        return self._after_clock_command()

    def score(self, team_id: int, delta: int) -> QuarterRow:
        written = self.ledger.score(team_id, delta)
        self._changed()
        return written

    def set_quarter(self, quarter_number: int) -> int:
        quarter_number = self.ledger.set_quarter(quarter_number)
        self.scoreboard = self.scoreboard.with_quarter(quarter_number)
        self._changed()
        return quarter_number

    # ---- lifecycle ----

    def open(self) -> 'LiveScoreboard':
        if self._open:
            return self
        if self.scoreboard is None:
            self.load()
        self._open = True
        if self.feed is not None:
            sid = self.scoreboard.id
            self._subscriptions = [
                self.feed.subscribe('scoreboard', self.handle_scoreboard_event, event='UPDATE',
                                    match=lambda r: r.get('id') == sid),
                self.feed.subscribe('quarter', self.handle_quarter_event),
            ]
        if self.scheduler is not None:
            self.scheduler.start_background_task(self._poll_loop, self._generation)
        self._ensure_ticking()
        logger.info(f"[live-open] scoreboard={self.scoreboard_id}")
        return self

    def close(self) -> None:
        if not self._open:
            return
        self._open = False
        self._generation += 1
        for sub in self._subscriptions:
            sub.unsubscribe()
        self._subscriptions = []
        logger.info(f"[live-close] scoreboard={self.scoreboard_id}")

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def tick(self) -> str:
        text = self.display()
        if self.on_tick is not None:
            self.on_tick(text)
        return text

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self)
        self._ensure_ticking()

    def _ensure_ticking(self) -> None:
        if not self._open or self.scheduler is None or self._tick_generation == self._generation:
            return
        if self.timer is None or self.timer.clock.state is not ClockState.RUNNING:
            # one refresh per change while not running
            self.tick()
            return
        self._tick_generation = self._generation
        self.scheduler.start_background_task(self._tick_loop, self._generation)

    def _alive(self, generation: int) -> bool:
        return self._open and generation == self._generation

    def _tick_loop(self, generation: int) -> None:
        try:
            while self._alive(generation) and self.timer.clock.state is ClockState.RUNNING:
                try:
                    self.tick()
                except Exception:
                    logger.exception(f"[tick-error] scoreboard={self.scoreboard_id}")
                self.scheduler.sleep(self.tick_interval)
        finally:
            if self._tick_generation == generation:
                self._tick_generation = None
        if self._alive(generation):
            # final frame for the paused/stopped value
            self.tick()

    def _poll_loop(self, generation: int) -> None:
        while True:
            self.scheduler.sleep(self.poll_interval)
            if not self._alive(generation):
                return
            self.poll_once()
