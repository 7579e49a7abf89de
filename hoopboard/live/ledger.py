"""Per-quarter points with optimistic local caches.

Points are written as absolute values computed from the last known local
value, upserted on ``(team_id, quarter_number)``. Two owners writing from
stale values race and the last write to reach the database wins.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from hoopboard.errors import InvalidTransition, PermissionDenied, PersistenceError
from hoopboard.live.gateway import ScoreboardGateway
from hoopboard.live.rows import QuarterRow

logger = logging.getLogger(__name__)

MAX_POINTS = 200
QUARTER_COUNT = 4


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


class ScoreLedger:

    def __init__(self, gateway: ScoreboardGateway, scoreboard_id: int, team_ids: Sequence[int], *,
                 current_quarter: int = 1, is_owner: bool = True,
                 max_points: int = MAX_POINTS, quarter_count: int = QUARTER_COUNT,
                 upsert_attempts: int = 2):
        self.gateway = gateway
        self.scoreboard_id = scoreboard_id
        self.team_ids: Tuple[int, ...] = tuple(team_ids)
        self.current_quarter = current_quarter
        self.is_owner = is_owner
        self.max_points = max_points
        self.quarter_count = quarter_count
        self.upsert_attempts = max(1, upsert_attempts)
        # (team_id, quarter_number) -> row, across every quarter fetched so far
        self._all: Dict[Tuple[int, int], QuarterRow] = {}
        # team_id -> row for the quarter being shown
        self._current: Dict[int, QuarterRow] = {}

    # ---- cache views ----

    @property
    def all_quarters(self) -> List[QuarterRow]:
        return sorted(self._all.values(), key=lambda r: (r.quarter_number, r.team_id))

    @property
    def current_quarters(self) -> List[QuarterRow]:
        return [self._current[t] for t in self.team_ids if t in self._current]

    def current_points(self, team_id: int) -> int:
        row = self._current.get(team_id)
        return row.points if row else 0

    def total_score(self, team_id: int) -> int:
        return sum(r.points for r in self._all.values() if r.team_id == team_id)

    def quarter_history(self) -> List[dict]:
        """Points per quarter for the first two teams (home, away)."""
        if len(self.team_ids) < 2:
            return []
        home, away = self.team_ids[0], self.team_ids[1]
        history = []
        for q in range(1, self.quarter_count + 1):
            home_row = self._all.get((home, q))
            away_row = self._all.get((away, q))
            history.append({
                'quarter': q,
                'home': home_row.points if home_row else 0,
                'away': away_row.points if away_row else 0,
            })
        return history

    # ---- cache replacement (used by sync) ----

    def replace_all(self, rows: Iterable[QuarterRow]) -> None:
        self._all = {r.key: r for r in rows if r.team_id in self.team_ids}
        self._current = {
            team_id: row for (team_id, q), row in self._all.items() if q == self.current_quarter
        }

    def replace_current(self, rows: Iterable[QuarterRow]) -> None:
        self._current = {
            r.team_id: r for r in rows
            if r.team_id in self.team_ids and r.quarter_number == self.current_quarter
        }

    def refresh(self) -> None:
        self.replace_all(self.gateway.fetch_quarters(self.team_ids))

    # ---- owner commands ----

    def apply_delta(self, team_id: int, quarter_number: int, delta: int, current_points: int) -> QuarterRow:
        if not self.is_owner:
            raise PermissionDenied('only the scoreboard owner may change the score')
        if not 1 <= quarter_number <= self.quarter_count:
            raise InvalidTransition(f"quarter must be between 1 and {self.quarter_count}, got {quarter_number}")
        new_points = clamp(current_points + delta, 0, self.max_points)
        row = QuarterRow(team_id=team_id, quarter_number=quarter_number, points=new_points)
        written = self._upsert(row)
        self._store(written)
        logger.info(
            f"[score] scoreboard={self.scoreboard_id} team={team_id} quarter={quarter_number} "
            f"delta={delta} points={new_points}"
        )
        return written

    def score(self, team_id: int, delta: int) -> QuarterRow:
        """Apply ``delta`` to ``team_id`` in the current quarter."""
        return self.apply_delta(team_id, self.current_quarter, delta, self.current_points(team_id))

    def set_quarter(self, quarter_number: int) -> int:
        if not self.is_owner:
            raise PermissionDenied('only the scoreboard owner may change the quarter')
        quarter_number = clamp(quarter_number, 1, self.quarter_count)
        self.gateway.update_scoreboard(self.scoreboard_id, current_quarter=quarter_number)
        self.current_quarter = quarter_number
        rows = self.gateway.fetch_quarters(self.team_ids, quarter_number)
        self.replace_current(rows)
        for row in rows:
            if row.team_id in self.team_ids:
                self._all[row.key] = row
        logger.info(f"[quarter] scoreboard={self.scoreboard_id} current_quarter={quarter_number}")
        return quarter_number

    def _upsert(self, row: QuarterRow) -> QuarterRow:
        last_error: Optional[PersistenceError] = None
        for attempt in range(1, self.upsert_attempts + 1):
            try:
                written = self.gateway.upsert_quarters([row])
            except PersistenceError as exc:
                last_error = exc
                logger.warning(
                    f"[score-retry] scoreboard={self.scoreboard_id} team={row.team_id} "
                    f"quarter={row.quarter_number} attempt={attempt}: {exc}"
                )
                continue
            return written[0] if written else row
        logger.error(f"[score-failed] scoreboard={self.scoreboard_id} team={row.team_id}: {last_error}")
        raise last_error

    def _store(self, row: QuarterRow) -> None:
        self._all[row.key] = row
        if row.quarter_number == self.current_quarter:
            self._current[row.team_id] = row
