"""Validated row types for data crossing the persistence boundary.

The live layer only ever sees these frozen models. ``from_dict`` rejects
rows that lack required fields instead of letting ``None`` leak into clock
or score math.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from hoopboard.errors import MalformedRowError
from hoopboard.live.clock import GameClock, ClockState


def _validate(model, kind: str, data: Any):
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        problems = '; '.join(
            f"{'.'.join(str(p) for p in err['loc']) or kind}: {err['msg']}" for err in exc.errors()
        )
        raise MalformedRowError(f"{kind}: {problems}") from None


class TeamRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    scoreboard_id: int
    name: str
    position: Literal['home', 'away']
    color: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TeamRow':
        return _validate(cls, 'team', data)


class QuarterRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    team_id: int
    quarter_number: int
    points: int
    fouls: int = 0
    timeouts: int = 0
    id: Optional[int] = None

    @field_validator('fouls', 'timeouts', mode='before')
    @classmethod
    def _zero_if_missing(cls, value):
        return 0 if value is None else value

    @property
    def key(self) -> Tuple[int, int]:
        return (self.team_id, self.quarter_number)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'QuarterRow':
        return _validate(cls, 'quarter', data)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


class ScoreboardRow(BaseModel):
    """One scoreboard row with its teams, home first."""

    model_config = ConfigDict(frozen=True)

    id: int
    owner_id: int
    current_quarter: int
    timer_duration: int
    timer_state: ClockState
    timer_started_at: Optional[datetime] = None
    timer_paused_duration: int = 0
    share_code: Optional[str] = None
    teams: Tuple[TeamRow, ...] = ()

    @field_validator('timer_paused_duration', mode='before')
    @classmethod
    def _zero_if_missing(cls, value):
        return 0 if value is None else value

    @field_validator('timer_started_at', mode='before')
    @classmethod
    def _blank_is_none(cls, value):
        return None if value == '' else value

    @field_validator('timer_started_at')
    @classmethod
    def _as_utc(cls, value):
        # naive timestamps are stored as UTC
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator('teams', mode='before')
    @classmethod
    def _no_teams(cls, value):
        return () if value is None else value

    @field_validator('teams')
    @classmethod
    def _home_first(cls, value):
        # stable left/right display order
        return tuple(sorted(value, key=lambda t: 0 if t.position == 'home' else 1))

    @property
    def team_ids(self) -> Tuple[int, ...]:
        return tuple(t.id for t in self.teams)

    @property
    def clock(self) -> GameClock:
        return GameClock(
            duration_seconds=self.timer_duration,
            state=self.timer_state,
            started_at=self.timer_started_at,
            paused_accum_seconds=self.timer_paused_duration,
        )

    def with_clock(self, clock: GameClock) -> 'ScoreboardRow':
        return self.model_copy(update={
            'timer_duration': clock.duration_seconds,
            'timer_state': clock.state,
            'timer_started_at': clock.started_at,
            'timer_paused_duration': clock.paused_accum_seconds,
        })

    def with_quarter(self, quarter_number: int) -> 'ScoreboardRow':
        return self.model_copy(update={'current_quarter': quarter_number})

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScoreboardRow':
        return _validate(cls, 'scoreboard', data)
