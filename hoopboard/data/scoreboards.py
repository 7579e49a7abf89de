from typing import List, Optional

from hoopboard import db
from hoopboard.data.session import commit, reading
from hoopboard.errors import NotFoundError
from hoopboard.models import Scoreboard, Team

# Columns the live layer is allowed to write
UPDATABLE_FIELDS = frozenset({
    'timer_state', 'timer_started_at', 'timer_paused_duration', 'current_quarter', 'share_code',
})


def get_by_id(scoreboard_id: int) -> Scoreboard:
    with reading('Fetch scoreboard by id'):
        scoreboard = Scoreboard.query.filter_by(id=scoreboard_id).first()
    if not scoreboard:
        raise NotFoundError('Scoreboard not found')
    return scoreboard


def get_by_share_code(code: str) -> Scoreboard:
    with reading('Fetch scoreboard by share code'):
        scoreboard = Scoreboard.query.filter_by(share_code=(code or '').upper()).first()
    if not scoreboard:
        raise NotFoundError('Scoreboard not found or not shared')
    return scoreboard


def get_by_owner(owner_id: int) -> List[Scoreboard]:
    with reading('Fetch scoreboards by owner'):
        return (Scoreboard.query.filter_by(owner_id=owner_id)
                .order_by(Scoreboard.created_at.desc(), Scoreboard.id.desc()).all())


def count_by_owner(owner_id: int) -> int:
    with reading('Count scoreboards'):
        return Scoreboard.query.filter_by(owner_id=owner_id).count()


def create(owner_id: int, home_name: str, away_name: str, *, timer_duration: int,
           home_color: Optional[str] = None, away_color: Optional[str] = None,
           **details) -> Scoreboard:
    """Create a scoreboard with its home and away teams in one commit."""
    scoreboard = Scoreboard(owner_id=owner_id, timer_duration=timer_duration,
                            timer_state='stopped', timer_paused_duration=0,
                            current_quarter=1, **details)
    scoreboard.teams = [
        Team(name=home_name, position='home', color=home_color),
        Team(name=away_name, position='away', color=away_color),
    ]
    db.session.add(scoreboard)
    commit('Create scoreboard')
    return scoreboard


def update(scoreboard_id: int, **fields) -> Scoreboard:
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"cannot update scoreboard fields: {', '.join(sorted(unknown))}")
    scoreboard = get_by_id(scoreboard_id)
    for key, value in fields.items():
        setattr(scoreboard, key, value)
    db.session.add(scoreboard)
    commit('Update scoreboard')
    return scoreboard


def remove(scoreboard_id: int, owner_id: Optional[int] = None) -> None:
    scoreboard = get_by_id(scoreboard_id)
    if owner_id is not None and scoreboard.owner_id != owner_id:
        raise NotFoundError('Scoreboard not found')
    db.session.delete(scoreboard)
    commit('Delete scoreboard')
