from typing import Iterable, List, Optional, Sequence

from hoopboard.data import quarters as quarters_repo
from hoopboard.data import scoreboards as scoreboards_repo
from hoopboard.live.rows import QuarterRow, ScoreboardRow
from hoopboard.models import Team
from hoopboard.socketio_events import broadcast_change


class LocalGateway:
    """ScoreboardGateway backed by the application's database.

    Writes publish change notifications after they commit. Must be used
    inside an application context.
    """

    def __init__(self, notify: bool = True):
        self.notify = notify

    def fetch_by_id(self, scoreboard_id: int) -> ScoreboardRow:
        return ScoreboardRow.from_dict(scoreboards_repo.get_by_id(scoreboard_id).to_dict())

    def fetch_by_share_code(self, code: str) -> ScoreboardRow:
        return ScoreboardRow.from_dict(scoreboards_repo.get_by_share_code(code).to_dict())

    def update_scoreboard(self, scoreboard_id: int, **fields) -> ScoreboardRow:
        scoreboard = scoreboards_repo.update(scoreboard_id, **fields)
        payload = scoreboard.to_dict()
        if self.notify:
            broadcast_change(scoreboard.id, 'scoreboard', 'UPDATE', payload)
        return ScoreboardRow.from_dict(payload)

    def upsert_quarters(self, rows: Iterable[QuarterRow]) -> List[QuarterRow]:
        written, inserted = quarters_repo.upsert(
            {'team_id': r.team_id, 'quarter_number': r.quarter_number,
             'points': r.points, 'fouls': r.fouls, 'timeouts': r.timeouts}
            for r in rows
        )
        result = [QuarterRow.from_dict(q.to_dict()) for q in written]
        if self.notify:
            inserted = set(inserted)
            for row in result:
                team = Team.query.filter_by(id=row.team_id).first()
                event = 'INSERT' if row.key in inserted else 'UPDATE'
                broadcast_change(team.scoreboard_id if team else None, 'quarter', event, row.to_dict())
        return result

    def fetch_quarters(self, team_ids: Sequence[int],
                       quarter_number: Optional[int] = None) -> List[QuarterRow]:
        return [QuarterRow.from_dict(q.to_dict())
                for q in quarters_repo.get_by_team_ids(team_ids, quarter_number)]
