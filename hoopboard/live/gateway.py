from typing import Iterable, List, Optional, Protocol, Sequence

from hoopboard.live.rows import QuarterRow, ScoreboardRow


class ScoreboardGateway(Protocol):
    """Persistence operations the live layer depends on.

    Implementations raise ``NotFoundError`` for unknown ids/codes and
    ``PersistenceError`` for failed reads or writes.
    """

    def fetch_by_id(self, scoreboard_id: int) -> ScoreboardRow: ...

    def fetch_by_share_code(self, code: str) -> ScoreboardRow: ...

    def update_scoreboard(self, scoreboard_id: int, **fields) -> ScoreboardRow: ...

    def upsert_quarters(self, rows: Iterable[QuarterRow]) -> List[QuarterRow]: ...

    def fetch_quarters(self, team_ids: Sequence[int],
                       quarter_number: Optional[int] = None) -> List[QuarterRow]: ...
