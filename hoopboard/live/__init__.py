"""Clock, score and sync logic shared by the API and live viewers.

Nothing in here touches Flask or the database directly; persistence goes
through a ``ScoreboardGateway`` and notifications through a ``ChangeFeed``.
"""

from .clock import ClockState, GameClock, TimerClock, format_clock, remaining
from .channel import ChangeFeed, feed
from .ledger import ScoreLedger
from .rows import QuarterRow, ScoreboardRow, TeamRow
from .session import LiveScoreboard

__all__ = [
    'ClockState', 'GameClock', 'TimerClock', 'format_clock', 'remaining',
    'ChangeFeed', 'feed', 'ScoreLedger', 'QuarterRow', 'ScoreboardRow', 'TeamRow',
    'LiveScoreboard',
]
