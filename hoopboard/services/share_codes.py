from typing import Callable, Optional

from flask import current_app

from hoopboard.errors import ShareCodeConflict
from hoopboard.live.gateway import ScoreboardGateway
from hoopboard.models import generate_share_code


def assign_share_code(gateway: ScoreboardGateway, scoreboard_id: int, *,
                      max_attempts: int = 10, length: int = 6,
                      generate: Callable[[int], str] = generate_share_code) -> str:
    """Give a scoreboard a fresh share code.

    The database enforces uniqueness, so a collision is retried with a new
    code up to ``max_attempts`` times. Any other failure is raised at once.
    """
    last_error: Optional[ShareCodeConflict] = None
    for attempt in range(1, max_attempts + 1):
        code = generate(length)
        try:
            gateway.update_scoreboard(scoreboard_id, share_code=code)
        except ShareCodeConflict as exc:
            last_error = exc
            current_app.logger.info(f"[share-code-collision] scoreboard={scoreboard_id} attempt={attempt}")
            continue
        current_app.logger.info(f"[share-code] scoreboard={scoreboard_id} code={code}")
        return code
    current_app.logger.error(f"[share-code-failed] scoreboard={scoreboard_id} after {max_attempts} attempts")
    raise last_error
