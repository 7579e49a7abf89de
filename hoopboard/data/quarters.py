from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from hoopboard import db
from hoopboard.data.session import commit, reading
from hoopboard.errors import PersistenceError
from hoopboard.models import Quarter

_INSERTS = {
    'postgresql': pg_insert,
    'sqlite': sqlite_insert,
}


def get_by_team_ids(team_ids: Sequence[int], quarter_number: Optional[int] = None) -> List[Quarter]:
    if not team_ids:
        return []
    with reading('Fetch quarters by team ids'):
        query = Quarter.query.filter(Quarter.team_id.in_(list(team_ids)))
        if quarter_number is not None:
            query = query.filter_by(quarter_number=quarter_number)
        return query.order_by(Quarter.quarter_number.asc(), Quarter.team_id.asc()).all()


def get_by_keys(keys: Iterable[Tuple[int, int]]) -> List[Quarter]:
    keys = list(keys)
    if not keys:
        return []
    with reading('Fetch quarters by key'):
        rows = Quarter.query.filter(Quarter.team_id.in_({k[0] for k in keys})).all()
    wanted = set(keys)
    return [r for r in rows if (r.team_id, r.quarter_number) in wanted]


def upsert(rows: Iterable[dict]) -> Tuple[List[Quarter], List[Tuple[int, int]]]:
    """Insert or overwrite quarter rows keyed on (team_id, quarter_number).

    Uses the database's ON CONFLICT DO UPDATE so uniqueness holds without a
    read-then-write. Returns the written rows and the keys that did not exist
    before the write.
    """
    rows = list(rows)
    if not rows:
        return [], []
    dialect = db.engine.dialect.name
    insert = _INSERTS.get(dialect)
    if insert is None:
        raise PersistenceError(f"Upsert quarters: unsupported database '{dialect}'")

    keys = [(r['team_id'], r['quarter_number']) for r in rows]
    existing = {(q.team_id, q.quarter_number) for q in get_by_keys(keys)}
    now = datetime.now(timezone.utc)
    values = [{
        'team_id': r['team_id'],
        'quarter_number': r['quarter_number'],
        'points': r['points'],
        'fouls': r.get('fouls', 0),
        'timeouts': r.get('timeouts', 0),
        'created_at': now,
    } for r in rows]
    stmt = insert(Quarter).values(values)
    stmt = stmt.on_conflict_do_update(
        index_elements=['team_id', 'quarter_number'],
        set_={
            'points': stmt.excluded.points,
            'fouls': stmt.excluded.fouls,
            'timeouts': stmt.excluded.timeouts,
        },
    )
    try:
        db.session.execute(stmt)
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceError(f"Upsert quarters: {exc}") from exc
    commit('Upsert quarters')
    return get_by_keys(keys), [k for k in keys if k not in existing]
