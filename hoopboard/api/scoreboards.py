from flask import Blueprint, jsonify, request, current_app
from flask_login import current_user, login_required
from hoopboard.data import LocalGateway
from hoopboard.data import scoreboards as scoreboards_repo
from hoopboard.errors import ScoreboardError, PermissionDenied
from hoopboard.live import LiveScoreboard
from hoopboard.services.limits import ensure_can_create
from hoopboard.services.share_codes import assign_share_code


scoreboards = Blueprint('scoreboards', __name__)

TIMER_ACTIONS = ('start', 'pause', 'reset')
DETAIL_FIELDS = ('venue', 'game_date', 'game_start_time', 'game_end_time')


@scoreboards.errorhandler(ScoreboardError)
def handle_scoreboard_error(exc):
    status = getattr(exc, 'status_code', 500)
    if status >= 500:
        current_app.logger.error(f"[api-error] {type(exc).__name__}: {exc}")
    return jsonify({'error': str(exc)}), status


def _viewer_id():
    return current_user.id if current_user.is_authenticated else None


def _live(scoreboard_id=None, share_code=None) -> LiveScoreboard:
    cfg = current_app.config
    return LiveScoreboard(
        LocalGateway(),
        scoreboard_id=scoreboard_id,
        share_code=share_code,
        viewer_id=_viewer_id(),
        max_points=int(cfg.get('MAX_POINTS', 200)),
        quarter_count=int(cfg.get('QUARTER_COUNT', 4)),
    ).load()


def _owned_live(scoreboard_id) -> LiveScoreboard:
    live = _live(scoreboard_id)
    if not live.is_owner:
        raise PermissionDenied('Only the scoreboard owner may do that')
    return live


def _view(live: LiveScoreboard) -> dict:
    payload = scoreboards_repo.get_by_id(live.scoreboard_id).to_dict()
    ledger = live.ledger
    payload['timer_remaining'] = live.remaining()
    payload['timer_display'] = live.display()
    payload['quarters'] = [q.to_dict() for q in ledger.all_quarters]
    payload['current_scores'] = {str(t): ledger.current_points(t) for t in ledger.team_ids}
    payload['totals'] = {str(t): ledger.total_score(t) for t in ledger.team_ids}
    payload['is_owner'] = live.is_owner
    return payload


def _int_field(data, key):
    value = data.get(key)
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@scoreboards.route('', methods=['POST'])
@login_required
def create_scoreboard():
    data = request.get_json(silent=True) or {}
    home_name = (data.get('home_name') or '').strip()
    away_name = (data.get('away_name') or '').strip()
    if not all([home_name, away_name]):
        return jsonify({'error': 'home_name and away_name are required'}), 400

    duration = data.get('timer_duration')
    if duration is None:
        duration = int(current_app.config.get('DEFAULT_TIMER_DURATION_SEC', 720))
    else:
        duration = _int_field(data, 'timer_duration')
        if duration is None or duration <= 0:
            return jsonify({'error': 'timer_duration must be a positive integer'}), 400

    ensure_can_create(current_user.id)
    scoreboard = scoreboards_repo.create(
        current_user.id, home_name, away_name,
        timer_duration=duration,
        home_color=data.get('home_color'),
        away_color=data.get('away_color'),
        **{k: data.get(k) for k in DETAIL_FIELDS if data.get(k)},
    )
    current_app.logger.info(f"[scoreboard-create] scoreboard={scoreboard.id} owner={current_user.id}")
    return jsonify(scoreboard.to_dict()), 201


@scoreboards.route('', methods=['GET'])
@login_required
def list_scoreboards():
    return jsonify([sb.to_dict() for sb in scoreboards_repo.get_by_owner(current_user.id)])


@scoreboards.route('/<int:scoreboard_id>', methods=['GET'])
def get_scoreboard(scoreboard_id):
    return jsonify(_view(_live(scoreboard_id)))


@scoreboards.route('/share/<string:share_code>', methods=['GET'])
def get_shared_scoreboard(share_code):
    return jsonify(_view(_live(share_code=share_code)))


@scoreboards.route('/<int:scoreboard_id>', methods=['DELETE'])
@login_required
def delete_scoreboard(scoreboard_id):
    _owned_live(scoreboard_id)
    scoreboards_repo.remove(scoreboard_id, owner_id=current_user.id)
    current_app.logger.info(f"[scoreboard-delete] scoreboard={scoreboard_id}")
    return jsonify({'message': 'Scoreboard deleted'})


@scoreboards.route('/<int:scoreboard_id>/timer/<string:action>', methods=['POST'])
@login_required
def control_timer(scoreboard_id, action):
    if action not in TIMER_ACTIONS:
        return jsonify({'error': f'Unknown timer action: {action}'}), 404
    live = _owned_live(scoreboard_id)
    getattr(live, f'{action}_timer')()
    return jsonify(_view(live))


@scoreboards.route('/<int:scoreboard_id>/score', methods=['POST'])
@login_required
def update_score(scoreboard_id):
    data = request.get_json(silent=True) or {}
    team_id = _int_field(data, 'team_id')
    delta = _int_field(data, 'delta')
    if team_id is None or delta is None:
        return jsonify({'error': 'team_id and delta are required integers'}), 400
    live = _live(scoreboard_id)
    if team_id not in live.scoreboard.team_ids:
        return jsonify({'error': 'Team does not belong to this scoreboard'}), 400
    live.score(team_id, delta)
    return jsonify(_view(live))


@scoreboards.route('/<int:scoreboard_id>/quarter', methods=['POST'])
@login_required
def change_quarter(scoreboard_id):
    data = request.get_json(silent=True) or {}
    live = _live(scoreboard_id)
    if data.get('quarter') is not None:
        target = _int_field(data, 'quarter')
    elif data.get('delta') is not None:
        delta = _int_field(data, 'delta')
        target = None if delta is None else live.scoreboard.current_quarter + delta
    else:
        target = None
    if target is None:
        return jsonify({'error': 'quarter or delta is required'}), 400
    live.set_quarter(target)
    return jsonify(_view(live))


@scoreboards.route('/<int:scoreboard_id>/share-code', methods=['POST'])
@login_required
def generate_share_code(scoreboard_id):
    live = _owned_live(scoreboard_id)
    cfg = current_app.config
    code = assign_share_code(
        live.gateway, scoreboard_id,
        max_attempts=int(cfg.get('SHARE_CODE_MAX_ATTEMPTS', 10)),
        length=int(cfg.get('SHARE_CODE_LENGTH', 6)),
    )
    return jsonify({'share_code': code})


@scoreboards.route('/<int:scoreboard_id>/history', methods=['GET'])
def quarter_history(scoreboard_id):
    live = _live(scoreboard_id)
    teams = live.scoreboard.teams
    return jsonify({
        'teams': [{'id': t.id, 'name': t.name, 'position': t.position} for t in teams],
        'current_quarter': live.scoreboard.current_quarter,
        'quarters': live.ledger.quarter_history(),
    })
