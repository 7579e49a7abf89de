import pytest

from hoopboard.errors import MalformedRowError, NotFoundError, PersistenceError
from hoopboard.live.channel import ChangeFeed
from hoopboard.live.clock import ClockState
from hoopboard.live.rows import QuarterRow, ScoreboardRow
from hoopboard.live.session import LiveScoreboard

HOME, AWAY = 100, 200
OWNER = 10


class FakeScheduler:
    """Collects background tasks; sleep advances the fake clock."""

    def __init__(self, clock=None):
        self.tasks = []
        self.clock = clock
        self.sleeps = []
        self.on_sleep = None

    def start_background_task(self, target, *args):
        self.tasks.append((target, args))

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)
        if self.on_sleep is not None:
            self.on_sleep(len(self.sleeps))


def test_load_sorts_teams_home_first(gateway):
    gateway.scoreboards[1]['teams'].reverse()
    live = LiveScoreboard(gateway, scoreboard_id=1).load()
    assert [t.position for t in live.scoreboard.teams] == ['home', 'away']
    assert live.scoreboard.team_ids == (HOME, AWAY)


def test_load_by_share_code(gateway):
    gateway.scoreboards[1]['share_code'] = 'AB12CD'
    live = LiveScoreboard(gateway, share_code='ab12cd').load()
    assert live.scoreboard_id == 1


def test_unknown_scoreboard_is_not_found(gateway):
    with pytest.raises(NotFoundError):
        LiveScoreboard(gateway, scoreboard_id=404).load()


def test_viewer_is_read_only(gateway):
    live = LiveScoreboard(gateway, scoreboard_id=1, viewer_id=99).load()
    assert not live.is_owner
    owner = LiveScoreboard(gateway, scoreboard_id=1, viewer_id=OWNER).load()
    assert owner.is_owner


def test_reconcile_ignores_identical_snapshot(gateway):
    changes = []
    live = LiveScoreboard(gateway, scoreboard_id=1, on_change=changes.append).load()
    row, quarters = live.snapshot()
    assert live.reconcile(row, list(quarters)) is False
    assert changes == []


def test_poll_picks_up_remote_writes(gateway, fake_clock):
    viewer = LiveScoreboard(gateway, scoreboard_id=1, now=fake_clock).load()
    owner = LiveScoreboard(gateway, scoreboard_id=1, viewer_id=OWNER, now=fake_clock).load()

    owner.start_timer()
    owner.score(HOME, 3)
    fake_clock.advance(8)

    assert viewer.clock.state is ClockState.STOPPED
    assert viewer.poll_once() is True
    assert viewer.clock.state is ClockState.RUNNING
    assert viewer.remaining() == 592
    assert viewer.ledger.total_score(HOME) == 3
    assert viewer.poll_once() is False


def test_push_event_triggers_full_refetch(gateway, fake_clock):
    feed = ChangeFeed()
    viewer = LiveScoreboard(gateway, scoreboard_id=1, feed=feed, now=fake_clock).load().open()
    owner = LiveScoreboard(gateway, scoreboard_id=1, viewer_id=OWNER, now=fake_clock).load()

    owner.start_timer()
    # payload is partial; the viewer must not rely on it
    feed.publish('scoreboard', 'UPDATE', {'id': 1})
    assert viewer.clock.state is ClockState.RUNNING

    owner.score(AWAY, 2)
    feed.publish('quarter', 'INSERT', {'team_id': AWAY, 'quarter_number': 1, 'points': 2})
    assert viewer.ledger.total_score(AWAY) == 2
    viewer.close()


def test_quarter_events_for_other_teams_are_ignored(gateway):
    feed = ChangeFeed()
    live = LiveScoreboard(gateway, scoreboard_id=1, feed=feed).load().open()
    before = gateway.quarter_fetches
    feed.publish('quarter', 'UPDATE', {'team_id': 999, 'quarter_number': 1, 'points': 5})
    assert gateway.quarter_fetches == before
    live.close()


def test_scoreboard_events_for_other_rows_are_ignored(gateway):
    gateway.add_scoreboard(scoreboard_id=2, teams=((300, 'home', 'A'), (400, 'away', 'B')))
    feed = ChangeFeed()
    changes = []
    live = LiveScoreboard(gateway, scoreboard_id=1, feed=feed, on_change=changes.append).load().open()
    assert feed.publish('scoreboard', 'UPDATE', {'id': 2}) == 0
    live.close()


def test_close_unsubscribes(gateway):
    feed = ChangeFeed()
    live = LiveScoreboard(gateway, scoreboard_id=1, feed=feed).load().open()
    assert feed.subscriber_count() == 2
    live.close()
    assert feed.subscriber_count() == 0


def test_poll_survives_persistence_errors(gateway):
    live = LiveScoreboard(gateway, scoreboard_id=1).load()
    gateway.fail_reads = 1
    assert live.poll_once() is False
    gateway.scoreboards[1]['current_quarter'] = 2
    assert live.poll_once() is True
    assert live.ledger.current_quarter == 2


def test_poll_after_delete_keeps_last_state(gateway):
    live = LiveScoreboard(gateway, scoreboard_id=1).load()
    del gateway.scoreboards[1]
    assert live.poll_once() is False
    assert live.scoreboard.id == 1


def test_failed_timer_write_rolls_back_session(gateway, fake_clock):
    live = LiveScoreboard(gateway, scoreboard_id=1, viewer_id=OWNER, now=fake_clock).load()
    gateway.fail_updates = 1
    with pytest.raises(PersistenceError):
        live.start_timer()
    assert live.clock.state is ClockState.STOPPED
    assert live.scoreboard.clock.state is ClockState.STOPPED


def test_set_quarter_updates_row(gateway):
    live = LiveScoreboard(gateway, scoreboard_id=1, viewer_id=OWNER).load()
    assert live.set_quarter(3) == 3
    assert live.scoreboard.current_quarter == 3
    assert live.poll_once() is False


def test_poll_loop_stops_after_close(gateway):
    scheduler = FakeScheduler()
    live = LiveScoreboard(gateway, scoreboard_id=1, scheduler=scheduler, poll_interval=10).load().open()
    poll_loop, args = scheduler.tasks[0]
    polls = []
    live.poll_once = lambda: polls.append(1)

    def after_sleep(count):
        if count == 3:
            live.close()

    scheduler.on_sleep = after_sleep
    poll_loop(*args)
    assert scheduler.sleeps == [10, 10, 10]
    assert len(polls) == 2


def test_tick_loop_runs_only_while_running(gateway, fake_clock):
    gateway.scoreboards[1].update(timer_state='running', timer_started_at=fake_clock())
    scheduler = FakeScheduler(clock=fake_clock)
    frames = []
    live = LiveScoreboard(gateway, scoreboard_id=1, scheduler=scheduler, now=fake_clock,
                          tick_interval=1, on_tick=frames.append).load().open()
    tick_loop, args = [t for t in scheduler.tasks if t[0].__name__ == '_tick_loop'][0]

    def after_sleep(count):
        if count == 3:
            # remote pause arrives through reconcile
            gateway.scoreboards[1].update(timer_state='paused', timer_paused_duration=3)
            live.reconcile(gateway.fetch_by_id(1))

    scheduler.on_sleep = after_sleep
    tick_loop(*args)
    assert frames[:3] == ['10:00', '09:59', '09:58']
    assert frames[-1] == '09:57'
    assert live.clock.state is ClockState.PAUSED
    live.close()


def test_stopped_clock_starts_no_tick_task(gateway):
    scheduler = FakeScheduler()
    frames = []
    live = LiveScoreboard(gateway, scoreboard_id=1, scheduler=scheduler, on_tick=frames.append).load().open()
    assert [t[0].__name__ for t in scheduler.tasks] == ['_poll_loop']
    assert frames == ['10:00']
    live.close()


def test_malformed_rows_are_rejected():
    with pytest.raises(MalformedRowError):
        ScoreboardRow.from_dict({'id': 1, 'owner_id': 2, 'current_quarter': 1, 'timer_duration': 600})
    with pytest.raises(MalformedRowError):
        ScoreboardRow.from_dict({'id': 1, 'owner_id': 2, 'current_quarter': 1,
                                 'timer_duration': 600, 'timer_state': 'sideways'})
    with pytest.raises(MalformedRowError):
        QuarterRow.from_dict({'team_id': 1, 'quarter_number': 1})
    with pytest.raises(MalformedRowError):
        QuarterRow.from_dict({'team_id': 'x', 'quarter_number': 1, 'points': 0})


def test_timestamps_parse_to_utc():
    row = ScoreboardRow.from_dict({
        'id': 1, 'owner_id': 2, 'current_quarter': 1, 'timer_duration': 600,
        'timer_state': 'running', 'timer_started_at': '2026-03-14T19:30:00Z',
    })
    assert row.clock.started_at.utcoffset().total_seconds() == 0


def test_reopened_view_restarts_tick_loop(gateway, fake_clock):
    gateway.scoreboards[1].update(timer_state='running', timer_started_at=fake_clock())
    scheduler = FakeScheduler(clock=fake_clock)
    frames = []
    live = LiveScoreboard(gateway, scoreboard_id=1, scheduler=scheduler, now=fake_clock,
                          tick_interval=1, on_tick=frames.append).load().open()
    live.close()
    live.open()
    tick_loops = [t for t in scheduler.tasks if t[0].__name__ == '_tick_loop']
    assert len(tick_loops) == 2

    stale_loop, stale_args = tick_loops[0]
    stale_loop(*stale_args)
    assert frames == []

    fresh_loop, fresh_args = tick_loops[1]

    def after_sleep(count):
        if count == 2:
            live.close()

    scheduler.on_sleep = after_sleep
    fresh_loop(*fresh_args)
    assert frames == ['10:00', '09:59']


def test_rows_accept_extra_columns_and_string_numbers():
    row = ScoreboardRow.from_dict({
        'id': '3', 'owner_id': 2, 'current_quarter': 1, 'timer_duration': 600,
        'timer_state': 'paused', 'timer_paused_duration': None, 'venue': 'Gym',
        'teams': [
            {'id': 8, 'scoreboard_id': 3, 'name': 'B', 'position': 'away', 'created_at': 'x'},
            {'id': 7, 'scoreboard_id': 3, 'name': 'A', 'position': 'home'},
        ],
    })
    assert row.id == 3
    assert row.team_ids == (7, 8)
    assert row.clock.state is ClockState.PAUSED
    assert row.clock.paused_accum_seconds == 0


def test_team_position_is_validated():
    with pytest.raises(MalformedRowError) as excinfo:
        ScoreboardRow.from_dict({
            'id': 1, 'owner_id': 2, 'current_quarter': 1, 'timer_duration': 600, 'timer_state': 'stopped',
            'teams': [{'id': 7, 'scoreboard_id': 1, 'name': 'A', 'position': 'middle'}],
        })
    assert 'position' in str(excinfo.value)
