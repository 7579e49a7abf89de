from hoopboard import db, bcrypt
from flask_login import UserMixin
from datetime import datetime, timezone
import secrets
import string

SHARE_CODE_ALPHABET = string.ascii_uppercase + string.digits


def _utcnow():
    return datetime.now(timezone.utc)


def _isoformat(value):
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    scoreboards = db.relationship('Scoreboard', back_populates='owner', cascade='all, delete-orphan')
    subscription = db.relationship('Subscription', back_populates='user', uselist=False, cascade='all, delete-orphan')

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
        }


class Subscription(db.Model):
    __tablename__ = 'subscription'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), unique=True, nullable=False)
    plan_tier = db.Column(db.String(16), nullable=False, default='basic')  # basic, plus, premium
    status = db.Column(db.String(32), nullable=False, default='active')
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    user = db.relationship('User', back_populates='subscription')

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'plan_tier': self.plan_tier,
            'status': self.status,
        }


def generate_share_code(length=6):
    """Generate a random share code from crypto-random bytes.

    Uniqueness is not checked here; the unique index on
    scoreboard.share_code rejects collisions and the caller retries.
    """
    raw = secrets.token_bytes(length)
    return ''.join(SHARE_CODE_ALPHABET[b % len(SHARE_CODE_ALPHABET)] for b in raw)


class Scoreboard(db.Model):
    __tablename__ = 'scoreboard'
    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False, index=True)
    share_code = db.Column(db.String(16), unique=True, nullable=True, index=True)
    current_quarter = db.Column(db.Integer, nullable=False, default=1)
    # Clock tuple; remaining time is derived from these by readers
    timer_duration = db.Column(db.Integer, nullable=False, default=720)
    timer_state = db.Column(db.String(16), nullable=False, default='stopped')
    timer_started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    timer_paused_duration = db.Column(db.Integer, nullable=False, default=0)
    venue = db.Column(db.String(128), nullable=True)
    game_date = db.Column(db.String(16), nullable=True)
    game_start_time = db.Column(db.String(8), nullable=True)
    game_end_time = db.Column(db.String(8), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    owner = db.relationship('User', back_populates='scoreboards')
    teams = db.relationship('Team', back_populates='scoreboard', cascade='all, delete-orphan',
                            order_by='Team.id')

    def sorted_teams(self):
        # home before away, otherwise creation order
        return sorted(self.teams, key=lambda t: (0 if t.position == 'home' else 1, t.id or 0))

    def to_dict(self, include_teams=True):
        payload = {
            'id': self.id,
            'owner_id': self.owner_id,
            'share_code': self.share_code,
            'current_quarter': self.current_quarter,
            'timer_duration': self.timer_duration,
            'timer_state': self.timer_state,
            'timer_started_at': _isoformat(self.timer_started_at),
            'timer_paused_duration': self.timer_paused_duration,
            'venue': self.venue,
            'game_date': self.game_date,
            'game_start_time': self.game_start_time,
            'game_end_time': self.game_end_time,
            'created_at': _isoformat(self.created_at),
        }
        if include_teams:
            payload['teams'] = [t.to_dict() for t in self.sorted_teams()]
        return payload


class Team(db.Model):
    __tablename__ = 'team'
    id = db.Column(db.Integer, primary_key=True)
    scoreboard_id = db.Column(db.Integer, db.ForeignKey('scoreboard.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)
    position = db.Column(db.String(8), nullable=False)  # home, away
    color = db.Column(db.String(16), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    scoreboard = db.relationship('Scoreboard', back_populates='teams')
    quarters = db.relationship('Quarter', back_populates='team', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'scoreboard_id': self.scoreboard_id,
            'name': self.name,
            'position': self.position,
            'color': self.color,
        }


class Quarter(db.Model):
    __tablename__ = 'quarter'
    __table_args__ = (
        db.UniqueConstraint('team_id', 'quarter_number', name='uq_quarter_team_number'),
    )
    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey('team.id', ondelete='CASCADE'), nullable=False, index=True)
    quarter_number = db.Column(db.Integer, nullable=False)
    points = db.Column(db.Integer, nullable=False, default=0)
    fouls = db.Column(db.Integer, nullable=False, default=0)
    timeouts = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    team = db.relationship('Team', back_populates='quarters')

    def to_dict(self):
        return {
            'id': self.id,
            'team_id': self.team_id,
            'quarter_number': self.quarter_number,
            'points': self.points,
            'fouls': self.fouls,
            'timeouts': self.timeouts,
        }
