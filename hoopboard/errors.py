"""Error taxonomy shared by the data layer, the live layer and the API."""


class ScoreboardError(Exception):
    """Base class for every error raised by hoopboard."""

    status_code = 500


class ConfigurationError(ScoreboardError):
    """A required setting (e.g. the database URL) is missing."""


class NotFoundError(ScoreboardError):
    status_code = 404


class PermissionDenied(ScoreboardError):
    """A non-owner tried to mutate a scoreboard."""

    status_code = 403


class InvalidTransition(ScoreboardError):
    """A clock command was issued from a state that does not allow it."""

    status_code = 409


class MalformedRowError(ScoreboardError):
    """A persisted row is missing required fields or has the wrong shape."""


class LimitExceeded(ScoreboardError):
    status_code = 403


class PersistenceError(ScoreboardError):
    """A database read or write failed."""


class ShareCodeConflict(PersistenceError):
    """The generated share code collided with an existing one."""

    status_code = 409
