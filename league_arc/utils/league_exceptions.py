"""
Custom exceptions for the league core with user-friendly error messages.

Every failure the scheduler, the standings calculator, the leaderboard and the
operations layer can produce is one of these types. ``retryable`` tells the
admin surface whether repeating the same call can succeed.
"""

class LeagueArcException(Exception):
    """Base exception for league-related errors."""
    retryable = False

    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.user_message = user_message or message

class InsufficientParticipantsError(LeagueArcException):
    """Raised when a format needs more participants than were supplied."""
    def __init__(self, required: int, supplied: int):
        self.required = required
        self.supplied = supplied
        super().__init__(
            f"At least {required} participants required, got {supplied}",
            f"❌ This format needs at least {required} teams ({supplied} joined)."
        )

class DuplicateParticipantError(LeagueArcException):
    """Raised when the same participant appears twice in one list."""
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(
            f"Participant '{user_id}' appears more than once",
            f"❌ Participant '{user_id}' is listed twice!"
        )

class LeagueNotFoundError(LeagueArcException):
    """Raised when a league does not exist."""
    def __init__(self, league_id: int):
        self.league_id = league_id
        super().__init__(
            f"League {league_id} not found",
            f"❌ League {league_id} not found!"
        )

class LeagueFullError(LeagueArcException):
    """Raised when a league has reached max_participants."""
    def __init__(self, league_id: int, max_participants: int):
        super().__init__(
            f"League {league_id} is full ({max_participants} participants)",
            "❌ This league is already full!"
        )

class LeagueModeMismatchError(LeagueArcException):
    """Raised when fixtures are requested in a format other than the league's mode."""
    def __init__(self, league_id: int, league_mode: str, requested_mode: str):
        self.league_id = league_id
        super().__init__(
            f"League {league_id} is {league_mode}, cannot generate {requested_mode} fixtures",
            f"❌ This league uses the {league_mode} format, not {requested_mode}."
        )

class FixtureNotFoundError(LeagueArcException):
    """Raised when a fixture does not exist."""
    def __init__(self, fixture_id: int):
        self.fixture_id = fixture_id
        super().__init__(
            f"Fixture {fixture_id} not found",
            f"❌ Fixture {fixture_id} not found!"
        )

class ResultAlreadyExistsError(LeagueArcException):
    """Raised when a fixture already has a result."""
    def __init__(self, fixture_id: int):
        self.fixture_id = fixture_id
        super().__init__(
            f"Fixture {fixture_id} already has a result",
            "❌ A result was already recorded for this fixture."
        )

class InvalidScoreError(LeagueArcException):
    """Raised when score validation fails."""
    def __init__(self, score, reason: str):
        self.score = score
        super().__init__(
            f"Invalid score {score!r}: {reason}",
            f"❌ {reason}"
        )

class KnockoutStateError(LeagueArcException):
    """Raised when a knockout bracket operation is not possible."""
    def __init__(self, reason: str):
        super().__init__(
            f"Knockout state error: {reason}",
            f"❌ {reason}"
        )

class GenerationInProgressError(LeagueArcException):
    """Raised when another admin is generating fixtures for the same league."""
    retryable = True

    def __init__(self, league_id: int):
        super().__init__(
            f"Fixture generation already running for league {league_id}",
            "❌ Fixtures are already being generated for this league. Please try again shortly."
        )

class DatabaseError(LeagueArcException):
    """Raised when database operations fail."""
    retryable = True

    def __init__(self, operation: str, details: str = None):
        super().__init__(
            f"Database error during {operation}: {details}",
            "❌ Database error occurred. Please try again later."
        )
