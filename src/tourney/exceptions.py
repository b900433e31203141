"""Errors raised by the draw engine and its store."""


class TournamentError(Exception):
    """Base class for tournament errors."""


class InsufficientParticipants(TournamentError):
    """Too few entrants to form a draw."""

    def __init__(self, count: int, required: int):
        self.count = count
        self.required = required
        super().__init__(f"Need at least {required} participants to generate a draw, got {count}")


class InvalidDrawState(TournamentError):
    """The stored bracket cannot support the requested operation."""


class PersistenceFailure(TournamentError):
    """The store could not read or write a record."""


class NotFound(PersistenceFailure):
    """No record with the requested id."""
