"""Named errors raised by the game store.

Every error is a local validation or state failure: none is transient, so
callers should surface them rather than retry.  ``status_code`` is the HTTP
status the API answers with.
"""


class GameError(Exception):
    """Base class for rejected game actions."""
    status_code = 400

    @property
    def kind(self) -> str:
        return type(self).__name__


class InvalidRange(GameError):
    status_code = 422

    def __init__(self, min_range: int, max_range: int):
        super().__init__(
            f"min_range ({min_range}) must be smaller than max_range ({max_range})"
        )


class OutOfRange(GameError):
    status_code = 422

    def __init__(self, secret_number: int, min_range: int, max_range: int):
        super().__init__(
            f"secret_number {secret_number} is outside [{min_range}, {max_range}]"
        )


class SessionNotFound(GameError):
    status_code = 404

    def __init__(self, game_id: str):
        super().__init__(f"No game session with id {game_id!r}")


class DuplicateSessionId(GameError):
    status_code = 409

    def __init__(self, game_id: str):
        super().__init__(f"Game session {game_id!r} already exists")


class SessionAlreadyFinished(GameError):
    status_code = 409

    def __init__(self, game_id: str):
        super().__init__(f"Game session {game_id!r} is already finished")


class SessionNotFinished(GameError):
    status_code = 409

    def __init__(self, game_id: str):
        super().__init__(f"Game session {game_id!r} has no finished match to rate")


class InvalidRating(GameError):
    status_code = 422

    def __init__(self, rating: int):
        super().__init__(f"difficulty_rating must be between 1 and 5, got {rating}")


class RatingAlreadySet(GameError):
    status_code = 409

    def __init__(self, game_id: str):
        super().__init__(f"Match for game {game_id!r} has already been rated")
