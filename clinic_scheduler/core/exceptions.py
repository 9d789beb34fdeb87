"""
Error taxonomy for the scheduling engine.

The engine raises these; the HTTP layer translates them into responses
(see ``main.py``). Nothing here depends on FastAPI so the services can be
driven from any caller.
"""


class SchedulingError(Exception):
    """Base class for errors surfaced by the scheduling engine."""

    status_code = 500
    error = "Scheduling Error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InvalidInputError(SchedulingError):
    status_code = 400
    error = "Invalid Input"


class ConflictError(SchedulingError):
    status_code = 409
    error = "Conflict"


class NotFoundError(SchedulingError):
    status_code = 404
    error = "Not Found"


class InternalError(SchedulingError):
    status_code = 500
    error = "Internal Error"
