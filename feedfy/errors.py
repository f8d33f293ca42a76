"""
Error types shared by services and routes.

Services raise FeedfyError subclasses with a user-facing message; the app
turns them into {"error": message} JSON with the matching status.
BackendError is raised by the hosted backend client for failed HTTP calls.
"""


class FeedfyError(Exception):
    status = 400

    def __init__(self, message: str, status: int = None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status

    def to_dict(self) -> dict:
        return {'error': self.message}


class NotAuthenticated(FeedfyError):
    status = 401

    def __init__(self, message: str = 'Not authenticated'):
        super().__init__(message)


class PermissionDenied(FeedfyError):
    status = 403


class NotFound(FeedfyError):
    status = 404


class Conflict(FeedfyError):
    status = 409


class BackendError(FeedfyError):
    """Error returned by the hosted backend (PostgREST / auth / storage)."""
    status = 500

    def __init__(self, message: str, code: str = None, details: str = None,
                 hint: str = None, status: int = None):
        super().__init__(message, status if status is not None else status_for_code(code) or 500)
        self.code = code
        self.details = details
        self.hint = hint

    def to_dict(self) -> dict:
        return {'error': self.message, 'code': self.code, 'details': self.details, 'hint': self.hint}


# PostgREST / Postgres error codes -> HTTP status
CODE_STATUS = {
    'PGRST116': 404,  # no rows for single()
    '23505': 409,     # unique violation
    '23503': 400,     # foreign key violation
    '42501': 403,     # insufficient privilege (RLS)
    'PGRST301': 400,  # bad JWT / request
}


def status_for_code(code: str = None) -> int | None:
    if not code:
        return None
    return CODE_STATUS.get(code, 500)


def is_code(error: Exception, code: str) -> bool:
    return isinstance(error, BackendError) and error.code == code
