"""
Domain error taxonomy shared by the forum and consultation engines.

Every error is terminal: services raise it, nothing retries it, and the
exception handler in main.py renders it as a JSON envelope with the
matching HTTP status.
"""


class LawSphereError(Exception):
    """Base class for errors surfaced directly to the caller"""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LawSphereError):
    """Missing or malformed input"""

    status_code = 400


class NotFoundError(LawSphereError):
    """A referenced entity does not exist"""

    status_code = 404


class AuthorizationError(LawSphereError):
    """The acting user is not the lawyer, client or owner the action requires"""

    status_code = 403


class DuplicateActionError(LawSphereError):
    """A single-shot action (report, save, payment) was repeated"""

    status_code = 400


class InvalidStateError(LawSphereError):
    """A consultation status guard rejected the action"""

    status_code = 400
