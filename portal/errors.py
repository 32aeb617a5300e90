"""
Error taxonomy shared by the services and the HTTP layer.

Every error carries a human-readable message and the HTTP status it maps to;
portal.main renders them as {"error": message}.
"""


class PortalError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PortalError):
    status_code = 400


class NotFound(PortalError):
    status_code = 404


class Conflict(PortalError):
    """A uniqueness rule was violated, either pre-checked or reported by the database."""
    status_code = 400


class AllAlreadyRegistered(Conflict):
    pass


class Unauthorized(PortalError):
    status_code = 401


class Forbidden(PortalError):
    status_code = 403


class PersistenceFailure(PortalError):
    status_code = 500
