class CampusError(Exception):
    """Base error carrying the HTTP status the API answers with."""
    status_code = 500

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__

    def to_dict(self):
        return {"error": self.message}


class BadRequest(CampusError):
    status_code = 400


class InvalidRole(BadRequest):
    def __init__(self, role=None):
        super().__init__(f"Invalid role: {role!r}")
        self.role = role


class Unauthorized(CampusError):
    status_code = 401


class Forbidden(CampusError):
    status_code = 403


class NotFound(CampusError):
    status_code = 404


class UpstreamFailure(CampusError):
    status_code = 502


class DataUnavailable(CampusError):
    status_code = 503
