"""Error taxonomy for the scheduling core"""


class SchedulingError(Exception):
    """Base class for every error the scheduling core raises on purpose"""

    status_code = 500

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        payload = {"error": self.__class__.__name__, "detail": self.message}
        if self.details:
            payload["context"] = {k: str(v) for k, v in self.details.items()}
        return payload


class ConfigurationError(SchedulingError):
    """Business setup or deployment is broken, e.g. a malformed hours string or an unsupported database"""

    status_code = 422


class NotFoundError(SchedulingError):
    """Business, service, customer or appointment id does not resolve"""

    status_code = 404


class ConflictError(SchedulingError):
    """The requested interval overlaps an active appointment"""

    status_code = 409


class ValidationError(SchedulingError):
    """Caller supplied malformed input"""

    status_code = 400
