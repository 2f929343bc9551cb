"""Error taxonomy shared by the backend services and the client layer.

Every error carries the HTTP status the backend answers with, so route
handlers never have to re-map them and the client can rebuild the same
class from a response envelope.
"""


class AxonError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AxonError):
    """A required field is missing or malformed. Raised before any network call."""

    status_code = 400


class CycleError(ValidationError):
    """Moving a collection would make it its own ancestor."""


class NotFoundError(AxonError):
    status_code = 404


class AuthError(AxonError):
    status_code = 400


class InvalidCredentials(AuthError):
    pass


class UserNotFound(AuthError):
    pass


class AccountDisabled(AuthError):
    pass


class Unauthorized(AuthError):
    status_code = 401


class InvalidToken(AuthError):
    status_code = 403


class ConflictError(AxonError):
    """Username, email or phone is already taken."""

    status_code = 400

    def __init__(self, message: str, field: str = None):
        super().__init__(message)
        self.field = field


class StorageError(AxonError):
    status_code = 500


class TransportError(AxonError):
    """The proxied call never produced an upstream response."""

    status_code = 502


class ProxyTimeout(TransportError):
    status_code = 408


class ConnectionFailed(TransportError):
    status_code = 502


class NetworkError(TransportError):
    status_code = 500


class OperationFailed(AxonError):
    """A remote collaborator of the client layer could not confirm a mutation."""

    status_code = 503


_BY_STATUS = {401: Unauthorized, 403: InvalidToken, 404: NotFoundError, 400: ValidationError}


def _subclasses(cls):
    for sub in cls.__subclasses__():
        yield sub
        yield from _subclasses(sub)


def error_for_status(status_code: int, message: str, code: str = None) -> AxonError:
    """Rebuild an error from a backend envelope.

    ``code`` names the server-side class; when it is missing or unknown the
    status code picks the closest class.
    """
    by_name = {cls.__name__: cls for cls in _subclasses(AxonError)}
    cls = by_name.get(code) or _BY_STATUS.get(status_code)
    if cls is None:
        return AxonError(message, status_code=status_code)
    error = cls(message)
    error.status_code = status_code
    return error
