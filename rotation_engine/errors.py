class RotationError(Exception):
    """Base class for errors raised by the rotation engine."""

    pass


class ValidationError(RotationError):
    """Raised when input is rejected before any mutation (bad date, unknown unit, invalid day count)."""

    pass


class NotFoundError(RotationError):
    """Raised when an intern, unit or placement does not exist."""

    pass


class ConflictError(RotationError):
    """Raised when a concurrent mutation was detected. The whole operation may be retried."""

    pass


class DataIntegrityError(RotationError):
    """Raised when a stored record cannot be used, e.g. an intern without a start date."""

    pass


class IntegrityWarning(UserWarning):
    """Category for non-fatal problems (audit write failed, empty catalog). Logged, never raised."""

    pass


# Mapping of engine exceptions to HTTP status codes
CUSTOM_ERRORS = {
    ValidationError: 400,
    NotFoundError: 404,
    ConflictError: 409,
    DataIntegrityError: 422,
}
