# marketplace/exceptions.py - domain errors mapped to HTTP responses


class MarketplaceError(Exception):
    """Base error; carries the HTTP status used by the error handler."""
    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class UnauthenticatedError(MarketplaceError):
    status_code = 401


class ForbiddenError(MarketplaceError):
    status_code = 403


class NotFoundError(MarketplaceError):
    status_code = 404


class ValidationError(MarketplaceError):
    status_code = 400


class ConflictError(MarketplaceError):
    """Duplicate action: already paid, already saved, already reviewed."""
    status_code = 400


class InvalidStateError(MarketplaceError):
    """Transition not allowed from the entity's current status."""
    status_code = 400


class AmountMismatchError(ValidationError):
    def __init__(self, expected, received, message=None):
        self.expected = expected
        self.received = received
        final_message = message or (
            f"Amount mismatch: expected {expected}, received {received}"
        )
        super().__init__(final_message)
