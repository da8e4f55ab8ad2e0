"""Errors raised by services and mapped to HTTP responses by the API."""


class ServiceError(Exception):
    """Base error carrying the HTTP status to respond with."""

    status_code = 500
    default_message = "Internal error."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequestError(ServiceError):
    status_code = 400
    default_message = "Invalid request."


class ForbiddenError(ServiceError):
    status_code = 403
    default_message = "You are not allowed to do this."


class NotFoundError(ServiceError):
    status_code = 404
    default_message = "Not found."
