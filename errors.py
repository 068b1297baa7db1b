"""Domain errors raised by the auth and store layers.

Each error carries the HTTP status it maps to; ``main`` turns them into
``{"message": ...}`` JSON responses.
"""


class FinanceError(Exception):
    status_code = 500
    message = "Internal server error."

    def __init__(self, message=None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(FinanceError):
    status_code = 400
    message = "Invalid request."


class InvalidReference(ValidationError):
    message = "Invalid category ID or category does not belong to user."


class Unauthenticated(FinanceError):
    status_code = 401
    message = "Access Denied: No token provided."


class InvalidCredentials(FinanceError):
    status_code = 401
    message = "Invalid credentials."


class Forbidden(FinanceError):
    status_code = 403
    message = "Access Denied: Invalid token."


class NotFound(FinanceError):
    status_code = 404
    message = "Not found."


class Conflict(FinanceError):
    status_code = 409
    message = "Conflict."
