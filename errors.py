"""
Error taxonomy shared by the API and the client.

Every failure a caller can see is one of these, rendered as
{"message": ...} with the class's status code.
"""


class AppError(Exception):
    status_code = 500
    default_message = "Server error"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class DuplicateAccountError(AppError):
    status_code = 400
    default_message = "Account already exists"


class InvalidCredentialsError(AppError):
    status_code = 400
    default_message = "Invalid credentials"


class UnauthenticatedError(AppError):
    status_code = 401
    default_message = "Not authorized"


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Access denied"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class UploadTimeoutError(AppError):
    status_code = 408
    default_message = "Upload timeout. Please try with a smaller file."


class PayloadTooLargeError(AppError):
    status_code = 413
    default_message = "File too large. Maximum size is 50MB."


class InternalError(AppError):
    status_code = 500


STATUS_ERRORS = {
    400: ValidationError,
    401: UnauthenticatedError,
    403: ForbiddenError,
    404: NotFoundError,
    408: UploadTimeoutError,
    413: PayloadTooLargeError,
}


def error_for_status(status_code: int, message: str) -> AppError:
    """Rebuild the closest error class from an HTTP status (used by the client)."""
    return STATUS_ERRORS.get(status_code, InternalError)(message)
