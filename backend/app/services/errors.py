"""
Exceptions raised by the service layer and translated into HTTP responses
by the handlers registered in ``app.main``.
"""


class ServiceError(Exception):
    status_code = 400
    error_code = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(ServiceError):
    status_code = 400
    error_code = "invalid_request"


class AuthenticationError(ServiceError):
    status_code = 401
    error_code = "authentication_failed"


class NotFoundError(ServiceError):
    status_code = 404
    error_code = "not_found"


class AccountLockedError(ServiceError):
    status_code = 423
    error_code = "account_locked"
