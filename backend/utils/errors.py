# backend/utils/errors.py
from fastapi import status


# Base class for domain errors raised by the services; main.py renders
# them as {"error": message} with the matching HTTP status.
class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthorizationError(AppError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT


class PersistenceError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


# Payment gateway unreachable or answered with an error
class GatewayError(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
