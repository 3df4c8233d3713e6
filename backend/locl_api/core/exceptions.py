"""
Domain errors raised by services and translated to HTTP responses in main
"""

from fastapi import status


class MarketplaceError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidStateError(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT


class ValidationError(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST


class PermissionDeniedError(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN


class AuthenticationError(MarketplaceError):
    status_code = status.HTTP_401_UNAUTHORIZED


class StorageError(MarketplaceError):
    status_code = status.HTTP_502_BAD_GATEWAY
