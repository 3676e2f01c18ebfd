"""
Errors Package

Provides standardized error handling for the command relay:
- RelayErrorType enum for error categories
- Exception classes (RelayError and subclasses)
- ErrorHandler for classifying transport and server failures
"""

from shareify_relay.errors.types import (
    RelayErrorType,
    RelayError,
    NoJWTTokenError,
    NoCredentialsError,
    AuthFailedError,
    InvalidResponseError,
    InvalidJSONResponseError,
    ServerError,
    NetworkError,
    EncryptionUnavailableError,
)

from shareify_relay.errors.handler import (
    ErrorHandler,
    UISignal,
    BRIDGE_TOKEN_EXPIRED_MESSAGE,
)

__all__ = [
    "RelayErrorType",
    "RelayError",
    "NoJWTTokenError",
    "NoCredentialsError",
    "AuthFailedError",
    "InvalidResponseError",
    "InvalidJSONResponseError",
    "ServerError",
    "NetworkError",
    "EncryptionUnavailableError",
    "ErrorHandler",
    "UISignal",
    "BRIDGE_TOKEN_EXPIRED_MESSAGE",
]
