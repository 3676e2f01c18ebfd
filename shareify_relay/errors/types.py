"""
Error Types - Enums and exception classes for the command relay

Contains:
- RelayErrorType enum (standardized error types)
- Exception classes (RelayError and subclasses)
"""

from typing import Optional, Dict, Any
from enum import Enum


class RelayErrorType(Enum):
    """Standard error types"""
    # Auth errors
    NO_JWT_TOKEN = "no_jwt_token"
    NO_CREDENTIALS = "no_credentials"
    AUTH_FAILED = "auth_failed"

    # Response errors
    INVALID_RESPONSE = "invalid_response"
    INVALID_JSON_RESPONSE = "invalid_json_response"
    SERVER_ERROR = "server_error"

    # Transport errors
    NETWORK_ERROR = "network_error"
    NETWORK_TIMEOUT = "network_timeout"
    CONNECTION_FAILED = "connection_failed"
    TLS_ERROR = "tls_error"

    # Encryption
    ENCRYPTION_UNAVAILABLE = "encryption_unavailable"


class RelayError(Exception):
    """Base exception for command relay failures"""

    def __init__(
        self,
        message: str,
        error_type: RelayErrorType,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_type = error_type
        self.details = details or {}
        super().__init__(self.message)


class NoJWTTokenError(RelayError):
    """No bridge token stored; the user has to log in"""

    def __init__(self, message: str = "JWT token not found"):
        super().__init__(message=message, error_type=RelayErrorType.NO_JWT_TOKEN)


class NoCredentialsError(RelayError):
    """Re-authentication needed but no stored credentials"""

    def __init__(self, message: str = "Login credentials not available"):
        super().__init__(message=message, error_type=RelayErrorType.NO_CREDENTIALS)


class AuthFailedError(RelayError):
    """Re-authentication was attempted and still rejected"""

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, error_type=RelayErrorType.AUTH_FAILED, details=details)


class InvalidResponseError(RelayError):
    """Response was JSON but not a shape the client understands"""

    def __init__(self, message: str = "Invalid response from server", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, error_type=RelayErrorType.INVALID_RESPONSE, details=details)


class InvalidJSONResponseError(RelayError):
    """Response body could not be parsed as JSON"""

    def __init__(self, message: str = "Invalid JSON response", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, error_type=RelayErrorType.INVALID_JSON_RESPONSE, details=details)


class ServerError(RelayError):
    """The server explicitly reported a failure"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        details = {"status_code": status_code} if status_code is not None else None
        super().__init__(message=message, error_type=RelayErrorType.SERVER_ERROR, details=details)
        self.status_code = status_code


class NetworkError(RelayError):
    """Transport-level failure (timeout, DNS, refused connection, TLS)"""

    def __init__(
        self,
        message: str,
        error_type: RelayErrorType = RelayErrorType.NETWORK_ERROR,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            message=message,
            error_type=error_type,
            details={"original_error": str(cause)} if cause is not None else None,
        )
        self.cause = cause


class EncryptionUnavailableError(RelayError):
    """Encryption was requested but no session could be used and fallback is disabled"""

    def __init__(self, message: str = "Encrypted session unavailable and plaintext fallback is disabled"):
        super().__init__(message=message, error_type=RelayErrorType.ENCRYPTION_UNAVAILABLE)
