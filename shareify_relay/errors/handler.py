"""
Unified Error Handler for the command relay
Provides consistent error classification for transport and server failures
"""

import logging
import ssl
from enum import Enum
from typing import Any, Dict

import httpx

from shareify_relay.errors.types import (
    RelayErrorType,
    RelayError,
    NoJWTTokenError,
    NoCredentialsError,
    AuthFailedError,
    NetworkError,
)

logger = logging.getLogger(__name__)

# Exact message the bridge returns for a stale bearer token
BRIDGE_TOKEN_EXPIRED_MESSAGE = "Invalid or expired JWT token"

_AUTH_MARKERS = ("unauthorized", "token", "auth")


class UISignal(Enum):
    """What a front end should do with a terminal failure"""
    REDIRECT_TO_LOGIN = "redirect_to_login"
    SHOW_ERROR = "show_error"


class ErrorHandler:
    """Centralized error handling"""

    @staticmethod
    def handle_transport_error(error: Exception) -> NetworkError:
        """Convert httpx request errors to standardized format"""
        if isinstance(error, httpx.TimeoutException):
            return NetworkError(
                message="Request to relay timed out",
                error_type=RelayErrorType.NETWORK_TIMEOUT,
                cause=error,
            )

        error_str = str(error).lower()

        if isinstance(error.__cause__, ssl.SSLError) or "ssl" in error_str or "certificate" in error_str:
            return NetworkError(
                message="TLS handshake with relay failed",
                error_type=RelayErrorType.TLS_ERROR,
                cause=error,
            )

        if isinstance(error, httpx.ConnectError):
            return NetworkError(
                message="Could not connect to relay",
                error_type=RelayErrorType.CONNECTION_FAILED,
                cause=error,
            )

        return NetworkError(
            message=f"Network error: {error}",
            error_type=RelayErrorType.NETWORK_ERROR,
            cause=error,
        )

    @staticmethod
    def is_auth_error_message(message: str) -> bool:
        """
        Loose check whether a server error message is about authentication.

        Substring heuristic kept for compatibility with the existing servers'
        wording; it also matches unrelated messages that mention "token".
        """
        lowered = message.lower()
        return any(marker in lowered for marker in _AUTH_MARKERS)

    @staticmethod
    def is_bridge_token_expired(payload: Any) -> bool:
        """True if a response body is the bridge's stale-token rejection"""
        return isinstance(payload, dict) and payload.get("error") == BRIDGE_TOKEN_EXPIRED_MESSAGE

    @staticmethod
    def ui_signal_for(error: RelayError) -> UISignal:
        """Map a terminal failure to the action a front end should take"""
        if isinstance(error, (NoJWTTokenError, NoCredentialsError, AuthFailedError)):
            return UISignal.REDIRECT_TO_LOGIN
        return UISignal.SHOW_ERROR

    @staticmethod
    def to_dict(error: RelayError) -> Dict[str, Any]:
        """Serializable form of an error for CLI/JSON output"""
        return {
            "error": error.message,
            "type": error.error_type.value,
            "details": error.details,
        }
