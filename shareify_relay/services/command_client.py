"""
Command Client for the Shareify relay

Single entry point for every remote operation:
- Wraps the command envelope in the session encryption when available
- Re-authenticates once on a rejected token and retries
- Maps transport and server failures to typed RelayErrors

Flow of execute():
1. Require a bridge JWT
2. Ensure an encrypted session (single-flight); a token rejected by the
   bridge goes to step 4, other failures optionally degrade to plaintext
3. POST the envelope (encrypted or plain) to the command endpoint
4. On 401 / expired-token body: bridge re-login, clear session, retry once
5. Decrypt an encrypted response, surface server errors, return the JSON
"""

import json
import logging
from typing import Any, Callable, Dict, List, Optional, Union

import httpx
from pydantic import ValidationError

from shareify_relay.auth.tokens import inspect_token
from shareify_relay.config import RelaySettings
from shareify_relay.errors.handler import ErrorHandler, UISignal
from shareify_relay.errors.types import (
    RelayError,
    NoJWTTokenError,
    NoCredentialsError,
    AuthFailedError,
    InvalidResponseError,
    InvalidJSONResponseError,
    ServerError,
    EncryptionUnavailableError,
)
from shareify_relay.schemas import (
    BridgeLoginRequest,
    BridgeLoginResponse,
    CommandEnvelope,
    EncryptedCommandRequest,
)
from shareify_relay.security.crypto_engine import CryptoEngine
from shareify_relay.services import credential_store as keys
from shareify_relay.services.credential_store import CredentialStore
from shareify_relay.services.session_manager import SessionManager

logger = logging.getLogger(__name__)

JSONValue = Union[Dict[str, Any], List[Any]]
SignalCallback = Callable[[UISignal, RelayError], None]

SERVER_LOGIN_COMMAND = "/user/login"
CONNECTIVITY_COMMAND = "/is_up"


class CommandClient:
    """Client for the generic remote-command endpoint"""

    def __init__(
        self,
        settings: RelaySettings,
        credentials: CredentialStore,
        crypto: CryptoEngine,
        session_manager: SessionManager,
        http_client: httpx.AsyncClient,
        on_signal: Optional[SignalCallback] = None,
    ):
        """
        Args:
            settings: Endpoint URLs and fallback policy
            credentials: Persistent token/credential store
            crypto: Initialized CryptoEngine for this client id
            session_manager: Session establishment for the same CryptoEngine
            http_client: Shared async HTTP client
            on_signal: Called once per terminal failure with the UI action to take
        """
        self.settings = settings
        self.credentials = credentials
        self.crypto = crypto
        self.session_manager = session_manager
        self.http_client = http_client
        self.on_signal = on_signal

    async def __aenter__(self) -> "CommandClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.http_client.aclose()

    # ===== Public API =====

    async def execute(
        self,
        command: str,
        method: str = "GET",
        body: Optional[Dict[str, Any]] = None,
        wait_time: int = 2,
        use_encryption: bool = True,
    ) -> JSONValue:
        """
        Execute a named command on the user's server through the relay

        Args:
            command: Remote command path, e.g. "/finder"
            method: HTTP method the server should apply ("GET" or "POST")
            body: Command arguments
            wait_time: Seconds the relay waits for the server to answer
            use_encryption: Seal the envelope with the session key

        Returns:
            Decoded JSON object or array

        Raises:
            RelayError subclass describing the terminal failure
        """
        try:
            return await self._execute(command, method, body or {}, wait_time, use_encryption, reauth_allowed=True)
        except RelayError as e:
            self._emit_signal(e)
            raise

    async def bridge_login(self, email: str, password: str) -> Dict[str, Any]:
        """
        Log in to the bridge and persist the token and credentials

        Returns:
            The bridge's login response
        """
        try:
            response = await self._post_login(email, password)
            if not response.is_success:
                raise ServerError(response.text or "Bridge login failed", status_code=response.status_code)

            try:
                data = response.json()
                parsed = BridgeLoginResponse.model_validate(data)
            except (ValueError, ValidationError):
                raise InvalidResponseError("Bridge login response has no jwt_token")

        except RelayError as e:
            self._emit_signal(e)
            raise

        self.credentials.set_many(**{
            keys.JWT_TOKEN: parsed.jwt_token,
            keys.USER_EMAIL: email,
            keys.USER_PASSWORD: password,
        })
        self.session_manager.clear_session()
        logger.info(f"Bridge login succeeded for {email}")
        return data

    async def login_to_server(self, username: str, password: str) -> Dict[str, Any]:
        """
        Log in to the user's Shareify server through the relay

        Stores the returned token as the Shareify JWT together with the
        credentials used. Runs without automatic re-authentication.
        """
        try:
            return await self._login_to_server(username, password)
        except RelayError as e:
            self._emit_signal(e)
            raise

    async def _login_to_server(self, username: str, password: str) -> Dict[str, Any]:
        result = await self._execute(
            SERVER_LOGIN_COMMAND,
            "POST",
            {"username": username, "password": password},
            5,
            use_encryption=True,
            reauth_allowed=False,
        )
        if not isinstance(result, dict):
            raise InvalidResponseError("Server login returned a non-object response")

        token = result.get("token")
        if isinstance(token, str) and token:
            self.credentials.set_many(**{
                keys.SHAREIFY_JWT: token,
                keys.SERVER_USERNAME: username,
                keys.SERVER_PASSWORD: password,
            })
            logger.info(f"Shareify server login succeeded for {username}")
        else:
            logger.warning("Shareify server login response carried no token")
        return result

    async def test_server_connection(self) -> bool:
        """
        Probe the user's server with an unencrypted /is_up command.

        Only HTTP 200 and 404 count as connected.
        """
        bridge_token = self.credentials.bridge_token
        if not bridge_token:
            return False

        envelope = CommandEnvelope(command=CONNECTIVITY_COMMAND, method="GET", wait_time=1)
        try:
            response = await self.http_client.post(
                self.settings.command_url,
                json=envelope.to_wire(),
                headers=self._command_headers(bridge_token),
            )
        except httpx.HTTPError as e:
            logger.info(f"Connectivity check failed: {type(e).__name__}")
            return False

        return response.status_code in (200, 404)

    def is_bridge_logged_in(self) -> bool:
        return self.credentials.bridge_token is not None

    def is_server_logged_in(self) -> bool:
        return self.credentials.shareify_token is not None

    def logout_server(self) -> None:
        """Forget the Shareify server token and credentials"""
        self.credentials.delete(keys.SHAREIFY_JWT, keys.SERVER_USERNAME, keys.SERVER_PASSWORD)
        logger.info("Logged out of Shareify server")

    def logout(self) -> None:
        """Forget all tokens and credentials and drop the session; keeps the client id"""
        self.credentials.delete(
            keys.JWT_TOKEN,
            keys.USER_EMAIL,
            keys.USER_PASSWORD,
            keys.SHAREIFY_JWT,
            keys.SERVER_USERNAME,
            keys.SERVER_PASSWORD,
        )
        self.session_manager.clear_session()
        logger.info("Logged out of bridge and server")

    def auth_status(self) -> Dict[str, Any]:
        """Snapshot of login and session state for display"""
        bridge_info = inspect_token(self.credentials.bridge_token)
        server_info = inspect_token(self.credentials.shareify_token)

        def _expiry(info) -> Optional[str]:
            if info is None or info.expires_at is None:
                return None
            return info.expires_at.isoformat()

        return {
            "client_id": self.crypto.client_id,
            "bridge_logged_in": self.is_bridge_logged_in(),
            "bridge_token_expires_at": _expiry(bridge_info),
            "bridge_token_expired": bridge_info.is_expired() if bridge_info else None,
            "server_logged_in": self.is_server_logged_in(),
            "server_token_expires_at": _expiry(server_info),
            "server_token_expired": server_info.is_expired() if server_info else None,
            "session": self.session_manager.state.value,
            "plaintext_fallback": self.settings.allow_plaintext_fallback,
        }

    # ===== Request pipeline =====

    async def _execute(
        self,
        command: str,
        method: str,
        body: Dict[str, Any],
        wait_time: int,
        use_encryption: bool,
        reauth_allowed: bool,
    ) -> JSONValue:
        bridge_token = self.credentials.bridge_token
        if not bridge_token:
            raise NoJWTTokenError()

        encrypt = use_encryption
        if encrypt and not await self.session_manager.get_or_establish():
            if self.session_manager.last_rejected_auth:
                if not reauth_allowed:
                    raise AuthFailedError(
                        "Bridge rejected the token after re-authentication",
                        details={"stage": "establish_session"},
                    )
                await self._refresh_bridge_login()
                return await self._execute(command, method, body, wait_time, use_encryption, reauth_allowed=False)
            self._downgrade(f"no encrypted session for {command}")
            encrypt = False

        envelope = CommandEnvelope(command=command, method=method, wait_time=wait_time, body=body).to_wire()
        request_body: Dict[str, Any] = envelope

        if encrypt:
            sealed = self.crypto.encrypt_json(envelope)
            if sealed is None:
                self._downgrade(f"session key unavailable while sealing {command}")
                encrypt = False
            else:
                request_body = EncryptedCommandRequest(
                    client_id=self.crypto.client_id or self.credentials.ensure_client_id(),
                    encrypted_payload=sealed,
                ).model_dump()

        response = await self._post_command(request_body, bridge_token)
        logger.debug(f"command={command} encrypted={encrypt} status={response.status_code}")

        payload = self._parse_json(response)

        if response.status_code == 401 or ErrorHandler.is_bridge_token_expired(payload):
            if not reauth_allowed:
                raise AuthFailedError(
                    "Bridge rejected the token after re-authentication",
                    details={"status_code": response.status_code},
                )
            await self._refresh_bridge_login()
            return await self._execute(command, method, body, wait_time, use_encryption, reauth_allowed=False)

        if payload is None:
            if response.is_success:
                raise InvalidJSONResponseError(details={"status_code": response.status_code})
            raise ServerError(response.text or f"HTTP {response.status_code}", status_code=response.status_code)

        if isinstance(payload, dict) and payload.get("encrypted") is True and "encrypted_response" in payload:
            decrypted = self.crypto.decrypt_json(payload["encrypted_response"])
            if decrypted is None:
                raise InvalidResponseError("Could not decrypt encrypted response")
            payload = decrypted

        error_message = self._error_message(payload)
        if error_message is not None:
            return await self._handle_server_error(
                error_message, response.status_code,
                command, method, body, wait_time, use_encryption, reauth_allowed,
            )

        if not response.is_success:
            raise ServerError(f"HTTP {response.status_code}", status_code=response.status_code)

        if not isinstance(payload, (dict, list)):
            raise InvalidResponseError(details={"type": type(payload).__name__})

        return payload

    async def _handle_server_error(
        self,
        message: str,
        status_code: int,
        command: str,
        method: str,
        body: Dict[str, Any],
        wait_time: int,
        use_encryption: bool,
        reauth_allowed: bool,
    ) -> JSONValue:
        if not reauth_allowed or not ErrorHandler.is_auth_error_message(message):
            raise ServerError(message, status_code=status_code)

        server_credentials = self.credentials.server_credentials()
        if server_credentials is None:
            raise ServerError(message, status_code=status_code)

        username, password = server_credentials
        logger.info(f"Server reported auth error for {command}; logging in to server again")
        await self._login_to_server(username, password)
        return await self._execute(command, method, body, wait_time, use_encryption, reauth_allowed=False)

    async def _refresh_bridge_login(self) -> None:
        """Re-run the bridge login with stored credentials and reset the session"""
        stored = self.credentials.bridge_credentials()
        if stored is None:
            raise NoCredentialsError()

        email, password = stored
        logger.info("Bridge token rejected; logging in again with stored credentials")
        response = await self._post_login(email, password)

        if not response.is_success:
            raise AuthFailedError("Failed to refresh login", details={"status_code": response.status_code})

        try:
            parsed = BridgeLoginResponse.model_validate(response.json())
        except (ValueError, ValidationError):
            raise AuthFailedError("Failed to refresh login: no jwt_token in response")

        self.credentials.set(keys.JWT_TOKEN, parsed.jwt_token)
        self.session_manager.clear_session()

    # ===== Helpers =====

    def _downgrade(self, reason: str) -> None:
        if not self.settings.allow_plaintext_fallback:
            raise EncryptionUnavailableError(f"Encryption unavailable ({reason}) and plaintext fallback is disabled")
        logger.warning(f"Sending command UNENCRYPTED: {reason}")

    def _command_headers(self, bridge_token: str) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {bridge_token}"}
        shareify_token = self.credentials.shareify_token
        if shareify_token:
            headers["X-Shareify-JWT"] = shareify_token
        return headers

    async def _post_command(self, request_body: Dict[str, Any], bridge_token: str) -> httpx.Response:
        try:
            return await self.http_client.post(
                self.settings.command_url,
                json=request_body,
                headers=self._command_headers(bridge_token),
            )
        except httpx.RequestError as e:
            raise ErrorHandler.handle_transport_error(e) from e

    async def _post_login(self, email: str, password: str) -> httpx.Response:
        try:
            return await self.http_client.post(
                self.settings.login_url,
                json=BridgeLoginRequest(email=email, password=password).model_dump(),
            )
        except httpx.RequestError as e:
            raise ErrorHandler.handle_transport_error(e) from e

    @staticmethod
    def _parse_json(response: httpx.Response) -> Optional[Any]:
        """Decoded body, or None if it is empty or not JSON"""
        if not response.content:
            return None
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None

    @staticmethod
    def _error_message(payload: Any) -> Optional[str]:
        """Error text from {"error": ...} or {"success": false, ...} bodies"""
        if not isinstance(payload, dict):
            return None
        error = payload.get("error")
        if isinstance(error, str):
            return error
        if payload.get("success") is False:
            return str(error) if error is not None else "Unknown server error"
        return None

    def _emit_signal(self, error: RelayError) -> None:
        if self.on_signal is None:
            return
        try:
            self.on_signal(ErrorHandler.ui_signal_for(error), error)
        except Exception as e:
            logger.error(f"Signal handler failed: {e}", exc_info=True)
