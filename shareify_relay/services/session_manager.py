"""
Session Manager - encrypted session establishment with the bridge

Flow:
1. Send our client id and RSA public key to the bridge (bearer: bridge JWT)
2. Bridge answers with an AES session key wrapped with that public key
3. CryptoEngine unwraps it; the session is established iff that succeeds

State machine: NO_SESSION -> ESTABLISHING -> ESTABLISHED, and back to
NO_SESSION on clear_session() or a failed attempt. Concurrent callers share
a single in-flight establishment.
"""

import asyncio
import logging
from enum import Enum

import httpx
from pydantic import ValidationError

from shareify_relay.errors.handler import ErrorHandler
from shareify_relay.schemas import EstablishSessionRequest, EstablishSessionResponse
from shareify_relay.security.crypto_engine import CryptoEngine
from shareify_relay.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)


def _json_or_none(response: httpx.Response):
    try:
        return response.json()
    except ValueError:
        return None


class SessionState(Enum):
    NO_SESSION = "no_session"
    ESTABLISHING = "establishing"
    ESTABLISHED = "established"


class SessionManager:
    """
    Tracks the one encrypted session of this process

    last_rejected_auth is set when the most recent attempt failed because the
    bridge refused our token.
    """

    def __init__(
        self,
        crypto: CryptoEngine,
        credentials: CredentialStore,
        http_client: httpx.AsyncClient,
        establish_url: str,
    ):
        self.crypto = crypto
        self.credentials = credentials
        self.http_client = http_client
        self.establish_url = establish_url
        self._lock = asyncio.Lock()
        self._establishing = False
        self.attempts = 0
        self.last_rejected_auth = False

    @property
    def state(self) -> SessionState:
        if self.crypto.has_session():
            return SessionState.ESTABLISHED
        if self._establishing:
            return SessionState.ESTABLISHING
        return SessionState.NO_SESSION

    def is_established(self) -> bool:
        return self.crypto.has_session()

    def clear_session(self) -> None:
        """Drop the session key; the next encrypted call re-establishes"""
        self.crypto.clear_session()
        logger.debug("Encrypted session cleared")

    async def get_or_establish(self) -> bool:
        """
        Return True if a session exists, establishing one if needed.

        Callers arriving while an establishment is in flight wait for it and
        reuse its outcome instead of starting their own.
        """
        if self.crypto.has_session():
            return True

        async with self._lock:
            if self.crypto.has_session():
                return True
            return await self._establish()

    async def establish_session(self) -> bool:
        """
        Establish a fresh session, replacing any current session key.

        Returns:
            True on success; False on any failure (never raises)
        """
        async with self._lock:
            return await self._establish()

    async def _establish(self) -> bool:
        established = await self._attempt()
        if not established:
            self.crypto.clear_session()
        return established

    async def _attempt(self) -> bool:
        self.last_rejected_auth = False
        bridge_token = self.credentials.bridge_token
        public_key_pem = self.crypto.export_public_key_pem()
        if not bridge_token or not public_key_pem:
            logger.info("Cannot establish session: missing bridge token or public key")
            return False

        client_id = self.crypto.client_id or self.credentials.ensure_client_id()
        request = EstablishSessionRequest(client_id=client_id, public_key=public_key_pem)

        self._establishing = True
        self.attempts += 1
        try:
            response = await self.http_client.post(
                self.establish_url,
                json=request.model_dump(),
                headers={"Authorization": f"Bearer {bridge_token}"},
            )
        except httpx.HTTPError as e:
            logger.warning(f"Session establishment request failed: {type(e).__name__}: {e}")
            return False
        finally:
            self._establishing = False

        if not response.is_success:
            # 401 or the expiry body means the bridge token is stale
            self.last_rejected_auth = (
                response.status_code == 401
                or ErrorHandler.is_bridge_token_expired(_json_or_none(response))
            )
            logger.warning(f"Session establishment rejected with HTTP {response.status_code}")
            return False

        try:
            parsed = EstablishSessionResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.warning(f"Session establishment response malformed: {type(e).__name__}")
            return False

        established = self.crypto.import_session_key(parsed.encrypted_session_key)
        if established:
            logger.info(f"Encrypted session established for client {client_id}")
        else:
            logger.warning("Bridge returned a session key we could not unwrap")
        return established
