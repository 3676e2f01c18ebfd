"""
Client Factory - wires the relay core once per process

    client = create_command_client()
    async with client:
        items = await client.execute("/finder", body={"path": "/"})

Every collaborator can be passed in explicitly (tests inject an in-memory
credential store, a memory keyring backend and an httpx.MockTransport).
"""

import logging
from typing import Optional

import httpx
from keyring.backend import KeyringBackend

from shareify_relay.config import RelaySettings, get_settings
from shareify_relay.security.crypto_engine import CryptoEngine
from shareify_relay.security.key_store import KeyStore
from shareify_relay.services.command_client import CommandClient, SignalCallback
from shareify_relay.services.credential_store import CredentialStore
from shareify_relay.services.session_manager import SessionManager

logger = logging.getLogger(__name__)


def build_http_client(
    settings: RelaySettings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    timeout = httpx.Timeout(
        settings.read_timeout,
        connect=settings.connect_timeout,
        read=settings.read_timeout,
        write=settings.write_timeout,
    )
    return httpx.AsyncClient(
        timeout=timeout,
        transport=transport,
        headers={"User-Agent": "ShareifyRelay/1.0"},
    )


def create_command_client(
    settings: Optional[RelaySettings] = None,
    credentials: Optional[CredentialStore] = None,
    keyring_backend: Optional[KeyringBackend] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    on_signal: Optional[SignalCallback] = None,
) -> CommandClient:
    """
    Build a CommandClient with its credential store, key store, crypto
    engine and session manager.

    Args:
        settings: Relay settings (defaults to get_settings())
        credentials: Credential store (defaults to the SQLite file in data_dir)
        keyring_backend: Keyring backend for the RSA key pair
        transport: httpx transport override
        on_signal: UI signal callback for terminal failures

    Returns:
        Ready-to-use CommandClient; its key pair is loaded or generated
    """
    settings = settings or get_settings()

    if credentials is None:
        settings.ensure_data_dir()
        credentials = CredentialStore(settings.credentials_db)

    client_id = credentials.ensure_client_id()

    key_store = KeyStore(
        service_name=settings.keyring_service,
        passphrase=settings.key_passphrase,
        key_size=settings.rsa_key_size,
        backend=keyring_backend,
    )
    crypto = CryptoEngine(key_store)
    if not crypto.initialize(client_id):
        logger.warning("RSA key pair unavailable; encrypted sessions cannot be established")

    http_client = build_http_client(settings, transport)
    session_manager = SessionManager(
        crypto=crypto,
        credentials=credentials,
        http_client=http_client,
        establish_url=settings.establish_session_url,
    )

    return CommandClient(
        settings=settings,
        credentials=credentials,
        crypto=crypto,
        session_manager=session_manager,
        http_client=http_client,
        on_signal=on_signal,
    )
