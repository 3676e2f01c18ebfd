"""
Shared pytest fixtures for the command relay tests.

Provides:
- MemoryKeyring: in-memory keyring backend
- FakeRelay: httpx.MockTransport handler playing bridge + command server,
  including the real RSA-OAEP key wrap and AES-GCM framing
- Settings, credential store and client factories
"""

import base64
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

import httpx
import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from keyring.backend import KeyringBackend
from keyring.errors import PasswordDeleteError

sys.path.insert(0, str(Path(__file__).parent.parent))

from shareify_relay.client_factory import create_command_client
from shareify_relay.config import RelaySettings
from shareify_relay.security.key_store import key_alias
from shareify_relay.services import credential_store as keys
from shareify_relay.services.credential_store import CredentialStore

TEST_HOST = "relay.test"
TEST_CLIENT_ID = "5f0c7a6e-3d0b-4a53-9a8e-0c3c1f2d9b11"

OAEP = padding.OAEP(
    mgf=padding.MGF1(algorithm=hashes.SHA256()),
    algorithm=hashes.SHA256(),
    label=None,
)


# ============================================================================
# Keyring
# ============================================================================

class MemoryKeyring(KeyringBackend):
    """Keyring backend that keeps entries in a dict"""

    priority = 1

    def __init__(self):
        super().__init__()
        self.entries: Dict[Tuple[str, str], str] = {}

    def get_password(self, service, username):
        return self.entries.get((service, username))

    def set_password(self, service, username, password):
        self.entries[(service, username)] = password

    def delete_password(self, service, username):
        if (service, username) not in self.entries:
            raise PasswordDeleteError("not found")
        del self.entries[(service, username)]


# ============================================================================
# Fake relay server
# ============================================================================

Handler = Callable[[Dict[str, Any]], Tuple[int, Any]]


class FakeRelay:
    """
    Plays the bridge (login, establish_session) and the command endpoint.

    command_handler receives the decoded envelope and returns
    (status_code, body); body may be a dict/list (JSON) or a str (raw text).
    """

    def __init__(self):
        self.session_key: Optional[bytes] = None
        self.establish_status = 200
        self.establish_calls = 0
        self.establish_requests: List[Tuple[httpx.Headers, Dict[str, Any]]] = []
        self.establish_response: Optional[Any] = None
        self.login_status = 200
        self.login_token = "T1"
        self.login_calls: List[Dict[str, Any]] = []
        self.encrypt_responses = True
        self.command_handler: Handler = lambda envelope: (200, {"ok": True})
        self.command_bodies: List[Dict[str, Any]] = []
        self.command_headers: List[httpx.Headers] = []
        self.envelopes: List[Dict[str, Any]] = []
        self.transport_error: Optional[Exception] = None
        # Bearer tokens the bridge treats as stale on every endpoint
        self.rejected_tokens: Set[str] = set()

    # ----- server-side crypto -----

    def seal(self, value: Any) -> Dict[str, str]:
        nonce = os.urandom(12)
        sealed = AESGCM(self.session_key).encrypt(nonce, json.dumps(value).encode(), None)
        return {
            "nonce": base64.b64encode(nonce).decode(),
            "ciphertext": base64.b64encode(sealed).decode(),
        }

    def open(self, payload: Dict[str, str]) -> Dict[str, Any]:
        nonce = base64.b64decode(payload["nonce"])
        sealed = base64.b64decode(payload["ciphertext"])
        return json.loads(AESGCM(self.session_key).decrypt(nonce, sealed, None))

    # ----- transport -----

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.transport_error is not None:
            raise self.transport_error

        body = json.loads(request.content) if request.content else {}
        host, path = request.url.host, request.url.path

        if host == f"bridge.{TEST_HOST}" and path == "/login":
            return self._login(body)
        if host == f"bridge.{TEST_HOST}" and path == "/cloud/establish_session":
            return self._establish(request, body)
        if host == f"command.{TEST_HOST}":
            return self._command(request, body)
        return httpx.Response(404, json={"error": "not found"})

    def _token_rejected(self, request: httpx.Request) -> bool:
        token = request.headers.get("authorization", "").removeprefix("Bearer ")
        return token in self.rejected_tokens

    @staticmethod
    def _expired() -> httpx.Response:
        return httpx.Response(401, json={"error": "Invalid or expired JWT token"})

    def _login(self, body: Dict[str, Any]) -> httpx.Response:
        self.login_calls.append(body)
        if self.login_status != 200:
            return httpx.Response(self.login_status, json={"error": "Invalid credentials"})
        return httpx.Response(200, json={"jwt_token": self.login_token})

    def _establish(self, request: httpx.Request, body: Dict[str, Any]) -> httpx.Response:
        self.establish_calls += 1
        self.establish_requests.append((request.headers, body))
        if self._token_rejected(request):
            return self._expired()
        if self.establish_status != 200:
            return httpx.Response(self.establish_status, json={"error": "session unavailable"})
        if self.establish_response is not None:
            return httpx.Response(200, json=self.establish_response)

        public_key = serialization.load_pem_public_key(body["public_key"].encode())
        self.session_key = os.urandom(32)
        wrapped = public_key.encrypt(self.session_key, OAEP)
        return httpx.Response(200, json={"encrypted_session_key": base64.b64encode(wrapped).decode()})

    def _command(self, request: httpx.Request, body: Dict[str, Any]) -> httpx.Response:
        self.command_bodies.append(body)
        self.command_headers.append(request.headers)
        if self._token_rejected(request):
            return self._expired()

        encrypted = body.get("encrypted") is True
        envelope = self.open(body["encrypted_payload"]) if encrypted else body
        self.envelopes.append(envelope)

        status, result = self.command_handler(envelope)
        if isinstance(result, str):
            return httpx.Response(status, text=result)
        if encrypted and self.encrypt_responses and 200 <= status < 300:
            result = {"encrypted": True, "encrypted_response": self.seal(result)}
        return httpx.Response(status, json=result)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture(scope="session")
def shared_private_key() -> rsa.RSAPrivateKey:
    """One 2048-bit key for the whole session (4096-bit generation is slow)"""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def settings(tmp_path) -> RelaySettings:
    return RelaySettings(
        host=TEST_HOST,
        rsa_key_size=2048,
        data_dir=tmp_path,
        allow_plaintext_fallback=False,
    )


@pytest.fixture
def memory_keyring() -> MemoryKeyring:
    return MemoryKeyring()


@pytest.fixture
def preloaded_keyring(memory_keyring, settings, shared_private_key) -> MemoryKeyring:
    """Keyring already holding the test client's key pair"""
    pem = shared_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    memory_keyring.set_password(settings.keyring_service, key_alias(TEST_CLIENT_ID), pem.decode())
    return memory_keyring


@pytest.fixture
def credentials() -> CredentialStore:
    store = CredentialStore(":memory:")
    store.set(keys.CLIENT_ID, TEST_CLIENT_ID)
    yield store
    store.close()


@pytest.fixture
def logged_in(credentials) -> CredentialStore:
    """Credential store with a bridge token and bridge credentials"""
    credentials.set_many(**{
        keys.JWT_TOKEN: "T0",
        keys.USER_EMAIL: "a@b.com",
        keys.USER_PASSWORD: "pw",
    })
    return credentials


@pytest.fixture
def relay() -> FakeRelay:
    return FakeRelay()


@pytest.fixture
def make_client(settings, credentials, preloaded_keyring, relay):
    """Factory building a CommandClient against the fake relay"""

    def _make(on_signal=None, **overrides):
        client_settings = settings.model_copy(update=overrides) if overrides else settings
        return create_command_client(
            settings=client_settings,
            credentials=credentials,
            keyring_backend=preloaded_keyring,
            transport=httpx.MockTransport(relay.handler),
            on_signal=on_signal,
        )

    return _make


@pytest.fixture(autouse=True)
def reset_package_logger():
    """setup_logging() detaches the package logger from root; undo it so caplog works"""
    yield
    package_logger = logging.getLogger("shareify_relay")
    package_logger.handlers = []
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)
