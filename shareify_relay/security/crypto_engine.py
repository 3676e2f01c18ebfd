"""
Crypto Engine - client identity and session encryption for the command relay

Each client has:
- RSA key pair (OAEP-SHA256) - long-term, kept in the OS keyring
- AES session key - delivered by the bridge wrapped with our public key,
  held only in memory

Wire framing (shared with the relay server):
- nonce: 12 random bytes per message, base64
- ciphertext: AES-GCM output with the 16-byte tag appended, base64
"""

import base64
import binascii
import json
import logging
import os
import threading
from typing import Any, Dict, Optional, Union

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from shareify_relay.schemas import EncryptedPayload
from shareify_relay.security.key_store import KeyStore

logger = logging.getLogger(__name__)

NONCE_SIZE = 12  # 96-bit GCM nonce
TAG_SIZE = 16  # 128-bit GCM tag
PEM_LINE_LENGTH = 64

PEM_HEADER = "-----BEGIN PUBLIC KEY-----"
PEM_FOOTER = "-----END PUBLIC KEY-----"

OAEP_PADDING = padding.OAEP(
    mgf=padding.MGF1(algorithm=hashes.SHA256()),
    algorithm=hashes.SHA256(),
    label=None,
)


class CryptoEngine:
    """
    Asymmetric identity plus symmetric session encryption for one client.

    No method raises past this class: failures come back as False/None.
    The session key is guarded by a lock since any number of concurrent
    commands read it while establishment may replace it.
    """

    def __init__(self, key_store: KeyStore):
        self.key_store = key_store
        self._private_key: Optional[rsa.RSAPrivateKey] = None
        self._client_id: Optional[str] = None
        self._session_key: Optional[AESGCM] = None
        self._lock = threading.Lock()

    # ===== Identity =====

    def initialize(self, client_id: str) -> bool:
        """
        Load or create the RSA key pair for a client identity

        Args:
            client_id: Stable client UUID

        Returns:
            True if a usable key pair is available
        """
        self._client_id = client_id
        self._private_key = self.key_store.load_or_generate(client_id)
        if self._private_key is None:
            logger.error(f"No RSA key pair available for client {client_id}")
            return False
        return True

    @property
    def client_id(self) -> Optional[str]:
        return self._client_id

    @property
    def public_key(self) -> Optional[rsa.RSAPublicKey]:
        if self._private_key is None:
            return None
        return self._private_key.public_key()

    def export_public_key_pem(self) -> Optional[str]:
        """
        Serialize the public key as SubjectPublicKeyInfo PEM, 64-char lines,
        no trailing newline.
        """
        public_key = self.public_key
        if public_key is None:
            return None

        try:
            der = public_key.public_bytes(
                encoding=serialization.Encoding.DER,
                format=serialization.PublicFormat.SubjectPublicKeyInfo,
            )
            encoded = base64.b64encode(der).decode("ascii")
            lines = [encoded[i:i + PEM_LINE_LENGTH] for i in range(0, len(encoded), PEM_LINE_LENGTH)]
            return "\n".join([PEM_HEADER, *lines, PEM_FOOTER])
        except Exception as e:
            logger.warning(f"Failed to export public key: {e}")
            return None

    @staticmethod
    def import_public_key_pem(pem: str) -> Optional[rsa.RSAPublicKey]:
        """Parse a PEM public key; None if it is not an RSA SubjectPublicKeyInfo"""
        try:
            key = serialization.load_pem_public_key(pem.encode("ascii"))
        except (ValueError, TypeError, UnicodeEncodeError) as e:
            logger.warning(f"Invalid public key PEM: {e}")
            return None
        if not isinstance(key, rsa.RSAPublicKey):
            return None
        return key

    # ===== Session key =====

    def import_session_key(self, encrypted_key_b64: str) -> bool:
        """
        Unwrap the bridge-delivered AES key with our private key.

        The decrypted bytes are used directly as the AES key; a length AES
        cannot use (not 16/24/32 bytes) counts as a failed unwrap.
        """
        if self._private_key is None:
            return False

        try:
            wrapped = base64.b64decode(encrypted_key_b64, validate=True)
            raw_key = self._private_key.decrypt(wrapped, OAEP_PADDING)
            session_key = AESGCM(raw_key)
        except (binascii.Error, ValueError, TypeError) as e:
            logger.warning(f"Failed to import session key: {type(e).__name__}")
            return False

        with self._lock:
            self._session_key = session_key
        logger.info("Imported AES session key")
        return True

    def has_session(self) -> bool:
        with self._lock:
            return self._session_key is not None

    def clear_session(self) -> None:
        with self._lock:
            self._session_key = None

    # ===== Encryption & Decryption =====

    def encrypt(self, plaintext: bytes) -> Optional[EncryptedPayload]:
        """
        Seal bytes with the session key and a fresh random nonce

        Returns:
            EncryptedPayload, or None without a session key
        """
        with self._lock:
            session_key = self._session_key
        if session_key is None:
            return None

        try:
            nonce = os.urandom(NONCE_SIZE)
            sealed = session_key.encrypt(nonce, plaintext, None)
        except Exception as e:
            logger.warning(f"Encryption failed: {type(e).__name__}")
            return None

        return EncryptedPayload(
            nonce=base64.b64encode(nonce).decode("ascii"),
            ciphertext=base64.b64encode(sealed).decode("ascii"),
        )

    def decrypt(self, payload: Union[EncryptedPayload, Dict[str, Any]]) -> Optional[bytes]:
        """
        Open a sealed payload; None on any failure (no key, bad encoding,
        wrong nonce length, short blob, tampering, wrong key).
        """
        with self._lock:
            session_key = self._session_key
        if session_key is None:
            return None

        try:
            if isinstance(payload, dict):
                payload = EncryptedPayload(**payload)
            nonce = base64.b64decode(payload.nonce, validate=True)
            sealed = base64.b64decode(payload.ciphertext, validate=True)
        except Exception as e:
            logger.warning(f"Malformed encrypted payload: {type(e).__name__}")
            return None

        if len(nonce) != NONCE_SIZE or len(sealed) <= TAG_SIZE:
            logger.warning("Encrypted payload has invalid nonce or ciphertext length")
            return None

        try:
            # AESGCM expects ciphertext || tag, which is exactly the wire framing
            return session_key.decrypt(nonce, sealed, None)
        except Exception as e:
            logger.warning(f"Decryption failed: {type(e).__name__}")
            return None

    def encrypt_json(self, value: Any) -> Optional[EncryptedPayload]:
        return self.encrypt(json.dumps(value).encode("utf-8"))

    def decrypt_json(self, payload: Union[EncryptedPayload, Dict[str, Any]]) -> Optional[Any]:
        """Decrypt and parse a JSON object or array; None otherwise"""
        data = self.decrypt(payload)
        if data is None:
            return None
        try:
            value = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("Decrypted payload is not valid JSON")
            return None
        if not isinstance(value, (dict, list)):
            return None
        return value
