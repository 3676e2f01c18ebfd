"""
Key Store - OS keyring integration for the client RSA key pair

Uses the platform keyring (macOS Keychain, Windows Credential Locker,
Secret Service on Linux) to persist one RSA key pair per client identity.

The private key lives in the keyring as PKCS#8 PEM, optionally wrapped with
a passphrase. In process it is only ever held as an opaque cryptography
RSAPrivateKey handle.
"""

import logging
from typing import Optional

import keyring
from keyring.backend import KeyringBackend
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

logger = logging.getLogger(__name__)

KEY_ALIAS_PREFIX = "shareify_rsa_"
RSA_PUBLIC_EXPONENT = 65537


def key_alias(client_id: str) -> str:
    """Keyring account name for a client's key pair"""
    return f"{KEY_ALIAS_PREFIX}{client_id}"


class KeyStore:
    """
    Persistent RSA key pair storage keyed by client id

    Never raises past its boundary: failures are logged and reported as
    None/False.
    """

    def __init__(
        self,
        service_name: str,
        passphrase: Optional[str] = None,
        key_size: int = 4096,
        backend: Optional[KeyringBackend] = None,
    ):
        """
        Args:
            service_name: Keyring service the keys are filed under
            passphrase: Optional passphrase wrapping the stored PEM
            key_size: Modulus size for newly generated key pairs
            backend: Explicit keyring backend (defaults to the best available one)
        """
        self.service_name = service_name
        self.key_size = key_size
        self._passphrase = passphrase.encode("utf-8") if passphrase else None
        self._backend = backend or keyring.get_keyring()

    def load(self, client_id: str) -> Optional[rsa.RSAPrivateKey]:
        """Load an existing key pair, or None if absent or unreadable"""
        alias = key_alias(client_id)
        try:
            pem = self._backend.get_password(self.service_name, alias)
            if not pem:
                return None

            private_key = serialization.load_pem_private_key(
                pem.encode("utf-8"),
                password=self._passphrase,
            )
            if not isinstance(private_key, rsa.RSAPrivateKey):
                logger.warning(f"Keyring entry '{alias}' is not an RSA key")
                return None

            logger.debug(f"Loaded RSA key pair '{alias}' from keyring")
            return private_key

        except Exception as e:
            logger.error(f"Failed to load key pair '{alias}' from keyring: {e}")
            return None

    def store(self, client_id: str, private_key: rsa.RSAPrivateKey) -> bool:
        """Persist a key pair under the client's alias"""
        alias = key_alias(client_id)
        try:
            if self._passphrase:
                encryption = serialization.BestAvailableEncryption(self._passphrase)
            else:
                encryption = serialization.NoEncryption()

            pem = private_key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=encryption,
            )
            self._backend.set_password(self.service_name, alias, pem.decode("utf-8"))

            logger.info(f"Stored RSA key pair '{alias}' in keyring")
            return True

        except Exception as e:
            logger.error(f"Failed to store key pair '{alias}' in keyring: {e}")
            return False

    def load_or_generate(self, client_id: str) -> Optional[rsa.RSAPrivateKey]:
        """
        Return the client's key pair, generating and persisting one if absent.

        Returns:
            The private key handle, or None if generation or storage failed
        """
        existing = self.load(client_id)
        if existing is not None:
            return existing

        try:
            private_key = rsa.generate_private_key(
                public_exponent=RSA_PUBLIC_EXPONENT,
                key_size=self.key_size,
            )
        except Exception as e:
            logger.error(f"RSA key generation failed: {e}")
            return None

        if not self.store(client_id, private_key):
            return None

        logger.info(f"Generated new {self.key_size}-bit RSA key pair for client {client_id}")
        return private_key

