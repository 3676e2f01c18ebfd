"""Client key storage and session encryption"""

from shareify_relay.security.key_store import KeyStore, key_alias
from shareify_relay.security.crypto_engine import CryptoEngine, NONCE_SIZE, TAG_SIZE

__all__ = ["KeyStore", "key_alias", "CryptoEngine", "NONCE_SIZE", "TAG_SIZE"]
