"""
Tests for CredentialStore (SQLite-backed preferences)
"""

import uuid

import pytest

from shareify_relay.services import credential_store as keys
from shareify_relay.services.credential_store import CredentialStore


@pytest.fixture
def store():
    store = CredentialStore(":memory:")
    yield store
    store.close()


class TestKeyValue:

    def test_get_missing(self, store):
        assert store.get("nope") is None

    def test_set_and_overwrite(self, store):
        store.set(keys.JWT_TOKEN, "T0")
        store.set(keys.JWT_TOKEN, "T1")
        assert store.get(keys.JWT_TOKEN) == "T1"

    def test_set_many_and_delete(self, store):
        store.set_many(**{keys.USER_EMAIL: "a@b.com", keys.USER_PASSWORD: "pw"})
        assert store.bridge_credentials() == ("a@b.com", "pw")

        store.delete(keys.USER_EMAIL, keys.USER_PASSWORD, "never-set")
        assert store.get(keys.USER_EMAIL) is None
        assert store.bridge_credentials() is None


class TestClientIdentity:

    def test_created_once(self, store):
        client_id = store.ensure_client_id()
        uuid.UUID(client_id)
        assert store.ensure_client_id() == client_id

    def test_survives_reopen(self, tmp_path):
        path = tmp_path / "credentials.db"

        first = CredentialStore(path)
        client_id = first.ensure_client_id()
        first.set(keys.JWT_TOKEN, "T0")
        first.close()

        second = CredentialStore(path)
        try:
            assert second.ensure_client_id() == client_id
            assert second.bridge_token == "T0"
        finally:
            second.close()


class TestTokens:

    def test_empty_tokens_count_as_missing(self, store):
        store.set(keys.JWT_TOKEN, "")
        store.set(keys.SHAREIFY_JWT, "")
        assert store.bridge_token is None
        assert store.shareify_token is None

    def test_partial_server_credentials(self, store):
        store.set(keys.SERVER_USERNAME, "admin")
        assert store.server_credentials() is None

        store.set(keys.SERVER_PASSWORD, "secret")
        assert store.server_credentials() == ("admin", "secret")
