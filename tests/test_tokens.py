"""
Tests for unverified JWT inspection
"""

from datetime import datetime, timedelta, timezone

import jwt

from shareify_relay.auth.tokens import TokenInfo, inspect_token

SECRET = "not-the-server-secret-but-long-enough"


def _token(**claims) -> str:
    return jwt.encode(claims, SECRET, algorithm="HS256")


class TestInspectToken:

    def test_reads_claims_without_secret(self):
        exp = int((datetime.now(timezone.utc) + timedelta(hours=1)).timestamp())
        info = inspect_token(_token(sub="user-1", exp=exp, iat=exp - 3600))

        assert info.sub == "user-1"
        assert info.exp == exp
        assert info.expires_at == datetime.fromtimestamp(exp, tz=timezone.utc)
        assert not info.is_expired()

    def test_expired_token_still_readable(self):
        exp = int((datetime.now(timezone.utc) - timedelta(minutes=5)).timestamp())
        info = inspect_token(_token(sub="user-1", exp=exp))

        assert info is not None
        assert info.is_expired()

    def test_opaque_or_missing(self):
        assert inspect_token(None) is None
        assert inspect_token("") is None
        assert inspect_token("T0") is None


class TestTokenInfo:

    def test_no_exp_never_expires(self):
        assert TokenInfo(sub="x").expires_at is None
        assert not TokenInfo(sub="x").is_expired()

    def test_leeway(self):
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        info = TokenInfo(exp=int(now.timestamp()) + 30)

        assert not info.is_expired(now=now)
        assert info.is_expired(leeway_seconds=60, now=now)
