"""Tests for the bearer token codec."""

import pytest

from app.domain.entities import UserRole
from app.domain.exceptions import AuthenticationError
from app.infrastructure.auth import Identity, TokenCodec

NOW = 1_700_000_000.0


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec("test-secret", ttl_seconds=3600)


class TestTokenCodec:
    """Tests for issuing and verifying tokens."""

    def test_decodes_issued_token(self, codec: TokenCodec) -> None:
        identity = Identity("owner-1", UserRole.SHOP_OWNER, shop_id="shop-1")

        assert codec.decode(codec.issue(identity, now=NOW), now=NOW + 60) == identity

    def test_expired_token_rejected(self, codec: TokenCodec) -> None:
        token = codec.issue(Identity("student-1"), now=NOW)

        with pytest.raises(AuthenticationError, match="expired"):
            codec.decode(token, now=NOW + 3601)

    def test_token_from_other_secret_rejected(self, codec: TokenCodec) -> None:
        forged = TokenCodec("other-secret").issue(Identity("student-1", UserRole.ADMIN), now=NOW)

        with pytest.raises(AuthenticationError):
            codec.decode(forged, now=NOW)

    def test_tampered_claims_rejected(self, codec: TokenCodec) -> None:
        token = codec.issue(Identity("student-1"), now=NOW)
        claims, signature = token.split(".")

        with pytest.raises(AuthenticationError):
            codec.decode(f"{claims}x.{signature}", now=NOW)

    def test_non_ascii_signature_rejected(self, codec: TokenCodec) -> None:
        claims = codec.issue(Identity("student-1"), now=NOW).split(".")[0]

        with pytest.raises(AuthenticationError, match="Invalid bearer token"):
            codec.decode(f"{claims}.sig\u00e9\u20b9", now=NOW)

    @pytest.mark.parametrize("token", [None, "", "no-dot", ".sig", "claims."])
    def test_malformed_tokens_rejected(self, codec: TokenCodec, token: str | None) -> None:
        with pytest.raises(AuthenticationError):
            codec.decode(token, now=NOW)

    def test_admin_identity(self) -> None:
        assert Identity("admin-1", UserRole.ADMIN).is_admin
        assert not Identity("student-1").is_admin
