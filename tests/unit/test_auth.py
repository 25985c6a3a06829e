"""Tests for access token issuance and verification."""
import pytest
from jose import jwt

from doctors_portal.auth import CredentialIssuer, Identity, InvalidCredentialError


SECRET = "unit-test-secret"


class TestCredentialIssuer:
    """Test HS256 bearer tokens."""

    def test_issue_then_verify_returns_identity(self):
        """A freshly issued token verifies to the same email."""
        issuer = CredentialIssuer(SECRET)

        token = issuer.issue("a@x.com")

        assert issuer.verify(token) == Identity(email="a@x.com")

    def test_token_carries_expiry(self):
        issuer = CredentialIssuer(SECRET, ttl_hours=24)

        claims = jwt.decode(issuer.issue("a@x.com"), SECRET, algorithms=["HS256"])

        assert claims["email"] == "a@x.com"
        assert claims["exp"] - claims["iat"] == 24 * 3600

    def test_expired_token_rejected(self):
        issuer = CredentialIssuer(SECRET, ttl_hours=-1)
        token = issuer.issue("a@x.com")

        with pytest.raises(InvalidCredentialError):
            issuer.verify(token)

    def test_token_from_other_secret_rejected(self):
        token = CredentialIssuer("some-other-secret").issue("a@x.com")

        with pytest.raises(InvalidCredentialError):
            CredentialIssuer(SECRET).verify(token)

    def test_tampered_token_rejected(self):
        issuer = CredentialIssuer(SECRET)
        header, payload, signature = issuer.issue("a@x.com").split(".")
        forged_payload = issuer.issue("admin@clinic.com").split(".")[1]

        with pytest.raises(InvalidCredentialError):
            issuer.verify(f"{header}.{forged_payload}.{signature}")

    @pytest.mark.parametrize("token", ["", "not-a-token", "a.b.c"])
    def test_garbage_rejected(self, token):
        with pytest.raises(InvalidCredentialError):
            CredentialIssuer(SECRET).verify(token)

    def test_token_without_email_rejected(self):
        token = jwt.encode({"sub": "someone"}, SECRET, algorithm="HS256")

        with pytest.raises(InvalidCredentialError):
            CredentialIssuer(SECRET).verify(token)

    def test_empty_secret_refused(self):
        with pytest.raises(ValueError):
            CredentialIssuer("")

    def test_identity_email_is_lowercased(self):
        issuer = CredentialIssuer(SECRET)

        assert issuer.verify(issuer.issue("Alice@Example.COM")) == Identity(email="alice@example.com")
