"""Bearer credential issuance and verification (JWT)."""
from dataclasses import dataclass
from datetime import datetime, timedelta, UTC

from jose import JWTError, jwt

from doctors_portal.api.models import normalize_email


class InvalidCredentialError(Exception):
    """Raised when a bearer token is malformed, tampered with or expired."""
    pass


@dataclass(frozen=True)
class Identity:
    """Authenticated caller."""
    email: str


class CredentialIssuer:
    """
    Signs and verifies access tokens.

    Tokens carry only the user's email and an expiry; roles are always
    looked up fresh from the user directory.
    """

    ALGORITHM = "HS256"

    def __init__(self, secret: str, ttl_hours: int = 24):
        if not secret:
            raise ValueError("Signing secret must not be empty")
        self.secret = secret
        self.ttl = timedelta(hours=ttl_hours)

    def issue(self, email: str) -> str:
        """Issue a token for ``email`` valid for the configured TTL."""
        now = datetime.now(UTC)
        claims = {
            "email": normalize_email(email),
            "iat": int(now.timestamp()),
            "exp": int((now + self.ttl).timestamp()),
        }
        return jwt.encode(claims, self.secret, algorithm=self.ALGORITHM)

    def verify(self, token: str) -> Identity:
        """
        Verify a token and return the identity it carries.

        Raises:
            InvalidCredentialError: If the signature, expiry or claims are bad
        """
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.ALGORITHM])
        except JWTError as e:
            raise InvalidCredentialError("forbidden access") from e

        email = claims.get("email")
        if not email:
            raise InvalidCredentialError("forbidden access")
        return Identity(email=normalize_email(email))
