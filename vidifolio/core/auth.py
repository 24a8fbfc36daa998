"""
Credential Verifier - Bearer JWT validation
"""

from typing import Any, Dict, List, Optional
import jwt
from pydantic import BaseModel

from vidifolio.config.settings import settings
from vidifolio.core.errors import AuthenticationError
from vidifolio.services.observability import logger


class Identity(BaseModel):
    """Verified caller identity"""

    subject: str
    email: str
    full_name: str
    claims: Dict[str, Any] = {}


def extract_bearer_token(authorization: Optional[str]) -> str:
    """
    Extract the token from an Authorization header

    Raises:
        AuthenticationError: If the header is missing or not a Bearer credential
    """
    if not authorization:
        raise AuthenticationError("Missing or invalid Authorization header")
    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise AuthenticationError("Missing or invalid Authorization header")
    return token


def identity_from_claims(claims: Dict[str, Any]) -> Identity:
    """Build the caller identity, substituting placeholders for missing profile claims"""
    subject = str(claims["sub"])

    email = claims.get("email")
    if not email:
        addresses = claims.get("email_addresses") or []
        if addresses and isinstance(addresses[0], dict):
            email = addresses[0].get("email_address")
    if not email:
        email = f"user_{subject[-8:]}@clerk.com"

    full_name = claims.get("full_name") or claims.get("name")
    if not full_name:
        names = [claims.get("first_name"), claims.get("last_name")]
        full_name = " ".join(n for n in names if n) or "User"

    return Identity(subject=subject, email=email, full_name=full_name, claims=claims)


class CredentialVerifier:
    """
    Validates identity provider JWTs

    RS256 tokens are checked against the provider's JWKS when a JWKS URL is
    configured; otherwise tokens are HS256-signed with the shared secret.
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        jwks_url: Optional[str] = None,
        algorithms: Optional[List[str]] = None,
    ):
        self.secret_key = settings.clerk_secret_key if secret_key is None else secret_key
        self.jwks_url = settings.clerk_jwks_url if jwks_url is None else jwks_url
        self.algorithms = algorithms or (settings.jwt_algorithms if self.jwks_url else ["HS256"])
        self._jwks_client = jwt.PyJWKClient(self.jwks_url) if self.jwks_url else None

    def _signing_key(self, token: str):
        if self._jwks_client is not None:
            return self._jwks_client.get_signing_key_from_jwt(token).key
        return self.secret_key

    def verify(self, authorization: Optional[str]) -> Identity:
        """
        Verify an Authorization header value

        Args:
            authorization: Raw header value ("Bearer <token>")

        Returns:
            Identity of the caller

        Raises:
            AuthenticationError: If the credential is missing, malformed, expired or invalid
        """
        token = extract_bearer_token(authorization)
        try:
            claims = jwt.decode(
                token,
                self._signing_key(token),
                algorithms=self.algorithms,
                options={"require": ["sub", "exp"], "verify_aud": False},
            )
        except jwt.PyJWTError as e:
            logger.warning("token_rejected", error=str(e), error_type=type(e).__name__)
            raise AuthenticationError("Invalid token")

        return identity_from_claims(claims)
