"""
Bearer-token authentication utilities for FastAPI.

Tokens are issued by the login service. By default they are HS256 tokens
signed with ``SECRET_KEY``; when ``AUTH_JWKS_URL`` is configured they are
verified as RS256 against the published key set instead.
"""

from typing import Optional, Dict, Any
from fastapi import HTTPException, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import base64
import logging
import requests
import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from .config import settings

logger = logging.getLogger(__name__)
security = HTTPBearer()

_jwks: Dict[str, Any] | None = None


def load_jwks() -> Dict[str, Any]:
    global _jwks
    if _jwks is None:
        try:
            resp = requests.get(settings.auth_jwks_url, timeout=5)
            resp.raise_for_status()
            _jwks = resp.json()
        except Exception as e:
            logger.error(f"Could not load JWKS: {e}")
            raise HTTPException(status_code=503, detail="Auth key fetch failed")
    return _jwks


def jwk_to_pem(jwk_key: Dict[str, Any]) -> str:
    # RSA n/e -> PEM
    n_b64 = jwk_key.get("n")
    e_b64 = jwk_key.get("e")
    if not n_b64 or not e_b64:
        raise HTTPException(status_code=401, detail="Invalid JWK")

    def b64url_to_int(b64: str) -> int:
        pad = "=" * (-len(b64) % 4)
        return int.from_bytes(base64.urlsafe_b64decode(b64 + pad), "big")

    pub = rsa.RSAPublicNumbers(b64url_to_int(e_b64), b64url_to_int(n_b64)).public_key()
    return pub.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("utf-8")


def get_public_key_pem(token: str) -> str:
    jwks = load_jwks()
    kid = jwt.get_unverified_header(token).get("kid")
    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return jwk_to_pem(key)
    raise HTTPException(status_code=401, detail="Public key not found")


def verify_token(token: str) -> Dict[str, Any]:
    options = {"verify_aud": False}
    issuer = settings.auth_issuer
    if not issuer:
        options["verify_iss"] = False
    try:
        if settings.auth_jwks_url:
            key, algorithms = get_public_key_pem(token), ["RS256"]
        else:
            key, algorithms = settings.secret_key, [settings.jwt_algorithm]
        return jwt.decode(token, key, algorithms=algorithms, issuer=issuer, options=options)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidIssuerError:
        raise HTTPException(status_code=401, detail="Invalid issuer")
    except jwt.InvalidTokenError as e:
        logger.warning(f"JWT verification failed: {e}")
        raise HTTPException(status_code=401, detail="Invalid token")


class AuthenticatedUser:
    """Represents the caller identified by a bearer token."""

    def __init__(self, user_id: str, email: Optional[str] = None,
                 first_name: Optional[str] = None, last_name: Optional[str] = None):
        self.user_id = user_id
        self.email = email
        self.first_name = first_name
        self.last_name = last_name

    def __repr__(self) -> str:
        return f"AuthenticatedUser(user_id={self.user_id!r})"


def extract_user_from_payload(payload: Dict[str, Any]) -> AuthenticatedUser:
    """Extract user information from JWT payload."""
    user_id = payload.get("userId") or payload.get("sub") or payload.get("user_id")
    if not user_id or not isinstance(user_id, str):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing user ID"
        )
    return AuthenticatedUser(
        user_id=user_id,
        email=payload.get("email") or payload.get("email_address"),
        first_name=payload.get("first_name") or payload.get("given_name"),
        last_name=payload.get("last_name") or payload.get("family_name"),
    )


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> AuthenticatedUser:
    """
    Dependency to get the current authenticated user.

    Args:
        credentials: HTTP Bearer token credentials

    Returns:
        AuthenticatedUser: The authenticated user

    Raises:
        HTTPException: If authentication fails
    """
    token = credentials.credentials if credentials else None
    if not token:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authenticated")
    payload = verify_token(token)
    user = extract_user_from_payload(payload)
    logger.debug(f"User authenticated: {user.user_id}")
    return user
