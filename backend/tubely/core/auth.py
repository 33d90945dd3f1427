"""
Tubely Authentication Module

Bearer token authentication for the upload endpoints. Tokens are HS256 JWTs
signed with the configured ``secret_key``; the subject claim carries the
user's UUID. Key features:

- Local JWT generation with issuer, issued-at and expiry claims
- Validation that enforces signature, issuer and expiry and parses the subject
- An ``HTTPBearer`` scheme with ``auto_error=False`` so a missing header is
  reported through the pipeline's own ``Unauthenticated`` error

The resulting ``AuthContext`` lives for a single request and is never cached.

Usage:
    ```python
    token = create_access_token(user_id, settings)
    auth = validate_access_token(token, settings)
    assert auth.user_id == user_id
    ```
"""

import logging

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

from tubely.config import Settings
from tubely.core.errors import Unauthenticated


logger = logging.getLogger(__name__)


# =============================================================================
# Security Scheme
# =============================================================================

security = HTTPBearer(
    scheme_name="Bearer",
    description="JWT Bearer token issued by the Tubely auth service.",
    auto_error=False,
)


@dataclass(frozen=True)
class AuthContext:
    """The authenticated caller for one request."""

    user_id: UUID


# =============================================================================
# Token Functions
# =============================================================================


def create_access_token(
    user_id: UUID,
    settings: Settings,
    expires_in: timedelta | None = None,
) -> str:
    """
    Create a signed access token for ``user_id``.

    Token claims:
    - sub: user UUID as a string
    - iss: configured ``jwt_issuer``
    - iat: issued-at timestamp
    - exp: expiry, ``jwt_expiration_hours`` from now unless ``expires_in`` is given

    Args:
        user_id: The user the token authenticates.
        settings: Settings carrying the signing secret, algorithm and issuer.
        expires_in: Optional explicit lifetime; may be negative to mint an
            already expired token.

    Returns:
        str: The encoded JWT.
    """
    now = datetime.now(UTC)
    lifetime = expires_in if expires_in is not None else timedelta(hours=settings.jwt_expiration_hours)
    expire = now + lifetime

    payload = {
        "sub": str(user_id),
        "iss": settings.jwt_issuer,
        "iat": now,
        "exp": expire,
    }

    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    logger.debug("Created access token for user: %s (expires: %s)", user_id, expire.isoformat())
    return token


def validate_access_token(token: str, settings: Settings) -> AuthContext:
    """
    Validate a bearer token and return the caller's identity.

    Verifies signature, issuer and expiry, and requires a subject that parses
    as a UUID.

    Args:
        token: The raw JWT string from the Authorization header.
        settings: Settings carrying the signing secret, algorithm and issuer.

    Returns:
        AuthContext: The authenticated user.

    Raises:
        Unauthenticated: If the token is malformed, expired, signed with another
            key, issued by someone else, or carries no usable subject.
    """
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={"require_exp": True, "require_sub": True},
        )
    except ExpiredSignatureError as e:
        logger.info("Rejected expired access token")
        raise Unauthenticated() from e
    except JWTError as e:
        logger.info("Rejected access token: %s", e)
        raise Unauthenticated() from e

    try:
        user_id = UUID(payload["sub"])
    except (KeyError, TypeError, ValueError) as e:
        logger.info("Rejected access token with unusable subject")
        raise Unauthenticated() from e

    return AuthContext(user_id=user_id)


def authenticate_credentials(
    credentials: HTTPAuthorizationCredentials | None,
    settings: Settings,
) -> AuthContext:
    """
    Resolve the ``HTTPBearer`` result into an ``AuthContext``.

    ``HTTPBearer(auto_error=False)`` yields None both when the header is absent
    and when it uses a scheme other than Bearer.
    """
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Couldn't find JWT")
    return validate_access_token(credentials.credentials, settings)
