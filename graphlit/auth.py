"""
Graphlit Python SDK - Token Generation

Graphlit authenticates API calls with a short-lived HS256 JWT signed by the
environment's JWT secret.
"""

import time
from typing import Any, Dict, Optional

import jwt
from pydantic import BaseModel, ConfigDict, Field

from graphlit.config import Limits


# =============================================================================
# Configuration
# =============================================================================


DEFAULT_ALGORITHM = "HS256"
CLAIMS_NAMESPACE = "https://graphlit.io/jwt/claims"
TOKEN_ISSUER = "graphlit"
TOKEN_AUDIENCE = "https://portal.graphlit.io"
DEFAULT_ROLE = "Owner"


# =============================================================================
# Models
# =============================================================================


class GraphlitClaims(BaseModel):
    """Namespaced Graphlit claims carried in the token."""

    model_config = ConfigDict(populate_by_name=True)

    organization_id: str = Field(alias="x-graphlit-organization-id")
    environment_id: str = Field(alias="x-graphlit-environment-id")
    owner_id: Optional[str] = Field(default=None, alias="x-graphlit-owner-id")
    user_id: Optional[str] = Field(default=None, alias="x-graphlit-user-id")
    role: str = Field(default=DEFAULT_ROLE, alias="x-graphlit-role")


class TokenPayload(BaseModel):
    """JWT token payload."""

    model_config = ConfigDict(populate_by_name=True)

    claims: GraphlitClaims = Field(alias=CLAIMS_NAMESPACE)
    exp: int  # Expiration (epoch seconds)
    iss: str = TOKEN_ISSUER
    aud: str = TOKEN_AUDIENCE

    def to_jwt_claims(self) -> Dict[str, Any]:
        """Serialize with wire names, omitting unset tenant claims."""
        return self.model_dump(by_alias=True, exclude_none=True)


# =============================================================================
# Token helpers
# =============================================================================


def generate_token(
    organization_id: str,
    environment_id: str,
    jwt_secret: str,
    owner_id: Optional[str] = None,
    user_id: Optional[str] = None,
    expires_in: int = Limits.TOKEN_LIFETIME_SECONDS,
) -> str:
    """
    Sign a Graphlit API token.

    Args:
        organization_id: Graphlit organization identifier
        environment_id: Graphlit environment identifier
        jwt_secret: Environment JWT secret
        owner_id: Optional owner for multi-tenant access
        user_id: Optional user for multi-tenant access
        expires_in: Token lifetime in seconds (one day by default)

    Returns:
        Encoded JWT string
    """
    payload = TokenPayload(
        claims=GraphlitClaims(
            organization_id=organization_id,
            environment_id=environment_id,
            owner_id=owner_id or None,
            user_id=user_id or None,
        ),
        exp=int(time.time()) + expires_in,
    )

    return jwt.encode(payload.to_jwt_claims(), jwt_secret, algorithm=DEFAULT_ALGORITHM)


def decode_token(token: str, jwt_secret: str, verify_exp: bool = True) -> TokenPayload:
    """Decode and verify a token produced by :func:`generate_token`."""
    payload_dict = jwt.decode(
        token,
        jwt_secret,
        algorithms=[DEFAULT_ALGORITHM],
        audience=TOKEN_AUDIENCE,
        issuer=TOKEN_ISSUER,
        options={"verify_exp": verify_exp},
    )
    return TokenPayload.model_validate(payload_dict)
