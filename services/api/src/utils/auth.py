from typing import Optional

import jwt
from jwt import PyJWKClient
from pydantic import BaseModel

from . import log

logger = log.get_logger(__name__)

ALGORITHMS = ["RS256", "ES256"]


class AuthClientConfig(BaseModel):
    jwk_url: str
    audience: str
    issuer: str


class AuthClient:
    """Verifies OIDC bearer tokens against the provider's JWKS."""

    def __init__(self, config: AuthClientConfig) -> None:
        self.config = config
        self._jwks = PyJWKClient(config.jwk_url)

    def decode_jwt(self, token: str) -> Optional[dict]:
        try:
            signing_key = self._jwks.get_signing_key_from_jwt(token)
            return jwt.decode(
                token,
                signing_key.key,
                algorithms=ALGORITHMS,
                audience=self.config.audience,
                issuer=self.config.issuer,
            )
        except jwt.PyJWTError as e:
            logger.warning(f"Rejected bearer token: {e}")
            return None
