"""
Caller identity for the Eligibility Service.
"""

from typing import Optional

import jwt

from shared.errors import AuthenticationError
from shared.logging import get_logger


class CallerAuthenticator:
    """Resolves the calling principal from a bearer JWT.

    The principal is the token's ``sub`` claim; every ledger call is made on
    behalf of exactly that principal.
    """

    def __init__(self, secret: str, algorithm: str = "HS256"):
        self.secret = secret
        self.algorithm = algorithm
        self.logger = get_logger("eligibility.auth")

    def issue_token(self, principal: str, **claims) -> str:
        """Sign a token for ``principal``; used by operators and tests."""
        return jwt.encode({"sub": principal, **claims}, self.secret, algorithm=self.algorithm)

    def authenticate(self, authorization: Optional[str]) -> str:
        if not authorization:
            raise AuthenticationError("Authorization header required")
        if not authorization.startswith("Bearer "):
            raise AuthenticationError("Invalid authorization header format")

        token = authorization[7:]
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.PyJWTError as e:
            self.logger.warning("Token verification failed", error=str(e))
            raise AuthenticationError("Invalid token", details={"token_error": str(e)}) from None

        principal = claims.get("sub")
        if not principal:
            raise AuthenticationError("Token has no subject")
        return principal
