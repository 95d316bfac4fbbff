from typing import Optional
import jwt

from models.auth_model import TokenData
from services.exceptions import AuthenticationError
from config import JWT_SECRET_KEY, JWT_ALGORITHM


class TokenVerifier:
    """
    Verifies access tokens issued by the auth service.
    Used for the HTTP bearer header and for the realtime handshake.
    """

    def __init__(self, secret_key: str = JWT_SECRET_KEY, algorithm: str = JWT_ALGORITHM):
        self.secret_key = secret_key
        self.algorithm = algorithm

    def verify(self, token: Optional[str]) -> TokenData:
        """Decode the token and return its claims, or raise AuthenticationError"""
        if not token:
            raise AuthenticationError("Authentication error: No token provided")

        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.PyJWTError:
            raise AuthenticationError("Authentication error: Invalid token")

        user_id = payload.get("id") or payload.get("user_id")
        if not user_id:
            raise AuthenticationError("Authentication error: Invalid token")

        return TokenData(
            user_id=str(user_id),
            username=payload.get("sub"),
            user_type=payload.get("type")
        )

    @staticmethod
    def token_from_header(authorization: Optional[str]) -> Optional[str]:
        """Pull the token out of an 'Authorization: Bearer <token>' header"""
        if not authorization:
            return None
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token:
            return None
        return token.strip()
