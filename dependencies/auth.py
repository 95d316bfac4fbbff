# dependencies/auth.py
from fastapi import Depends
from typing import Annotated

from db.schemas.users_schema import UserInDB
from services.auth_service import TokenVerifier
from services.exceptions import AuthenticationError
from dependencies.user import UserRepositoryDep
from config import oauth2_scheme

def get_token_verifier() -> TokenVerifier:
    """
    Dependency to get the access token verifier.
    """
    return TokenVerifier()

async def get_current_user(
    user_repo: UserRepositoryDep,
    token: str = Depends(oauth2_scheme),
    verifier: TokenVerifier = Depends(get_token_verifier)
) -> UserInDB:
    """Get the current authenticated user from the JWT token."""
    token_data = verifier.verify(token)

    user = await user_repo.find_by_id(token_data.user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("Could not validate credentials")

    return user

# Create annotated types for cleaner dependency injection
CurrentUser = Annotated[UserInDB, Depends(get_current_user)]
TokenVerifierDep = Annotated[TokenVerifier, Depends(get_token_verifier)]
