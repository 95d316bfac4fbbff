from fastapi import Depends
from typing import Annotated

from repos.user_repo import UserRepository
from .db import get_db

def get_user_repository(db = Depends(get_db)):
    """
    Dependency to get a user repository instance.
    """
    return UserRepository(db)

# Create annotated types for cleaner dependency injection
UserRepositoryDep = Annotated[UserRepository, Depends(get_user_repository)]
