# centralizes MongoDB utilities
from bson import ObjectId
from typing import Annotated, Any
from pydantic import Field

PyObjectId = Annotated[str, Field(default_factory=lambda: str(ObjectId()))]

# Helper functions for MongoDB operations
def convert_to_object_id(id_value: str) -> ObjectId:
    """Convert string ID to ObjectId for MongoDB queries"""
    return ObjectId(id_value)

def is_valid_object_id(id_value: Any) -> bool:
    """Check whether a value can be used as an ObjectId"""
    return ObjectId.is_valid(id_value)

def make_pair_key(user_a: str, user_b: str) -> str:
    """Canonical key for an unordered pair of participants"""
    return "_".join(sorted([str(user_a), str(user_b)]))
