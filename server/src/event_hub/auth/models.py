"""Authentication models for FastAPI"""

from typing import Optional

from pydantic import BaseModel


class User(BaseModel):
    """The authenticated caller as seen by the registration flow"""

    user_id: str
    email: Optional[str] = None
    claims: dict = {}
