# demo_scheduling/schemas/token.py
from typing import Optional

from pydantic import BaseModel


class TokenPayload(BaseModel):
    sub: str  # "sub" is the standard claim for subject (user ID)
    role: Optional[str] = None  # "admin" or "student"
    exp: int  # Standard claim for expiration time

    model_config = {"from_attributes": True}


class Caller(BaseModel):
    """Identity and role of whoever is making a request, as decided by auth."""
    user_id: str
    is_admin: bool = False

    def acts_for(self, student_id: str) -> bool:
        """True if the caller is this student or an admin."""
        return self.is_admin or self.user_id == student_id
