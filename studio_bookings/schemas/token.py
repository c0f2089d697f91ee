# studio_bookings/schemas/token.py
from pydantic import BaseModel, Field
from typing import Optional


class TokenPayload(BaseModel):
    sub: str  # "sub" is the standard claim for subject (teacher user ID)
    # Tokens carry the organization as 'orgId'
    org_id: Optional[str] = Field(default=None, alias="orgId")
    exp: int

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
    }
