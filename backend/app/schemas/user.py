from pydantic import BaseModel
from typing import Optional
from uuid import UUID


class UserSearchResponse(BaseModel):
    id: UUID
    username: Optional[str] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None

    class Config:
        from_attributes = True
