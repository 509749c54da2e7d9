from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, Field, AliasChoices


class TypingRequest(BaseModel):
    display_name: Optional[str] = Field(default=None, max_length=100, validation_alias=AliasChoices('display_name', 'userName'))


class TypingUser(BaseModel):
    user_id: UUID
    display_name: str


class TypingResponse(BaseModel):
    conversation_id: UUID
    typing: List[TypingUser]
