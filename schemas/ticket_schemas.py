from typing import Literal
from pydantic import BaseModel, field_validator


def _not_blank(value: str) -> str:
    if not value or not value.strip():
        raise ValueError('Field cannot be empty')
    return value.strip()


class CreateTicketRequest(BaseModel):
    title: str
    description: str
    category: Literal["general", "technical", "billing", "account"] = "general"
    priority: Literal["low", "medium", "high"] = "medium"

    @field_validator('title', 'description')
    @classmethod
    def validate_text(cls, value):
        return _not_blank(value)


class TicketReplyRequest(BaseModel):
    message: str

    @field_validator('message')
    @classmethod
    def validate_message(cls, value):
        if not value or not value.strip():
            raise ValueError('Message cannot be empty')
        return value.strip()
