from typing import Literal
from pydantic import BaseModel, field_validator


class CreateRentalRequest(BaseModel):
    service: str
    state: str = "random"
    duration: Literal["3days", "30days"]

    @field_validator('service')
    @classmethod
    def validate_service(cls, value):
        if not value or not value.strip():
            raise ValueError('Service is required')
        return value.strip()
