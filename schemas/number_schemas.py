from decimal import Decimal
from pydantic import BaseModel, Field, AliasChoices, field_validator


class BuyNumberRequest(BaseModel):
    service: str
    state: str = "random"
    is_premium: bool = Field(default=False, validation_alias=AliasChoices("is_premium", "isPremium"))
    markup_percentage: Decimal = Field(
        default=Decimal(0), ge=0, le=1000,
        validation_alias=AliasChoices("markup_percentage", "markupPercentage")
    )

    @field_validator('service')
    @classmethod
    def validate_service(cls, value):
        if not value or not value.strip():
            raise ValueError('Service is required')
        return value.strip()


class ActionRequest(BaseModel):
    # Validated by the service so unknown actions answer 400 "Invalid action"
    action: str
