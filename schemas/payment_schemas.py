from decimal import Decimal
from pydantic import BaseModel, Field, field_validator, model_validator

VALID_NETWORKS = {
    "BTC": ["BTC"],
    "ETH": ["ETH"],
    "LTC": ["LTC"],
    "USDT": ["ETH", "TRC20", "POLYGON"],
    "USDC": ["ETH", "POLYGON"],
}


class CryptoPaymentRequest(BaseModel):
    amount: Decimal = Field(gt=0, decimal_places=2)
    currency: str
    network: str

    @field_validator('currency', 'network')
    @classmethod
    def upper(cls, value):
        return value.strip().upper()

    @model_validator(mode='after')
    def validate_network(self):
        if self.currency not in VALID_NETWORKS:
            raise ValueError('Invalid currency')
        if self.network not in VALID_NETWORKS[self.currency]:
            raise ValueError(f'Invalid network for {self.currency}')
        return self


class ManualDepositRequest(BaseModel):
    amount: Decimal = Field(gt=0, decimal_places=2)
    method: str

    @field_validator('method')
    @classmethod
    def validate_method(cls, value):
        if not value or not value.strip():
            raise ValueError('Method is required')
        return value.strip()
