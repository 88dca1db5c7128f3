from typing import Literal
from pydantic import BaseModel, EmailStr, field_validator, model_validator
import phonenumbers
import re

ContactMethod = Literal["telegram", "teams", "whatsapp", "slack", "discord"]


def check_password_strength(value: str) -> str:
    """
    Password must be at least 8 characters and contain:
    - At least one letter
    - At least one digit
    """
    if len(value) < 8:
        raise ValueError('Password must be at least 8 characters')

    if not re.search(r'[A-Za-z]', value):
        raise ValueError('Password must contain at least one letter')

    if not re.search(r'\d', value):
        raise ValueError('Password must contain at least one digit')

    return value


def normalize_contact(method: str, value: str) -> str:
    """
    WhatsApp contacts are phone numbers and are stored in E.164;
    every other channel takes a handle or email as typed.
    """
    value = value.strip()
    if not value:
        raise ValueError('Contact value is required')

    if method != "whatsapp":
        return value

    try:
        parsed = phonenumbers.parse(value, None)
    except phonenumbers.NumberParseException:
        raise ValueError('WhatsApp number must include country code (e.g.: +14155550123)')

    if not phonenumbers.is_valid_number(parsed):
        raise ValueError('Invalid WhatsApp number')

    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str


class CreateUserRequest(BaseModel):
    username: str
    email: EmailStr
    password: str
    confirm_password: str
    contact_method: ContactMethod
    contact_value: str

    @field_validator('username')
    @classmethod
    def validate_username(cls, value):
        value = value.strip()
        if len(value) < 3:
            raise ValueError('Username must be at least 3 characters')
        return value

    @field_validator('password')
    @classmethod
    def validate_password(cls, value):
        return check_password_strength(value)

    @model_validator(mode='after')
    def validate_form(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        self.contact_value = normalize_contact(self.contact_method, self.contact_value)
        return self


class UpdateProfileRequest(BaseModel):
    username: str | None = None
    contact_method: ContactMethod | None = None
    contact_value: str | None = None

    @model_validator(mode='after')
    def validate_contact(self):
        if (self.contact_method is None) != (self.contact_value is None):
            raise ValueError('contact_method and contact_value must be changed together')
        if self.contact_method is not None:
            self.contact_value = normalize_contact(self.contact_method, self.contact_value)
        return self


class EmailRequest(BaseModel):
    email: EmailStr


class RefreshTokenRequest(BaseModel):
    refresh_token: str

    @field_validator('refresh_token')
    @classmethod
    def validate_token(cls, value):
        if not value or not value.strip():
            raise ValueError('Refresh token cannot be empty')
        return value


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str

    @field_validator('new_password')
    @classmethod
    def validate_password(cls, value):
        return check_password_strength(value)


class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str

    @field_validator('new_password')
    @classmethod
    def validate_password(cls, value):
        return check_password_strength(value)


class DeactivateUserRequest(BaseModel):
    password: str
