from pydantic import ConfigDict, EmailStr, Field, field_validator
from taskboard.schemas.base import CamelModel


class RegisterRequest(CamelModel):
    # passwords are taken verbatim
    model_config = ConfigDict(str_strip_whitespace=False)

    username: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("username", mode="before")
    @classmethod
    def strip_username(cls, value):
        return value.strip() if isinstance(value, str) else value


class RegisterResponse(CamelModel):
    user_id: int
    message: str


class LoginRequest(CamelModel):
    model_config = ConfigDict(str_strip_whitespace=False)

    email: EmailStr
    password: str = Field(..., min_length=1)


class ChangePasswordRequest(CamelModel):
    model_config = ConfigDict(str_strip_whitespace=False)

    old_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)


class TokenResponse(CamelModel):
    token: str
    user_id: int
    name: str
    email: str


class LogoutResponse(CamelModel):
    message: str
