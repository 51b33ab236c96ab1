from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from taskmaster.utils.sanitization import sanitize_string, normalize_email


class RoleResponse(BaseModel):
    id: int
    name: str
    description: str | None = None

    class Config:
        from_attributes = True


class UserSummary(BaseModel):
    """Public view of a user embedded in other resources."""
    id: int
    email: EmailStr
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    avatar: str | None = None

    class Config:
        from_attributes = True


class UserBase(BaseModel):
    email: EmailStr
    username: str | None = Field(None, min_length=3, max_length=50, pattern=r"^[a-zA-Z0-9_.-]+$")
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    phone: str | None = Field(None, max_length=30)
    avatar: str | None = None

    @field_validator("email", mode="before")
    @classmethod
    def normalize(cls, v):
        return normalize_email(v)

    @field_validator("username", "first_name", "last_name", "phone", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)


class UserCreate(UserBase):
    password: str = Field(..., min_length=6)
    status: bool = True


class RegisterRequest(UserBase):
    password: str = Field(..., min_length=6)


class UserUpdate(BaseModel):
    email: EmailStr | None = None
    username: str | None = Field(None, min_length=3, max_length=50, pattern=r"^[a-zA-Z0-9_.-]+$")
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    phone: str | None = Field(None, max_length=30)
    avatar: str | None = None
    password: str | None = Field(None, min_length=6)
    role_id: int | None = None
    status: bool | None = None

    @field_validator("email", mode="before")
    @classmethod
    def normalize(cls, v):
        return normalize_email(v)

    @field_validator("username", "first_name", "last_name", "phone", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)


class UserResponse(UserSummary):
    phone: str | None = None
    status: bool
    role_id: int
    role: RoleResponse | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Token(BaseModel):
    access_token: str
    token_type: str


class TokenData(BaseModel):
    user_id: int | None = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str

    @field_validator("email", mode="before")
    @classmethod
    def normalize(cls, v):
        return normalize_email(v)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def normalize(cls, v):
        return normalize_email(v)


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    code: str = Field(..., min_length=1, max_length=20)
    password: str = Field(..., min_length=6)
    confirm_password: str

    @field_validator("email", mode="before")
    @classmethod
    def normalize(cls, v):
        return normalize_email(v)

    @field_validator("code", mode="before")
    @classmethod
    def normalize_code(cls, v):
        return v.strip().upper() if isinstance(v, str) else v

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class MessageResponse(BaseModel):
    message: str
