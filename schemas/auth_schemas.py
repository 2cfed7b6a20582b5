from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
import re


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class UserOut(BaseModel):
    id: int
    email: EmailStr
    name: str

    model_config = {"from_attributes": True}


class RegisterResponse(Token):
    user: UserOut


class RefreshResponse(Token):
    message: str = "Token refreshed successfully"


class LogoutResponse(BaseModel):
    message: str
    session_ended: bool


class LogoutAllResponse(BaseModel):
    message: str
    revoked_count: int


class RegisterRequest(BaseModel):
    email: EmailStr
    name: str = ""
    password: str = Field(max_length=128)
    confirm_password: str

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value):
        return value.lower().strip()

    @field_validator('name')
    @classmethod
    def strip_name(cls, value):
        return value.strip()

    @field_validator('password')
    @classmethod
    def validate_password(cls, value):
        """
        Password must be at least 8 characters and contain:
        - a lowercase letter
        - an uppercase letter
        - a digit
        - a symbol
        """
        if len(value) < 8:
            raise ValueError('Password must be at least 8 characters long')

        for pattern, name in ((r'[a-z]', 'lowercase'), (r'[A-Z]', 'uppercase'),
                              (r'\d', 'digit'), (r'[^A-Za-z0-9]', 'symbol')):
            if not re.search(pattern, value):
                raise ValueError(f'Password must include at least one {name}')

        return value

    @model_validator(mode='after')
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError('Confirm password must match password')
        return self


class LoginRequest(BaseModel):
    email: EmailStr
    password: str

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value):
        return value.lower().strip()

    @field_validator('password')
    @classmethod
    def validate_password(cls, value):
        if not value:
            raise ValueError('Password cannot be empty')
        return value
