from pydantic import BaseModel, EmailStr
from typing import Literal


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenData(BaseModel):
    access_token: str
    token_type: Literal["bearer"] = "bearer"
    expires_in: int


class AuthUserOut(BaseModel):
    id: int
    username: str
    full_name: str | None = None
    role: str


class LoginData(BaseModel):
    auth: TokenData
    user: AuthUserOut
