from pydantic import BaseModel, EmailStr, Field, field_validator
from enum import Enum


class Role(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: Role

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()


class UserLogin(BaseModel):
    email: EmailStr
    password: str

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()
