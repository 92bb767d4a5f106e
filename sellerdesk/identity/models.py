from typing import  Optional
from pydantic import BaseModel, Field


class SignupIn(BaseModel):
    email: str = Field(..., examples=["seller@example.com"])
    password: str = Field(..., examples=["StrongPassword1!"])
    name: Optional[str] = Field(None, examples=["Full Name"])

class SignIn(BaseModel):
    email: str = Field(...)
    password: str = Field(...)
