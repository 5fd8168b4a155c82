from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field


class UserCreate(BaseModel):
    email: EmailStr
    full_name: Optional[str] = Field(default=None, max_length=255)
    role: Literal["student", "teacher", "administrator"] = "student"
    teacher_id: Optional[int] = None


class UserRead(BaseModel):
    id: int
    email: EmailStr
    full_name: Optional[str] = None
    role: str
    teacher_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True
