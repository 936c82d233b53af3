from pydantic import BaseModel, field_validator
from typing import Optional
from datetime import date

class ChildCreate(BaseModel):
    first_name: str
    last_name: str = ""
    birth_date: Optional[date] = None
    grade_id: Optional[int] = None

    @field_validator('first_name')
    @classmethod
    def require_first_name(cls, v):
        if not v or not v.strip():
            raise ValueError("First name is required")
        return v.strip()

    @field_validator('last_name')
    @classmethod
    def strip_last_name(cls, v):
        return (v or "").strip()

    @field_validator('birth_date', 'grade_id', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v
