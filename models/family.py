from pydantic import BaseModel, ConfigDict, field_validator
from typing import List, Optional

from utils.schedule import parse_school_days

class FamilyBase(BaseModel):
    name: str
    email: str

class FamilyCreate(FamilyBase):
    password: str
    first_name: str
    last_name: str = ""

    @field_validator('name', 'first_name')
    @classmethod
    def require_text(cls, v):
        if not v or not v.strip():
            raise ValueError("This field is required")
        return v.strip()

    @field_validator('last_name')
    @classmethod
    def strip_last_name(cls, v):
        return (v or "").strip()

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        v = (v or "").strip().lower()
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError("A valid email address is required")
        return v

    @field_validator('password')
    @classmethod
    def validate_password(cls, v):
        if not v or len(v) < 8:
            raise ValueError("Password must be at least 8 characters")
        return v

class Family(FamilyBase):
    id: int
    trial_ends_at: Optional[str] = None  # ISO datetime
    school_days: List[int] = [1, 2, 3, 4, 5]
    curriculum_start_date: Optional[str] = None  # ISO date

    model_config = ConfigDict(from_attributes=True)

    @field_validator('school_days', mode='before')
    @classmethod
    def parse_days(cls, v):
        return parse_school_days(v)
