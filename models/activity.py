import json
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, field_validator

class ActivityType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    FILL_BLANK = "fill_blank"
    MEMORY_VERSE = "memory_verse"

class Activity(BaseModel):
    id: int
    lesson_id: int
    activity_type: str  # unknown types are kept and rendered read-only
    title: str = ""
    instructions: Optional[str] = None
    question_text: Optional[str] = None
    activity_data: Dict[str, Any] = {}
    points: int = 0
    hint: Optional[str] = None
    explanation: Optional[str] = None
    order_index: int = 0

    model_config = ConfigDict(from_attributes=True)

    @field_validator('activity_data', mode='before')
    @classmethod
    def parse_activity_data(cls, v):
        if v is None or v == "":
            return {}
        if isinstance(v, str):
            try:
                v = json.loads(v)
            except ValueError:
                return {}
        return v if isinstance(v, dict) else {}

    @field_validator('points', mode='before')
    @classmethod
    def non_negative_points(cls, v):
        return max(int(v or 0), 0)
