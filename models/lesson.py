import json
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

class LessonStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

def _json_list(v):
    if v is None or v == "":
        return []
    if isinstance(v, str):
        try:
            v = json.loads(v)
        except ValueError:
            return [line.strip() for line in v.splitlines() if line.strip()]
    return [str(item) for item in v] if isinstance(v, list) else []

class Lesson(BaseModel):
    id: int
    course_id: int
    unit_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    week_number: int = 1
    day_number: int = 1
    order_index: int = 0
    estimated_minutes: int = 20
    objectives: List[str] = []
    teacher_script: Optional[str] = None
    discussion_questions: List[str] = []
    prayer_prompt: Optional[str] = None
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)

    @field_validator('objectives', 'discussion_questions', mode='before')
    @classmethod
    def parse_json_list(cls, v):
        return _json_list(v)

class ContentBlock(BaseModel):
    id: int
    lesson_id: int
    content_type: str = "other"
    title: Optional[str] = None
    content: str = ""
    is_read_aloud: bool = False
    for_student: bool = True
    order_index: int = 0

    model_config = ConfigDict(from_attributes=True)
