from .family import Family, FamilyCreate
from .student import ChildCreate
from .lesson import Lesson, ContentBlock, LessonStatus
from .activity import Activity, ActivityType

__all__ = [
    'Family', 'FamilyCreate', 'ChildCreate',
    'Lesson', 'ContentBlock', 'LessonStatus', 'Activity', 'ActivityType',
]
