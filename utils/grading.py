"""Activity grading.

Each activity carries a type string and a JSON answer key. The type and key
are parsed into one of a closed set of answer-key variants; anything that is
not a known type with a well-formed key becomes ``UnsupportedKey`` and is
never graded, so new activity kinds can be added to the catalog without
breaking older content.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Tuple, Union

from models.activity import Activity, ActivityType


@dataclass(frozen=True)
class MultipleChoiceKey:
    options: Tuple[str, ...]
    correct: int


@dataclass(frozen=True)
class TrueFalseKey:
    correct: bool


@dataclass(frozen=True)
class FillBlankKey:
    answers: Tuple[str, ...]
    display: str = ""


@dataclass(frozen=True)
class MemoryVerseKey:
    verse: str = ""
    reference: str = ""


@dataclass(frozen=True)
class UnsupportedKey:
    activity_type: str


AnswerKey = Union[MultipleChoiceKey, TrueFalseKey, FillBlankKey, MemoryVerseKey, UnsupportedKey]


@dataclass(frozen=True)
class GradeResult:
    is_correct: bool
    points_earned: int


def _is_index(value: Any) -> bool:
    # bool is an int subclass; True must never match option 1
    return isinstance(value, int) and not isinstance(value, bool)


def normalize_answer(text: str) -> str:
    return text.strip().lower()


def parse_answer_key(activity_type: str, data: Optional[dict]) -> AnswerKey:
    """Parse a stored answer key into its typed variant."""
    try:
        kind = ActivityType(activity_type)
    except ValueError:
        return UnsupportedKey(activity_type=str(activity_type))
    data = data or {}
    if kind is ActivityType.MULTIPLE_CHOICE:
        options = data.get("options")
        correct = data.get("correct")
        if not isinstance(options, list) or not _is_index(correct):
            return UnsupportedKey(activity_type=kind.value)
        return MultipleChoiceKey(options=tuple(str(option) for option in options), correct=correct)
    if kind is ActivityType.TRUE_FALSE:
        correct = data.get("correct")
        if not isinstance(correct, bool):
            return UnsupportedKey(activity_type=kind.value)
        return TrueFalseKey(correct=correct)
    if kind is ActivityType.FILL_BLANK:
        answers = data.get("answers")
        if not isinstance(answers, list) or not answers:
            return UnsupportedKey(activity_type=kind.value)
        return FillBlankKey(
            answers=tuple(str(answer) for answer in answers),
            display=str(data.get("display") or ""),
        )
    return MemoryVerseKey(
        verse=str(data.get("verse") or ""),
        reference=str(data.get("reference") or ""),
    )


def answer_key_for(activity: Activity) -> AnswerKey:
    return parse_answer_key(activity.activity_type, activity.activity_data)


def grade(activity: Activity, answer: Any) -> Optional[GradeResult]:
    """Grade one submitted answer.

    Returns ``None`` for unsupported activities. Points are the activity's
    full value when correct and 0 otherwise; memory verses are self-attested
    and always correct once acknowledged.
    """
    key = answer_key_for(activity)
    if isinstance(key, UnsupportedKey):
        return None
    if isinstance(key, MemoryVerseKey):
        is_correct = True
    elif isinstance(key, MultipleChoiceKey):
        is_correct = _is_index(answer) and answer == key.correct
    elif isinstance(key, TrueFalseKey):
        is_correct = isinstance(answer, bool) and answer == key.correct
    else:
        accepted = {normalize_answer(option) for option in key.answers}
        is_correct = answer is not None and normalize_answer(str(answer)) in accepted
    points_earned = activity.points if is_correct else 0
    return GradeResult(is_correct=is_correct, points_earned=points_earned)


def coerce_answer(key: AnswerKey, raw: Optional[str]) -> Any:
    """Turn a submitted form value into the typed answer, or None if unusable."""
    if isinstance(key, UnsupportedKey):
        return None
    if raw is None or not str(raw).strip():
        return None
    raw = str(raw)
    if isinstance(key, MemoryVerseKey):
        return True
    if isinstance(key, MultipleChoiceKey):
        try:
            return int(raw.strip())
        except ValueError:
            return None
    if isinstance(key, TrueFalseKey):
        lowered = raw.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
        return None
    return raw


def correct_answer_text(key: AnswerKey) -> str:
    """Human-readable correct answer for feedback after a miss."""
    if isinstance(key, MultipleChoiceKey):
        if 0 <= key.correct < len(key.options):
            return key.options[key.correct]
        return ""
    if isinstance(key, TrueFalseKey):
        return "True" if key.correct else "False"
    if isinstance(key, FillBlankKey):
        return key.answers[0]
    return ""
